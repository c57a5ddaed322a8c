"""Tests for SlackClient over an httpx.MockTransport."""

import json

import httpx
import pytest

from teegen.services.exceptions import SlackApiError, SlackRateLimitError
from teegen.services.slack.client import SlackClient

BASE = "https://slack.test/api"


def make_client(handler) -> SlackClient:
    async def token() -> str:
        return "xoxb-123"

    return SlackClient(token_provider=token, base_url=BASE, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestSlackClient:
    async def test_post_message_sends_bearer_token_and_returns_ts(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "ts": "171.0001"})

        client = make_client(handler)
        try:
            ts = await client.post_message("C1", "hello", blocks=[{"type": "divider"}])
        finally:
            await client.aclose()

        assert ts == "171.0001"
        assert seen["url"] == f"{BASE}/chat.postMessage"
        assert seen["auth"] == "Bearer xoxb-123"
        assert seen["body"] == {"channel": "C1", "text": "hello", "blocks": [{"type": "divider"}]}

    async def test_update_message_targets_chat_update(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((str(request.url), json.loads(request.content)))
            return httpx.Response(200, json={"ok": True})

        client = make_client(handler)
        try:
            await client.update_message("C1", "171.0001", "updated")
        finally:
            await client.aclose()

        assert calls == [(f"{BASE}/chat.update", {"channel": "C1", "ts": "171.0001", "text": "updated"})]

    async def test_ok_false_raises_api_error(self):
        client = make_client(lambda request: httpx.Response(200, json={"ok": False, "error": "channel_not_found"}))
        try:
            with pytest.raises(SlackApiError, match="channel_not_found"):
                await client.post_message("C404", "hi")
        finally:
            await client.aclose()

    async def test_429_raises_rate_limit_error(self):
        client = make_client(lambda request: httpx.Response(429, headers={"Retry-After": "30"}))
        try:
            with pytest.raises(SlackRateLimitError, match="30"):
                await client.post_message("C1", "hi")
        finally:
            await client.aclose()

    async def test_respond_posts_json_to_response_url(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((str(request.url), json.loads(request.content), request.headers.get("Authorization")))
            return httpx.Response(200, text="ok")

        client = make_client(handler)
        try:
            await client.respond("https://hooks.slack.test/x", {"text": "done", "replace_original": True})
        finally:
            await client.aclose()

        assert calls == [("https://hooks.slack.test/x", {"text": "done", "replace_original": True}, None)]

    async def test_respond_server_error_raises(self):
        client = make_client(lambda request: httpx.Response(404, text="expired_url"))
        try:
            with pytest.raises(SlackApiError, match="expired_url"):
                await client.respond("https://hooks.slack.test/x", {"text": "done"})
        finally:
            await client.aclose()

    async def test_network_error_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        try:
            with pytest.raises(SlackApiError, match="network error"):
                await client.post_message("C1", "hi")
        finally:
            await client.aclose()
