"""Slack Web API client for posting results back to conversations."""

from typing import Any, Awaitable, Callable

import httpx
import structlog

from teegen.services.exceptions import SlackApiError, SlackRateLimitError

logger = structlog.get_logger(__name__)

TokenProvider = Callable[[], Awaitable[str]]


class SlackClient:
    """Minimal Slack client covering chat.postMessage, chat.update and response_url posts.

    The bot token is fetched through token_provider on every call so a rotated
    secret is picked up once the secret cache expires.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str = "https://slack.com/api",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Slack client.

        Args:
            token_provider: Coroutine function returning the bot token
            base_url: Slack Web API base URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Call a Web API method and return the decoded response.

        Raises:
            SlackRateLimitError: On 429
            SlackApiError: On any other non-2xx status, network error or ok=false
        """
        token = await self.token_provider()
        try:
            response = await self._http.post(
                f"{self.base_url}/{method}",
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
                json=payload,
            )
        except httpx.HTTPError as e:
            raise SlackApiError(f"{method} network error: {e}") from e

        if response.status_code == 429:
            raise SlackRateLimitError(
                f"{method} rate limited (retry after {response.headers.get('Retry-After', '?')}s)"
            )
        if response.status_code >= 400:
            raise SlackApiError(f"{method} failed ({response.status_code}): {response.text}")

        data = response.json()
        if not data.get("ok"):
            raise SlackApiError(f"{method} error: {data.get('error', 'unknown_error')}")
        return data

    async def post_message(
        self,
        channel: str,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
        thread_ts: str | None = None,
    ) -> str | None:
        """Post a message to a channel.

        Returns:
            Message timestamp (the message handle), or None if Slack omitted it
        """
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if blocks is not None:
            payload["blocks"] = blocks
        if thread_ts:
            payload["thread_ts"] = thread_ts
        data = await self._call("chat.postMessage", payload)
        logger.debug("slack.message_posted", channel=channel, ts=data.get("ts"))
        return data.get("ts")

    async def update_message(
        self,
        channel: str,
        ts: str,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> None:
        """Replace the content of a previously posted message."""
        payload: dict[str, Any] = {"channel": channel, "ts": ts, "text": text}
        if blocks is not None:
            payload["blocks"] = blocks
        await self._call("chat.update", payload)

    async def respond(self, response_url: str, message: dict[str, Any]) -> None:
        """Post a message to an interaction's response_url (the callback target).

        response_url accepts unauthenticated JSON posts and answers with plain "ok".

        Raises:
            SlackRateLimitError: On 429
            SlackApiError: On any other failure
        """
        try:
            response = await self._http.post(response_url, json=message)
        except httpx.HTTPError as e:
            raise SlackApiError(f"response_url network error: {e}") from e

        if response.status_code == 429:
            raise SlackRateLimitError("response_url rate limited")
        if response.status_code >= 400:
            raise SlackApiError(f"response_url failed ({response.status_code}): {response.text}")
