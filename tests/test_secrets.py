"""Tests for SecretProvider caching and value extraction."""

import pytest
from botocore.exceptions import ClientError

from teegen.services.exceptions import SecretResolutionError
from teegen.services.storage.secrets import SecretProvider, extract_secret_value


class FakeSecretsManager:
    def __init__(self, secrets: dict[str, str]):
        self.secrets = secrets
        self.calls: list[str] = []

    def get_secret_value(self, SecretId):
        self.calls.append(SecretId)
        if SecretId not in self.secrets:
            raise ClientError(
                {"Error": {"Code": "ResourceNotFoundException", "Message": "not found"}},
                "GetSecretValue",
            )
        return {"SecretString": self.secrets[SecretId]}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestExtractSecretValue:
    def test_plain_string(self):
        assert extract_secret_value("id", "xoxb-plain") == "xoxb-plain"

    def test_json_value_key(self):
        assert extract_secret_value("id", '{"secret": "s", "value": "v"}') == "v"

    def test_json_secret_key(self):
        assert extract_secret_value("id", '{"other": "o", "secret": "s"}') == "s"

    def test_json_first_string_value(self):
        assert extract_secret_value("id", '{"n": 1, "token": "t"}') == "t"

    def test_json_non_object_used_verbatim(self):
        assert extract_secret_value("id", '"quoted"') == '"quoted"'

    def test_json_without_string_value_raises(self):
        with pytest.raises(SecretResolutionError):
            extract_secret_value("id", '{"n": 1}')


@pytest.mark.asyncio
class TestSecretProvider:
    async def test_caches_within_ttl(self):
        client = FakeSecretsManager({"slack/token": "xoxb-1"})
        clock = FakeClock()
        provider = SecretProvider(ttl_seconds=300, client=client, clock=clock)

        first = await provider.get_secret("slack/token")
        clock.now += 299
        second = await provider.get_secret("slack/token")

        assert first == second == "xoxb-1"
        assert client.calls == ["slack/token"]

    async def test_refetches_after_ttl(self):
        client = FakeSecretsManager({"slack/token": "xoxb-1"})
        clock = FakeClock()
        provider = SecretProvider(ttl_seconds=300, client=client, clock=clock)

        await provider.get_secret("slack/token")
        client.secrets["slack/token"] = "xoxb-rotated"
        clock.now += 301
        value = await provider.get_secret("slack/token")

        assert value == "xoxb-rotated"
        assert len(client.calls) == 2

    async def test_clear_drops_cache(self):
        client = FakeSecretsManager({"k": "v"})
        provider = SecretProvider(client=client, clock=FakeClock())

        await provider.get_secret("k")
        provider.clear()
        await provider.get_secret("k")

        assert client.calls == ["k", "k"]

    async def test_fetch_failure_raises_resolution_error(self):
        provider = SecretProvider(client=FakeSecretsManager({}), clock=FakeClock())

        with pytest.raises(SecretResolutionError, match="missing/secret"):
            await provider.get_secret("missing/secret")

    async def test_resolve_prefers_direct_value(self):
        client = FakeSecretsManager({"k": "from-manager"})
        provider = SecretProvider(client=client, clock=FakeClock())

        assert await provider.resolve("direct", "k") == "direct"
        assert await provider.resolve("", "k") == "from-manager"
        assert client.calls == ["k"]

    async def test_resolve_without_configuration_raises(self):
        provider = SecretProvider(client=FakeSecretsManager({}), clock=FakeClock())

        with pytest.raises(SecretResolutionError):
            await provider.resolve("", "")
