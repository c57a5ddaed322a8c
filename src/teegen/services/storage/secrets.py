"""AWS Secrets Manager access with a bounded-lifetime cache."""

import asyncio
import json
import time
from typing import Any, Callable

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from teegen.services.exceptions import SecretResolutionError

logger = structlog.get_logger(__name__)


def extract_secret_value(secret_id: str, secret_string: str) -> str:
    """Pull the usable value out of a SecretString.

    JSON secrets are searched for a "value" key, then a "secret" key, then the
    first string value. Anything that is not a JSON object is used as-is.

    Raises:
        SecretResolutionError: If a JSON object secret holds no string value
    """
    try:
        parsed = json.loads(secret_string)
    except json.JSONDecodeError:
        return secret_string

    if not isinstance(parsed, dict):
        return secret_string

    for key in ("value", "secret"):
        if isinstance(parsed.get(key), str):
            return parsed[key]
    for value in parsed.values():
        if isinstance(value, str):
            return value
    raise SecretResolutionError(f"Secret {secret_id} has no string value")


class SecretProvider:
    """Fetches secrets by id and caches them for ttl_seconds.

    Constructed once per process and passed explicitly to whoever needs it;
    clear() drops every cached entry (tests and forced rotation).
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        client: Any = None,
        region: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._client = client
        self._region = region
        self._clock = clock
        self._cache: dict[str, tuple[str, float]] = {}

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("secretsmanager", region_name=self._region)
        return self._client

    def clear(self) -> None:
        self._cache.clear()

    async def get_secret(self, secret_id: str) -> str:
        """Return the secret value for secret_id, served from cache while fresh.

        Raises:
            SecretResolutionError: If the secret cannot be fetched or has no string value
        """
        cached = self._cache.get(secret_id)
        if cached and cached[1] > self._clock():
            return cached[0]

        try:
            response = await asyncio.to_thread(self.client.get_secret_value, SecretId=secret_id)
        except (ClientError, BotoCoreError) as e:
            raise SecretResolutionError(f"Failed to fetch secret {secret_id}: {e}") from e

        secret_string = response.get("SecretString")
        if not secret_string:
            raise SecretResolutionError(f"Secret {secret_id} has no string value")

        value = extract_secret_value(secret_id, secret_string)
        self._cache[secret_id] = (value, self._clock() + self.ttl_seconds)
        logger.info("secret.fetched", secret_id=secret_id)
        return value

    async def resolve(self, value: str, secret_id: str = "") -> str:
        """Return value when set directly, otherwise fetch secret_id.

        Raises:
            SecretResolutionError: If neither is configured
        """
        if value:
            return value
        if secret_id:
            return await self.get_secret(secret_id)
        raise SecretResolutionError("Secret is neither configured directly nor by id")
