"""Theme research and prompt suggestions with Claude + the web search tool."""

from typing import Any

import anthropic
import structlog

from teegen.services.exceptions import ProviderError
from teegen.services.ideation.response import (
    build_instructions,
    build_request,
    parse_ideation_response,
)
from teegen.services.ideation.types import IdeationResult, Ideator
from teegen.services.image_generation.retry import RetryPolicy, classify_error, with_retry

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
MAX_TOKENS = 4096
WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search"}


class AnthropicIdeator(Ideator):
    """Ideator backed by a Claude model with server-side web search.

    The SDK's own retries are disabled; throttling and overload errors are
    retried by with_retry like every other provider call.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        retry_policy: RetryPolicy | None = None,
        client: Any = None,
    ):
        if not api_key and client is None:
            raise ProviderError("ANTHROPIC_API_KEY not configured")
        self._model = model or DEFAULT_MODEL
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def model_id(self) -> str:
        return self._model

    async def _create_message(self, system: str, theme: str) -> Any:
        try:
            return await self._client.messages.create(
                model=self._model,
                max_tokens=MAX_TOKENS,
                system=system,
                tools=[WEB_SEARCH_TOOL],
                messages=[{"role": "user", "content": build_request(theme)}],
            )
        except anthropic.APIStatusError as e:
            raise classify_error(e, e.status_code) from e
        except anthropic.APIConnectionError as e:
            raise classify_error(ConnectionError(str(e))) from e

    async def ideate(self, theme: str, prompt_count: int) -> IdeationResult:
        system = build_instructions("web search", prompt_count)
        logger.info("ideation.started", theme_length=len(theme), model=self._model)

        response = await with_retry(
            lambda: self._create_message(system, theme), self._retry_policy, "anthropic.ideate"
        )

        # Tool use interleaves search blocks with text; the JSON is usually in the last text block
        texts = [block.text for block in response.content if block.type == "text"]
        if not texts:
            raise ProviderError("Claude returned no text")

        last_error: ProviderError | None = None
        for text in reversed(texts):
            try:
                result = parse_ideation_response(text, self._model)
                break
            except ProviderError as e:
                last_error = e
        else:
            raise last_error  # type: ignore[misc]

        result.prompts = result.prompts[:prompt_count]
        logger.info("ideation.completed", prompt_count=len(result.prompts), model=self._model)
        return result
