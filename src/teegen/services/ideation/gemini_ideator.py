"""Theme research and prompt suggestions with Gemini + Google Search grounding."""

from typing import Any

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from teegen.services.exceptions import ProviderError
from teegen.services.ideation.response import (
    build_instructions,
    build_request,
    parse_ideation_response,
)
from teegen.services.ideation.types import IdeationResult, Ideator
from teegen.services.image_generation.retry import RetryPolicy, classify_error, with_retry

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiIdeator(Ideator):
    """Ideator backed by a Gemini text model with the Google Search tool enabled."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        retry_policy: RetryPolicy | None = None,
        client: Any = None,
    ):
        if not api_key and client is None:
            raise ProviderError("GEMINI_API_KEY not configured")
        self._model = model or DEFAULT_MODEL
        self._client = client or genai.Client(api_key=api_key)
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def model_id(self) -> str:
        return self._model

    async def _generate(self, contents: str) -> Any:
        try:
            return await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=types.GenerateContentConfig(
                    tools=[types.Tool(google_search=types.GoogleSearch())],
                ),
            )
        except genai_errors.APIError as e:
            raise classify_error(e, getattr(e, "code", None)) from e
        except (ConnectionError, TimeoutError, OSError) as e:
            raise classify_error(e) from e

    async def ideate(self, theme: str, prompt_count: int) -> IdeationResult:
        contents = build_instructions("Google Search", prompt_count) + "\n\n" + build_request(theme)
        logger.info("ideation.started", theme_length=len(theme), model=self._model)

        response = await with_retry(
            lambda: self._generate(contents), self._retry_policy, "gemini.ideate"
        )
        if not response.text:
            raise ProviderError("Gemini returned no text")

        result = parse_ideation_response(response.text, self._model)

        candidates = response.candidates or []
        grounding = candidates[0].grounding_metadata if candidates else None
        if grounding is not None and grounding.web_search_queries:
            logger.info("ideation.grounding_queries", queries=grounding.web_search_queries)

        result.prompts = result.prompts[:prompt_count]
        logger.info("ideation.completed", prompt_count=len(result.prompts), model=self._model)
        return result
