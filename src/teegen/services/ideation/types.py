"""Ideation result model and ideator interface."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class ResearchInsights(BaseModel):
    trending_keywords: list[str] = Field(default_factory=list)
    popular_visuals: list[str] = Field(default_factory=list)
    market_context: str = ""


class PromptSuggestion(BaseModel):
    name: str = Field(min_length=1)
    concept: str = ""
    prompt: str = Field(min_length=1)


class IdeationResult(BaseModel):
    """Market research for a theme plus ready-to-use generation prompts."""

    theme: str
    research_insights: ResearchInsights = Field(default_factory=ResearchInsights)
    prompts: list[PromptSuggestion] = Field(default_factory=list)
    model: str = ""


class Ideator(ABC):
    """Capability interface for theme research backends."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Short provider name (gemini, anthropic)."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Model identifier reported with each IdeationResult."""

    @abstractmethod
    async def ideate(self, theme: str, prompt_count: int) -> IdeationResult:
        """Research theme and return prompt_count prompt suggestions.

        Raises:
            TransientError: Throttling-class failure that survived local retries
            PermanentError: Unusable response or rejected request
        """
