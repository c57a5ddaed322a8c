"""Queue job payloads.

Jobs are pure transport structures: serialized with model_dump(mode="json") on
enqueue and validated again at dequeue.
"""

from enum import Enum
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, model_validator

from teegen.services.exceptions import InvalidJobError


class ActionType(str, Enum):
    """Follow-up action requested through an interactive button."""

    KEEP = "keep"
    DISCARD = "discard"
    KEEP_ALL = "keep_all"
    DISCARD_ALL = "discard_all"
    REGENERATE_ALL = "regenerate_all"


class GenerationJob(BaseModel):
    """Generate images for an existing pending GenerationRequest."""

    request_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    prompt: str = Field(min_length=1, max_length=1000)
    callback_target: str = Field(min_length=1)


class ActionJob(BaseModel):
    """Apply a curation action to one image or to every image of a request.

    job_id identifies the button click and is stable across queue redeliveries.
    """

    job_id: str = Field(min_length=1)
    action: ActionType
    image_id: Optional[str] = None
    request_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    callback_target: str = Field(min_length=1)
    original_prompt: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def check_action_fields(self) -> "ActionJob":
        if self.action in (ActionType.KEEP, ActionType.DISCARD) and not self.image_id:
            raise ValueError(f"{self.action.value} requires image_id")
        if self.action == ActionType.REGENERATE_ALL and not self.original_prompt:
            raise ValueError("regenerate_all requires original_prompt")
        return self


class IdeationJob(BaseModel):
    """Research a theme and suggest generation prompts."""

    theme: str = Field(min_length=1, max_length=500)
    user_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    callback_target: str = Field(min_length=1)


JobT = TypeVar("JobT", bound=BaseModel)


def parse_job(job_type: Type[JobT], body: dict) -> JobT:
    """Validate a dequeued message body.

    Raises:
        InvalidJobError: If the body does not match job_type (permanent, never retried locally)
    """
    try:
        return job_type.model_validate(body)
    except ValidationError as e:
        raise InvalidJobError(
            f"Malformed {job_type.__name__}: {e.error_count()} validation error(s)"
        ) from e
