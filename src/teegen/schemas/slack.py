"""Slack inbound payload schemas (slash commands and block actions)."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SlashCommand(BaseModel):
    """Form-encoded slash command invocation."""

    model_config = ConfigDict(extra="ignore")

    command: str
    text: str = ""
    user_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    response_url: str = Field(min_length=1)
    user_name: Optional[str] = None
    channel_name: Optional[str] = None
    team_id: Optional[str] = None
    trigger_id: Optional[str] = None


class SlackUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    username: Optional[str] = None


class SlackChannel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: Optional[str] = None


class BlockAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action_id: str
    value: str = ""
    block_id: Optional[str] = None
    action_ts: Optional[str] = None


class InteractionPayload(BaseModel):
    """JSON document carried in the `payload` form field of an interaction request."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["block_actions", "view_submission", "view_closed", "shortcut", "message_action"]
    user: SlackUser
    channel: Optional[SlackChannel] = None
    response_url: Optional[str] = None
    actions: list[BlockAction] = Field(default_factory=list)
