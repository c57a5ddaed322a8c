"""Slack gateway endpoints: slash commands and interactive button clicks.

Both endpoints answer within Slack's 3 second window by doing only validation,
record creation and enqueueing; all slow work happens in the workers. Apart from
signature failures (401) every outcome is HTTP 200, with an ephemeral message
when the user needs to be told something.
"""

import json
import uuid
from urllib.parse import parse_qsl

import structlog
from fastapi import APIRouter, Depends, Response
from pydantic import ValidationError

from teegen.api.dependencies import get_context, verify_slack_request
from teegen.context import AppContext
from teegen.models.generation_request import GenerationRequest
from teegen.schemas.jobs import ActionJob, ActionType, GenerationJob, IdeationJob
from teegen.schemas.slack import InteractionPayload, SlashCommand
from teegen.services.image_generation.prompt_enhancement import validate_prompt
from teegen.services.queue import QueueName
from teegen.services.slack.messages import (
    DISCARD_ALL_ACTION,
    DISCARD_IMAGE_ACTION,
    KEEP_ALL_ACTION,
    KEEP_IMAGE_ACTION,
    REGENERATE_ALL_ACTION,
    build_channel_restriction_message,
    build_empty_prompt_message,
    build_empty_theme_message,
    build_error_message,
    build_generating_message,
    build_ideating_message,
    build_unknown_command_message,
    decode_image_action_value,
    ephemeral,
)

logger = structlog.get_logger(__name__)
router = APIRouter()

ACTION_TYPES = {
    KEEP_IMAGE_ACTION: ActionType.KEEP,
    DISCARD_IMAGE_ACTION: ActionType.DISCARD,
    KEEP_ALL_ACTION: ActionType.KEEP_ALL,
    DISCARD_ALL_ACTION: ActionType.DISCARD_ALL,
    REGENERATE_ALL_ACTION: ActionType.REGENERATE_ALL,
}

GENERIC_FAILURE_TEXT = "Sorry, something went wrong. Please try again."


def parse_form(raw_body: bytes) -> dict[str, str]:
    return dict(parse_qsl(raw_body.decode("utf-8"), keep_blank_values=True))


def channel_allowed(context: AppContext, channel_id: str) -> bool:
    allowed = context.settings.allowed_channel_id
    return not allowed or channel_id == allowed


async def handle_generate(command: SlashCommand, context: AppContext) -> dict:
    """Create a pending request and enqueue its GenerationJob in one transaction."""
    try:
        prompt = validate_prompt(command.text)
    except ValueError as e:
        if not command.text.strip():
            return build_empty_prompt_message()
        return build_error_message(str(e))

    request_id = str(uuid.uuid4())
    job = GenerationJob(
        request_id=request_id,
        user_id=command.user_id,
        channel_id=command.channel_id,
        prompt=prompt,
        callback_target=command.response_url,
    )

    async with await context.uow_factory() as uow:
        await uow.requests.add(
            GenerationRequest.create(
                request_id=request_id,
                user_id=command.user_id,
                channel_id=command.channel_id,
                prompt=prompt,
                callback_target=command.response_url,
                model=context.image_generator.model_id if context.image_generator else "",
                ttl_days=context.settings.request_ttl_days,
            )
        )
        await uow.queue.send(QueueName.GENERATION.value, job.model_dump(mode="json"))

    logger.info(
        "gateway.generation_enqueued",
        request_id=request_id,
        user_id=command.user_id,
        prompt_length=len(prompt),
    )
    return build_generating_message(prompt, context.settings.image_count)


async def handle_ideate(command: SlashCommand, context: AppContext) -> dict:
    theme = command.text.strip()
    if not theme:
        return build_empty_theme_message()
    if len(theme) > 500:
        return build_error_message("Theme must be 500 characters or fewer")
    if context.ideator is None:
        logger.info("gateway.ideation_disabled", user_id=command.user_id)
        return ephemeral("Prompt ideation is not enabled.")

    job = IdeationJob(
        theme=theme,
        user_id=command.user_id,
        channel_id=command.channel_id,
        callback_target=command.response_url,
    )
    async with await context.uow_factory() as uow:
        await uow.queue.send(QueueName.IDEATION.value, job.model_dump(mode="json"))

    logger.info("gateway.ideation_enqueued", user_id=command.user_id, theme_length=len(theme))
    return build_ideating_message(theme)


@router.post("/commands")
async def receive_slash_command(
    raw_body: bytes = Depends(verify_slack_request),
    context: AppContext = Depends(get_context),
):
    """Receive a slash command (/generate or /ideate).

    HTTP Status Codes:
        200: Always, with an ephemeral message body
        401: Signature verification failed (via dependency)
    """
    try:
        command = SlashCommand.model_validate(parse_form(raw_body))
    except (ValidationError, UnicodeDecodeError) as e:
        logger.warning("gateway.invalid_command_payload", error=str(e))
        return ephemeral("Invalid request payload.")

    logger.info(
        "gateway.command_received",
        command=command.command,
        user_id=command.user_id,
        channel_id=command.channel_id,
    )

    if command.command not in ("/generate", "/ideate"):
        return build_unknown_command_message(command.command)

    if not channel_allowed(context, command.channel_id):
        logger.info("gateway.channel_rejected", channel_id=command.channel_id)
        return build_channel_restriction_message()

    try:
        if command.command == "/generate":
            return await handle_generate(command, context)
        return await handle_ideate(command, context)
    except Exception as e:
        logger.error(
            "gateway.command_failed",
            command=command.command,
            error_type=type(e).__name__,
            error_message=str(e),
            exc_info=True,
        )
        return ephemeral(GENERIC_FAILURE_TEXT)


async def build_action_job(payload: InteractionPayload, context: AppContext) -> ActionJob | dict | None:
    """Translate the first button of a block_actions payload into an ActionJob.

    Returns:
        The job to enqueue, an ephemeral message to answer with instead, or None
        when the payload carries nothing to act on

    Raises:
        ValueError: If the button value or the payload is malformed
    """
    if not payload.actions:
        return None
    action = payload.actions[0]
    action_type = ACTION_TYPES.get(action.action_id)
    if action_type is None:
        logger.info("gateway.unknown_action", action_id=action.action_id)
        return None

    if not payload.response_url or payload.channel is None:
        raise ValueError("Interaction payload is missing response_url or channel")

    image_id = None
    if action_type in (ActionType.KEEP, ActionType.DISCARD):
        image_id, request_id = decode_image_action_value(action.value)
    else:
        request_id = action.value.strip()
        if not request_id:
            raise ValueError(f"{action.action_id} button carries no request id")

    original_prompt = None
    if action_type == ActionType.REGENERATE_ALL:
        async with await context.uow_factory() as uow:
            request = await uow.requests.get_by_id(request_id)
        if request is None:
            logger.warning("gateway.regenerate_request_missing", request_id=request_id)
            return ephemeral("The original request could not be found. Please run /generate again.")
        original_prompt = request.prompt

    return ActionJob(
        job_id=str(uuid.uuid4()),
        action=action_type,
        image_id=image_id,
        request_id=request_id,
        user_id=payload.user.id,
        channel_id=payload.channel.id,
        callback_target=payload.response_url,
        original_prompt=original_prompt,
    )


@router.post("/interactions")
async def receive_interaction(
    raw_body: bytes = Depends(verify_slack_request),
    context: AppContext = Depends(get_context),
):
    """Receive a button click from a results message.

    HTTP Status Codes:
        200: Empty body once the ActionJob is enqueued (or nothing to do);
            ephemeral message body on invalid input or failure
        401: Signature verification failed (via dependency)
    """
    try:
        form = parse_form(raw_body)
        payload = InteractionPayload.model_validate(json.loads(form.get("payload", "")))
    except (ValidationError, ValueError) as e:
        logger.warning("gateway.invalid_interaction_payload", error=str(e))
        return ephemeral("Invalid interaction payload.")

    if payload.type != "block_actions":
        return Response(status_code=200)

    try:
        job = await build_action_job(payload, context)
    except (ValidationError, ValueError) as e:
        logger.warning("gateway.invalid_action", error=str(e))
        return ephemeral("Invalid action.")
    except Exception as e:
        logger.error(
            "gateway.interaction_failed",
            error_type=type(e).__name__,
            error_message=str(e),
            exc_info=True,
        )
        return ephemeral(GENERIC_FAILURE_TEXT)

    if job is None:
        return Response(status_code=200)
    if isinstance(job, dict):
        return job

    try:
        async with await context.uow_factory() as uow:
            await uow.queue.send(QueueName.ACTION.value, job.model_dump(mode="json"))
    except Exception as e:
        logger.error(
            "gateway.interaction_failed",
            error_type=type(e).__name__,
            error_message=str(e),
            exc_info=True,
        )
        return ephemeral(GENERIC_FAILURE_TEXT)

    logger.info(
        "gateway.action_enqueued",
        job_id=job.job_id,
        action=job.action.value,
        request_id=job.request_id,
        image_id=job.image_id,
        user_id=job.user_id,
    )
    return Response(status_code=200)
