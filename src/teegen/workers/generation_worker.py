"""Generation worker: turns a GenerationJob into stored images and a results post.

Request lifecycle: pending → generating → {completed | failed}.

Each artifact is committed on its own (bytes first, then the record), so a
failure midway leaves the already committed images valid and visible. A job
redelivered while its request is still generating resumes and only asks the
provider for the missing images; a job whose request is already completed or
failed is acknowledged without doing anything.

Only a permanent failure marks the request failed. A throttled or unavailable
provider leaves it generating and re-raises, so the redelivered message resumes
it; after the last delivery the message waits in the dead-letter queue and a
redrive picks the request up where it stopped.
"""

import asyncio
import time
import uuid
from functools import partial

import structlog

from teegen.context import AppContext
from teegen.models.generated_image import GeneratedImage
from teegen.models.generation_request import RequestStatus
from teegen.schemas.jobs import GenerationJob, parse_job
from teegen.services.exceptions import (
    ConfigurationError,
    RequestNotFoundError,
    ServiceError,
    TransientError,
)
from teegen.services.image_generation.background_removal import remove_white_background
from teegen.services.image_generation.prompt_enhancement import (
    build_avoidance_guidance,
    build_print_prompt,
    requests_solid_background,
)
from teegen.services.image_generation.types import GenerationParams
from teegen.services.queue import QueueName
from teegen.services.slack.messages import build_generation_failed_view
from teegen.services.storage.artifact_store import temp_key
from teegen.workers.base import QueueWorker
from teegen.workers.results import render_results

logger = structlog.get_logger(__name__)


async def _prepare_image(image_bytes: bytes, prompt: str, remove_background: bool) -> bytes:
    if not remove_background or requests_solid_background(prompt):
        return image_bytes
    try:
        return await asyncio.to_thread(remove_white_background, image_bytes)
    except ValueError as e:
        logger.warning("generation.background_removal_failed", error=str(e))
        return image_bytes


async def _commit_artifact(
    context: AppContext,
    request_id: str,
    image_bytes: bytes,
    display_index: int,
) -> GeneratedImage:
    """Store the bytes, then create the record pointing at them."""
    image_id = str(uuid.uuid4())
    storage_key = temp_key(request_id, image_id)
    await context.artifacts.put(storage_key, image_bytes, content_type="image/png")

    async with await context.uow_factory() as uow:
        image = await uow.images.add(
            GeneratedImage(
                image_id=image_id,
                request_id=request_id,
                storage_key=storage_key,
                display_index=display_index,
            )
        )
    logger.info(
        "generation.artifact_committed",
        request_id=request_id,
        image_id=image_id,
        display_index=display_index,
    )
    return image


async def _mark_failed(context: AppContext, request_id: str, error: str) -> None:
    async with await context.uow_factory() as uow:
        request = await uow.requests.get_by_id(request_id)
        if request is not None and request.status == RequestStatus.GENERATING:
            request.mark_failed(error)
            await uow.requests.update(request)


async def _notify_failure(context: AppContext, job: GenerationJob, error: str) -> None:
    try:
        await context.slack.respond(
            job.callback_target,
            {
                "response_type": "ephemeral",
                "replace_original": False,
                "text": f"Image generation failed: {error}",
                "blocks": build_generation_failed_view(error),
            },
        )
    except ServiceError as e:
        logger.warning("generation.failure_notice_failed", request_id=job.request_id, error=str(e))


async def process_generation_job(body: dict, context: AppContext) -> None:
    """Process one GenerationJob message body.

    Raises:
        InvalidJobError: Malformed body
        RequestNotFoundError: The referenced request does not exist
        TransientError: Throttled or unavailable provider (request left generating)
        ServiceError: Any other provider or storage failure (after marking the request failed)
    """
    start_time = time.monotonic()
    job = parse_job(GenerationJob, body)
    settings = context.settings
    generator = context.image_generator
    if generator is None:
        raise ConfigurationError("No image generator configured")

    log = logger.bind(request_id=job.request_id, user_id=job.user_id)

    enhanced_prompt = build_print_prompt(job.prompt)
    negative_prompt = build_avoidance_guidance(job.prompt)

    async with await context.uow_factory() as uow:
        request = await uow.requests.get_by_id(job.request_id)
        if request is None:
            raise RequestNotFoundError(f"GenerationRequest {job.request_id} not found")
        if request.is_terminal:
            log.info("generation.skipped", status=request.status.value, reason="already_terminal")
            return
        resuming = request.status == RequestStatus.GENERATING
        request.mark_generating(enhanced_prompt, generator.model_id)
        await uow.requests.update(request)
        existing = await uow.images.list_by_request(job.request_id)

    remaining = settings.image_count - len(existing)
    log.info(
        "generation.started",
        provider=generator.provider_id,
        model=generator.model_id,
        resuming=resuming,
        existing_images=len(existing),
        requested_images=max(remaining, 0),
    )

    try:
        if remaining > 0:
            result = await generator.generate(
                GenerationParams(
                    prompt=enhanced_prompt,
                    image_count=remaining,
                    aspect_ratio=settings.image_aspect_ratio,
                    negative_prompt=negative_prompt,
                    cfg_scale=settings.bedrock_cfg_scale,
                )
            )
            next_index = max((image.display_index for image in existing), default=-1) + 1
            for offset, image_bytes in enumerate(result.images):
                prepared = await _prepare_image(image_bytes, job.prompt, settings.remove_background)
                await _commit_artifact(context, job.request_id, prepared, next_index + offset)

        async with await context.uow_factory() as uow:
            images = await uow.images.list_by_request(job.request_id)

        try:
            message = await render_results(context.artifacts, job.prompt, job.request_id, images)
            await context.slack.post_message(job.channel_id, message["text"], blocks=message["blocks"])
        except ServiceError as e:
            log.warning("generation.results_post_failed", error=str(e))

        async with await context.uow_factory() as uow:
            request = await uow.requests.get_by_id(job.request_id)
            if request is None:
                raise RequestNotFoundError(f"GenerationRequest {job.request_id} not found")
            request.mark_completed()
            await uow.requests.update(request)

    except TransientError as e:
        log.warning(
            "generation.retry_pending",
            error_type=type(e).__name__,
            error_message=str(e),
        )
        raise
    except Exception as e:
        error = str(e) or type(e).__name__
        log.error("generation.failed", error_type=type(e).__name__, error_message=error)
        await _mark_failed(context, job.request_id, error)
        await _notify_failure(context, job, error)
        raise

    log.info(
        "generation.completed",
        image_count=len(images),
        duration_seconds=round(time.monotonic() - start_time, 3),
    )


async def run_generation_worker(context: AppContext) -> None:
    """Consume the generation queue until cancelled."""
    worker = QueueWorker(
        queue=context.queue(QueueName.GENERATION),
        handler=partial(process_generation_job, context=context),
        worker_name="generation",
        poll_interval=context.settings.poll_interval_seconds,
    )
    await worker.run()
