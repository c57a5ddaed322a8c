"""Action worker: applies keep, discard and regenerate clicks.

Every handler tolerates redelivery. Keeping a kept image copies onto the same
destination and writes the same values, discarding a discarded image changes
nothing, batch actions only touch images still in generated status, and
regenerate_all derives the new request id from the click's job id so a second
delivery hits the conditional insert instead of enqueueing twice.
"""

import asyncio
import uuid
from functools import partial

import structlog

from teegen.context import AppContext
from teegen.models.generated_image import ImageStatus
from teegen.models.generation_request import GenerationRequest, InvalidStateTransition
from teegen.schemas.jobs import ActionJob, ActionType, GenerationJob, parse_job
from teegen.services.exceptions import DuplicateRecordError, ImageNotFoundError, ServiceError
from teegen.services.queue import QueueName
from teegen.services.slack.messages import build_regenerating_view
from teegen.services.storage.artifact_store import saved_key
from teegen.workers.base import QueueWorker
from teegen.workers.results import render_results

logger = structlog.get_logger(__name__)

# Namespace for request ids derived from regenerate_all job ids
REGENERATION_NAMESPACE = uuid.UUID("6f1c2a0e-8d5b-4f4e-9a51-3c7e2b9d0a14")


def regenerated_request_id(job_id: str) -> str:
    return str(uuid.uuid5(REGENERATION_NAMESPACE, job_id))


async def keep_image(context: AppContext, image_id: str, request_id: str, user_id: str) -> bool:
    """Promote one image to the saved namespace and mark it kept.

    The copy runs outside any transaction. The record is then re-read under a row
    lock, so a discard that landed during the copy wins and the copy is removed.

    Returns:
        False if the image was already discarded and nothing was done

    Raises:
        ImageNotFoundError: If the record does not exist
        StorageError: If the copy fails
    """
    destination = saved_key(user_id, request_id, image_id)
    async with await context.uow_factory() as uow:
        image = await uow.images.get(image_id, request_id)
    if image is None:
        raise ImageNotFoundError(f"GeneratedImage {image_id} of request {request_id} not found")
    if image.status == ImageStatus.DISCARDED:
        logger.info("action.keep.skipped", image_id=image_id, reason="discarded")
        return False

    await context.artifacts.copy(image.storage_key, destination)
    url, expiry = await context.artifacts.retrieval_url(destination)

    async with await context.uow_factory() as uow:
        image = await uow.images.get_for_update(image_id, request_id)
        if image is None:
            raise ImageNotFoundError(f"GeneratedImage {image_id} of request {request_id} not found")
        discarded_meanwhile = image.status == ImageStatus.DISCARDED
        if not discarded_meanwhile:
            image.mark_kept(destination, retrieval_url=url, retrieval_url_expiry=expiry)
            await uow.images.update(image)

    if discarded_meanwhile:
        logger.info("action.keep.skipped", image_id=image_id, reason="discarded_during_copy")
        await _remove_orphaned_copy(context, destination)
        return False

    logger.info("action.keep.completed", image_id=image_id, request_id=request_id)
    return True


async def _remove_orphaned_copy(context: AppContext, key: str) -> None:
    try:
        await context.artifacts.delete(key)
    except ServiceError as e:
        logger.warning("action.keep.orphan_delete_failed", key=key, error=str(e))


async def discard_image(context: AppContext, image_id: str, request_id: str) -> bool:
    """Mark one image discarded; its object is reclaimed later by cleanup.

    Returns:
        False if the image was already kept and nothing was done

    Raises:
        ImageNotFoundError: If the record does not exist
    """
    async with await context.uow_factory() as uow:
        image = await uow.images.get_for_update(image_id, request_id)
        if image is None:
            raise ImageNotFoundError(f"GeneratedImage {image_id} of request {request_id} not found")
        try:
            image.mark_discarded(retention_days=context.settings.discarded_retention_days)
        except InvalidStateTransition:
            logger.info("action.discard.skipped", image_id=image_id, reason="kept")
            return False
        await uow.images.update(image)

    logger.info("action.discard.completed", image_id=image_id, request_id=request_id)
    return True


async def apply_to_all(context: AppContext, job: ActionJob) -> int:
    """Apply keep or discard to every image of the request still in generated status.

    Images are processed concurrently, each in its own unit of work. Every image is
    attempted even when another fails; the first failure is raised afterwards.

    Returns:
        Number of images changed
    """
    async with await context.uow_factory() as uow:
        images = await uow.images.list_by_request(job.request_id)
    if not images:
        raise ImageNotFoundError(f"No images found for request {job.request_id}")

    targets = [image for image in images if image.status == ImageStatus.GENERATED]
    if job.action == ActionType.KEEP_ALL:
        operations = [
            keep_image(context, image.image_id, job.request_id, job.user_id) for image in targets
        ]
    else:
        operations = [discard_image(context, image.image_id, job.request_id) for image in targets]

    results = await asyncio.gather(*operations, return_exceptions=True)
    errors = [result for result in results if isinstance(result, BaseException)]
    changed = sum(1 for result in results if result is True)

    logger.info(
        f"action.{job.action.value}.completed",
        request_id=job.request_id,
        changed=changed,
        skipped=len(images) - len(targets),
        failed=len(errors),
    )
    if errors:
        raise errors[0]
    return changed


async def push_results_view(context: AppContext, job: ActionJob) -> None:
    """Replace the original results message with the current per-image status (best-effort)."""
    try:
        async with await context.uow_factory() as uow:
            request = await uow.requests.get_by_id(job.request_id)
            images = await uow.images.list_by_request(job.request_id)
        prompt = request.prompt if request is not None else (job.original_prompt or "")
        message = await render_results(context.artifacts, prompt, job.request_id, images)
        await context.slack.respond(job.callback_target, {"replace_original": True, **message})
    except ServiceError as e:
        logger.warning("action.view_update_failed", request_id=job.request_id, error=str(e))


async def regenerate_all(context: AppContext, job: ActionJob) -> str:
    """Create a sibling request with the original prompt and enqueue its generation.

    Returns:
        The new request id
    """
    prompt = job.original_prompt or ""
    new_request_id = regenerated_request_id(job.job_id)
    generation_job = GenerationJob(
        request_id=new_request_id,
        user_id=job.user_id,
        channel_id=job.channel_id,
        prompt=prompt,
        callback_target=job.callback_target,
    )

    try:
        async with await context.uow_factory() as uow:
            await uow.requests.add(
                GenerationRequest.create(
                    request_id=new_request_id,
                    user_id=job.user_id,
                    channel_id=job.channel_id,
                    prompt=prompt,
                    callback_target=job.callback_target,
                    model=context.image_generator.model_id if context.image_generator else "",
                    ttl_days=context.settings.request_ttl_days,
                )
            )
            await uow.queue.send(QueueName.GENERATION.value, generation_job.model_dump(mode="json"))
    except DuplicateRecordError:
        logger.info(
            "action.regenerate_all.skipped",
            request_id=job.request_id,
            new_request_id=new_request_id,
            reason="already_enqueued",
        )
    else:
        logger.info(
            "action.regenerate_all.enqueued",
            request_id=job.request_id,
            new_request_id=new_request_id,
        )

    try:
        await context.slack.respond(
            job.callback_target,
            {
                "response_type": "ephemeral",
                "replace_original": False,
                "text": f"Regenerating images for: {prompt}",
                "blocks": build_regenerating_view(prompt),
            },
        )
    except ServiceError as e:
        logger.warning("action.view_update_failed", request_id=job.request_id, error=str(e))

    return new_request_id


async def process_action_job(body: dict, context: AppContext) -> None:
    """Process one ActionJob message body.

    Raises:
        InvalidJobError: Malformed body
        ImageNotFoundError: The referenced image (or every image of the request) is missing
        StorageError: Copy to the saved namespace failed
    """
    job = parse_job(ActionJob, body)
    logger.info(
        "action.started",
        job_id=job.job_id,
        action=job.action.value,
        request_id=job.request_id,
        image_id=job.image_id,
    )

    if job.action == ActionType.REGENERATE_ALL:
        await regenerate_all(context, job)
        return

    if job.action == ActionType.KEEP:
        await keep_image(context, job.image_id, job.request_id, job.user_id)  # type: ignore[arg-type]
    elif job.action == ActionType.DISCARD:
        await discard_image(context, job.image_id, job.request_id)  # type: ignore[arg-type]
    else:
        await apply_to_all(context, job)

    await push_results_view(context, job)


async def run_action_worker(context: AppContext) -> None:
    """Consume the action queue until cancelled."""
    worker = QueueWorker(
        queue=context.queue(QueueName.ACTION),
        handler=partial(process_action_job, context=context),
        worker_name="action",
        poll_interval=context.settings.poll_interval_seconds,
    )
    await worker.run()
