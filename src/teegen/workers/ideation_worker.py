"""Ideation worker: researches a theme and posts prompt suggestions in-channel."""

from functools import partial

import structlog

from teegen.context import AppContext
from teegen.schemas.jobs import IdeationJob, parse_job
from teegen.services.exceptions import ConfigurationError, ServiceError
from teegen.services.queue import QueueName
from teegen.services.slack.messages import build_ideation_failed_message, build_ideation_result_view
from teegen.workers.base import QueueWorker

logger = structlog.get_logger(__name__)


async def process_ideation_job(body: dict, context: AppContext) -> None:
    """Process one IdeationJob message body. Nothing is persisted.

    Raises:
        InvalidJobError: Malformed body
        ServiceError: Ideation or posting failed (after a best-effort failure notice)
    """
    job = parse_job(IdeationJob, body)
    if context.ideator is None:
        raise ConfigurationError("Ideation is not enabled")

    log = logger.bind(user_id=job.user_id, channel_id=job.channel_id)
    try:
        result = await context.ideator.ideate(job.theme, context.settings.ideation_prompt_count)
        insights = result.research_insights
        await context.slack.respond(
            job.callback_target,
            {
                "response_type": "in_channel",
                "text": f'Design prompts for "{result.theme or job.theme}"',
                "blocks": build_ideation_result_view(
                    theme=result.theme or job.theme,
                    trending_keywords=insights.trending_keywords,
                    popular_visuals=insights.popular_visuals,
                    market_context=insights.market_context,
                    prompts=[(p.name, p.concept, p.prompt) for p in result.prompts],
                ),
            },
        )
    except Exception as e:
        log.error("ideation.job_failed", error_type=type(e).__name__, error_message=str(e))
        try:
            await context.slack.respond(job.callback_target, build_ideation_failed_message(str(e)))
        except ServiceError as notify_error:
            log.warning("ideation.failure_notice_failed", error=str(notify_error))
        raise

    log.info("ideation.posted", prompt_count=len(result.prompts), model=result.model)


async def run_ideation_worker(context: AppContext) -> None:
    """Consume the ideation queue until cancelled."""
    worker = QueueWorker(
        queue=context.queue(QueueName.IDEATION),
        handler=partial(process_ideation_job, context=context),
        worker_name="ideation",
        poll_interval=context.settings.poll_interval_seconds,
    )
    await worker.run()
