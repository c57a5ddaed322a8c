"""FastAPI application factory."""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Response, status
from sqlalchemy import text

from teegen.api.routes import slack
from teegen.context import build_context
from teegen.core import timezone  # noqa: F401  (sets TZ=UTC)
from teegen.core.config import Settings, configure_logging
from teegen.core.database import setup_db_session
from teegen.services.queue import QueueName
from teegen.workers.action_worker import run_action_worker
from teegen.workers.generation_worker import run_generation_worker
from teegen.workers.ideation_worker import run_ideation_worker

logger = structlog.get_logger()

# Current task per worker name; restarts replace the entry
worker_tasks: dict[str, asyncio.Task] = {}


def create_resilient_worker(coro_func, context, worker_name: str, shutdown_event: asyncio.Event):
    """Create a worker with automatic restart on failure.

    Args:
        coro_func: Worker coroutine function (e.g., run_generation_worker)
        context: AppContext passed to the worker
        worker_name: Human-readable worker name for logging
        shutdown_event: Event to signal graceful shutdown

    Returns:
        Initial task handle (will be auto-recreated on crash)
    """
    RESTART_DELAY = 1  # Fixed 1 second delay between restarts

    def on_worker_done(task: asyncio.Task):
        if shutdown_event.is_set():
            logger.info("worker.shutdown_complete", worker=worker_name)
            return

        if task.cancelled():
            logger.info("worker.cancelled", worker=worker_name)
            return

        exc = task.exception()
        if exc:
            logger.error(
                "worker.crashed",
                worker=worker_name,
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=RESTART_DELAY,
                exc_info=exc,
            )
        else:
            # Worker loops never return on their own
            logger.warning(
                "worker.stopped_unexpectedly",
                worker=worker_name,
                retry_in_seconds=RESTART_DELAY,
            )

        async def restart_worker():
            await asyncio.sleep(RESTART_DELAY)

            if shutdown_event.is_set():
                return

            logger.info("worker.restarting", worker=worker_name)
            new_task = asyncio.create_task(coro_func(context))
            new_task.add_done_callback(on_worker_done)
            worker_tasks[worker_name] = new_task

        asyncio.create_task(restart_worker())

    task = asyncio.create_task(coro_func(context))
    task.add_done_callback(on_worker_done)
    worker_tasks[worker_name] = task
    return task


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    - Startup: configure logging, build the AppContext, start the queue workers
    - Shutdown: stop workers, close the Slack HTTP client
    """
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    context = await build_context(settings, session_factory)
    app.state.context = context

    shutdown_event = asyncio.Event()
    workers = [
        ("generation", run_generation_worker),
        ("action", run_action_worker),
    ]
    if context.ideator is not None:
        workers.append(("ideation", run_ideation_worker))

    for worker_name, coro_func in workers:
        create_resilient_worker(coro_func, context, worker_name, shutdown_event)

    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        image_provider=settings.image_provider,
        workers=[name for name, _ in workers],
    )

    yield

    logger.info("application.shutdown")
    shutdown_event.set()

    tasks = list(worker_tasks.values())
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    worker_tasks.clear()

    await context.aclose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="teegen",
        description="Slack-triggered t-shirt image generation",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(slack.router, prefix="/slack", tags=["slack"])

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test and queue depths.

        Returns:
            200: {"status": "healthy", "queues": {...}} if the database answers
            503: {"status": "unhealthy", "error": {...}} otherwise
        """
        context = app.state.context
        try:
            async with await context.uow_factory() as uow:
                await uow.session.execute(text("SELECT 1"))
                queues = {}
                for name in QueueName:
                    queues[name.value] = await uow.queue.depth(name.value)
                    queues[name.dead_letter] = await uow.queue.depth(name.dead_letter)

            logger.debug("health_check.success")
            return {"status": "healthy", "queues": queues}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()
