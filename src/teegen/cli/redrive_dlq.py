"""CLI command for moving dead-lettered jobs back onto their work queue.

Usage:
    python -m teegen.cli redrive [OPTIONS]

Examples:
    # Redrive every dead-lettered message of every queue
    python -m teegen.cli redrive

    # Redrive at most 10 generation jobs
    python -m teegen.cli redrive --queue generation --limit 10

    # Show what is dead-lettered without moving anything
    python -m teegen.cli redrive --dry-run
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace

import structlog

from teegen.core import timezone  # noqa: F401
from teegen.core.config import Settings, configure_logging
from teegen.core.database import setup_db_session
from teegen.services.queue import QueueName
from teegen.uow import UowFactory, create_uow_factory

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        prog="teegen redrive",
        description="Move dead-lettered jobs back onto their work queue",
        epilog="Redriven messages get a fresh receive budget",
    )

    parser.add_argument(
        "--queue",
        choices=[name.value for name in QueueName],
        action="append",
        help="Queue to redrive (repeatable; default: all queues)",
    )

    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of messages to move per queue (default: unlimited)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List dead-lettered messages without moving them",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


async def redrive_queues(
    uow_factory: UowFactory,
    queues: list[QueueName],
    limit: int | None = None,
    dry_run: bool = False,
) -> dict[str, int]:
    """Redrive the dead-letter queue of every queue in queues.

    Returns:
        Messages moved (or, on a dry run, found) per queue name
    """
    moved: dict[str, int] = {}
    for queue in queues:
        async with await uow_factory() as uow:
            if dry_run:
                messages = await uow.queue.list_messages(queue.dead_letter, limit=limit or 100)
                for message in messages:
                    print(
                        f"  [{queue.dead_letter}] id={message.id} "
                        f"receive_count={message.receive_count} last_error={message.last_error}"
                    )
                moved[queue.value] = len(messages)
            else:
                moved[queue.value] = await uow.queue.redrive(queue.dead_letter, queue.value, limit)

        logger.info("cli.redrive.queue_done", queue=queue.value, count=moved[queue.value], dry_run=dry_run)
    return moved


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 130 (interrupted)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    queues = [QueueName(name) for name in args.queue] if args.queue else list(QueueName)
    logger.info("cli.started", command="redrive", queues=[q.value for q in queues], dry_run=args.dry_run)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    try:
        moved = await redrive_queues(uow_factory, queues, limit=args.limit, dry_run=args.dry_run)

        print("\n" + "=" * 60)
        print("Dead-letter Redrive Summary")
        print("=" * 60)
        for queue_name, count in moved.items():
            verb = "dead-lettered" if args.dry_run else "redriven"
            print(f"{queue_name}: {count} message(s) {verb}")
        if args.dry_run:
            print("\n[DRY RUN] No messages were moved")
        print("=" * 60 + "\n")
        return 0

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nRedrive interrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        logger.error("cli.unexpected_error", error=str(e), error_type=type(e).__name__)
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main(argv)))


if __name__ == "__main__":
    main()
