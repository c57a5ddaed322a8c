"""CLI command for reclaiming storage and metadata past their retention horizon.

Two passes:
1. Discarded images whose retention window has passed lose their storage object
   (the record stays, with expires_at cleared so it is not picked up again).
2. Requests past their TTL are deleted together with their image records and
   the temp/ objects of images that were never kept. Kept (saved/) objects stay.

Usage:
    python -m teegen.cli cleanup [OPTIONS]

Examples:
    python -m teegen.cli cleanup
    python -m teegen.cli cleanup --dry-run --batch-size 100
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from teegen.core import timezone  # noqa: F401
from teegen.core.config import Settings, configure_logging
from teegen.core.database import setup_db_session
from teegen.core.timezone import utcnow
from teegen.models.generated_image import ImageStatus
from teegen.services.exceptions import StorageError
from teegen.services.storage.artifact_store import S3ArtifactStore
from teegen.uow import UowFactory, create_uow_factory

logger = structlog.get_logger()


@dataclass
class CleanupResult:
    objects_deleted: int = 0
    requests_deleted: int = 0
    image_records_deleted: int = 0
    errors: list[str] = field(default_factory=list)


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        prog="teegen cleanup",
        description="Delete expired discarded artifacts and expired request metadata",
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=500,
        help="Maximum number of images and requests handled per pass (default: 500)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be deleted without deleting anything",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


async def cleanup_discarded(
    uow_factory: UowFactory,
    artifacts: S3ArtifactStore,
    result: CleanupResult,
    now: datetime,
    batch_size: int = 500,
    dry_run: bool = False,
) -> None:
    async with await uow_factory() as uow:
        images = await uow.images.list_expired_discarded(now=now, limit=batch_size)

    for image in images:
        if dry_run:
            print(f"  would delete {image.storage_key} (discarded image {image.image_id})")
            result.objects_deleted += 1
            continue
        try:
            await artifacts.delete(image.storage_key)
        except StorageError as e:
            logger.warning("cleanup.object_delete_failed", key=image.storage_key, error=str(e))
            result.errors.append(f"{image.storage_key}: {e}")
            continue

        async with await uow_factory() as uow:
            image.expires_at = None
            await uow.images.update(image)
        result.objects_deleted += 1


async def cleanup_expired_requests(
    uow_factory: UowFactory,
    artifacts: S3ArtifactStore,
    result: CleanupResult,
    now: datetime,
    batch_size: int = 500,
    dry_run: bool = False,
) -> None:
    async with await uow_factory() as uow:
        requests = await uow.requests.list_expired(now=now, limit=batch_size)

    for request in requests:
        async with await uow_factory() as uow:
            images = await uow.images.list_by_request(request.request_id)

        # Discarded images with expires_at cleared were already reclaimed by the first pass
        temp_keys = [
            image.storage_key
            for image in images
            if image.status == ImageStatus.GENERATED
            or (image.status == ImageStatus.DISCARDED and image.expires_at is not None)
        ]
        if dry_run:
            print(
                f"  would delete request {request.request_id} "
                f"({len(images)} image record(s), {len(temp_keys)} temp object(s))"
            )
            result.requests_deleted += 1
            continue

        failed = False
        for key in temp_keys:
            try:
                await artifacts.delete(key)
                result.objects_deleted += 1
            except StorageError as e:
                logger.warning("cleanup.object_delete_failed", key=key, error=str(e))
                result.errors.append(f"{key}: {e}")
                failed = True
        if failed:
            continue

        async with await uow_factory() as uow:
            result.image_records_deleted += await uow.images.delete_by_request(request.request_id)
            await uow.requests.delete(request.request_id)
        result.requests_deleted += 1


async def run_cleanup(
    uow_factory: UowFactory,
    artifacts: S3ArtifactStore,
    now: datetime | None = None,
    batch_size: int = 500,
    dry_run: bool = False,
) -> CleanupResult:
    """Run both cleanup passes and return what was (or would be) deleted."""
    now = now or utcnow()
    result = CleanupResult()
    await cleanup_discarded(uow_factory, artifacts, result, now, batch_size, dry_run)
    await cleanup_expired_requests(uow_factory, artifacts, result, now, batch_size, dry_run)
    logger.info(
        "cleanup.completed",
        objects_deleted=result.objects_deleted,
        requests_deleted=result.requests_deleted,
        image_records_deleted=result.image_records_deleted,
        errors=len(result.errors),
        dry_run=dry_run,
    )
    return result


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 2 (partial success), 130 (interrupted)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    logger.info("cli.started", command="cleanup", batch_size=args.batch_size, dry_run=args.dry_run)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)
    artifacts = S3ArtifactStore(
        bucket=settings.images_bucket,
        cdn_domain=settings.images_cdn_domain,
        presign_expiry_seconds=settings.presigned_url_expiry_seconds,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
    )

    try:
        result = await run_cleanup(
            uow_factory, artifacts, batch_size=args.batch_size, dry_run=args.dry_run
        )

        print("\n" + "=" * 60)
        print("Artifact Cleanup Summary")
        print("=" * 60)
        print(f"Storage objects deleted: {result.objects_deleted}")
        print(f"Requests deleted: {result.requests_deleted}")
        print(f"Image records deleted: {result.image_records_deleted}")
        if result.errors:
            print(f"\nErrors encountered: {len(result.errors)}")
            for error in result.errors[:5]:
                print(f"  - {error}")
            if len(result.errors) > 5:
                print(f"  ... and {len(result.errors) - 5} more errors")
        if args.dry_run:
            print("\n[DRY RUN] Nothing was deleted")
        print("=" * 60 + "\n")

        if result.errors:
            return 2 if (result.objects_deleted or result.requests_deleted) else 1
        return 0

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nCleanup interrupted by user", file=sys.stderr)
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
