"""Repository tests against the SQLite test database."""

from datetime import timedelta

import pytest
from sqlalchemy import DateTime

from teegen.core.timezone import utcnow
from teegen.models.generated_image import GeneratedImage
from teegen.models.generation_request import GenerationRequest
from teegen.models.queue_message import QueueMessage
from teegen.repositories.generated_image import GeneratedImageRepository
from teegen.repositories.generation_request import GenerationRequestRepository
from teegen.repositories.queue_message import QueueMessageRepository, dead_letter_name
from teegen.services.exceptions import DuplicateRecordError


def make_request(request_id: str = "req-1", **overrides) -> GenerationRequest:
    fields = dict(
        request_id=request_id,
        user_id="U123",
        channel_id="C0DESIGN",
        prompt="a fox in a space suit",
        callback_target="https://hooks.slack.test/commands/1",
    )
    fields.update(overrides)
    return GenerationRequest.create(**fields)


@pytest.mark.asyncio
class TestGenerationRequestRepository:
    async def test_add_and_get(self, session):
        repo = GenerationRequestRepository(session)

        await repo.add(make_request())
        await session.commit()

        found = await repo.get_by_id("req-1")
        assert found is not None
        assert found.prompt == "a fox in a space suit"

    async def test_get_missing_returns_none(self, session):
        repo = GenerationRequestRepository(session)

        assert await repo.get_by_id("nope") is None

    async def test_duplicate_insert_raises(self, session_factory):
        async with session_factory() as session:
            await GenerationRequestRepository(session).add(make_request())
            await session.commit()

        async with session_factory() as session:
            with pytest.raises(DuplicateRecordError):
                await GenerationRequestRepository(session).add(make_request())

    async def test_list_expired(self, session):
        repo = GenerationRequestRepository(session)
        await repo.add(make_request("old"))
        await repo.add(make_request("new"))
        await session.commit()

        old = await repo.get_by_id("old")
        old.expires_at = utcnow() - timedelta(days=1)
        await repo.update(old)
        await session.commit()

        expired = await repo.list_expired()
        assert [r.request_id for r in expired] == ["old"]


@pytest.mark.asyncio
class TestGeneratedImageRepository:
    async def test_list_by_request_in_display_order(self, session):
        repo = GeneratedImageRepository(session)
        for index, image_id in [(2, "c"), (0, "a"), (1, "b")]:
            await repo.add(
                GeneratedImage(
                    image_id=image_id,
                    request_id="req-1",
                    storage_key=f"temp/req-1/{image_id}.png",
                    display_index=index,
                )
            )
        await repo.add(
            GeneratedImage(image_id="z", request_id="req-2", storage_key="temp/req-2/z.png")
        )
        await session.commit()

        images = await repo.list_by_request("req-1")

        assert [image.image_id for image in images] == ["a", "b", "c"]

    async def test_get_by_composite_key(self, session):
        repo = GeneratedImageRepository(session)
        await repo.add(
            GeneratedImage(image_id="a", request_id="req-1", storage_key="temp/req-1/a.png")
        )
        await session.commit()

        assert await repo.get("a", "req-1") is not None
        assert await repo.get("a", "req-2") is None

    async def test_list_expired_discarded_only_returns_past_horizon(self, session):
        repo = GeneratedImageRepository(session)
        for image_id in ("expired", "fresh", "kept"):
            await repo.add(
                GeneratedImage(
                    image_id=image_id, request_id="req-1", storage_key=f"temp/req-1/{image_id}.png"
                )
            )
        await session.commit()

        expired = await repo.get("expired", "req-1")
        expired.mark_discarded(retention_days=7)
        await repo.update(expired)
        fresh = await repo.get("fresh", "req-1")
        fresh.mark_discarded(retention_days=7)
        await repo.update(fresh)
        kept = await repo.get("kept", "req-1")
        kept.mark_kept("saved/U1/req-1/kept.png")
        await repo.update(kept)
        await session.commit()

        found = await repo.list_expired_discarded(now=utcnow() + timedelta(days=7, minutes=1))
        assert {image.image_id for image in found} == {"expired", "fresh"}

        found = await repo.list_expired_discarded(now=utcnow())
        assert found == []

    async def test_delete_by_request(self, session):
        repo = GeneratedImageRepository(session)
        for image_id in ("a", "b"):
            await repo.add(
                GeneratedImage(
                    image_id=image_id, request_id="req-1", storage_key=f"temp/req-1/{image_id}.png"
                )
            )
        await session.commit()

        deleted = await repo.delete_by_request("req-1")
        await session.commit()

        assert deleted == 2
        assert await repo.list_by_request("req-1") == []


@pytest.mark.asyncio
class TestQueueMessageRepository:
    """Test visibility timeout, redelivery, dead-lettering and redrive."""

    async def test_send_then_receive_hides_message(self, session):
        repo = QueueMessageRepository(session)
        await repo.send("generation", {"request_id": "req-1"})
        await session.commit()

        received = await repo.receive("generation", visibility_timeout=360, max_receive_count=3)
        await session.commit()

        assert len(received) == 1
        assert received[0].body == {"request_id": "req-1"}
        assert received[0].receive_count == 1

        again = await repo.receive("generation", visibility_timeout=360, max_receive_count=3)
        assert again == []

    async def test_receive_only_targets_named_queue(self, session):
        repo = QueueMessageRepository(session)
        await repo.send("action", {"job_id": "j1"})
        await session.commit()

        assert await repo.receive("generation", visibility_timeout=10, max_receive_count=3) == []
        assert len(await repo.receive("action", visibility_timeout=10, max_receive_count=3)) == 1

    async def test_delete_acknowledges(self, session):
        repo = QueueMessageRepository(session)
        message = await repo.send("generation", {"n": 1})
        await session.commit()

        await repo.delete(message.id)
        await session.commit()

        assert await repo.get_by_id(message.id) is None
        assert await repo.depth("generation") == 0

    async def test_redelivered_after_visibility_timeout(self, session):
        repo = QueueMessageRepository(session)
        await repo.send("generation", {"n": 1})
        await session.commit()

        # A zero visibility timeout makes the message visible again immediately
        first = await repo.receive("generation", visibility_timeout=0, max_receive_count=3)
        await session.commit()
        second = await repo.receive("generation", visibility_timeout=0, max_receive_count=3)
        await session.commit()

        assert first[0].id == second[0].id
        assert second[0].receive_count == 2

    async def test_dead_letters_after_max_receive_count(self, session):
        repo = QueueMessageRepository(session)
        message = await repo.send("generation", {"n": 1})
        await session.commit()

        for _ in range(3):
            received = await repo.receive("generation", visibility_timeout=0, max_receive_count=3)
            await session.commit()
            assert len(received) == 1
            await repo.record_failure(message.id, "provider exploded")
            await session.commit()

        received = await repo.receive("generation", visibility_timeout=0, max_receive_count=3)
        await session.commit()

        assert received == []
        assert await repo.depth("generation") == 0
        dead = await repo.list_messages(dead_letter_name("generation"))
        assert len(dead) == 1
        assert dead[0].last_error == "provider exploded"

    async def test_redrive_resets_receive_count(self, session):
        repo = QueueMessageRepository(session)
        message = await repo.send("generation-dlq", {"n": 1})
        message.receive_count = 3
        await session.commit()

        moved = await repo.redrive("generation-dlq", "generation")
        await session.commit()

        assert moved == 1
        received = await repo.receive("generation", visibility_timeout=10, max_receive_count=3)
        assert len(received) == 1
        assert received[0].receive_count == 1

    async def test_receive_respects_limit(self, session):
        repo = QueueMessageRepository(session)
        for n in range(5):
            await repo.send("action", {"n": n})
        await session.commit()

        received = await repo.receive("action", visibility_timeout=10, max_receive_count=3, limit=2)

        assert [m.body["n"] for m in received] == [0, 1]


@pytest.mark.parametrize(
    "model, column",
    [
        (GenerationRequest, "created_at"),
        (GenerationRequest, "updated_at"),
        (GenerationRequest, "expires_at"),
        (GeneratedImage, "created_at"),
        (GeneratedImage, "expires_at"),
        (GeneratedImage, "retrieval_url_expiry"),
        (QueueMessage, "visible_at"),
        (QueueMessage, "created_at"),
    ],
)
def test_timestamp_columns_store_naive_utc(model, column):
    """utcnow() values are naive, so columns must not require tz-aware datetimes."""
    column_type = model.__table__.c[column].type

    assert type(column_type) is DateTime
    assert column_type.timezone is False


@pytest.mark.asyncio
async def test_naive_utcnow_round_trips(session):
    # Arrange
    request = make_request()
    assert request.created_at.tzinfo is None

    # Act
    await GenerationRequestRepository(session).add(request)
    await QueueMessageRepository(session).send("generation", {"request_id": "req-1"})
    await session.commit()

    # Assert
    found = await GenerationRequestRepository(session).get_by_id("req-1")
    assert found.expires_at > utcnow()
