"""Unit tests for GenerationRequest and GeneratedImage state transitions."""

from datetime import timedelta

import pytest

from teegen.core.timezone import utcnow
from teegen.models.generated_image import GeneratedImage, ImageStatus
from teegen.models.generation_request import (
    GenerationRequest,
    InvalidStateTransition,
    RequestStatus,
)


def make_request(**overrides) -> GenerationRequest:
    fields = dict(
        request_id="req-1",
        user_id="U123",
        channel_id="C0DESIGN",
        prompt="a retro sunset with palm trees",
        callback_target="https://hooks.slack.test/commands/1",
    )
    fields.update(overrides)
    return GenerationRequest.create(**fields)


def make_image(**overrides) -> GeneratedImage:
    fields = dict(
        image_id="img-1",
        request_id="req-1",
        storage_key="temp/req-1/img-1.png",
    )
    fields.update(overrides)
    return GeneratedImage(**fields)


class TestGenerationRequestTransitions:
    """Test request lifecycle: pending → generating → {completed | failed}."""

    def test_create_sets_pending_and_expiry(self):
        request = make_request(ttl_days=30)

        assert request.status == RequestStatus.PENDING
        assert request.expires_at is not None
        horizon = request.expires_at - request.created_at
        assert horizon == timedelta(days=30)

    def test_pending_to_generating_records_prompt_and_model(self):
        request = make_request()

        request.mark_generating("enhanced prompt", "fake-model-1")

        assert request.status == RequestStatus.GENERATING
        assert request.enhanced_prompt == "enhanced prompt"
        assert request.model == "fake-model-1"

    def test_generating_again_is_accepted_for_resumed_jobs(self):
        request = make_request()
        request.mark_generating("enhanced", "model-a")

        request.mark_generating("enhanced", "model-a")

        assert request.status == RequestStatus.GENERATING

    def test_generating_to_completed(self):
        request = make_request()
        request.mark_generating("enhanced", "model-a")

        request.mark_completed()

        assert request.status == RequestStatus.COMPLETED
        assert request.is_terminal

    def test_generating_to_failed_truncates_error(self):
        request = make_request()
        request.mark_generating("enhanced", "model-a")

        request.mark_failed("x" * 5000)

        assert request.status == RequestStatus.FAILED
        assert len(request.error_message) == 1000
        assert request.is_terminal

    def test_cannot_complete_from_pending(self):
        request = make_request()

        with pytest.raises(InvalidStateTransition, match="Cannot mark completed from pending"):
            request.mark_completed()

    def test_cannot_fail_from_pending(self):
        request = make_request()

        with pytest.raises(InvalidStateTransition):
            request.mark_failed("boom")

    @pytest.mark.parametrize("terminal", ["completed", "failed"])
    def test_terminal_status_never_moves_back(self, terminal):
        request = make_request()
        request.mark_generating("enhanced", "model-a")
        if terminal == "completed":
            request.mark_completed()
        else:
            request.mark_failed("boom")

        with pytest.raises(InvalidStateTransition):
            request.mark_generating("enhanced", "model-a")
        with pytest.raises(InvalidStateTransition):
            request.mark_completed()

        assert request.status.value == terminal


class TestGeneratedImageTransitions:
    """Test image curation: generated → {kept | discarded}."""

    def test_keep_moves_to_saved_key(self):
        image = make_image()
        expiry = utcnow() + timedelta(days=7)

        image.mark_kept("saved/U1/req-1/img-1.png", "https://cdn/x.png", expiry)

        assert image.status == ImageStatus.KEPT
        assert image.storage_key == "saved/U1/req-1/img-1.png"
        assert image.retrieval_url == "https://cdn/x.png"
        assert image.retrieval_url_expiry == expiry

    def test_keep_twice_is_idempotent(self):
        image = make_image()
        image.mark_kept("saved/U1/req-1/img-1.png", "https://cdn/x.png")

        image.mark_kept("saved/U1/req-1/img-1.png", "https://cdn/x.png")

        assert image.status == ImageStatus.KEPT
        assert image.storage_key == "saved/U1/req-1/img-1.png"

    def test_keep_requires_storage_key(self):
        image = make_image()

        with pytest.raises(ValueError):
            image.mark_kept("")

    def test_discard_sets_retention_horizon(self):
        image = make_image()
        before = utcnow()

        image.mark_discarded(retention_days=7)

        assert image.status == ImageStatus.DISCARDED
        assert image.expires_at >= before + timedelta(days=7)

    def test_discard_twice_keeps_first_horizon(self):
        image = make_image()
        image.mark_discarded(retention_days=7)
        first_expiry = image.expires_at

        image.mark_discarded(retention_days=30)

        assert image.expires_at == first_expiry

    def test_cannot_keep_discarded(self):
        image = make_image()
        image.mark_discarded()

        with pytest.raises(InvalidStateTransition, match="discarded"):
            image.mark_kept("saved/U1/req-1/img-1.png")

    def test_cannot_discard_kept(self):
        image = make_image()
        image.mark_kept("saved/U1/req-1/img-1.png")

        with pytest.raises(InvalidStateTransition, match="kept"):
            image.mark_discarded()

        assert image.status == ImageStatus.KEPT
