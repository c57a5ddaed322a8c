"""Service error hierarchy for generation, storage and chat operations.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (throttling, overload, timeouts)
- PermanentError: Non-retryable errors (bad request, missing records, malformed jobs)

Workers retry TransientError locally with backoff; everything else fails fast
and is left to the queue's redelivery and dead-letter handling.
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Rate limit exceeded (429, ThrottlingException, quota exhausted)
    - Service unavailable or overloaded (503)
    - Network timeouts
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Referenced records that do not exist
    - Malformed job payloads
    """

    pass


# Image generation provider errors
class ProviderThrottledError(TransientError):
    """Provider rejected the call because of rate limits or quota."""

    pass


class ProviderUnavailableError(TransientError):
    """Provider is overloaded, unavailable or timed out."""

    pass


class ProviderError(PermanentError):
    """Provider rejected the call for a reason retrying will not fix."""

    pass


class ContentPolicyError(ProviderError):
    """Prompt or output was blocked by the provider's safety filters."""

    pass


# Slack errors
class SlackApiError(ServiceError):
    """Slack Web API returned ok=false or a non-2xx response."""

    pass


class SlackRateLimitError(TransientError):
    """Slack answered 429."""

    pass


# Storage errors
class StorageError(ServiceError):
    """Artifact store operation failed."""

    pass


class SecretResolutionError(PermanentError):
    """Secret could not be fetched or did not contain a usable value."""

    pass


# Metadata store errors
class RecordNotFoundError(PermanentError):
    """Referenced metadata record does not exist."""

    pass


class RequestNotFoundError(RecordNotFoundError):
    """GenerationRequest does not exist."""

    pass


class ImageNotFoundError(RecordNotFoundError):
    """GeneratedImage does not exist."""

    pass


class DuplicateRecordError(PermanentError):
    """Conditional insert found an existing record with the same key."""

    pass


# Queue errors
class InvalidJobError(PermanentError):
    """Queue message body failed validation."""

    pass


class ConfigurationError(PermanentError):
    """Required configuration is missing or invalid."""

    pass
