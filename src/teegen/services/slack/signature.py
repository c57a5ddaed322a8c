"""HMAC signature validation for Slack requests (v0 signing scheme).

Slack signs every slash command and interaction request with
v0=hex(HMAC-SHA256(signing_secret, "v0:{timestamp}:{raw_body}")) and sends the
timestamp and signature in the X-Slack-Request-Timestamp and X-Slack-Signature
headers.

Security Note:
    verify_slack_signature MUST be called before parsing any request payload.
    Any SignatureVerificationError maps to 401 Unauthorized.
"""

import hashlib
import hmac
import time

TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
SIGNATURE_HEADER = "X-Slack-Signature"
SIGNATURE_VERSION = "v0"
DEFAULT_TOLERANCE_SECONDS = 300


class SignatureVerificationError(Exception):
    """Base exception for rejected Slack request signatures."""

    pass


class MissingHeadersError(SignatureVerificationError):
    """Timestamp or signature header is absent."""

    pass


class MalformedTimestampError(SignatureVerificationError):
    """Timestamp header is not an integer number of seconds."""

    pass


class StaleTimestampError(SignatureVerificationError):
    """Timestamp is outside the allowed clock-skew window (replay protection)."""

    pass


class SignatureMismatchError(SignatureVerificationError):
    """Signature does not match the request body."""

    pass


def compute_slack_signature(signing_secret: str, timestamp: str, raw_body: bytes) -> str:
    """Compute the v0 signature Slack would send for this request.

    Args:
        signing_secret: App signing secret
        timestamp: Value of X-Slack-Request-Timestamp
        raw_body: Exact request body bytes

    Returns:
        Signature string in the form "v0=<hex digest>"
    """
    base_string = f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + raw_body
    digest = hmac.new(
        key=signing_secret.encode("utf-8"), msg=base_string, digestmod=hashlib.sha256
    ).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    raw_body: bytes,
    timestamp: str | None,
    signature: str | None,
    signing_secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Verify a Slack request signature.

    Checks run in a fixed order so callers can tell a replayed request (stale
    timestamp) apart from a forged one (signature mismatch).

    Args:
        raw_body: Raw request body bytes (NOT parsed form data)
        timestamp: X-Slack-Request-Timestamp header value
        signature: X-Slack-Signature header value
        signing_secret: App signing secret
        tolerance_seconds: Maximum allowed age (and future skew) of the timestamp
        now: Current epoch seconds (default: time.time())

    Raises:
        MissingHeadersError: If timestamp or signature is missing or empty
        MalformedTimestampError: If timestamp is not an integer
        StaleTimestampError: If timestamp is outside tolerance_seconds
        SignatureMismatchError: If the signature does not match

    Security:
        - Uses hmac.compare_digest() for constant-time comparison
        - Timestamp window bounds the replay window of a captured request
    """
    if not timestamp or not signature:
        raise MissingHeadersError(f"Missing {TIMESTAMP_HEADER} or {SIGNATURE_HEADER} header")

    try:
        request_time = int(timestamp)
    except ValueError as e:
        raise MalformedTimestampError(f"Invalid request timestamp: {timestamp!r}") from e

    current_time = time.time() if now is None else now
    if abs(current_time - request_time) > tolerance_seconds:
        raise StaleTimestampError(
            f"Request timestamp {request_time} is outside the {tolerance_seconds}s window"
        )

    expected = compute_slack_signature(signing_secret, timestamp, raw_body)

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise SignatureMismatchError("Slack signature mismatch")
