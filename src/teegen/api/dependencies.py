"""FastAPI dependencies for request authentication and shared collaborators."""

import structlog
from fastapi import Depends, HTTPException, Request, status

from teegen.context import AppContext
from teegen.services.exceptions import SecretResolutionError
from teegen.services.slack.signature import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    SignatureVerificationError,
    verify_slack_signature,
)

logger = structlog.get_logger(__name__)


def get_context(request: Request) -> AppContext:
    """Get the AppContext built in the application lifespan.

    Example:
        >>> @router.post("/endpoint")
        >>> async def endpoint(context: AppContext = Depends(get_context)):
        ...     async with await context.uow_factory() as uow:
        ...         await uow.requests.get_by_id(request_id)
    """
    return request.app.state.context


async def verify_slack_request(
    request: Request,
    context: AppContext = Depends(get_context),
) -> bytes:
    """Validate the Slack signature before any payload parsing.

    The raw body is read once, verified against the X-Slack-Signature and
    X-Slack-Request-Timestamp headers and returned for parsing by the endpoint.

    Returns:
        Raw request body bytes

    Raises:
        HTTPException: 401 if the signature is missing, stale or invalid;
            503 if the signing secret cannot be resolved
    """
    raw_body = await request.body()

    try:
        signing_secret = await context.signing_secret()
    except SecretResolutionError as e:
        logger.error("slack.signing_secret_unavailable", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Signing secret unavailable"
        )

    try:
        verify_slack_signature(
            raw_body=raw_body,
            timestamp=request.headers.get(TIMESTAMP_HEADER),
            signature=request.headers.get(SIGNATURE_HEADER),
            signing_secret=signing_secret,
            tolerance_seconds=context.settings.signature_tolerance_seconds,
        )
    except SignatureVerificationError as e:
        logger.warning(
            "slack.signature_rejected",
            reason=type(e).__name__,
            error=str(e),
            path=request.url.path,
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    return raw_body
