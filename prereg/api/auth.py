"""Magic-link sign-in API.

Rate limiting: 5 failed attempts per email result in a 15 minute lockout.
"""

from fastapi import APIRouter

from prereg.api.deps import (
    AcceptLanguage,
    AuthHttpClient,
    DbSession,
    Limiter,
    TraceId,
    domain_http_error,
)
from prereg.logging_config import get_logger
from prereg.schemas import (
    AuthCallbackRequest,
    AuthTokensResponse,
    ErrorResponse,
    MagicLinkRequest,
    MagicLinkResponse,
)
from prereg.services.auth import MagicLinkService, parse_auth_callback
from prereg.utils.errors import PreRegError

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger(__name__)


@router.post(
    "/magic-link",
    response_model=MagicLinkResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid email"},
        404: {"model": ErrorResponse, "description": "Email not pre-registered"},
        429: {"model": ErrorResponse, "description": "Too many failed attempts"},
        502: {"model": ErrorResponse, "description": "Auth provider failure"},
    },
)
async def request_magic_link(
    request_body: MagicLinkRequest,
    db: DbSession,
    limiter: Limiter,
    http_client: AuthHttpClient,
    trace_id: TraceId,
    accept_language: AcceptLanguage,
):
    """Send a sign-in link to a pre-registered email."""
    language = request_body.language or accept_language
    service = MagicLinkService(db, limiter=limiter, http_client=http_client)
    try:
        result = await service.request_magic_link(request_body.email, language=language)
    except PreRegError as e:
        logger.info("magic_link_refused", code=e.code)
        raise domain_http_error(e, trace_id, language)

    return MagicLinkResponse(email=result.email, redirect_to=result.redirect_to)


@router.post(
    "/callback",
    response_model=AuthTokensResponse,
    responses={400: {"model": ErrorResponse, "description": "No token pair in URL"}},
)
async def auth_callback(
    request_body: AuthCallbackRequest,
    trace_id: TraceId,
    accept_language: AcceptLanguage,
):
    """Extract the session tokens from the magic-link redirect URL."""
    try:
        tokens = parse_auth_callback(request_body.url)
    except PreRegError as e:
        raise domain_http_error(e, trace_id, accept_language)

    return AuthTokensResponse.model_validate(tokens)
