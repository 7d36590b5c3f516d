"""API dependencies and the domain-error to HTTP mapping."""

import uuid
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from prereg.services.live_feed import RegistrationFeed, get_registration_feed
from prereg.services.rate_limit import AttemptRateLimiter, get_rate_limiter
from prereg.utils.db import get_db
from prereg.utils.errors import ErrorCode, PreRegError, RateLimitExceededError
from prereg.utils.http_client import AsyncHttpClient, get_http_client
from prereg.utils.messages import SUPPORTED_LANGUAGES, get_user_message

ERROR_STATUS: dict[str, int] = {
    ErrorCode.INVALID_INPUT.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_EMAIL.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_NICKNAME.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_PHONE.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_NAME.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REFERRAL_CODE.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_ERROR.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SELF_REFERRAL.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_CALLBACK.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EMAIL_ALREADY_EXISTS.value: status.HTTP_409_CONFLICT,
    ErrorCode.NICKNAME_ALREADY_EXISTS.value: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_REFERRED.value: status.HTTP_409_CONFLICT,
    ErrorCode.REFERRAL_CODE_NOT_FOUND.value: status.HTTP_404_NOT_FOUND,
    ErrorCode.USER_NOT_FOUND.value: status.HTTP_404_NOT_FOUND,
    ErrorCode.TIER_NOT_FOUND.value: status.HTTP_404_NOT_FOUND,
    ErrorCode.REWARD_NOT_UNLOCKED.value: status.HTTP_403_FORBIDDEN,
    ErrorCode.RATE_LIMIT_EXCEEDED.value: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.CODE_GENERATION_FAILED.value: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.DATABASE_ERROR.value: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.CONNECTION_ERROR.value: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.AUTH_PROVIDER_ERROR.value: status.HTTP_502_BAD_GATEWAY,
}


def status_for_error(code: str) -> int:
    """HTTP status for a domain error code (500 for unknown codes)."""
    return ERROR_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def user_message_for(error: PreRegError, language: str | None = None) -> str:
    if isinstance(error, RateLimitExceededError):
        return get_user_message(error.code, language, minutes=error.retry_after_minutes)
    return get_user_message(error.code, language)


def domain_http_error(
    error: PreRegError,
    trace_id: str,
    language: str | None = None,
) -> HTTPException:
    """Wrap a domain error in an HTTPException carrying the error envelope."""
    headers = None
    if isinstance(error, RateLimitExceededError):
        headers = {"Retry-After": str(error.retry_after_seconds)}
    return HTTPException(
        status_code=status_for_error(error.code),
        detail={
            "error": {
                "code": error.code,
                "message": user_message_for(error, language),
                "details": error.details,
            },
            "traceId": trace_id,
        },
        headers=headers,
    )


def get_trace_id(x_trace_id: Annotated[str | None, Header()] = None) -> str:
    """Get or generate trace ID for request tracking."""
    return x_trace_id or str(uuid.uuid4())


def get_language(
    accept_language: Annotated[str | None, Header()] = None,
) -> str | None:
    """First supported language in Accept-Language, if any."""
    if not accept_language:
        return None
    for part in accept_language.split(","):
        lang = part.split(";")[0].strip().lower()[:2]
        if lang in SUPPORTED_LANGUAGES:
            return lang
    return None


def get_feed() -> RegistrationFeed:
    return get_registration_feed()


def get_limiter() -> AttemptRateLimiter:
    return get_rate_limiter()


async def get_auth_http_client() -> AsyncHttpClient:
    return await get_http_client()


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
TraceId = Annotated[str, Depends(get_trace_id)]
AcceptLanguage = Annotated[str | None, Depends(get_language)]
Feed = Annotated[RegistrationFeed, Depends(get_feed)]
Limiter = Annotated[AttemptRateLimiter, Depends(get_limiter)]
AuthHttpClient = Annotated[AsyncHttpClient, Depends(get_auth_http_client)]
