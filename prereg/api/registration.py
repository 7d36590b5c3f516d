"""사전예약 등록 API"""

from fastapi import APIRouter, Query, Response, status

from prereg.api.deps import (
    AcceptLanguage,
    DbSession,
    Feed,
    TraceId,
    domain_http_error,
    status_for_error,
)
from prereg.logging_config import get_logger
from prereg.schemas import (
    AvailabilityResponse,
    ErrorResponse,
    RegisteredUserResponse,
    RegistrationErrorResponse,
    RegistrationRequest,
    RegistrationResponse,
)
from prereg.services.identity import IdentityService
from prereg.services.registration import RegistrationService
from prereg.utils.errors import PreRegError, ValidationFailedError
from prereg.utils.validation import normalize_email

router = APIRouter(prefix="/registrations", tags=["Registration"])
logger = get_logger(__name__)


@router.post(
    "",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": RegistrationResponse, "description": "Validation error"},
        404: {"model": RegistrationResponse, "description": "Referral code not found"},
        409: {"model": RegistrationResponse, "description": "Email or nickname exists"},
        503: {"model": RegistrationResponse, "description": "Temporary failure, retry"},
    },
)
async def create_registration(
    request_body: RegistrationRequest,
    response: Response,
    db: DbSession,
    feed: Feed,
    accept_language: AcceptLanguage,
):
    """Pre-register a player.

    Returns the new user's referral code. Failures keep the same body shape
    with ``success=false`` and a localized ``error.message``.
    """
    language = request_body.language or accept_language
    service = RegistrationService(db, feed=feed)
    result = await service.create_registration(
        name=request_body.name,
        email=request_body.email,
        nickname=request_body.nickname,
        phone=request_body.phone,
        language=language,
        referred_by_code=request_body.referred_by_code,
    )

    if not result.success:
        response.status_code = status_for_error(result.error.code)
        return RegistrationResponse(
            success=False,
            error=RegistrationErrorResponse(
                code=result.error.code,
                message=result.error.user_message,
                fields=result.error.fields,
                recoverable=result.error.recoverable,
            ),
        )

    logger.info("registration_created", user_id=result.user.id)
    return RegistrationResponse(
        success=True,
        user=RegisteredUserResponse(
            id=result.user.id,
            email=result.user.email,
            nickname=result.user.nickname,
            referral_code=result.user.referral_code,
        ),
        referral_code=result.referral_code,
    )


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    responses={400: {"model": ErrorResponse, "description": "Nothing to check"}},
)
async def check_availability(
    db: DbSession,
    trace_id: TraceId,
    accept_language: AcceptLanguage,
    email: str | None = Query(None, max_length=255),
    nickname: str | None = Query(None, max_length=50),
):
    """이메일/닉네임 사용 가능 여부 확인"""
    if not email and not nickname:
        raise domain_http_error(
            ValidationFailedError({"query": "email or nickname is required"}),
            trace_id,
            accept_language,
        )

    identity = IdentityService(db)
    try:
        email_available = (
            await identity.check_email_available(normalize_email(email)) if email else None
        )
        nickname_available = (
            await identity.check_nickname_available(nickname.strip()) if nickname else None
        )
    except PreRegError as e:
        raise domain_http_error(e, trace_id, accept_language)

    return AvailabilityResponse(
        email_available=email_available,
        nickname_available=nickname_available,
    )
