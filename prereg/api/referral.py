"""친구추천 API"""

from fastapi import APIRouter, Query

from prereg.api.deps import AcceptLanguage, DbSession, TraceId, domain_http_error
from prereg.schemas import ErrorResponse, NetworkResponse, ReferrerResponse
from prereg.services.identity import IdentityService
from prereg.services.referral import ReferralService
from prereg.utils.errors import PreRegError, ReferralCodeNotFoundError, UserNotFoundError
from prereg.utils.validation import normalize_referral_code, validate_referral_code

router = APIRouter(prefix="/referrals", tags=["Referral"])


@router.get(
    "/code/{code}",
    response_model=ReferrerResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown referral code"}},
)
async def get_referrer_by_code(
    code: str,
    db: DbSession,
    trace_id: TraceId,
    accept_language: AcceptLanguage,
):
    """추천 코드 소유자 조회 (가입 폼의 추천인 표시용)"""
    normalized = normalize_referral_code(code)
    try:
        if not validate_referral_code(normalized):
            raise ReferralCodeNotFoundError(normalized)
        user = await IdentityService(db).get_user_by_referral_code(normalized)
        if user is None:
            raise ReferralCodeNotFoundError(normalized)
    except PreRegError as e:
        raise domain_http_error(e, trace_id, accept_language)

    return ReferrerResponse(nickname=user.nickname, referral_code=user.referral_code)


@router.get(
    "/{user_id}/network",
    response_model=NetworkResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def get_network(
    user_id: str,
    db: DbSession,
    trace_id: TraceId,
    accept_language: AcceptLanguage,
    missing_ok: bool = Query(False, alias="missingOk"),
):
    """Two-level referral network of a user.

    With ``missingOk=true`` an unknown user yields an empty network instead
    of 404.
    """
    network = await ReferralService(db).get_network(user_id)
    if not network.root_exists and not missing_ok:
        raise domain_http_error(UserNotFoundError(user_id), trace_id, accept_language)

    return NetworkResponse.model_validate(network)
