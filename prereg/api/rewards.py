"""보상 티어 API"""

from fastapi import APIRouter, Query

from prereg.api.deps import AcceptLanguage, DbSession, TraceId, domain_http_error
from prereg.logging_config import get_logger
from prereg.schemas import (
    ClaimRewardRequest,
    ClaimRewardResponse,
    ClaimStateResponse,
    ErrorResponse,
    RewardInfoResponse,
    RewardItemResponse,
    RewardTierListResponse,
)
from prereg.schemas.responses import RewardTierResponse, tier_response
from prereg.services.reward import RewardService, localize_tier
from prereg.utils.errors import PreRegError

router = APIRouter(prefix="/rewards", tags=["Rewards"])
logger = get_logger(__name__)


def _localized(tier, language: str | None) -> RewardTierResponse:
    text = localize_tier(tier, language)
    return tier_response(tier, title=text["title"], description=text["description"])


# Declared before /{user_id} so "tiers" is not taken for a user id
@router.get("/tiers", response_model=RewardTierListResponse)
async def list_tiers(
    db: DbSession,
    accept_language: AcceptLanguage,
    lang: str | None = Query(None, max_length=2),
):
    """Active reward tiers in display order, localized."""
    language = lang or accept_language
    tiers = await RewardService(db).list_tiers()
    return RewardTierListResponse(tiers=[_localized(tier, language) for tier in tiers])


@router.get(
    "/{user_id}",
    response_model=RewardInfoResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def get_reward_info(
    user_id: str,
    db: DbSession,
    trace_id: TraceId,
    accept_language: AcceptLanguage,
    lang: str | None = Query(None, max_length=2),
):
    """현재 티어, 다음 티어까지 남은 추천 수, 수령 상태"""
    language = lang or accept_language
    try:
        info = await RewardService(db).get_reward_info(user_id)
    except PreRegError as e:
        raise domain_http_error(e, trace_id, language)

    return RewardInfoResponse(
        current_tier=_localized(info.current_tier, language) if info.current_tier else None,
        next_tier=_localized(info.next_tier, language) if info.next_tier else None,
        referral_count=info.referral_count,
        referrals_to_next=info.referrals_to_next,
        unlocked_rewards=[RewardItemResponse.model_validate(r) for r in info.unlocked_rewards],
        claims=[ClaimStateResponse.model_validate(c) for c in info.claims],
    )


@router.post(
    "/{user_id}/claim",
    response_model=ClaimRewardResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Tier not reached"},
        404: {"model": ErrorResponse, "description": "User or tier not found"},
    },
)
async def claim_reward(
    user_id: str,
    request_body: ClaimRewardRequest,
    db: DbSession,
    trace_id: TraceId,
    accept_language: AcceptLanguage,
):
    """보상 수령. 이미 수령한 티어는 alreadyClaimed=true로 응답"""
    try:
        result = await RewardService(db).claim_reward(user_id, request_body.tier_id)
        await db.commit()
    except PreRegError as e:
        raise domain_http_error(e, trace_id, accept_language)

    if not result.already_claimed:
        logger.info("reward_claimed", user_id=user_id, tier_id=request_body.tier_id)
    return ClaimRewardResponse(
        tier_id=result.user_reward.tier_id,
        is_claimed=result.user_reward.is_claimed,
        claimed_at=result.user_reward.claimed_at,
        already_claimed=result.already_claimed,
    )
