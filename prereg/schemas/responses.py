"""API response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from prereg.schemas.common import BaseSchema


# =============================================================================
# Registration Responses
# =============================================================================


class RegisteredUserResponse(BaseSchema):
    id: str
    email: str
    nickname: str
    referral_code: str = Field(..., alias="referralCode")


class RegistrationErrorResponse(BaseSchema):
    code: str
    message: str = Field(..., description="Localized message for display")
    fields: dict[str, str] = Field(default_factory=dict)
    recoverable: bool = False


class RegistrationResponse(BaseSchema):
    """Outcome of a registration attempt."""

    success: bool
    user: RegisteredUserResponse | None = None
    referral_code: str | None = Field(None, alias="referralCode")
    error: RegistrationErrorResponse | None = None


class AvailabilityResponse(BaseSchema):
    email_available: bool | None = Field(None, alias="emailAvailable")
    nickname_available: bool | None = Field(None, alias="nicknameAvailable")


# =============================================================================
# Referral Responses
# =============================================================================


class ReferrerResponse(BaseSchema):
    """Public view of the user owning a referral code."""

    nickname: str
    referral_code: str = Field(..., alias="referralCode")


class NetworkNodeResponse(BaseSchema):
    level: int
    user_id: str = Field(..., alias="userId")
    nickname: str
    referral_code: str = Field(..., alias="referralCode")
    created_at: datetime = Field(..., alias="createdAt")
    children: list["NetworkNodeResponse"] = Field(default_factory=list)


class NetworkStatsResponse(BaseSchema):
    direct_invites: int = Field(..., alias="directInvites")
    indirect_invites: int = Field(..., alias="indirectInvites")
    total_size: int = Field(..., alias="totalSize")


class NetworkResponse(BaseSchema):
    """Two-level referral network."""

    root_user_id: str = Field(..., alias="rootUserId")
    root_exists: bool = Field(True, alias="rootExists")
    nodes: list[NetworkNodeResponse] = Field(default_factory=list)
    stats: NetworkStatsResponse


# =============================================================================
# Reward Responses
# =============================================================================


class RewardItemResponse(BaseModel):
    """One item inside a tier's reward bundle."""

    model_config = ConfigDict(extra="allow")

    type: str
    name: str
    rarity: str | None = None
    amount: int | None = None


class RewardTierResponse(BaseSchema):
    id: str
    tier_name: str = Field(..., alias="tierName")
    title: str
    description: str = ""
    min_referrals: int = Field(..., alias="minReferrals")
    max_referrals: int | None = Field(None, alias="maxReferrals")
    rewards: list[RewardItemResponse] = Field(default_factory=list)
    unlocked_episodes: list[int] = Field(default_factory=list, alias="unlockedEpisodes")
    sort_order: int = Field(..., alias="sortOrder")


class RewardTierListResponse(BaseSchema):
    tiers: list[RewardTierResponse]


class ClaimStateResponse(BaseSchema):
    tier_id: str = Field(..., alias="tierId")
    is_claimed: bool = Field(..., alias="isClaimed")
    claimed_at: datetime | None = Field(None, alias="claimedAt")


class RewardInfoResponse(BaseSchema):
    """A user's tier position."""

    current_tier: RewardTierResponse | None = Field(None, alias="currentTier")
    next_tier: RewardTierResponse | None = Field(None, alias="nextTier")
    referral_count: int = Field(..., alias="referralCount")
    referrals_to_next: int = Field(..., alias="referralsToNext")
    unlocked_rewards: list[RewardItemResponse] = Field(
        default_factory=list, alias="unlockedRewards"
    )
    claims: list[ClaimStateResponse] = Field(default_factory=list)


class ClaimRewardResponse(BaseSchema):
    tier_id: str = Field(..., alias="tierId")
    is_claimed: bool = Field(..., alias="isClaimed")
    claimed_at: datetime | None = Field(None, alias="claimedAt")
    already_claimed: bool = Field(..., alias="alreadyClaimed")


# =============================================================================
# Stats Responses
# =============================================================================


class StatsResponse(BaseSchema):
    total_registrations: int = Field(..., alias="totalRegistrations")
    registrations_today: int = Field(..., alias="registrationsToday")
    last_updated: datetime | None = Field(None, alias="lastUpdated")


# =============================================================================
# Auth Responses
# =============================================================================


class MagicLinkResponse(BaseSchema):
    email: str
    redirect_to: str = Field(..., alias="redirectTo")
    message: str = "Sign-in link sent"


class AuthTokensResponse(BaseSchema):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    token_type: str = Field(default="bearer", alias="tokenType")
    expires_in: int | None = Field(None, alias="expiresIn")


def tier_response(tier: Any, title: str, description: str) -> RewardTierResponse:
    """Build a tier response from a ``RewardTier`` and its localized text."""
    return RewardTierResponse(
        id=tier.id,
        tier_name=tier.tier_name,
        title=title,
        description=description,
        min_referrals=tier.min_referrals,
        max_referrals=tier.max_referrals,
        rewards=[RewardItemResponse.model_validate(item) for item in tier.rewards or []],
        unlocked_episodes=list(tier.unlocked_episodes or []),
        sort_order=tier.sort_order,
    )
