"""Reward tier resolution and claim records.

Tier resolution is pure: ``resolve_tiers`` works on any sequence of objects
with ``min_referrals``/``max_referrals`` already sorted by ``sort_order``.
``RewardService`` loads the catalogue and keeps ``user_rewards`` rows in step
with each user's ``referral_count_cache``.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from prereg.models.reward import RewardTier, UserReward
from prereg.models.user import User
from prereg.utils.errors import (
    RewardNotUnlockedError,
    TierNotFoundError,
    UserNotFoundError,
)
from prereg.utils.messages import DEFAULT_LANGUAGE, normalize_language

logger = logging.getLogger(__name__)


class TierLike(Protocol):
    min_referrals: int
    max_referrals: int | None


def tier_contains(tier: TierLike, count: int) -> bool:
    """Half-open ``[min_referrals, max_referrals)`` membership."""
    if count < tier.min_referrals:
        return False
    return tier.max_referrals is None or count < tier.max_referrals


T = TypeVar("T", bound=TierLike)


def resolve_current_tier(tiers: Sequence[T], count: int) -> T | None:
    """Tier containing ``count``; the last one in order wins on overlap."""
    for tier in reversed(tiers):
        if tier_contains(tier, count):
            return tier
    return None


def resolve_next_tier(tiers: Sequence[T], count: int) -> T | None:
    """First tier in order whose minimum is above ``count``."""
    for tier in tiers:
        if tier.min_referrals > count:
            return tier
    return None


@dataclass
class TierResolution:
    current_tier: Any | None
    next_tier: Any | None
    referral_count: int
    referrals_to_next: int


def resolve_tiers(tiers: Sequence[TierLike], count: int) -> TierResolution:
    current = resolve_current_tier(tiers, count)
    next_tier = resolve_next_tier(tiers, count)
    return TierResolution(
        current_tier=current,
        next_tier=next_tier,
        referral_count=count,
        referrals_to_next=next_tier.min_referrals - count if next_tier else 0,
    )


def localize_tier(tier: RewardTier, language: str | None = None) -> dict[str, str]:
    """Title and description in ``language``, falling back to Korean."""
    lang = normalize_language(language)
    translations = tier.tier_translations or {}
    entry = translations.get(lang) or translations.get(DEFAULT_LANGUAGE) or {}
    return {
        "title": entry.get("title", tier.tier_name),
        "description": entry.get("description", ""),
    }


@dataclass
class ClaimState:
    tier_id: str
    is_claimed: bool
    claimed_at: datetime | None


@dataclass
class RewardInfo:
    """A user's tier position and claim state."""

    current_tier: RewardTier | None
    next_tier: RewardTier | None
    referral_count: int
    referrals_to_next: int
    unlocked_rewards: list[dict[str, Any]] = field(default_factory=list)
    claims: list[ClaimState] = field(default_factory=list)


@dataclass
class ClaimResult:
    user_reward: UserReward
    already_claimed: bool


class RewardService:
    """보상 티어 서비스"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_tiers(self, active_only: bool = True) -> list[RewardTier]:
        """Tiers in ``sort_order``."""
        query = select(RewardTier).order_by(RewardTier.sort_order, RewardTier.min_referrals)
        if active_only:
            query = query.where(RewardTier.is_active.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _get_referral_count(self, user_id: str) -> int:
        result = await self.db.execute(
            select(User.referral_count_cache).where(User.id == user_id)
        )
        count = result.scalar_one_or_none()
        if count is None:
            raise UserNotFoundError(user_id)
        return count

    async def get_reward_info(self, user_id: str) -> RewardInfo:
        """Current/next tier, distance to next and the current tier's rewards.

        Raises:
            UserNotFoundError: user does not exist
        """
        count = await self._get_referral_count(user_id)
        tiers = await self.list_tiers()
        resolution = resolve_tiers(tiers, count)

        claims_result = await self.db.execute(
            select(UserReward).where(UserReward.user_id == user_id)
        )
        claims = [
            ClaimState(
                tier_id=row.tier_id,
                is_claimed=row.is_claimed,
                claimed_at=row.claimed_at,
            )
            for row in claims_result.scalars().all()
        ]

        current = resolution.current_tier
        return RewardInfo(
            current_tier=current,
            next_tier=resolution.next_tier,
            referral_count=count,
            referrals_to_next=resolution.referrals_to_next,
            unlocked_rewards=list(current.rewards) if current else [],
            claims=claims,
        )

    async def sync_user_rewards(self, user_id: str, referral_count: int | None = None) -> list[UserReward]:
        """Create claim rows for every active tier the user has reached.

        A tier is reached once ``referral_count >= min_referrals``. Existing
        rows are left alone. Flushes but does not commit.

        Returns:
            Newly created rows
        """
        if referral_count is None:
            referral_count = await self._get_referral_count(user_id)

        tiers = await self.list_tiers()
        reached = [t for t in tiers if t.min_referrals <= referral_count]
        if not reached:
            return []

        existing_result = await self.db.execute(
            select(UserReward.tier_id).where(UserReward.user_id == user_id)
        )
        existing = set(existing_result.scalars().all())

        created = [
            UserReward(user_id=user_id, tier_id=tier.id)
            for tier in reached
            if tier.id not in existing
        ]
        if created:
            self.db.add_all(created)
            await self.db.flush()
            logger.info(
                "Unlocked %d reward tier(s) for user %s at %d referrals",
                len(created), user_id, referral_count,
            )
        return created

    async def claim_reward(self, user_id: str, tier_id: str) -> ClaimResult:
        """보상 수령 (중복 수령 시 변경 없이 성공)

        Raises:
            TierNotFoundError: tier does not exist or is inactive
            UserNotFoundError: user does not exist
            RewardNotUnlockedError: user has not reached the tier
        """
        tier = await self.db.get(RewardTier, tier_id)
        if tier is None or not tier.is_active:
            raise TierNotFoundError(tier_id)

        count = await self._get_referral_count(user_id)
        if count < tier.min_referrals:
            raise RewardNotUnlockedError(tier_id, count, tier.min_referrals)

        result = await self.db.execute(
            select(UserReward).where(
                UserReward.user_id == user_id,
                UserReward.tier_id == tier_id,
            )
        )
        user_reward = result.scalar_one_or_none()
        if user_reward is None:
            user_reward = UserReward(user_id=user_id, tier_id=tier_id)
            self.db.add(user_reward)
            await self.db.flush()

        if user_reward.is_claimed:
            return ClaimResult(user_reward=user_reward, already_claimed=True)

        now = datetime.now(timezone.utc)
        updated = await self.db.execute(
            update(UserReward)
            .where(UserReward.id == user_reward.id, UserReward.is_claimed.is_(False))
            .values(is_claimed=True, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        refreshed = await self.db.execute(
            select(UserReward)
            .where(UserReward.id == user_reward.id)
            .execution_options(populate_existing=True)
        )
        user_reward = refreshed.scalar_one()
        if updated.rowcount == 0:
            # Claimed concurrently; the stored claimed_at stands
            return ClaimResult(user_reward=user_reward, already_claimed=True)

        logger.info("Reward claimed: user=%s tier=%s", user_id, tier.tier_name)
        return ClaimResult(user_reward=user_reward, already_claimed=False)
