"""Database models."""

from prereg.models.base import Base
from prereg.models.referral import Referral, ReferralLevel
from prereg.models.reward import (
    DEFAULT_REWARD_TIERS,
    RewardRarity,
    RewardTier,
    RewardType,
    UserReward,
)
from prereg.models.stats import PreRegistrationStats
from prereg.models.user import User, UserLanguage

__all__ = [
    "Base",
    "User",
    "UserLanguage",
    "Referral",
    "ReferralLevel",
    "RewardTier",
    "RewardType",
    "RewardRarity",
    "UserReward",
    "DEFAULT_REWARD_TIERS",
    "PreRegistrationStats",
]
