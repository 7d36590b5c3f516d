"""Reward tier catalogue and per-user claim records."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from prereg.models.base import Base, UUIDMixin, utcnow

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class RewardType(str, Enum):
    """Kinds of reward items."""

    WEAPON = "weapon"
    CURRENCY = "currency"
    SKIN = "skin"
    MOUNT = "mount"
    TITLE = "title"


class RewardRarity(str, Enum):
    """Item rarity, lowest first."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"
    DIVINE = "divine"
    UNIQUE = "unique"


class RewardTier(Base, UUIDMixin):
    """A reward bracket over direct-referral count.

    The range is half-open: a count ``n`` is inside when
    ``min_referrals <= n`` and (``max_referrals`` is NULL or ``n < max_referrals``).
    """

    __tablename__ = "reward_tiers"
    __table_args__ = (
        UniqueConstraint("tier_name", name="uq_reward_tiers_name"),
        CheckConstraint("min_referrals >= 0", name="ck_reward_tiers_min"),
        CheckConstraint(
            "max_referrals IS NULL OR max_referrals > min_referrals",
            name="ck_reward_tiers_range",
        ),
    )

    tier_name: Mapped[str] = mapped_column(String(50), nullable=False)
    min_referrals: Mapped[int] = mapped_column(Integer, nullable=False)
    max_referrals: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # [{"type": "weapon", "name": "...", "rarity": "legendary", "amount": 1}, ...]
    rewards: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
    )
    unlocked_episodes: Mapped[list[int]] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
    )
    # {"ko": {"title": ..., "description": ...}, "en": {...}, "ja": {...}}
    tier_translations: Mapped[dict[str, dict[str, str]]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
    )

    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        upper = "inf" if self.max_referrals is None else self.max_referrals
        return f"<RewardTier {self.tier_name} [{self.min_referrals}, {upper})>"


class UserReward(Base, UUIDMixin):
    """Claim record for a tier a user has reached."""

    __tablename__ = "user_rewards"
    __table_args__ = (
        UniqueConstraint("user_id", "tier_id", name="uq_user_rewards_user_tier"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tier_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reward_tiers.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserReward user={self.user_id} tier={self.tier_id} claimed={self.is_claimed}>"


def _translations(ko: tuple[str, str], en: tuple[str, str], ja: tuple[str, str]) -> dict:
    return {
        lang: {"title": title, "description": description}
        for lang, (title, description) in (("ko", ko), ("en", en), ("ja", ja))
    }


# Seed catalogue, also inserted by the initial migration
DEFAULT_REWARD_TIERS: list[dict[str, Any]] = [
    {
        "tier_name": "bronze",
        "min_referrals": 1,
        "max_referrals": 3,
        "sort_order": 1,
        "rewards": [
            {"type": RewardType.CURRENCY.value, "name": "Gold", "amount": 10000},
            {"type": RewardType.CURRENCY.value, "name": "Diamond", "amount": 500},
        ],
        "unlocked_episodes": [1],
        "tier_translations": _translations(
            ("브론즈 추종자", "10,000 골드와 500 다이아몬드"),
            ("Bronze Follower", "10,000 Gold & 500 Diamonds"),
            ("ブロンズの従者", "10,000ゴールドと500ダイヤモンド"),
        ),
    },
    {
        "tier_name": "silver",
        "min_referrals": 3,
        "max_referrals": 5,
        "sort_order": 2,
        "rewards": [
            {"type": RewardType.CURRENCY.value, "name": "Diamond", "amount": 1000},
            {"type": RewardType.CURRENCY.value, "name": "Gold", "amount": 100000},
            {"type": RewardType.TITLE.value, "name": "Herald of Shadows", "rarity": RewardRarity.RARE.value},
        ],
        "unlocked_episodes": [1, 2],
        "tier_translations": _translations(
            ("실버 전령", "1,000 다이아몬드 + 100,000 골드"),
            ("Silver Herald", "1,000 Diamonds + 100,000 Gold"),
            ("シルバーの伝令", "1,000ダイヤモンド + 100,000ゴールド"),
        ),
    },
    {
        "tier_name": "gold",
        "min_referrals": 5,
        "max_referrals": 10,
        "sort_order": 3,
        "rewards": [
            {"type": RewardType.SKIN.value, "name": "Shadow Lord Set", "rarity": RewardRarity.EPIC.value},
            {"type": RewardType.CURRENCY.value, "name": "Diamond", "amount": 2000},
        ],
        "unlocked_episodes": [1, 2, 3],
        "tier_translations": _translations(
            ("골드 기사", "전용 스킨 '그림자 군주 세트'"),
            ("Gold Knight", "Exclusive Skin 'Shadow Lord Set'"),
            ("ゴールドの騎士", "限定スキン「影の君主セット」"),
        ),
    },
    {
        "tier_name": "platinum",
        "min_referrals": 10,
        "max_referrals": 20,
        "sort_order": 4,
        "rewards": [
            {"type": RewardType.WEAPON.value, "name": "Fangs of Darkness", "rarity": RewardRarity.LEGENDARY.value},
            {"type": RewardType.MOUNT.value, "name": "Abyssal Steed", "rarity": RewardRarity.MYTHIC.value},
            {"type": RewardType.CURRENCY.value, "name": "Diamond", "amount": 5000},
        ],
        "unlocked_episodes": [1, 2, 3, 4],
        "tier_translations": _translations(
            ("플래티넘 장군", "전설 무기 '어둠의 송곳니'"),
            ("Platinum General", "Legendary Weapon 'Fangs of Darkness'"),
            ("プラチナの将軍", "伝説武器「闇の牙」"),
        ),
    },
    {
        "tier_name": "legendary",
        "min_referrals": 20,
        "max_referrals": None,
        "sort_order": 5,
        "rewards": [
            {"type": RewardType.SKIN.value, "name": "Dark Lord Limited Edition Skin Set", "rarity": RewardRarity.DIVINE.value},
            {"type": RewardType.TITLE.value, "name": "Right Hand of the Dark Lord", "rarity": RewardRarity.UNIQUE.value},
            {"type": RewardType.CURRENCY.value, "name": "Diamond", "amount": 10000},
        ],
        "unlocked_episodes": [1, 2, 3, 4, 5],
        "tier_translations": _translations(
            ("전설의 오른팔", "마왕 한정판 스킨 세트"),
            ("Legendary Right Hand", "Dark Lord Limited Edition Skin Set"),
            ("伝説の右腕", "魔王限定スキンセット"),
        ),
    },
]
