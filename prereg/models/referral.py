"""Referral graph edge model."""

from datetime import datetime
from enum import IntEnum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    SmallInteger,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from prereg.models.base import Base, UUIDMixin, utcnow


class ReferralLevel(IntEnum):
    """Distance between referrer and referee."""

    DIRECT = 1
    INDIRECT = 2


class Referral(Base, UUIDMixin):
    """Append-only referrer -> referee edge.

    A referee has at most one edge per level: one direct referrer and at most
    one grandparent derived from that referrer's own direct edge.
    """

    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint("referee_id", "level", name="uq_referrals_referee_level"),
        CheckConstraint("level IN (1, 2)", name="ck_referrals_level"),
        CheckConstraint("referrer_id <> referee_id", name="ck_referrals_not_self"),
        Index("ix_referrals_referrer_level_created", "referrer_id", "level", "created_at"),
    )

    referrer_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    referee_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(
        SmallInteger,
        default=ReferralLevel.DIRECT.value,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Referral {self.referrer_id} -> {self.referee_id} L{self.level}>"
