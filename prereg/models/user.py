"""Pre-registered user model."""

from enum import Enum

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from prereg.models.base import Base, TimestampMixin, UUIDMixin


class UserLanguage(str, Enum):
    """Preferred UI language."""

    KO = "ko"
    EN = "en"
    JA = "ja"


class User(Base, UUIDMixin, TimestampMixin):
    """A pre-registered player.

    ``email`` is stored lower-cased so the unique constraint is effectively
    case-insensitive. ``referral_code`` is assigned once at creation and never
    changes.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("nickname", name="uq_users_nickname"),
        UniqueConstraint("referral_code", name="uq_users_referral_code"),
    )

    # Profile
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    nickname: Mapped[str] = mapped_column(String(50), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    language: Mapped[str] = mapped_column(
        String(2),
        default=UserLanguage.KO.value,
        nullable=False,
    )

    # Referral
    referral_code: Mapped[str] = mapped_column(String(8), nullable=False)
    referred_by_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    referred_by_user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Denormalized count of level-1 referrals, maintained with the edge insert
    referral_count_cache: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.nickname} code={self.referral_code}>"
