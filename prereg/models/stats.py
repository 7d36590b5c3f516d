"""Daily registration aggregate."""

from datetime import date as date_type, datetime

from sqlalchemy import Date, DateTime, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from prereg.models.base import Base, UUIDMixin, utcnow


class PreRegistrationStats(Base, UUIDMixin):
    """One row per calendar day.

    ``total_registrations`` is the running total as of that day, so the
    latest row is the current snapshot.
    """

    __tablename__ = "pre_registration_stats"
    __table_args__ = (
        UniqueConstraint("date", name="uq_pre_registration_stats_date"),
    )

    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    total_registrations: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        nullable=False,
    )
    registrations_today: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        nullable=False,
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PreRegistrationStats {self.date} total={self.total_registrations}>"
