"""Registration counter.

One ``pre_registration_stats`` row per calendar day (UTC). The latest row's
``total_registrations`` is the running total. Increments run inside the
registration transaction; a race creating today's row surfaces as an
IntegrityError on ``uq_pre_registration_stats_date`` and is retried by the
caller together with the rest of the registration.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from prereg.models.stats import PreRegistrationStats

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class StatsSnapshot:
    total_registrations: int
    registrations_today: int
    last_updated: datetime | None


class StatsService:
    """사전예약 집계 서비스"""

    def __init__(self, db: AsyncSession, today: Callable[[], date] = utc_today):
        self.db = db
        self._today = today

    async def _latest(self) -> PreRegistrationStats | None:
        result = await self.db.execute(
            select(PreRegistrationStats)
            .order_by(PreRegistrationStats.date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_snapshot(self) -> StatsSnapshot:
        """Latest totals; ``registrations_today`` is 0 until today's row exists."""
        row = await self._latest()
        if row is None:
            return StatsSnapshot(total_registrations=0, registrations_today=0, last_updated=None)

        return StatsSnapshot(
            total_registrations=row.total_registrations,
            registrations_today=row.registrations_today if row.date == self._today() else 0,
            last_updated=row.last_updated,
        )

    async def increment_registrations(self) -> int:
        """Count one registration. Flushes but does not commit.

        Returns:
            The new total
        """
        today = self._today()
        now = datetime.now(timezone.utc)

        updated = await self.db.execute(
            update(PreRegistrationStats)
            .where(PreRegistrationStats.date == today)
            .values(
                total_registrations=PreRegistrationStats.total_registrations + 1,
                registrations_today=PreRegistrationStats.registrations_today + 1,
                last_updated=now,
            )
            .execution_options(synchronize_session=False)
        )

        if updated.rowcount == 0:
            # First registration of the day carries the running total forward
            previous = await self.db.execute(
                select(PreRegistrationStats.total_registrations)
                .where(PreRegistrationStats.date < today)
                .order_by(PreRegistrationStats.date.desc())
                .limit(1)
            )
            carried = previous.scalar_one_or_none() or 0
            self.db.add(
                PreRegistrationStats(
                    date=today,
                    total_registrations=carried + 1,
                    registrations_today=1,
                    last_updated=now,
                )
            )
            await self.db.flush()
            logger.info("Opened stats row for %s (carried total %d)", today, carried)
            return carried + 1

        result = await self.db.execute(
            select(PreRegistrationStats.total_registrations).where(
                PreRegistrationStats.date == today
            )
        )
        return result.scalar_one()
