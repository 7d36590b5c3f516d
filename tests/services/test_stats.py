"""Tests for the daily registration counter."""

from datetime import date

import pytest

from prereg.services.stats import StatsService


class Clock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


class TestStatsService:

    @pytest.mark.asyncio
    async def test_empty_snapshot(self, db_session):
        snapshot = await StatsService(db_session).get_snapshot()
        assert snapshot.total_registrations == 0
        assert snapshot.registrations_today == 0
        assert snapshot.last_updated is None

    @pytest.mark.asyncio
    async def test_increment_same_day(self, db_session):
        clock = Clock(date(2026, 3, 1))
        service = StatsService(db_session, today=clock)

        assert await service.increment_registrations() == 1
        assert await service.increment_registrations() == 2
        assert await service.increment_registrations() == 3
        await db_session.commit()

        snapshot = await service.get_snapshot()
        assert snapshot.total_registrations == 3
        assert snapshot.registrations_today == 3
        assert snapshot.last_updated is not None

    @pytest.mark.asyncio
    async def test_day_rollover_carries_total(self, db_session):
        clock = Clock(date(2026, 3, 1))
        service = StatsService(db_session, today=clock)
        await service.increment_registrations()
        await service.increment_registrations()
        await db_session.commit()

        clock.today = date(2026, 3, 2)
        # Nobody registered yet today
        snapshot = await service.get_snapshot()
        assert snapshot.total_registrations == 2
        assert snapshot.registrations_today == 0

        assert await service.increment_registrations() == 3
        await db_session.commit()

        snapshot = await service.get_snapshot()
        assert snapshot.total_registrations == 3
        assert snapshot.registrations_today == 1

    @pytest.mark.asyncio
    async def test_rollback_discards_increment(self, db_session):
        service = StatsService(db_session, today=Clock(date(2026, 3, 1)))
        await service.increment_registrations()
        await db_session.commit()

        await service.increment_registrations()
        await db_session.rollback()

        assert (await service.get_snapshot()).total_registrations == 1
