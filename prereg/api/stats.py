"""Registration statistics API."""

from fastapi import APIRouter

from prereg.api.deps import DbSession
from prereg.schemas import StatsResponse
from prereg.services.stats import StatsService

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(db: DbSession):
    """Running registration total and today's count (UTC)."""
    snapshot = await StatsService(db).get_snapshot()
    return StatsResponse.model_validate(snapshot)
