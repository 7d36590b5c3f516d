"""API routers."""

from prereg.api.auth import router as auth_router
from prereg.api.referral import router as referral_router
from prereg.api.registration import router as registration_router
from prereg.api.rewards import router as rewards_router
from prereg.api.stats import router as stats_router

__all__ = [
    "auth_router",
    "referral_router",
    "registration_router",
    "rewards_router",
    "stats_router",
]
