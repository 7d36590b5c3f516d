"""Business logic services."""

from prereg.services.auth import AuthTokens, MagicLinkService, parse_auth_callback
from prereg.services.identity import DuplicateCheckResult, IdentityService
from prereg.services.live_feed import (
    RegistrationFeed,
    get_registration_feed,
    set_registration_feed,
)
from prereg.services.rate_limit import (
    AttemptRateLimiter,
    create_rate_limiter,
    get_rate_limiter,
    set_rate_limiter,
)
from prereg.services.referral import ReferralNetwork, ReferralService
from prereg.services.referral_code import ReferralCodeGenerator, generate_referral_code
from prereg.services.registration import RegistrationResult, RegistrationService
from prereg.services.reward import RewardService, resolve_tiers
from prereg.services.stats import StatsService, StatsSnapshot

__all__ = [
    # Identity
    "DuplicateCheckResult",
    "IdentityService",
    # Referral codes
    "ReferralCodeGenerator",
    "generate_referral_code",
    # Referral graph
    "ReferralNetwork",
    "ReferralService",
    # Rewards
    "RewardService",
    "resolve_tiers",
    # Registration
    "RegistrationResult",
    "RegistrationService",
    # Stats / live feed
    "StatsService",
    "StatsSnapshot",
    "RegistrationFeed",
    "get_registration_feed",
    "set_registration_feed",
    # Auth
    "AttemptRateLimiter",
    "AuthTokens",
    "MagicLinkService",
    "create_rate_limiter",
    "get_rate_limiter",
    "parse_auth_callback",
    "set_rate_limiter",
]
