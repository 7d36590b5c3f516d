"""Pydantic schemas for API request/response validation."""

from prereg.schemas.common import (
    BaseSchema,
    ErrorBody,
    ErrorResponse,
)
from prereg.schemas.requests import (
    AuthCallbackRequest,
    ClaimRewardRequest,
    MagicLinkRequest,
    RegistrationRequest,
)
from prereg.schemas.responses import (
    AuthTokensResponse,
    AvailabilityResponse,
    ClaimRewardResponse,
    ClaimStateResponse,
    MagicLinkResponse,
    NetworkNodeResponse,
    NetworkResponse,
    NetworkStatsResponse,
    ReferrerResponse,
    RegisteredUserResponse,
    RegistrationErrorResponse,
    RegistrationResponse,
    RewardInfoResponse,
    RewardItemResponse,
    RewardTierListResponse,
    RewardTierResponse,
    StatsResponse,
)

__all__ = [
    # Common
    "BaseSchema",
    "ErrorBody",
    "ErrorResponse",
    # Requests
    "AuthCallbackRequest",
    "ClaimRewardRequest",
    "MagicLinkRequest",
    "RegistrationRequest",
    # Responses
    "AuthTokensResponse",
    "AvailabilityResponse",
    "ClaimRewardResponse",
    "ClaimStateResponse",
    "MagicLinkResponse",
    "NetworkNodeResponse",
    "NetworkResponse",
    "NetworkStatsResponse",
    "ReferrerResponse",
    "RegisteredUserResponse",
    "RegistrationErrorResponse",
    "RegistrationResponse",
    "RewardInfoResponse",
    "RewardItemResponse",
    "RewardTierListResponse",
    "RewardTierResponse",
    "StatsResponse",
]
