"""API request schemas.

Field formats are checked again by the services with localized messages;
the limits here only bound payload size.
"""

from pydantic import BaseModel, ConfigDict, Field


class RegistrationRequest(BaseModel):
    """Pre-registration form."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)
    nickname: str = Field(..., max_length=50)
    phone: str | None = Field(None, max_length=20)
    language: str | None = Field(None, max_length=2, description="ko | en | ja")
    referred_by_code: str | None = Field(
        None,
        alias="referredByCode",
        max_length=16,
        description="Referral code of the inviting user",
    )


class ClaimRewardRequest(BaseModel):
    """Claim a reached reward tier."""

    model_config = ConfigDict(populate_by_name=True)

    tier_id: str = Field(..., alias="tierId", max_length=36)


class MagicLinkRequest(BaseModel):
    """Request a sign-in link."""

    email: str = Field(..., max_length=255)
    language: str | None = Field(None, max_length=2)


class AuthCallbackRequest(BaseModel):
    """Redirect URL the auth provider sent the browser to."""

    url: str = Field(..., max_length=4096)
