"""Domain exception classes for the pre-registration engine.

Every failure the engine can produce is a ``PreRegError`` carrying a stable
error code, an English log message, optional details and a flag telling the
caller whether retrying the same request can succeed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes exposed to clients."""

    # Validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_NICKNAME = "INVALID_NICKNAME"
    INVALID_PHONE = "INVALID_PHONE"
    INVALID_NAME = "INVALID_NAME"
    INVALID_REFERRAL_CODE = "INVALID_REFERRAL_CODE"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Duplicates
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    NICKNAME_ALREADY_EXISTS = "NICKNAME_ALREADY_EXISTS"

    # Referential
    REFERRAL_CODE_NOT_FOUND = "REFERRAL_CODE_NOT_FOUND"
    SELF_REFERRAL = "SELF_REFERRAL"
    ALREADY_REFERRED = "ALREADY_REFERRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TIER_NOT_FOUND = "TIER_NOT_FOUND"
    REWARD_NOT_UNLOCKED = "REWARD_NOT_UNLOCKED"

    # Transient
    CODE_GENERATION_FAILED = "CODE_GENERATION_FAILED"
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    AUTH_PROVIDER_ERROR = "AUTH_PROVIDER_ERROR"

    # Abuse
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Auth callback
    INVALID_CALLBACK = "INVALID_CALLBACK"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class PreRegError(Exception):
    """Base exception for domain errors.

    Attributes:
        code: Error code for programmatic handling
        message: Log-oriented error message
        details: Additional error details
        recoverable: Whether retrying the same request may succeed
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ):
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ValidationFailedError(PreRegError):
    """Raised when one or more input fields are malformed."""

    def __init__(self, fields: dict[str, str], code: ErrorCode = ErrorCode.VALIDATION_ERROR):
        self.fields = fields
        super().__init__(
            code=code,
            message=f"Invalid fields: {', '.join(sorted(fields))}",
            details={"fields": fields},
        )


class DuplicateEmailError(PreRegError):
    """Raised when the email is already registered."""

    def __init__(self, email: str):
        super().__init__(
            code=ErrorCode.EMAIL_ALREADY_EXISTS,
            message="Email already registered",
            details={"email": email},
        )


class DuplicateNicknameError(PreRegError):
    """Raised when the nickname is already taken."""

    def __init__(self, nickname: str):
        super().__init__(
            code=ErrorCode.NICKNAME_ALREADY_EXISTS,
            message="Nickname already taken",
            details={"nickname": nickname},
        )


class ReferralCodeNotFoundError(PreRegError):
    """Raised when a referral code does not resolve to any user."""

    def __init__(self, referral_code: str):
        super().__init__(
            code=ErrorCode.REFERRAL_CODE_NOT_FOUND,
            message=f"Referral code not found: {referral_code}",
            details={"referralCode": referral_code},
        )


class SelfReferralError(PreRegError):
    """Raised when a user tries to refer themselves."""

    def __init__(self, user_id: str):
        super().__init__(
            code=ErrorCode.SELF_REFERRAL,
            message="A user cannot refer themselves",
            details={"userId": user_id},
        )


class AlreadyReferredError(PreRegError):
    """Raised when a user already has a direct referrer."""

    def __init__(self, user_id: str):
        super().__init__(
            code=ErrorCode.ALREADY_REFERRED,
            message="User already has a referrer",
            details={"userId": user_id},
        )


class UserNotFoundError(PreRegError):
    """Raised when a user id does not exist."""

    def __init__(self, user_id: str):
        super().__init__(
            code=ErrorCode.USER_NOT_FOUND,
            message=f"User not found: {user_id}",
            details={"userId": user_id},
        )


class TierNotFoundError(PreRegError):
    """Raised when a reward tier id does not exist or is inactive."""

    def __init__(self, tier_id: str):
        super().__init__(
            code=ErrorCode.TIER_NOT_FOUND,
            message=f"Reward tier not found: {tier_id}",
            details={"tierId": tier_id},
        )


class RewardNotUnlockedError(PreRegError):
    """Raised when claiming a tier the user has not reached."""

    def __init__(self, tier_id: str, referral_count: int, min_referrals: int):
        super().__init__(
            code=ErrorCode.REWARD_NOT_UNLOCKED,
            message=(
                f"Tier {tier_id} requires {min_referrals} referrals, "
                f"user has {referral_count}"
            ),
            details={
                "tierId": tier_id,
                "referralCount": referral_count,
                "minReferrals": min_referrals,
            },
        )


class CodeGenerationError(PreRegError):
    """Raised when a unique referral code could not be issued."""

    def __init__(self, attempts: int):
        super().__init__(
            code=ErrorCode.CODE_GENERATION_FAILED,
            message=f"Referral code collided {attempts} times",
            details={"attempts": attempts},
            recoverable=True,
        )


class TransientStoreError(PreRegError):
    """Raised when the data store is unreachable or failed mid-operation."""

    def __init__(self, operation: str, cause: Exception | None = None):
        super().__init__(
            code=ErrorCode.DATABASE_ERROR,
            message=f"Store failure during {operation}",
            details={
                "operation": operation,
                "cause": type(cause).__name__ if cause else None,
            },
            recoverable=True,
        )


class RateLimitExceededError(PreRegError):
    """Raised while an identity key is locked out."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        self.retry_after_minutes = max(1, -(-retry_after_seconds // 60))
        super().__init__(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message=f"Too many attempts, retry in {self.retry_after_minutes} minutes",
            details={
                "retryAfterSeconds": retry_after_seconds,
                "retryAfterMinutes": self.retry_after_minutes,
            },
            recoverable=True,
        )


class AuthProviderError(PreRegError):
    """Raised when the passwordless auth provider rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(
            code=ErrorCode.AUTH_PROVIDER_ERROR,
            message=message,
            details={"statusCode": status_code},
            recoverable=status_code is None or status_code >= 500,
        )


class InvalidCallbackError(PreRegError):
    """Raised when an auth callback URL carries no usable token pair."""

    def __init__(self, reason: str):
        super().__init__(
            code=ErrorCode.INVALID_CALLBACK,
            message=f"Invalid auth callback: {reason}",
            details={"reason": reason},
        )
