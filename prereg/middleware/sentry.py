"""Sentry reporting.

Duplicate sign-ups, unknown referral codes, lockouts and the like are normal
traffic and never reach Sentry. Store failures, code-generation exhaustion
and provider errors are reported with their domain error attached.
"""

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from prereg import __version__
from prereg.config import Settings
from prereg.utils.errors import (
    AlreadyReferredError,
    DuplicateEmailError,
    DuplicateNicknameError,
    InvalidCallbackError,
    PreRegError,
    RateLimitExceededError,
    ReferralCodeNotFoundError,
    RewardNotUnlockedError,
    SelfReferralError,
    TierNotFoundError,
    UserNotFoundError,
    ValidationFailedError,
)

EXPECTED_ERRORS: tuple[type[PreRegError], ...] = (
    ValidationFailedError,
    DuplicateEmailError,
    DuplicateNicknameError,
    ReferralCodeNotFoundError,
    SelfReferralError,
    AlreadyReferredError,
    UserNotFoundError,
    TierNotFoundError,
    RewardNotUnlockedError,
    RateLimitExceededError,
    InvalidCallbackError,
)

UNSAMPLED_PATHS = ("/health", "/metrics", "/ws/registrations")


def init_sentry(settings: Settings) -> bool:
    """Initialise the SDK when a DSN is configured.

    Tracing and profiling are sampled in production only.

    Returns:
        Whether Sentry was initialised
    """
    if not settings.sentry_dsn:
        return False

    production = settings.app_env == "production"
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release=f"prereg@{__version__}",
        integrations=[
            FastApiIntegration(transaction_style="url"),
            SqlalchemyIntegration(),
            RedisIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate if production else 0.0,
        profiles_sample_rate=settings.sentry_profiles_sample_rate if production else 0.0,
        # Registrations carry emails and phone numbers
        send_default_pii=False,
        before_send=_before_send,
        before_send_transaction=_before_send_transaction,
    )
    return True


def _before_send(event: dict, hint: dict) -> dict | None:
    exc_info = hint.get("exc_info")
    if not exc_info:
        return event

    exc_value = exc_info[1]
    if isinstance(exc_value, EXPECTED_ERRORS):
        return None
    if isinstance(exc_value, PreRegError):
        event.setdefault("tags", {})["error_code"] = exc_value.code
        event.setdefault("extra", {})["domain_error"] = exc_value.to_dict()
    return event


def _before_send_transaction(event: dict, hint: dict) -> dict | None:
    transaction = event.get("transaction", "")
    if transaction.startswith(UNSAMPLED_PATHS):
        return None
    return event
