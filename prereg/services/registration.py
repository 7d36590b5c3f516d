"""Pre-registration flow.

validate -> duplicate pre-check -> (per attempt: resolve referrer -> insert
user with a fresh code -> referral edges + count cache -> reward rows ->
daily stats -> commit) -> publish the new total.

Everything inside an attempt is one transaction. A unique violation on the
referral code (or on today's stats row) rolls the attempt back and retries
with a new code, up to ``referral_code_max_attempts`` times. Violations on
email or nickname map to the same errors as the pre-check.

``create_registration`` never raises domain errors: every failure comes back
as a ``RegistrationResult`` with a localized message.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from prereg.config import get_settings
from prereg.middleware.prometheus import (
    record_code_collision,
    record_registration,
    record_registration_failure,
)
from prereg.models.user import User
from prereg.services.identity import IdentityService
from prereg.services.live_feed import RegistrationFeed
from prereg.services.referral import ReferralService
from prereg.services.referral_code import ReferralCodeGenerator, classify_integrity_error
from prereg.services.reward import RewardService
from prereg.services.stats import StatsService
from prereg.utils.errors import (
    CodeGenerationError,
    DuplicateEmailError,
    DuplicateNicknameError,
    PreRegError,
    RateLimitExceededError,
    ReferralCodeNotFoundError,
    TransientStoreError,
    ValidationFailedError,
)
from prereg.utils.messages import get_user_message, normalize_language
from prereg.utils.validation import RegistrationForm, validate_registration_form

logger = logging.getLogger(__name__)


class _RetryableConflict(Exception):
    """Unique violation that a fresh attempt can resolve."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(key)


@dataclass
class RegisteredUser:
    id: str
    email: str
    nickname: str
    referral_code: str


@dataclass
class RegistrationFailure:
    code: str
    message: str
    user_message: str
    fields: dict[str, str] = field(default_factory=dict)
    recoverable: bool = False


@dataclass
class RegistrationResult:
    """Outcome of ``create_registration``."""

    success: bool
    user: RegisteredUser | None = None
    referral_code: str | None = None
    error: RegistrationFailure | None = None

    @classmethod
    def ok(cls, user: User) -> "RegistrationResult":
        return cls(
            success=True,
            user=RegisteredUser(
                id=user.id,
                email=user.email,
                nickname=user.nickname,
                referral_code=user.referral_code,
            ),
            referral_code=user.referral_code,
        )

    @classmethod
    def failed(cls, error: PreRegError, language: str | None = None) -> "RegistrationResult":
        params: dict[str, Any] = {}
        if isinstance(error, RateLimitExceededError):
            params["minutes"] = error.retry_after_minutes
        return cls(
            success=False,
            error=RegistrationFailure(
                code=error.code,
                message=error.message,
                user_message=get_user_message(error.code, language, **params),
                fields=error.fields if isinstance(error, ValidationFailedError) else {},
                recoverable=error.recoverable,
            ),
        )


class RegistrationService:
    """사전예약 등록 서비스"""

    def __init__(
        self,
        db: AsyncSession,
        feed: RegistrationFeed | None = None,
        code_generator: ReferralCodeGenerator | None = None,
        max_attempts: int | None = None,
    ):
        self.db = db
        self.feed = feed
        self.codes = code_generator or ReferralCodeGenerator()
        self.max_attempts = max_attempts or get_settings().referral_code_max_attempts

        self.identity = IdentityService(db)
        self.referrals = ReferralService(db)
        self.rewards = RewardService(db)
        self.stats = StatsService(db)

    async def create_registration(
        self,
        name: str,
        email: str,
        nickname: str,
        phone: str | None = None,
        language: str | None = None,
        referred_by_code: str | None = None,
    ) -> RegistrationResult:
        """Register a user and return a structured result.

        Returns:
            RegistrationResult with the new user and referral code, or the
            error kind and a localized user message
        """
        try:
            user, total = await self.register(
                name=name,
                email=email,
                nickname=nickname,
                phone=phone,
                language=language,
                referred_by_code=referred_by_code,
            )
        except PreRegError as e:
            record_registration_failure(e.code)
            if e.recoverable:
                logger.warning("Registration failed (retryable): %s %s", e.code, e.details)
            else:
                logger.info("Registration rejected: %s", e.code)
            return RegistrationResult.failed(e, language)

        await self._announce(total)
        return RegistrationResult.ok(user)

    async def register(
        self,
        name: str,
        email: str,
        nickname: str,
        phone: str | None = None,
        language: str | None = None,
        referred_by_code: str | None = None,
    ) -> tuple[User, int]:
        """Register a user, raising domain errors.

        Returns:
            The committed user and the new registration total

        Raises:
            ValidationFailedError: malformed input
            DuplicateEmailError / DuplicateNicknameError: identity key taken
            ReferralCodeNotFoundError: referral code does not resolve
            CodeGenerationError: every attempt collided
            TransientStoreError: the store failed
        """
        form = validate_registration_form(
            name=name,
            email=email,
            nickname=nickname,
            phone=phone,
            referred_by_code=referred_by_code,
            language=language,
        )
        await self.identity.ensure_available(form.email, form.nickname)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                retry=retry_if_exception_type(_RetryableConflict),
                reraise=True,
            ):
                with attempt:
                    user, total = await self._insert_once(form, language)
        except _RetryableConflict as e:
            logger.error(
                "Registration gave up after %d conflicting attempts on %s",
                self.max_attempts, e.key,
            )
            raise CodeGenerationError(self.max_attempts) from e

        record_registration(referred=user.referred_by_user_id is not None)
        logger.info(
            "Registration completed: user=%s referred_by=%s total=%d",
            user.id, user.referred_by_user_id, total,
        )
        return user, total

    async def _insert_once(self, form: RegistrationForm, language: str | None) -> tuple[User, int]:
        try:
            referrer: User | None = None
            if form.referred_by_code:
                referrer = await self.identity.get_user_by_referral_code(form.referred_by_code)
                if referrer is None:
                    raise ReferralCodeNotFoundError(form.referred_by_code)

            user = User(
                name=form.name,
                email=form.email,
                nickname=form.nickname,
                phone=form.phone,
                language=normalize_language(language),
                referral_code=self.codes.issue(),
                referred_by_code=referrer.referral_code if referrer else None,
                referred_by_user_id=referrer.id if referrer else None,
            )
            self.db.add(user)
            await self.db.flush()

            if referrer is not None:
                await self.referrals.record_edge(referrer.id, user.id)
                await self.rewards.sync_user_rewards(referrer.id)

            total = await self.stats.increment_registrations()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise self._map_integrity_error(e, form) from e
        except PreRegError:
            await self.db.rollback()
            raise
        except DBAPIError as e:
            await self.db.rollback()
            logger.exception("Store failure while registering %s", form.email)
            raise TransientStoreError("create_registration", e) from e

        return user, total

    def _map_integrity_error(self, exc: IntegrityError, form: RegistrationForm) -> Exception:
        key = classify_integrity_error(exc)
        if key == "email":
            return DuplicateEmailError(form.email)
        if key == "nickname":
            return DuplicateNicknameError(form.nickname)
        if key == "referral_code":
            record_code_collision()
            logger.warning("Referral code collision, retrying with a new code")
            return _RetryableConflict(key)
        if key == "stats_date":
            return _RetryableConflict(key)
        logger.exception("Unexpected constraint violation while registering %s", form.email)
        return TransientStoreError("create_registration", exc)

    async def _announce(self, total: int) -> None:
        if self.feed is not None:
            await self.feed.publish(total)
