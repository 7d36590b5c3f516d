"""Identity lookups and the duplicate guard.

The duplicate check is a single combined query over email and nickname. It
is a pre-check only: the unique constraints on ``users`` remain the final
arbiter, and a violation there is mapped back to the same duplicate errors
by the registration service.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from prereg.models.user import User
from prereg.utils.errors import (
    DuplicateEmailError,
    DuplicateNicknameError,
    TransientStoreError,
    UserNotFoundError,
)
from prereg.utils.validation import normalize_email, normalize_referral_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DuplicateCheckResult:
    """Which of the candidate identity keys are already taken."""

    email_exists: bool
    nickname_exists: bool

    @property
    def is_available(self) -> bool:
        return not (self.email_exists or self.nickname_exists)


class IdentityService:
    """유저 식별 및 중복 확인 서비스"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_duplicates(self, email: str, nickname: str) -> DuplicateCheckResult:
        """Check email and nickname in one round trip.

        Args:
            email: Candidate email (normalised here)
            nickname: Candidate nickname, compared exactly

        Returns:
            DuplicateCheckResult with both flags set independently

        Raises:
            TransientStoreError: The store could not be queried
        """
        email = normalize_email(email)
        try:
            result = await self.db.execute(
                select(User.email, User.nickname)
                .where(or_(User.email == email, User.nickname == nickname))
                .limit(2)
            )
            rows = result.all()
        except DBAPIError as e:
            logger.exception("Duplicate check failed for email=%s", email)
            raise TransientStoreError("check_duplicates", e) from e

        return DuplicateCheckResult(
            email_exists=any(row.email == email for row in rows),
            nickname_exists=any(row.nickname == nickname for row in rows),
        )

    async def ensure_available(self, email: str, nickname: str) -> None:
        """Raise the duplicate error for the first taken key, email first."""
        result = await self.check_duplicates(email, nickname)
        if result.email_exists:
            raise DuplicateEmailError(normalize_email(email))
        if result.nickname_exists:
            raise DuplicateNicknameError(nickname)

    async def check_email_available(self, email: str) -> bool:
        """이메일 사용 가능 여부"""
        result = await self.check_duplicates(email, "")
        return not result.email_exists

    async def check_nickname_available(self, nickname: str) -> bool:
        """닉네임 사용 가능 여부"""
        result = await self.check_duplicates("", nickname)
        return not result.nickname_exists

    async def get_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def get_user_by_referral_code(self, code: str) -> User | None:
        """추천 코드로 유저 조회 (대소문자 무시)"""
        result = await self.db.execute(
            select(User).where(User.referral_code == normalize_referral_code(code))
        )
        return result.scalar_one_or_none()
