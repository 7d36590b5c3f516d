"""Referral code issuance.

Codes are 8 characters of ``A-Z0-9`` drawn from ``secrets``. Uniqueness is
enforced by ``uq_users_referral_code``; on a collision the registration
service discards the whole insert and retries with a fresh code.
"""

import secrets
import string
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError

from prereg.config import get_settings

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits

# Unique constraint name (PostgreSQL) and column path (SQLite) per key
_CONSTRAINT_MARKERS: dict[str, tuple[str, ...]] = {
    "referral_code": ("uq_users_referral_code", "users.referral_code"),
    "email": ("uq_users_email", "users.email"),
    "nickname": ("uq_users_nickname", "users.nickname"),
    "stats_date": ("uq_pre_registration_stats_date", "pre_registration_stats.date"),
}


def generate_referral_code(length: int = 8) -> str:
    """랜덤 추천 코드 생성 (영문 대문자+숫자)"""
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


def classify_integrity_error(exc: IntegrityError) -> str | None:
    """Name the unique key an IntegrityError violated, if it is one we know.

    Returns one of ``referral_code``, ``email``, ``nickname``, ``stats_date``
    or None.
    """
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for key, markers in _CONSTRAINT_MARKERS.items():
        if any(marker in text for marker in markers):
            return key
    return None


class ReferralCodeGenerator:
    """Issues candidate codes; the store decides whether one is unique."""

    def __init__(
        self,
        length: int | None = None,
        source: Callable[[int], str] = generate_referral_code,
    ):
        self.length = length or get_settings().referral_code_length
        self._source = source

    def issue(self) -> str:
        return self._source(self.length)
