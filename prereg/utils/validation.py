"""Input validation and normalisation for registration data.

All checks run before any storage access. ``validate_registration_form``
collects every field error at once so the client can highlight them together.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

from prereg.utils.errors import ErrorCode, ValidationFailedError
from prereg.utils.messages import get_user_message

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NICKNAME_RE = re.compile(r"^[가-힣a-zA-Z0-9_-]+$")
PHONE_RE = re.compile(r"^[0-9-]+$")
REFERRAL_CODE_RE = re.compile(r"^[A-Z0-9]{8}$")
UNSAFE_RE = re.compile(r"[<>]")

NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 50
NAME_MAX_LENGTH = 100
REFERRAL_QUERY_PARAM = "ref"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_referral_code(code: str) -> str:
    return code.strip().upper()


def sanitize_phone(phone: str) -> str:
    """Keep only digits and hyphens."""
    return re.sub(r"[^0-9-]", "", phone)


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def validate_nickname(nickname: str) -> bool:
    """2-50 chars of Hangul, ASCII letters, digits, '-' or '_'."""
    if not NICKNAME_MIN_LENGTH <= len(nickname) <= NICKNAME_MAX_LENGTH:
        return False
    return bool(NICKNAME_RE.match(nickname))


def validate_phone(phone: str | None) -> bool:
    """Optional Korean-style phone number, 10-11 digits once hyphens are removed."""
    if not phone:
        return True
    if not PHONE_RE.match(phone):
        return False
    digits = phone.replace("-", "")
    return 10 <= len(digits) <= 11


def validate_referral_code(code: str) -> bool:
    return bool(REFERRAL_CODE_RE.match(code))


def validate_name(name: str) -> bool:
    return 1 <= len(name.strip()) <= NAME_MAX_LENGTH


def is_safe_input(value: str) -> bool:
    """Reject markup characters in free-text fields."""
    return not UNSAFE_RE.search(value)


def extract_referral_code(url: str) -> str | None:
    """Return the validated ``?ref=CODE`` value of a URL, or None."""
    query = parse_qs(urlsplit(url).query)
    values = query.get(REFERRAL_QUERY_PARAM)
    if not values:
        return None
    code = normalize_referral_code(values[0])
    if not validate_referral_code(code):
        return None
    return code


@dataclass(frozen=True)
class RegistrationForm:
    """Validated, normalised registration input."""

    name: str
    email: str
    nickname: str
    phone: str | None
    referred_by_code: str | None


def validate_registration_form(
    name: str,
    email: str,
    nickname: str,
    phone: str | None = None,
    referred_by_code: str | None = None,
    language: str | None = None,
) -> RegistrationForm:
    """Validate and normalise a registration request.

    Raises:
        ValidationFailedError: with a localized message per invalid field
    """
    errors: dict[str, str] = {}

    name = (name or "").strip()
    if not validate_name(name) or not is_safe_input(name):
        errors["name"] = get_user_message(ErrorCode.INVALID_NAME, language)

    email = normalize_email(email or "")
    if not validate_email(email) or not is_safe_input(email):
        errors["email"] = get_user_message(ErrorCode.INVALID_EMAIL, language)

    nickname = (nickname or "").strip()
    if not validate_nickname(nickname):
        errors["nickname"] = get_user_message(ErrorCode.INVALID_NICKNAME, language)

    cleaned_phone: str | None = None
    if phone and phone.strip():
        cleaned_phone = phone.strip()
        if not validate_phone(cleaned_phone):
            errors["phone"] = get_user_message(ErrorCode.INVALID_PHONE, language)

    code: str | None = None
    if referred_by_code and referred_by_code.strip():
        code = normalize_referral_code(referred_by_code)
        if not validate_referral_code(code):
            errors["referredByCode"] = get_user_message(
                ErrorCode.INVALID_REFERRAL_CODE, language
            )

    if errors:
        raise ValidationFailedError(errors)

    return RegistrationForm(
        name=name,
        email=email,
        nickname=nickname,
        phone=sanitize_phone(cleaned_phone) if cleaned_phone else None,
        referred_by_code=code,
    )
