"""Tests for registration input validation and localized messages."""

import pytest
from hypothesis import given, strategies as st

from prereg.utils.errors import ErrorCode, ValidationFailedError
from prereg.utils.messages import get_user_message, normalize_language
from prereg.utils.validation import (
    extract_referral_code,
    normalize_email,
    validate_email,
    validate_nickname,
    validate_phone,
    validate_referral_code,
    validate_registration_form,
)


class TestFieldValidators:

    @pytest.mark.parametrize("email", ["a@b.co", "first.last+tag@example.com"])
    def test_valid_emails(self, email):
        assert validate_email(email)

    @pytest.mark.parametrize("email", ["", "plain", "a@b", "a b@c.com", "@example.com"])
    def test_invalid_emails(self, email):
        assert not validate_email(email)

    def test_normalize_email(self):
        assert normalize_email("  Foo@Example.COM ") == "foo@example.com"

    @pytest.mark.parametrize("nickname", ["ab", "용사", "dark_lord-99", "a" * 50])
    def test_valid_nicknames(self, nickname):
        assert validate_nickname(nickname)

    @pytest.mark.parametrize("nickname", ["a", "a" * 51, "has space", "<script>", "emoji😀"])
    def test_invalid_nicknames(self, nickname):
        assert not validate_nickname(nickname)

    @pytest.mark.parametrize("phone", [None, "", "010-1234-5678", "01012345678", "0212345678"])
    def test_valid_phones(self, phone):
        assert validate_phone(phone)

    @pytest.mark.parametrize("phone", ["12345", "010-1234-56789", "+82-10-1234-5678", "010 1234 5678"])
    def test_invalid_phones(self, phone):
        assert not validate_phone(phone)

    @given(st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", min_size=8, max_size=8))
    def test_any_eight_alnum_is_a_code(self, code):
        assert validate_referral_code(code)

    @pytest.mark.parametrize("code", ["ABC", "abcd1234", "ABCD-123", "ABCD12345"])
    def test_invalid_codes(self, code):
        assert not validate_referral_code(code)

    def test_extract_referral_code(self):
        assert extract_referral_code("https://game.example.test/?ref=abcd1234") == "ABCD1234"
        assert extract_referral_code("https://game.example.test/?ref=bad") is None
        assert extract_referral_code("https://game.example.test/") is None


class TestRegistrationForm:

    def test_normalises_fields(self):
        form = validate_registration_form(
            name="  Alice ",
            email=" Alice@Example.com",
            nickname=" alice ",
            phone=" 010-1234-5678 ",
            referred_by_code=" abcd1234 ",
        )
        assert form.name == "Alice"
        assert form.email == "alice@example.com"
        assert form.nickname == "alice"
        assert form.phone == "010-1234-5678"
        assert form.referred_by_code == "ABCD1234"

    def test_blank_optional_fields_become_none(self):
        form = validate_registration_form(
            name="Alice", email="alice@example.com", nickname="alice",
            phone="  ", referred_by_code="",
        )
        assert form.phone is None
        assert form.referred_by_code is None

    def test_collects_every_error(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            validate_registration_form(
                name="",
                email="nope",
                nickname="a",
                phone="1",
                referred_by_code="bad",
                language="en",
            )
        fields = exc_info.value.fields
        assert set(fields) == {"name", "email", "nickname", "phone", "referredByCode"}
        assert fields["email"] == "Please enter a valid email address."
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_markup_in_name_rejected(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            validate_registration_form(name="<b>Al</b>", email="a@b.co", nickname="alice")
        assert set(exc_info.value.fields) == {"name"}


class TestMessages:

    def test_unknown_language_falls_back_to_korean(self):
        assert normalize_language("de") == "ko"
        assert normalize_language(None) == "ko"
        assert get_user_message(ErrorCode.EMAIL_ALREADY_EXISTS, "de") == "이미 등록된 이메일입니다."

    def test_rate_limit_minutes(self):
        message = get_user_message(ErrorCode.RATE_LIMIT_EXCEEDED, "en", minutes=15)
        assert message == "Too many attempts. Please try again in 15 minutes."

    def test_unknown_code(self):
        assert get_user_message("SOMETHING_ELSE", "en") == "An unknown error occurred."
