"""Tests for referral code issuance and constraint classification."""

from sqlalchemy.exc import IntegrityError

from hypothesis import given, settings, strategies as st

from prereg.services.referral_code import (
    REFERRAL_CODE_ALPHABET,
    ReferralCodeGenerator,
    classify_integrity_error,
    generate_referral_code,
)
from prereg.utils.validation import validate_referral_code


def _integrity_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT", {}, Exception(message))


class TestGenerateReferralCode:

    @given(st.integers(min_value=0, max_value=50))
    @settings(max_examples=25)
    def test_codes_use_alphabet(self, _):
        code = generate_referral_code()
        assert len(code) == 8
        assert set(code) <= set(REFERRAL_CODE_ALPHABET)
        assert validate_referral_code(code)

    def test_codes_vary(self):
        codes = {generate_referral_code() for _ in range(200)}
        assert len(codes) > 190

    def test_generator_uses_source(self):
        scripted = iter(["AAAA0000", "BBBB1111"])
        generator = ReferralCodeGenerator(length=8, source=lambda length: next(scripted))
        assert generator.issue() == "AAAA0000"
        assert generator.issue() == "BBBB1111"


class TestClassifyIntegrityError:

    def test_postgres_constraint_names(self):
        assert classify_integrity_error(_integrity_error(
            'duplicate key value violates unique constraint "uq_users_referral_code"'
        )) == "referral_code"
        assert classify_integrity_error(_integrity_error(
            'duplicate key value violates unique constraint "uq_users_email"'
        )) == "email"
        assert classify_integrity_error(_integrity_error(
            'duplicate key value violates unique constraint "uq_pre_registration_stats_date"'
        )) == "stats_date"

    def test_sqlite_column_paths(self):
        assert classify_integrity_error(
            _integrity_error("UNIQUE constraint failed: users.nickname")
        ) == "nickname"
        assert classify_integrity_error(
            _integrity_error("UNIQUE constraint failed: users.referral_code")
        ) == "referral_code"

    def test_unknown_constraint(self):
        assert classify_integrity_error(
            _integrity_error("FOREIGN KEY constraint failed")
        ) is None
