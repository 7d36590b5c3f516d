"""Sentry event filter tests."""

from prereg.config import get_settings
from prereg.middleware.sentry import _before_send, _before_send_transaction, init_sentry
from prereg.utils.errors import DuplicateEmailError, TransientStoreError


def exc_hint(exc: Exception) -> dict:
    return {"exc_info": (type(exc), exc, None)}


def test_expected_errors_dropped():
    assert _before_send({}, exc_hint(DuplicateEmailError("a@example.com"))) is None


def test_store_failure_reported_with_context():
    error = TransientStoreError("create_registration")

    event = _before_send({}, exc_hint(error))

    assert event["tags"]["error_code"] == "DATABASE_ERROR"
    assert event["extra"]["domain_error"] == error.to_dict()
    assert event["extra"]["domain_error"]["recoverable"] is True


def test_unrelated_exception_passes():
    event = {"message": "boom"}
    assert _before_send(event, exc_hint(RuntimeError("boom"))) is event


def test_health_transactions_dropped():
    assert _before_send_transaction({"transaction": "/health"}, {}) is None
    assert _before_send_transaction({"transaction": "/api/v1/stats"}, {}) == {
        "transaction": "/api/v1/stats"
    }


def test_disabled_without_dsn():
    settings = get_settings().model_copy(update={"sentry_dsn": None})
    assert init_sentry(settings) is False
