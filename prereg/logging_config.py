"""structlog setup for the pre-registration service.

Registrations and sign-in requests carry emails and phone numbers, and the
services log them for support lookups. ``redact_pii`` masks both before a
record is rendered, so neither the console nor the JSON stream ever holds a
full address. Request scoped values (request_id) travel through contextvars.
"""

import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

EMAIL_PATTERN = re.compile(r"([^\s@<>()\"',;:]+)@([^\s@<>()\"',;:]+\.[A-Za-z]{2,})")
PHONE_PATTERN = re.compile(r"(?<!\d)(\d{2,3})-?(\d{3,4})-?(\d{4})(?!\d)")

PII_KEYS = frozenset({"email", "phone", "normalized_email"})

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


def mask_email(value: str) -> str:
    """``alice@example.com`` -> ``a***@example.com``"""
    return EMAIL_PATTERN.sub(lambda m: f"{m.group(1)[0]}***@{m.group(2)}", value)


def mask_phone(value: str) -> str:
    """``010-1234-5678`` -> ``010-****-5678``"""
    return PHONE_PATTERN.sub(lambda m: f"{m.group(1)}-****-{m.group(3)}", value)


def mask_pii(value: str) -> str:
    return mask_phone(mask_email(value))


def redact_pii(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    """Mask emails and phone numbers in the message and in PII-named fields."""
    event = event_dict.get("event")
    if isinstance(event, str):
        event_dict["event"] = mask_pii(event)
    for key in PII_KEYS & event_dict.keys():
        if isinstance(event_dict[key], str):
            event_dict[key] = mask_pii(event_dict[key])
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    app_env: str = "development",
) -> None:
    """Route structlog and stdlib logging through one formatter.

    Args:
        log_level: Root level name
        json_logs: Force JSON output outside production
        app_env: Application environment; production always logs JSON
    """
    use_json = json_logs or app_env == "production"

    # Positional args must be merged into the message before masking
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_pii,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if use_json:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        shared_processors.append(structlog.dev.set_exc_info)
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Event-style logger: ``logger.info("registration_completed", referred=True)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
