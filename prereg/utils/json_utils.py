"""orjson encoding for HTTP responses, feed messages and WebSocket frames."""

from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

import orjson
from fastapi.responses import JSONResponse

# Timestamps go out as ...Z; the stats and claim columns are all UTC
_OPTIONS = orjson.OPT_UTC_Z | orjson.OPT_NON_STR_KEYS


def _default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")


def json_dumps(data: Any) -> str:
    return orjson.dumps(data, default=_default, option=_OPTIONS).decode()


def json_loads(data: str | bytes) -> Any:
    """Parse JSON. Malformed input raises ``orjson.JSONDecodeError`` (a ValueError)."""
    return orjson.loads(data)


class ORJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, default=_default, option=_OPTIONS)
