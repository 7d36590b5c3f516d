"""Shared schema base and the error envelope."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """camelCase on the wire, snake_case in Python; reads ORM rows and dataclasses."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        from_attributes=True,
        populate_by_name=True,
        serialize_by_alias=True,
    )


class ErrorBody(BaseSchema):
    code: str = Field(..., examples=["EMAIL_ALREADY_EXISTS"])
    message: str = Field(..., description="Localized for the request language")
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseSchema):
    """Body of every non-2xx JSON response: ``{"error": {...}, "traceId": "..."}``."""

    error: ErrorBody
    trace_id: str
