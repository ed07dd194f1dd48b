"""
Pydantic models for the external email API.

Request and response bodies use camelCase on the wire (``fromName``,
``toEmail``, ``messageId`` ...); the Python attributes are snake_case.

Validation here is deliberately loose: field presence and formats are
checked by the services so that errors come back in a fixed order with
readable messages rather than as a pydantic error list.
"""

from enum import IntEnum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Stored email flags
# ---------------------------------------------------------------------------

class EmailType(IntEnum):
    """Direction marker on a stored email row (``email.type``)."""
    RECEIVE = 0
    SEND = 1


class DeleteFlag(IntEnum):
    """Soft-delete marker on a stored email row (``email.is_del``)."""
    NORMAL = 0
    DELETED = 1


# ---------------------------------------------------------------------------
# Send
# ---------------------------------------------------------------------------

class SendEmailRequest(_CamelModel):
    """Request body for POST /external/send-email."""

    to: Optional[List[str]] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    from_name: Optional[str] = None


class SendResult(_CamelModel):
    """What the caller gets back after Resend accepted the message."""

    message_id: str
    sent_to: List[str]
    subject: str
    sent_at: str


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------

class QueryEmailRequest(_CamelModel):
    """
    Request body for POST /external/query-email.

    minutes_ago and size accept numbers or numeric strings; anything that
    does not parse as a number is treated as absent.
    """

    to_email: Optional[str] = None
    from_email: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    minutes_ago: Optional[Union[int, float, str]] = None
    size: Optional[Union[int, float, str]] = None


class EmailRecord(_CamelModel):
    """Projection of a received email row returned by the query endpoint."""

    id: Union[int, str]
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    to_email: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    content: Optional[str] = None
    create_time: Optional[str] = None


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

class ApiResponse(BaseModel):
    """Standard success envelope: {"code": 200, "message": "success", "data": ...}."""

    code: int = 200
    message: str = "success"
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> "ApiResponse":
        return cls(data=data)


class ErrorResponse(BaseModel):
    """Standard error envelope: {"code": <status>, "message": <reason>}."""

    code: int
    message: str
