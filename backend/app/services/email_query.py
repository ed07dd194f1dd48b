"""
Received-email lookup service.

Turns a QueryEmailRequest into a list of filter conditions, applies them to
the ``email`` table and returns the newest matching rows.

The conditions are plain data (see ``Condition``) so the filter logic can be
tested without a database:

  build_email_filters(request, now)   -> [Condition, ...]   (pure)
  apply_filters(query, conditions)    -> query with .eq/.gte/.lte applied
  query_emails(db, request)           -> [EmailRecord, ...]
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from app.errors import InvalidInput, Misconfigured, StorageError
from app.models.email import DeleteFlag, EmailRecord, EmailType, QueryEmailRequest
from app.services.email_utils import is_valid_email

logger = logging.getLogger(__name__)

EMAIL_TABLE = "email"

DEFAULT_SIZE = 10
MAX_SIZE = 50

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Lower bound used when minutes_ago reaches back before the epoch
EARLIEST_TIME = "1970-01-01 00:00:00"

# projection field -> column
_COLUMNS = {
    "id": "email_id",
    "from_email": "send_email",
    "from_name": "name",
    "to_email": "to_email",
    "subject": "subject",
    "text": "text",
    "content": "content",
    "create_time": "create_time",
}

SELECT_COLUMNS = ",".join(_COLUMNS.values())


@dataclass(frozen=True)
class Condition:
    """One ANDed filter: ``op`` is the PostgREST operator (eq, gte, lte)."""

    op: str
    column: str
    value: Any


def _to_number(value) -> Optional[float]:
    """Coerce ints, floats and numeric strings; everything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def resolve_size(size) -> int:
    """Default to 10 when absent or non-numeric, never more than 50."""
    number = _to_number(size)
    if number is None or not math.isfinite(number):
        return DEFAULT_SIZE
    return int(min(number, MAX_SIZE))


def build_email_filters(
    request: QueryEmailRequest,
    now: Optional[datetime] = None,
) -> List[Condition]:
    """
    Build the AND-ed condition list for a lookup.

    Always: recipient match, received mail only, not soft-deleted.
    A positive minutes_ago sets the lower time bound and start/end are
    ignored; otherwise start_time / end_time are applied independently.
    """
    conditions = [
        Condition("eq", "to_email", request.to_email),
        Condition("eq", "type", int(EmailType.RECEIVE)),
        Condition("eq", "is_del", int(DeleteFlag.NORMAL)),
    ]

    minutes_ago = _to_number(request.minutes_ago)
    if minutes_ago is not None and minutes_ago > 0:
        now = now or datetime.now(timezone.utc)
        try:
            since = now - timedelta(minutes=minutes_ago)
        except OverflowError:
            since = None
        if since is None or since.year < 1970:
            since = EARLIEST_TIME
        else:
            since = since.strftime(TIME_FORMAT)
        conditions.append(Condition("gte", "create_time", since))
    else:
        if request.start_time:
            conditions.append(Condition("gte", "create_time", request.start_time))
        if request.end_time:
            conditions.append(Condition("lte", "create_time", request.end_time))

    if request.from_email:
        conditions.append(Condition("eq", "send_email", request.from_email))

    return conditions


def apply_filters(query, conditions: List[Condition]):
    """Apply each condition to a Supabase query builder and return it."""
    for condition in conditions:
        query = getattr(query, condition.op)(condition.column, condition.value)
    return query


def _to_record(row: dict) -> EmailRecord:
    return EmailRecord(**{field: row.get(column) for field, column in _COLUMNS.items()})


def query_emails(
    db,
    request: QueryEmailRequest,
    now: Optional[datetime] = None,
) -> List[EmailRecord]:
    """
    Return up to ``size`` received emails for ``to_email``, newest first.

    The access key has already been checked by the router dependency.

    Raises:
        InvalidInput: to_email missing or malformed.
        Misconfigured: database client unavailable.
        StorageError: the database query failed.
    """
    if not request.to_email:
        raise InvalidInput("Recipient email is required")
    if not is_valid_email(request.to_email):
        raise InvalidInput(f"Invalid email address: {request.to_email}")

    size = resolve_size(request.size)
    conditions = build_email_filters(request, now)

    if db is None:
        raise Misconfigured("Database client unavailable: SUPABASE_SERVICE_KEY is not configured")

    try:
        query = apply_filters(db.table(EMAIL_TABLE).select(SELECT_COLUMNS), conditions)
        result = query.order("email_id", desc=True).limit(size).execute()
    except Exception as e:
        logger.error(f"Email query failed for {request.to_email}: {e}")
        raise StorageError("Failed to query emails")

    return [_to_record(row) for row in result.data or []]
