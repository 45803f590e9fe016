"""Total coercion helpers for task fields.

Optional fields never fail validation: malformed priority, status or due date
values are downgraded to their defaults. Only the title can be rejected.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from crudbasico.exceptions import InvalidIdentifier, ValidationError

VALID_PRIORITIES = ("low", "medium", "high")
VALID_STATUS = ("pending", "completed", "cancelled")

DEFAULT_PRIORITY = "medium"
DEFAULT_STATUS = "pending"

TITLE_REQUIRED = "El título es requerido"


def normalize_priority(priority: Any) -> str:
    if not priority:
        return DEFAULT_PRIORITY
    value = str(priority).lower()
    return value if value in VALID_PRIORITIES else DEFAULT_PRIORITY


def normalize_status(status: Any) -> str:
    if not status:
        return DEFAULT_STATUS
    value = str(status).lower()
    return value if value in VALID_STATUS else DEFAULT_STATUS


def parse_due_date(due_date: Any) -> Optional[datetime]:
    """Return a UTC datetime for ``due_date`` or None when it can't be read.

    Accepts datetimes, dates, ISO 8601 strings and epoch milliseconds.
    Naive values are taken as UTC. Other string formats such as
    "2025/01/15" or "Jan 15 2025" are not parsed and give None.
    """
    if not due_date or isinstance(due_date, bool):
        return None

    if isinstance(due_date, datetime):
        parsed = due_date
    elif isinstance(due_date, date):
        return datetime(due_date.year, due_date.month, due_date.day, tzinfo=timezone.utc)
    elif isinstance(due_date, (int, float)):
        try:
            return datetime.fromtimestamp(due_date / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(due_date, str):
        text = due_date.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the instant outside datetime.min..datetime.max.
        return None


def normalize_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError(TITLE_REQUIRED)
    return title.strip()


def normalize_description(description: Any) -> str:
    if not description:
        return ""
    return str(description).strip()


def validate_task_id(task_id: str) -> str:
    # Ids are generated as UUID4 strings; anything else can't name a task.
    try:
        uuid.UUID(task_id)
    except (ValueError, AttributeError, TypeError):
        raise InvalidIdentifier() from None
    return task_id


def list_filters(search: Optional[str], status: Optional[str], priority: Optional[str]) -> dict:
    """Reduce raw list query parameters to the filters the store should apply.

    Blank search text and unknown status/priority values are dropped rather
    than rejected.
    """
    filters = {"search": None, "status": None, "priority": None}
    if search and search.strip():
        filters["search"] = search.strip()
    if status in VALID_STATUS:
        filters["status"] = status
    if priority in VALID_PRIORITIES:
        filters["priority"] = priority
    return filters
