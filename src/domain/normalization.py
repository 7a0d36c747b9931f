from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal


DocumentStatus = Literal["not_started", "viewed", "started", "completed", "declined"]

# Status implied by each recognized event type.
EVENT_STATUS: dict[str, DocumentStatus] = {
    "form.viewed": "viewed",
    "form.opened": "viewed",
    "form.started": "started",
    "submission.created": "started",
    "submission.completed": "completed",
    "form.completed": "completed",
    "form.declined": "declined",
}

COMPLETION_EVENT_TYPES = frozenset({"submission.completed", "form.completed"})


def normalize_event_type(value: Any) -> str:
    if value is None:
        return "unknown"
    text = str(value).strip().lower()
    return text or "unknown"


def is_recognized_event_type(event_type: str) -> bool:
    return event_type in EVENT_STATUS


def normalize_email(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a provider timestamp into an aware UTC datetime.

    Date-only and naive values are treated as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_expiry_days(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        days = int(value)
    except (TypeError, ValueError):
        return None
    if days <= 0:
        return None
    return days
