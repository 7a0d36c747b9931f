from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from src.domain.normalization import (
    COMPLETION_EVENT_TYPES,
    EVENT_STATUS,
    parse_timestamp,
)
from src.domain.outcomes import StatusProjection, UnknownEvent


def _iso(value: datetime) -> str:
    return value.isoformat()


def _payload_data(payload: dict[str, Any]) -> dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else {}


def _backfill(
    fields: dict[str, Any],
    record: dict[str, Any],
    column: str,
    value: datetime | None,
) -> None:
    if value is not None and not record.get(column) and column not in fields:
        fields[column] = _iso(value)


def _first_document(data: dict[str, Any]) -> dict[str, Any] | None:
    documents = data.get("documents")
    if not isinstance(documents, list) or not documents:
        return None
    first = documents[0]
    return first if isinstance(first, dict) else None


def project_event(
    record: dict[str, Any],
    event_type: str,
    payload: dict[str, Any],
    *,
    expiry_days: int | None = None,
    now: datetime | None = None,
) -> StatusProjection | UnknownEvent:
    """Compute the partial update a DocuSeal event applies to a status record.

    Pure: reads only its arguments. Fields already present on ``record`` are
    kept unless the event recomputes them; earlier timestamps are only
    backfilled when the record has none yet.
    """
    status_value = EVENT_STATUS.get(event_type)
    if status_value is None:
        return UnknownEvent(event_type=event_type)

    now = now or datetime.now(timezone.utc)
    data = _payload_data(payload)
    event_time = parse_timestamp(payload.get("timestamp")) or now
    opened_at = parse_timestamp(data.get("opened_at"))
    created_at = parse_timestamp(data.get("created_at"))

    fields: dict[str, Any] = {"status": status_value}

    if event_type in ("form.viewed", "form.opened"):
        fields["viewed_at"] = _iso(opened_at or event_time)

    elif event_type == "form.started":
        fields["started_at"] = _iso(event_time)
        _backfill(fields, record, "viewed_at", opened_at)

    elif event_type == "submission.created":
        fields["started_at"] = _iso(created_at or event_time)

    elif event_type in COMPLETION_EVENT_TYPES:
        completed_at = parse_timestamp(data.get("completed_at")) or event_time
        fields["completed_at"] = _iso(completed_at)
        document = _first_document(data)
        if document:
            fields["completed_document_url"] = document.get("url")
            fields["completed_document_name"] = document.get("name")
        if data.get("audit_log_url"):
            fields["audit_log_url"] = data["audit_log_url"]
        if data.get("submission_url"):
            fields["submission_url"] = data["submission_url"]
        _backfill(fields, record, "viewed_at", opened_at)
        _backfill(fields, record, "started_at", created_at)
        if expiry_days:
            fields["expires_at"] = _iso(completed_at + timedelta(days=expiry_days))

    elif event_type == "form.declined":
        declined_at = parse_timestamp(data.get("declined_at")) or event_time
        fields["declined_at"] = _iso(declined_at)
        _backfill(fields, record, "viewed_at", opened_at)

    submission_id = data.get("id")
    fields["docuseal_submission_id"] = str(submission_id) if submission_id is not None else None
    fields["webhook_data"] = payload
    fields["updated_at"] = _iso(now)
    return StatusProjection(status=status_value, fields=fields)
