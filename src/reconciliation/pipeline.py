from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from src.domain.normalization import (
    COMPLETION_EVENT_TYPES,
    is_recognized_event_type,
    normalize_event_type,
)
from src.domain.outcomes import ReconciliationResult, SubjectNotFound
from src.domain.projection import project_event
from src.observability import incr_metric, log_event
from src.reconciliation.audit import close_raw_event
from src.reconciliation.resolver import resolve_subject
from src.reconciliation.status_records import (
    apply_status_projection,
    get_or_create_status_record,
    read_template_expiry_days,
)


def extract_submission_id(payload: dict[str, Any]) -> str | None:
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    submission_id = data.get("id")
    return str(submission_id) if submission_id is not None else None


def extract_raw_event_type(payload: dict[str, Any]) -> str:
    """Event type exactly as the provider sent it, for the audit copy."""
    raw = payload.get("event_type")
    return str(raw) if raw is not None else "unknown"


def reconcile_event(
    *,
    supabase_client: Any,
    payload: dict[str, Any],
    raw_event_id: str | None = None,
    request_id: str | None = None,
    now: datetime | None = None,
) -> ReconciliationResult:
    """Resolve, project and audit-close one DocuSeal event.

    Runs strictly in sequence. Business rejections come back as the result's
    ``outcome``; storage faults raise. ``raw_event_id`` pins the audit row to
    close, as when replaying a stored event.
    """
    now = now or datetime.now(timezone.utc)
    raw_event_type = extract_raw_event_type(payload)
    event_type = normalize_event_type(payload.get("event_type"))
    submission_id = extract_submission_id(payload)

    subject = resolve_subject(supabase_client=supabase_client, payload=payload, request_id=request_id)
    if isinstance(subject, SubjectNotFound):
        return ReconciliationResult(
            outcome="subject_not_found",
            event_type=event_type,
            submission_id=submission_id,
            not_found_reason=subject.reason,
        )

    # Checked before the record lookup so an unknown type never creates a row.
    if not is_recognized_event_type(event_type):
        incr_metric("docuseal.events.unknown_type", event_type=event_type)
        log_event(
            "docuseal_unknown_event_type",
            level=logging.WARNING,
            request_id=request_id,
            event_type=raw_event_type,
            submission_id=submission_id,
            user_id=subject.user_id,
            document_template_id=subject.template_id,
        )
        return ReconciliationResult(
            outcome="unknown_event",
            event_type=event_type,
            submission_id=submission_id,
            user_id=subject.user_id,
            template_id=subject.template_id,
        )

    record = get_or_create_status_record(supabase_client=supabase_client, subject=subject, now=now)

    expiry_days = None
    if event_type in COMPLETION_EVENT_TYPES:
        expiry_days = read_template_expiry_days(
            supabase_client=supabase_client,
            template_id=subject.template_id,
            request_id=request_id,
        )

    projection = project_event(record, event_type, payload, expiry_days=expiry_days, now=now)
    apply_status_projection(supabase_client=supabase_client, record_id=record["id"], projection=projection)
    incr_metric("docuseal.status.projected", event_type=event_type, status=projection.status)
    log_event(
        "docuseal_status_projected",
        request_id=request_id,
        event_type=event_type,
        submission_id=submission_id,
        user_id=subject.user_id,
        document_template_id=subject.template_id,
        record_id=record["id"],
        previous_status=record.get("status"),
        status=projection.status,
        expires_at=projection.fields.get("expires_at"),
    )

    audit_closed = close_raw_event(
        supabase_client=supabase_client,
        submission_id=submission_id,
        event_type=raw_event_type,
        user_id=subject.user_id,
        template_id=subject.template_id,
        raw_event_id=raw_event_id,
        request_id=request_id,
        now=now,
    )
    return ReconciliationResult(
        outcome="reconciled",
        event_type=event_type,
        submission_id=submission_id,
        user_id=subject.user_id,
        template_id=subject.template_id,
        record_id=record["id"],
        status=projection.status,
        audit_closed=audit_closed,
    )
