from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any

from src.domain.normalization import normalize_expiry_days
from src.domain.outcomes import StatusProjection, SubjectResolved
from src.observability import incr_metric, log_event


STATUS_RECORD_COLUMNS = (
    "id, user_id, user_name, document_template_id, status, viewed_at, started_at, "
    "completed_at, declined_at, expires_at, completed_document_url, completed_document_name, "
    "docuseal_submission_id, created_at, updated_at"
)


def status_record_id(user_id: str, template_id: str) -> str:
    """Deterministic key for the single record of a (user, template) pair."""
    return hashlib.sha256(f"{user_id}:{template_id}".encode("utf-8")).hexdigest()


def get_or_create_status_record(
    *,
    supabase_client: Any,
    subject: SubjectResolved,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return the one record for (user, template), creating it as not_started.

    New rows get a deterministic id; rows created elsewhere keep theirs and
    are found by the (user_id, document_template_id) pair.
    """
    record_id = status_record_id(subject.user_id, subject.template_id)
    now_iso = (now or datetime.now(timezone.utc)).isoformat()
    # Insert-if-absent: a concurrent delivery that loses the race is a no-op.
    supabase_client.table("user_documents").upsert(
        {
            "id": record_id,
            "user_id": subject.user_id,
            "user_name": subject.user_name,
            "document_template_id": subject.template_id,
            "status": "not_started",
            "created_at": now_iso,
            "updated_at": now_iso,
        },
        on_conflict="user_id,document_template_id",
        ignore_duplicates=True,
    ).execute()
    result = (
        supabase_client.table("user_documents")
        .select(STATUS_RECORD_COLUMNS)
        .eq("user_id", subject.user_id)
        .eq("document_template_id", subject.template_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        raise RuntimeError(
            f"user_documents row for user {subject.user_id} template {subject.template_id} missing after insert"
        )
    return result.data[0]


def read_template_expiry_days(
    *,
    supabase_client: Any,
    template_id: str,
    request_id: str | None = None,
) -> int | None:
    # Expiry is optional; a failed read only means no expires_at.
    try:
        result = (
            supabase_client.table("document_templates")
            .select("id, expiry_days")
            .eq("id", template_id)
            .limit(1)
            .execute()
        )
    except Exception as exc:
        incr_metric("docuseal.expiry.read_failed")
        log_event(
            "docuseal_template_expiry_read_failed",
            level=logging.WARNING,
            request_id=request_id,
            document_template_id=template_id,
            error=str(exc),
        )
        return None
    if not result.data:
        return None
    return normalize_expiry_days(result.data[0].get("expiry_days"))


def apply_status_projection(
    *,
    supabase_client: Any,
    record_id: str,
    projection: StatusProjection,
) -> None:
    supabase_client.table("user_documents").update(projection.fields).eq("id", record_id).execute()
