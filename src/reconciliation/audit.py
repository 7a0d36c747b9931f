from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from src.observability import incr_metric, log_event


def record_raw_event(
    *,
    supabase_client: Any,
    event_type: str,
    submission_id: str | None,
    payload: dict[str, Any],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Append the as-received webhook to the audit table, unprocessed."""
    row = {
        "event_type": event_type,
        "submission_id": submission_id,
        "payload": payload,
        "is_processed": False,
        "received_at": (now or datetime.now(timezone.utc)).isoformat(),
    }
    result = supabase_client.table("document_webhook_events").insert(row).execute()
    return result.data[0] if result.data else row


def _find_open_raw_event_id(supabase_client: Any, submission_id: str, event_type: str) -> str | None:
    result = (
        supabase_client.table("document_webhook_events")
        .select("id")
        .eq("submission_id", submission_id)
        .eq("event_type", event_type)
        .eq("is_processed", False)
        .order("received_at", desc=True)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return result.data[0]["id"]


def close_raw_event(
    *,
    supabase_client: Any,
    submission_id: str | None,
    event_type: str,
    user_id: str,
    template_id: str,
    raw_event_id: str | None = None,
    request_id: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Mark a raw event processed and link it to the resolved identities.

    With ``raw_event_id`` that exact row is closed. Otherwise the newest
    unprocessed row for (submission, event type) is. Returns False when
    nothing matched; that is not an error.
    """
    if raw_event_id is None and submission_id is not None:
        raw_event_id = _find_open_raw_event_id(supabase_client, submission_id, event_type)

    updated = []
    if raw_event_id is not None:
        updated = (
            supabase_client.table("document_webhook_events")
            .update(
                {
                    "is_processed": True,
                    "processed_at": (now or datetime.now(timezone.utc)).isoformat(),
                    "user_id": user_id,
                    "document_template_id": template_id,
                }
            )
            .eq("id", raw_event_id)
            .execute()
        ).data or []

    if not updated:
        incr_metric("docuseal.audit.close_missed")
        log_event(
            "docuseal_audit_close_missed",
            level=logging.WARNING,
            request_id=request_id,
            raw_event_id=raw_event_id,
            submission_id=submission_id,
            event_type=event_type,
            user_id=user_id,
            document_template_id=template_id,
        )
        return False

    incr_metric("docuseal.audit.closed")
    log_event(
        "docuseal_audit_closed",
        request_id=request_id,
        raw_event_id=raw_event_id,
        submission_id=submission_id,
        event_type=event_type,
        user_id=user_id,
        document_template_id=template_id,
    )
    return True
