from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from src.observability import incr_metric, log_event


@dataclass(frozen=True)
class RetentionSweepResult:
    deleted_count: int
    batches: int
    cutoff: datetime


def purge_expired_webhook_events(
    *,
    supabase_client: Any,
    retention_days: int,
    batch_size: int,
    max_batches: int,
    request_id: str | None = None,
    now: datetime | None = None,
) -> RetentionSweepResult:
    """Delete raw webhook events received before the retention cutoff.

    Deletes at most ``batch_size`` rows per statement and stops after
    ``max_batches`` statements; the next run picks up any remainder.
    """
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=max(1, retention_days))
    bounded_batch = max(1, batch_size)
    deleted = 0
    batches = 0
    while batches < max(1, max_batches):
        result = (
            supabase_client.table("document_webhook_events")
            .select("id")
            .lt("received_at", cutoff.isoformat())
            .limit(bounded_batch)
            .execute()
        )
        ids = [row["id"] for row in (result.data or [])]
        if not ids:
            break
        supabase_client.table("document_webhook_events").delete().in_("id", ids).execute()
        batches += 1
        deleted += len(ids)
        log_event(
            "webhook_events_cleanup_batch",
            request_id=request_id,
            batch=batches,
            deleted=len(ids),
            cutoff=cutoff.isoformat(),
        )
        if len(ids) < bounded_batch:
            break

    incr_metric("webhook.events.purged", value=deleted)
    return RetentionSweepResult(deleted_count=deleted, batches=batches, cutoff=cutoff)
