from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from src.auth import require_internal_scheduler_secret
from src.config import settings
from src.db import get_supabase
from src.models.maintenance import (
    MetricsFlushResponse,
    MetricsSnapshotResponse,
    WebhookEventsCleanupResponse,
)
from src.observability import log_event, metrics_snapshot, persist_metrics_snapshot, reset_metrics
from src.reconciliation.retention import purge_expired_webhook_events


router = APIRouter(
    prefix="/api/internal/maintenance",
    tags=["internal-maintenance"],
    dependencies=[Depends(require_internal_scheduler_secret)],
)


@router.post("/webhook-events/cleanup", response_model=WebhookEventsCleanupResponse)
async def cleanup_webhook_events(
    request: Request,
    supabase_client: Any = Depends(get_supabase),
):
    request_id = getattr(request.state, "request_id", None)
    try:
        result = purge_expired_webhook_events(
            supabase_client=supabase_client,
            retention_days=settings.webhook_event_retention_days,
            batch_size=settings.webhook_event_cleanup_batch_size,
            max_batches=settings.webhook_event_cleanup_max_batches,
            request_id=request_id,
        )
    except Exception as exc:
        log_event(
            "webhook_events_cleanup_failed",
            level=logging.ERROR,
            request_id=request_id,
            error=str(exc),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Cleanup failed"},
        )

    log_event(
        "webhook_events_cleanup_completed",
        request_id=request_id,
        deleted_count=result.deleted_count,
        batches=result.batches,
        cutoff=result.cutoff.isoformat(),
    )
    persist_metrics_snapshot(
        supabase_client=supabase_client,
        source="webhook_events_cleanup",
        request_id=request_id,
    )
    return WebhookEventsCleanupResponse(
        success=True,
        deleted_count=result.deleted_count,
        batches=result.batches,
        cutoff=result.cutoff,
    )


@router.get("/metrics", response_model=MetricsSnapshotResponse)
async def get_metrics_snapshot():
    return MetricsSnapshotResponse(counters=metrics_snapshot())


@router.post("/metrics/flush", response_model=MetricsFlushResponse)
async def flush_metrics_snapshot(
    request: Request,
    supabase_client: Any = Depends(get_supabase),
):
    """Persist the counters and start a fresh window; counters survive a failed write."""
    request_id = getattr(request.state, "request_id", None)
    counters = metrics_snapshot()
    if not persist_metrics_snapshot(
        supabase_client=supabase_client,
        source="metrics_flush",
        request_id=request_id,
    ):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Metrics snapshot could not be stored"},
        )
    reset_metrics()
    return MetricsFlushResponse(success=True, counter_count=len(counters))
