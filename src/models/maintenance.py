from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class WebhookEventsCleanupResponse(BaseModel):
    success: bool
    deleted_count: int
    batches: int
    cutoff: datetime
    message: str = "Old webhook events cleaned up"


class MetricsSnapshotResponse(BaseModel):
    counters: dict[str, int]


class MetricsFlushResponse(BaseModel):
    success: bool
    counter_count: int
