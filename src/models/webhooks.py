from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from src.domain.outcomes import ReconciliationOutcome


class WebhookAckResponse(BaseModel):
    success: bool
    message: str | None = None
    error: str | None = None
    outcome: ReconciliationOutcome | None = None


class DocusealWebhookEventListItem(BaseModel):
    id: str
    event_type: str | None = None
    submission_id: str | None = None
    is_processed: bool = False
    received_at: datetime | None = None
    processed_at: datetime | None = None
    user_id: str | None = None
    document_template_id: str | None = None


class DocusealWebhookReplayResponse(BaseModel):
    status: Literal["replayed"]
    event_id: str
    event_type: str
    outcome: ReconciliationOutcome
    user_id: str | None = None
    document_template_id: str | None = None
    document_status: str | None = None
    audit_closed: bool = False

