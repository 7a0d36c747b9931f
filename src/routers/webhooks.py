from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from src.auth import require_internal_scheduler_secret
from src.config import settings
from src.db import get_supabase, get_supabase_provider
from src.models.webhooks import (
    DocusealWebhookEventListItem,
    DocusealWebhookReplayResponse,
    WebhookAckResponse,
)
from src.observability import incr_metric, log_event
from src.reconciliation.audit import record_raw_event
from src.reconciliation.pipeline import (
    extract_raw_event_type,
    extract_submission_id,
    reconcile_event,
)


router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
_DOCUSEAL_SIGNATURE_MODES = {"permissive_audit", "enforce"}
_DOCUSEAL_SIGNATURE_HEADER = "X-Docuseal-Signature"
_RAW_EVENT_COLUMNS = (
    "id, event_type, submission_id, is_processed, received_at, processed_at, user_id, document_template_id"
)


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _signature_mode() -> str:
    raw_mode = str(settings.docuseal_webhook_signature_mode or "permissive_audit").strip().lower()
    return raw_mode if raw_mode in _DOCUSEAL_SIGNATURE_MODES else "permissive_audit"


def _invalid_signature_error(*, reason: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "type": "webhook_signature_invalid",
            "provider": "docuseal",
            "reason": reason,
            "message": message,
        },
    )


def _verify_docuseal_signature(
    *,
    raw_body: bytes,
    signature: str | None,
    request_id: str | None,
) -> dict[str, Any]:
    mode = _signature_mode()
    secret = settings.docuseal_webhook_secret
    result = {
        "signature_mode": mode,
        "signature_present": bool(signature),
        "signature_verified": False,
        "signature_reason": "not_verified",
    }

    def _audit_failure(reason: str, message: str) -> dict[str, Any]:
        incr_metric("webhook.signature.audit_failed", provider_slug="docuseal", reason=reason, mode=mode)
        log_event(
            "docuseal_signature_audit_failed",
            level=logging.WARNING,
            request_id=request_id,
            reason=reason,
            mode=mode,
            message=message,
        )
        result["signature_reason"] = reason
        return result

    def _reject(reason: str, message: str) -> HTTPException:
        incr_metric("webhook.signature.rejected", provider_slug="docuseal", reason=reason)
        incr_metric("webhook.events.rejected", provider_slug="docuseal", reason=reason)
        log_event(
            "docuseal_signature_rejected",
            level=logging.WARNING,
            request_id=request_id,
            reason=reason,
        )
        return _invalid_signature_error(reason=reason, message=message)

    if mode == "enforce" and not secret:
        incr_metric("webhook.signature.enforce_config_error", provider_slug="docuseal")
        log_event(
            "docuseal_signature_enforce_config_error",
            level=logging.ERROR,
            request_id=request_id,
            mode=mode,
            message="DOCUSEAL_WEBHOOK_SECRET is required when mode=enforce",
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "type": "webhook_signature_configuration_error",
                "provider": "docuseal",
                "message": "Webhook signature enforcement is enabled but secret is not configured",
            },
        )

    if not secret:
        if signature:
            return _audit_failure("secret_not_configured", "Signature received but no secret is configured")
        result["signature_reason"] = "secret_not_configured"
        return result

    if not signature:
        if mode == "enforce":
            raise _reject("missing_signature", f"Missing {_DOCUSEAL_SIGNATURE_HEADER} header")
        return _audit_failure("missing_signature", f"Missing {_DOCUSEAL_SIGNATURE_HEADER} header")

    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature.strip().lower()):
        if mode == "enforce":
            raise _reject("invalid_signature", "DocuSeal webhook signature verification failed")
        return _audit_failure("invalid_signature", "DocuSeal webhook signature verification failed")

    incr_metric("webhook.signature.verified", provider_slug="docuseal", mode=mode)
    result["signature_verified"] = True
    result["signature_reason"] = "verified"
    return result


def _decode_payload(raw_body: bytes) -> dict[str, Any] | None:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


@router.post("/docuseal", response_model=WebhookAckResponse, response_model_exclude_none=True)
async def ingest_docuseal_webhook(
    request: Request,
    supabase_provider: Callable[[], Any] = Depends(get_supabase_provider),
):
    req_id = _request_id(request)
    raw_body = await request.body()
    incr_metric("webhook.events.received", provider_slug="docuseal")
    signature_result = _verify_docuseal_signature(
        raw_body=raw_body,
        signature=request.headers.get(_DOCUSEAL_SIGNATURE_HEADER),
        request_id=req_id,
    )

    payload = _decode_payload(raw_body)
    if payload is None:
        incr_metric("webhook.events.failed", provider_slug="docuseal", reason="invalid_json")
        log_event(
            "docuseal_webhook_invalid_json",
            level=logging.WARNING,
            request_id=req_id,
            body_length=len(raw_body),
        )
        try:
            record_raw_event(
                supabase_client=supabase_provider(),
                event_type="unknown",
                submission_id=None,
                payload={"raw_body": raw_body.decode("utf-8", errors="replace")},
            )
        except Exception as exc:
            log_event(
                "docuseal_webhook_failed",
                level=logging.ERROR,
                request_id=req_id,
                event_type="unknown",
                error=str(exc),
            )
        return WebhookAckResponse(success=False, error="Invalid JSON payload")

    event_type = extract_raw_event_type(payload)
    submission_id = extract_submission_id(payload)
    log_event(
        "docuseal_webhook_received",
        request_id=req_id,
        event_type=event_type,
        submission_id=submission_id,
        timestamp=payload.get("timestamp"),
        **signature_result,
    )

    try:
        supabase_client = supabase_provider()
        record_raw_event(
            supabase_client=supabase_client,
            event_type=event_type,
            submission_id=submission_id,
            payload=payload,
        )
        result = reconcile_event(
            supabase_client=supabase_client,
            payload=payload,
            request_id=req_id,
        )
    except Exception as exc:
        # Answer 200 regardless: the sender retrying cannot fix a storage or client fault.
        incr_metric("webhook.events.failed", provider_slug="docuseal", reason="processing_error")
        log_event(
            "docuseal_webhook_failed",
            level=logging.ERROR,
            request_id=req_id,
            event_type=event_type,
            submission_id=submission_id,
            error=str(exc),
        )
        return WebhookAckResponse(success=False, error="Webhook processing failed")

    incr_metric("webhook.events.processed", provider_slug="docuseal", outcome=result.outcome)
    log_event(
        "docuseal_webhook_processed",
        request_id=req_id,
        event_type=event_type,
        submission_id=submission_id,
        outcome=result.outcome,
        user_id=result.user_id,
        document_template_id=result.template_id,
        status=result.status,
        audit_closed=result.audit_closed,
    )
    return WebhookAckResponse(
        success=True,
        message="Webhook processed successfully",
        outcome=result.outcome,
    )


@router.api_route(
    "/docuseal",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def reject_docuseal_webhook_method():
    return PlainTextResponse("Method Not Allowed", status_code=status.HTTP_405_METHOD_NOT_ALLOWED)


@router.get("/docuseal/events", response_model=list[DocusealWebhookEventListItem])
async def list_docuseal_webhook_events(
    processed: bool | None = None,
    event_type: str | None = None,
    submission_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
    supabase_client: Any = Depends(get_supabase),
    _auth: None = Depends(require_internal_scheduler_secret),
):
    bounded_limit = max(1, min(limit, 200))
    bounded_offset = max(0, offset)

    query = supabase_client.table("document_webhook_events").select(_RAW_EVENT_COLUMNS)
    if processed is not None:
        query = query.eq("is_processed", processed)
    if event_type:
        query = query.eq("event_type", event_type)
    if submission_id:
        query = query.eq("submission_id", submission_id)
    result = query.order("received_at", desc=True).limit(bounded_offset + bounded_limit).execute()
    rows = (result.data or [])[bounded_offset:bounded_offset + bounded_limit]
    log_event(
        "docuseal_webhook_events_listed",
        processed=processed,
        event_type=event_type,
        submission_id=submission_id,
        returned=len(rows),
        limit=bounded_limit,
        offset=bounded_offset,
    )
    return rows


@router.post("/docuseal/events/{event_id}/replay", response_model=DocusealWebhookReplayResponse)
async def replay_docuseal_webhook_event(
    event_id: str,
    request: Request,
    supabase_client: Any = Depends(get_supabase),
    _auth: None = Depends(require_internal_scheduler_secret),
):
    req_id = _request_id(request)
    event_result = (
        supabase_client.table("document_webhook_events")
        .select("id, event_type, submission_id, payload, is_processed")
        .eq("id", event_id)
        .execute()
    )
    if not event_result.data:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook event not found")
    event_row = event_result.data[0]
    payload = event_row.get("payload")
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Stored payload is not a DocuSeal webhook payload",
        )

    try:
        result = reconcile_event(
            supabase_client=supabase_client,
            payload=payload,
            raw_event_id=event_row["id"],
            request_id=req_id,
        )
    except Exception as exc:
        incr_metric("webhook.replays.failed", provider_slug="docuseal")
        log_event(
            "docuseal_webhook_replay_failed",
            level=logging.WARNING,
            request_id=req_id,
            event_id=event_id,
            event_type=event_row.get("event_type"),
            error=str(exc),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "type": "webhook_replay_failed",
                "event_id": event_id,
                "reason": str(exc),
            },
        ) from exc

    incr_metric("webhook.replays.processed", provider_slug="docuseal", outcome=result.outcome)
    log_event(
        "docuseal_webhook_replay_processed",
        request_id=req_id,
        event_id=event_id,
        event_type=result.event_type,
        outcome=result.outcome,
        user_id=result.user_id,
        document_template_id=result.template_id,
    )
    return DocusealWebhookReplayResponse(
        status="replayed",
        event_id=event_id,
        event_type=result.event_type,
        outcome=result.outcome,
        user_id=result.user_id,
        document_template_id=result.template_id,
        document_status=result.status,
        audit_closed=result.audit_closed,
    )
