from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from threading import Lock
from typing import Any

import httpx

from src.config import settings


logger = logging.getLogger("care_portal_docs")

_counters_lock = Lock()
_counters: Counter[str] = Counter()


def configure_logging(level: str | int = logging.INFO) -> None:
    """Attach a bare-message stream handler; every line is already a JSON document."""
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return _jsonable(asdict(value))
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_jsonable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)


def metric_key(name: str, **labels: Any) -> str:
    """``name`` alone, or ``name|k1=v1,k2=v2`` with labels sorted by key."""
    if not labels:
        return name
    return name + "|" + ",".join(f"{k}={labels[k]}" for k in sorted(labels))


def incr_metric(name: str, value: int = 1, **labels: Any) -> None:
    present = {k: _jsonable(v) for k, v in labels.items() if v is not None}
    key = metric_key(name, **present)
    with _counters_lock:
        _counters[key] += value


def metrics_snapshot() -> dict[str, int]:
    with _counters_lock:
        return dict(_counters)


def reset_metrics() -> None:
    with _counters_lock:
        _counters.clear()


def log_event(
    event: str,
    *,
    level: int = logging.INFO,
    request_id: str | None = None,
    **fields: Any,
) -> None:
    entry: dict[str, Any] = {"event": event}
    if request_id:
        entry["request_id"] = request_id
    entry.update({key: _jsonable(value) for key, value in fields.items()})
    logger.log(level, json.dumps(entry, sort_keys=True))


def _export_snapshot(row: dict[str, Any]) -> None:
    url = settings.observability_export_url
    headers = {"Content-Type": "application/json"}
    if settings.observability_export_bearer_token:
        headers["Authorization"] = f"Bearer {settings.observability_export_bearer_token}"

    try:
        with httpx.Client(timeout=settings.observability_export_timeout_seconds) as client:
            response = client.post(url, headers=headers, json=row)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        log_event(
            "metrics_snapshot_export_failed",
            level=logging.WARNING,
            request_id=row.get("request_id"),
            source=row["source"],
            status_code=exc.response.status_code,
        )
        return
    except httpx.HTTPError as exc:
        log_event(
            "metrics_snapshot_export_failed",
            level=logging.WARNING,
            request_id=row.get("request_id"),
            source=row["source"],
            error=str(exc),
        )
        return

    log_event("metrics_snapshot_exported", request_id=row.get("request_id"), source=row["source"])


def persist_metrics_snapshot(
    *,
    supabase_client: Any,
    source: str,
    request_id: str | None = None,
) -> bool:
    """Write the current counters to ``observability_metric_snapshots``.

    When ``OBSERVABILITY_EXPORT_URL`` is set the same row is POSTed there as
    well. Returns False only when the database write fails; export problems
    are logged and otherwise ignored.
    """
    row = {"source": source, "request_id": request_id, "counters": metrics_snapshot()}
    try:
        supabase_client.table("observability_metric_snapshots").insert(row).execute()
    except Exception as exc:
        log_event(
            "metrics_snapshot_persist_failed",
            level=logging.WARNING,
            request_id=request_id,
            source=source,
            error=str(exc),
        )
        return False

    if settings.observability_export_url:
        _export_snapshot(row)

    log_event(
        "metrics_snapshot_persisted",
        request_id=request_id,
        source=source,
        counter_count=len(row["counters"]),
    )
    return True
