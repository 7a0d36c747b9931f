from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status

from src.config import settings
from src.observability import incr_metric, log_event


async def require_internal_scheduler_secret(
    request: Request,
    x_internal_scheduler_secret: str | None = Header(default=None),
) -> None:
    """Gate operational endpoints behind the shared scheduler secret."""
    request_id = getattr(request.state, "request_id", None)
    configured_secret = settings.internal_scheduler_secret
    if not configured_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="internal scheduler secret is not configured",
        )
    if not x_internal_scheduler_secret or not hmac.compare_digest(
        x_internal_scheduler_secret,
        configured_secret,
    ):
        incr_metric("internal.auth_failed", path=request.url.path)
        log_event("internal_auth_failed", request_id=request_id, path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid scheduler secret",
        )
