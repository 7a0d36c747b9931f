from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.config import settings
from src.observability import configure_logging
from src.routers import internal_maintenance, webhooks

configure_logging(settings.log_level)

app = FastAPI(
    title="Care Portal Document Sync",
    description="Reconciles DocuSeal webhook events into per-user document status.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

_REQUEST_ID_HEADERS = ("X-Request-ID", "X-Correlation-ID")


def _incoming_request_id(request: Request) -> str:
    for header in _REQUEST_ID_HEADERS:
        value = (request.headers.get(header) or "").strip()
        if value:
            return value[:100]
    return uuid4().hex


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request.state.request_id = _incoming_request_id(request)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


app.include_router(webhooks.router)
app.include_router(internal_maintenance.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "care-portal-document-sync"}
