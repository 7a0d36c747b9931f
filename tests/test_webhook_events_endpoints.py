import pytest

from fakes import docuseal_payload, seed_subject
from src.routers import webhooks as webhooks_router


SECRET_HEADERS = {"X-Internal-Scheduler-Secret": "sched-secret"}


@pytest.fixture(autouse=True)
def _scheduler_secret(monkeypatch):
    monkeypatch.setattr(webhooks_router.settings, "internal_scheduler_secret", "sched-secret")


def _raw_event(event_id: str, received_at: str, *, processed: bool, payload=None, event_type="form.viewed") -> dict:
    return {
        "id": event_id,
        "event_type": event_type,
        "submission_id": "501",
        "payload": payload if payload is not None else docuseal_payload(event_type),
        "is_processed": processed,
        "received_at": received_at,
    }


def test_events_listing_requires_scheduler_secret(client, fake_db):
    response = client.get("/api/webhooks/docuseal/events")

    assert response.status_code == 401
    assert response.json()["detail"] == "invalid scheduler secret"


def test_events_listing_returns_503_when_secret_not_configured(monkeypatch, client, fake_db):
    monkeypatch.setattr(webhooks_router.settings, "internal_scheduler_secret", None)

    response = client.get("/api/webhooks/docuseal/events", headers=SECRET_HEADERS)

    assert response.status_code == 503


def test_events_listing_filters_unprocessed_newest_first(client, fake_db):
    fake_db.tables["document_webhook_events"] = [
        _raw_event("evt-1", "2024-01-01T00:00:00+00:00", processed=False),
        _raw_event("evt-2", "2024-01-02T00:00:00+00:00", processed=True),
        _raw_event("evt-3", "2024-01-03T00:00:00+00:00", processed=False),
    ]

    response = client.get(
        "/api/webhooks/docuseal/events",
        params={"processed": "false"},
        headers=SECRET_HEADERS,
    )

    assert response.status_code == 200
    assert [row["id"] for row in response.json()] == ["evt-3", "evt-1"]
    assert "payload" not in response.json()[0]


def test_events_listing_applies_offset_and_limit(client, fake_db):
    fake_db.tables["document_webhook_events"] = [
        _raw_event(f"evt-{i}", f"2024-01-0{i}T00:00:00+00:00", processed=False) for i in range(1, 6)
    ]

    response = client.get(
        "/api/webhooks/docuseal/events",
        params={"limit": 2, "offset": 1},
        headers=SECRET_HEADERS,
    )

    assert [row["id"] for row in response.json()] == ["evt-4", "evt-3"]


def test_replay_reconciles_stored_payload(client, fake_db):
    seed_subject(fake_db)
    fake_db.tables["document_webhook_events"] = [
        _raw_event("evt-1", "2024-01-01T00:00:00+00:00", processed=False),
    ]

    response = client.post("/api/webhooks/docuseal/events/evt-1/replay", headers=SECRET_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "replayed"
    assert body["outcome"] == "reconciled"
    assert body["document_status"] == "viewed"
    assert body["audit_closed"] is True
    assert fake_db.tables["user_documents"][0]["status"] == "viewed"
    assert fake_db.tables["document_webhook_events"][0]["is_processed"] is True


def test_replay_reports_unresolved_subject(client, fake_db):
    fake_db.tables["document_webhook_events"] = [
        _raw_event("evt-1", "2024-01-01T00:00:00+00:00", processed=False),
    ]

    response = client.post("/api/webhooks/docuseal/events/evt-1/replay", headers=SECRET_HEADERS)

    assert response.status_code == 200
    assert response.json()["outcome"] == "subject_not_found"
    assert response.json()["audit_closed"] is False


def test_replay_missing_event_is_404(client, fake_db):
    response = client.post("/api/webhooks/docuseal/events/missing/replay", headers=SECRET_HEADERS)

    assert response.status_code == 404


def test_replay_rejects_non_docuseal_payload(client, fake_db):
    fake_db.tables["document_webhook_events"] = [
        _raw_event("evt-1", "2024-01-01T00:00:00+00:00", processed=False, payload={"raw_body": "junk"}),
    ]

    response = client.post("/api/webhooks/docuseal/events/evt-1/replay", headers=SECRET_HEADERS)

    assert response.status_code == 400


def test_replay_storage_fault_is_500(client, fake_db):
    seed_subject(fake_db)
    fake_db.tables["document_webhook_events"] = [
        _raw_event("evt-1", "2024-01-01T00:00:00+00:00", processed=False),
    ]
    fake_db.failures.add(("user_documents", "upsert"))

    response = client.post("/api/webhooks/docuseal/events/evt-1/replay", headers=SECRET_HEADERS)

    assert response.status_code == 500
    assert response.json()["detail"]["type"] == "webhook_replay_failed"


def test_replay_closes_the_replayed_row_not_the_newest(client, fake_db):
    seed_subject(fake_db)
    fake_db.tables["document_webhook_events"] = [
        _raw_event("evt-old", "2024-01-01T00:00:00+00:00", processed=False),
        _raw_event("evt-new", "2024-01-02T00:00:00+00:00", processed=False),
    ]

    response = client.post("/api/webhooks/docuseal/events/evt-old/replay", headers=SECRET_HEADERS)

    assert response.json()["audit_closed"] is True
    rows = {row["id"]: row for row in fake_db.tables["document_webhook_events"]}
    assert rows["evt-old"]["is_processed"] is True
    assert rows["evt-old"]["user_id"] == "user-1"
    assert rows["evt-new"]["is_processed"] is False
