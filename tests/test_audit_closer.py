from datetime import datetime, timezone

from fakes import FakeSupabase
from src.reconciliation.audit import close_raw_event, record_raw_event


def _event(event_id: str, received_at: str, *, processed: bool = False, event_type: str = "form.viewed") -> dict:
    return {
        "id": event_id,
        "event_type": event_type,
        "submission_id": "501",
        "payload": {},
        "is_processed": processed,
        "received_at": received_at,
    }


def _close(db: FakeSupabase, event_type: str = "form.viewed") -> bool:
    return close_raw_event(
        supabase_client=db,
        submission_id="501",
        event_type=event_type,
        user_id="user-1",
        template_id="tmpl-1",
    )


def test_record_raw_event_starts_unprocessed():
    db = FakeSupabase()
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    row = record_raw_event(
        supabase_client=db,
        event_type="form.viewed",
        submission_id="501",
        payload={"event_type": "form.viewed"},
        now=now,
    )

    assert row["is_processed"] is False
    assert row["received_at"] == now.isoformat()
    assert db.tables["document_webhook_events"] == [row]


def test_closes_newest_unprocessed_match():
    db = FakeSupabase(
        {
            "document_webhook_events": [
                _event("evt-old", "2024-01-01T00:00:00+00:00"),
                _event("evt-new", "2024-01-02T00:00:00+00:00"),
                _event("evt-other-type", "2024-01-03T00:00:00+00:00", event_type="form.started"),
            ]
        }
    )

    assert _close(db) is True

    rows = {row["id"]: row for row in db.tables["document_webhook_events"]}
    assert rows["evt-new"]["is_processed"] is True
    assert rows["evt-new"]["user_id"] == "user-1"
    assert rows["evt-new"]["document_template_id"] == "tmpl-1"
    assert rows["evt-new"]["processed_at"]
    assert rows["evt-old"]["is_processed"] is False
    assert rows["evt-other-type"]["is_processed"] is False


def test_already_processed_events_are_skipped():
    db = FakeSupabase(
        {
            "document_webhook_events": [
                _event("evt-old", "2024-01-01T00:00:00+00:00"),
                _event("evt-new", "2024-01-02T00:00:00+00:00", processed=True),
            ]
        }
    )

    assert _close(db) is True
    rows = {row["id"]: row for row in db.tables["document_webhook_events"]}
    assert rows["evt-old"]["is_processed"] is True


def test_no_match_is_a_noop():
    db = FakeSupabase({"document_webhook_events": [_event("evt-1", "2024-01-01T00:00:00+00:00", processed=True)]})

    assert _close(db) is False
    assert db.writes("document_webhook_events") == []


def test_missing_submission_id_is_a_noop():
    db = FakeSupabase()

    assert close_raw_event(
        supabase_client=db,
        submission_id=None,
        event_type="form.viewed",
        user_id="user-1",
        template_id="tmpl-1",
    ) is False
    assert db.calls == []


def test_explicit_raw_event_id_closes_that_row_only():
    db = FakeSupabase(
        {
            "document_webhook_events": [
                _event("evt-old", "2024-01-01T00:00:00+00:00"),
                _event("evt-new", "2024-01-02T00:00:00+00:00"),
            ]
        }
    )

    closed = close_raw_event(
        supabase_client=db,
        submission_id="501",
        event_type="form.viewed",
        user_id="user-1",
        template_id="tmpl-1",
        raw_event_id="evt-old",
    )

    assert closed is True
    rows = {row["id"]: row for row in db.tables["document_webhook_events"]}
    assert rows["evt-old"]["is_processed"] is True
    assert rows["evt-new"]["is_processed"] is False
