from datetime import datetime, timedelta

from app.models import (
    Campaign,
    CalendarProvider,
    ConnectionStatus,
    ExternalCalendarEvent,
)
from app.services.calendar.exceptions import AuthenticationError
from app.services.calendar.registry import ProviderRegistry
from app.services.calendar.sync_service import ExternalCalendarSyncService

from backend.tests.calendar_fakes import (
    FakeAdapter,
    make_connection,
    make_publication,
    make_registry,
    seed_workspace,
    setup_db,
)


def _service(db, vault, *adapters):
    return ExternalCalendarSyncService(db, registry=make_registry(*adapters), vault=vault)


def _mappings(db):
    return db.query(ExternalCalendarEvent).order_by(ExternalCalendarEvent.id).all()


def test_sync_publication_creates_event_mapping(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")

    outcome = _service(db, vault, adapter).sync_publication(pub, user)

    assert outcome.ok
    assert outcome.synced == [conn.id]
    assert adapter.token == "at-stored"
    rows = _mappings(db)
    assert len(rows) == 1
    assert rows[0].external_event_id == "google-evt-1"
    assert rows[0].provider == CalendarProvider.GOOGLE
    db.refresh(conn)
    assert conn.last_sync_at is not None


def test_disabled_and_errored_connections_get_no_provider_call(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws, provider=CalendarProvider.GOOGLE, sync_enabled=False)
    make_connection(db, vault, user, ws, provider=CalendarProvider.OUTLOOK, status=ConnectionStatus.ERROR)
    pub = make_publication(db, user, ws)
    google, outlook = FakeAdapter("google"), FakeAdapter("outlook")

    outcome = _service(db, vault, google, outlook).sync_publication(pub, user)

    assert outcome.ok
    assert outcome.synced == []
    assert google.calls == []
    assert outlook.calls == []
    assert _mappings(db) == []


def test_filtered_out_publication_creates_no_mapping(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    campaign = Campaign(workspace_id=ws.id, name="Spring")
    db.add(campaign)
    db.commit()
    make_connection(
        db, vault, user, ws, sync_config={"sync_campaigns": [campaign.id + 100], "sync_platforms": []}
    )
    pub = make_publication(db, user, ws, campaign=campaign)
    adapter = FakeAdapter("google")

    outcome = _service(db, vault, adapter).sync_publication(pub, user)

    assert outcome.ok
    assert adapter.event_calls() == []
    assert _mappings(db) == []


def test_platform_filter_selects_matching_publications(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws, sync_config={"sync_platforms": ["tiktok"]})
    insta = make_publication(db, user, ws, platforms=("instagram",))
    tiktok = make_publication(db, user, ws, platforms=("tiktok", "youtube"))
    adapter = FakeAdapter("google")
    service = _service(db, vault, adapter)

    service.sync_publication(insta, user)
    service.sync_publication(tiktok, user)

    assert adapter.event_calls() == [("create", tiktok.id)]
    assert [m.publication_id for m in _mappings(db)] == [tiktok.id]


def test_sync_twice_keeps_one_mapping_and_updates(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    service = _service(db, vault, adapter)

    service.sync_publication(pub, user)
    first_touch = _mappings(db)[0].last_updated_at
    service.sync_publication(pub, user)

    rows = _mappings(db)
    assert len(rows) == 1
    assert adapter.event_calls() == [("create", pub.id), ("update", "google-evt-1", pub.id)]
    assert rows[0].last_updated_at >= first_touch


def test_expired_token_is_refreshed_before_create(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws, expires_in=timedelta(minutes=-5))
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    adapter.rotated_refresh_token = "rt-rotated"

    outcome = _service(db, vault, adapter).sync_publication(pub, user)

    assert outcome.ok
    assert adapter.calls[:3] == [
        ("refresh", "rt-stored"),
        ("set_token", "at-refreshed"),
        ("create", pub.id),
    ]
    db.refresh(conn)
    assert vault.access_token(conn) == "at-refreshed"
    assert vault.refresh_token(conn) == "rt-rotated"
    assert conn.token_expires_at > datetime.utcnow()


def test_token_within_refresh_margin_is_refreshed(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws, expires_in=timedelta(minutes=2))
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")

    _service(db, vault, adapter).sync_publication(pub, user)

    assert adapter.calls[0] == ("refresh", "rt-stored")


def test_refresh_failure_marks_connection_error_without_event_calls(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws, expires_in=timedelta(minutes=-5))
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    adapter.refresh_error = AuthenticationError("invalid_grant")

    outcome = _service(db, vault, adapter).sync_publication(pub, user)

    assert not outcome.ok
    assert adapter.event_calls() == []
    db.refresh(conn)
    assert conn.status == ConnectionStatus.ERROR
    assert conn.error_message.startswith("Token refresh failed")
    assert "invalid_grant" in conn.error_message
    assert conn.last_sync_at is not None
    assert _mappings(db) == []


def test_failing_connection_does_not_stop_the_next_one(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    google_conn = make_connection(db, vault, user, ws, provider=CalendarProvider.GOOGLE)
    outlook_conn = make_connection(db, vault, user, ws, provider=CalendarProvider.OUTLOOK)
    pub = make_publication(db, user, ws)
    google, outlook = FakeAdapter("google"), FakeAdapter("outlook")
    google.fail_create_for = {pub.id}

    outcome = _service(db, vault, google, outlook).sync_publication(pub, user)

    assert set(outcome.errors) == {google_conn.id}
    assert outcome.synced == [outlook_conn.id]
    assert outlook.event_calls() == [("create", pub.id)]
    db.refresh(google_conn)
    db.refresh(outlook_conn)
    assert google_conn.status == ConnectionStatus.ERROR
    assert "calendar rejected the event" in google_conn.error_message
    assert outlook_conn.status == ConnectionStatus.CONNECTED
    assert [m.connection_id for m in _mappings(db)] == [outlook_conn.id]


def test_error_message_is_truncated(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws, expires_in=timedelta(minutes=-5))
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    adapter.refresh_error = AuthenticationError("x" * 2000)

    _service(db, vault, adapter).sync_publication(pub, user)

    db.refresh(conn)
    assert len(conn.error_message) == 500


def test_unregistered_provider_leaves_connection_status_alone(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws, provider=CalendarProvider.OUTLOOK)
    pub = make_publication(db, user, ws)
    service = ExternalCalendarSyncService(db, registry=ProviderRegistry(), vault=vault)

    outcome = service.sync_publication(pub, user)

    assert outcome.errors == {conn.id: "Unsupported provider: outlook"}
    db.refresh(conn)
    assert conn.status == ConnectionStatus.CONNECTED
    assert conn.error_message is None


def test_bulk_sync_reports_failed_publications(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    first = make_publication(db, user, ws)
    second = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    adapter.fail_create_for = {second.id}

    results = _service(db, vault, adapter).sync_bulk_publications([first, second], user)

    assert results["successful"] == [first.id]
    assert [f["id"] for f in results["failed"]] == [second.id]
    assert "calendar rejected the event" in results["failed"][0]["error"]


def test_full_sync_backfills_matching_upcoming_publications(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws, sync_config={"sync_platforms": ["instagram"]})
    soon = make_publication(db, user, ws, scheduled_at=datetime.utcnow() + timedelta(hours=2))
    later = make_publication(db, user, ws, scheduled_at=datetime.utcnow() + timedelta(days=3))
    make_publication(db, user, ws, scheduled_at=datetime.utcnow() - timedelta(days=1))
    make_publication(db, user, ws, platforms=("linkedin",))
    adapter = FakeAdapter("google")

    results = _service(db, vault, adapter).full_sync(conn)

    assert results["total"] == 2
    assert results["successful"] == [soon.id, later.id]
    assert results["failed"] == []
    assert sorted(m.publication_id for m in _mappings(db)) == sorted([soon.id, later.id])
    db.refresh(conn)
    assert conn.last_sync_at is not None


def test_full_sync_is_idempotent(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    service = _service(db, vault, adapter)

    service.full_sync(conn)
    service.full_sync(conn)

    assert len(_mappings(db)) == 1
    assert adapter.event_calls() == [("create", pub.id), ("update", "google-evt-1", pub.id)]


def test_full_sync_refresh_failure_reports_every_candidate(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws, expires_in=None)
    first = make_publication(db, user, ws)
    second = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    adapter.refresh_error = AuthenticationError("revoked")

    results = _service(db, vault, adapter).full_sync(conn)

    assert results["successful"] == []
    assert [f["id"] for f in results["failed"]] == [first.id, second.id]
    assert adapter.event_calls() == []
    db.refresh(conn)
    assert conn.status == ConnectionStatus.ERROR


def test_update_propagates_to_linked_connections(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    service = _service(db, vault, adapter)
    service.sync_publication(pub, user)

    pub.title = "Renamed"
    db.commit()
    service.handle_publication_updated(pub)

    assert adapter.event_calls()[-1] == ("update", "google-evt-1", pub.id)
    assert len(_mappings(db)) == 1


def test_update_removes_event_when_filters_stop_matching(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    service = _service(db, vault, adapter)
    service.sync_publication(pub, user)

    conn.sync_config = {"sync_platforms": ["tiktok"]}
    db.commit()
    service.handle_publication_updated(pub)

    assert adapter.event_calls()[-1] == ("delete", "google-evt-1")
    assert _mappings(db) == []


def test_update_with_user_creates_missing_events(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")

    _service(db, vault, adapter).handle_publication_updated(pub, user)

    assert adapter.event_calls() == [("create", pub.id)]
    assert len(_mappings(db)) == 1


def test_update_failure_marks_connection_error(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    conn = make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    service = _service(db, vault, adapter)
    service.sync_publication(pub, user)
    adapter.fail_update = True

    service.handle_publication_updated(pub)

    db.refresh(conn)
    assert conn.status == ConnectionStatus.ERROR
    assert len(_mappings(db)) == 1


def test_delete_attempts_every_remote_delete_and_drops_mappings(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    google_conn = make_connection(db, vault, user, ws, provider=CalendarProvider.GOOGLE)
    outlook_conn = make_connection(db, vault, user, ws, provider=CalendarProvider.OUTLOOK)
    pub = make_publication(db, user, ws)
    google, outlook = FakeAdapter("google"), FakeAdapter("outlook")
    service = _service(db, vault, google, outlook)
    service.sync_publication(pub, user)
    assert len(_mappings(db)) == 2
    google.fail_delete = True

    service.handle_publication_deleted(pub)

    assert ("delete", "google-evt-1") in google.calls
    assert ("delete", "outlook-evt-1") in outlook.calls
    assert _mappings(db) == []
    db.refresh(google_conn)
    db.refresh(outlook_conn)
    assert google_conn.status == ConnectionStatus.ERROR
    assert outlook_conn.status == ConnectionStatus.CONNECTED


def test_delete_without_mappings_is_a_noop(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")

    _service(db, vault, adapter).handle_publication_deleted(pub)

    assert adapter.calls == []
