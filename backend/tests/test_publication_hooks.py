from app.models import ExternalCalendarEvent
from app.services import publication_hooks
from app.services.calendar.sync_service import ExternalCalendarSyncService

from backend.tests.calendar_fakes import (
    FakeAdapter,
    make_connection,
    make_publication,
    make_registry,
    seed_workspace,
    setup_db,
)


def _sync_service(db, vault, adapter):
    return ExternalCalendarSyncService(db, registry=make_registry(adapter), vault=vault)


def test_created_hook_syncs_scheduled_publication(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")

    outcome = publication_hooks.on_publication_created(
        db, pub, user, sync_service=_sync_service(db, vault, adapter)
    )

    assert outcome.ok
    assert adapter.event_calls() == [("create", pub.id)]


def test_created_hook_ignores_unscheduled_publication(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    pub.scheduled_at = None
    db.commit()
    adapter = FakeAdapter("google")

    outcome = publication_hooks.on_publication_created(
        db, pub, user, sync_service=_sync_service(db, vault, adapter)
    )

    assert outcome is None
    assert adapter.calls == []


def test_unscheduling_removes_remote_events(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    service = _sync_service(db, vault, adapter)
    publication_hooks.on_publication_created(db, pub, user, sync_service=service)

    pub.scheduled_at = None
    db.commit()
    publication_hooks.on_publication_updated(db, pub, user, sync_service=service)

    assert adapter.event_calls()[-1] == ("delete", "google-evt-1")
    assert db.query(ExternalCalendarEvent).count() == 0


def test_deleted_hook_removes_remote_events(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")
    service = _sync_service(db, vault, adapter)
    publication_hooks.on_publication_created(db, pub, user, sync_service=service)

    publication_hooks.on_publication_deleted(db, pub, sync_service=service)

    assert ("delete", "google-evt-1") in adapter.calls
    assert db.query(ExternalCalendarEvent).count() == 0


def test_hooks_never_raise(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    pub = make_publication(db, user, ws)

    class Exploding:
        def sync_publication(self, *args):
            raise RuntimeError("boom")

        handle_publication_updated = sync_publication
        handle_publication_deleted = sync_publication

    assert publication_hooks.on_publication_created(db, pub, user, sync_service=Exploding()) is None
    publication_hooks.on_publication_updated(db, pub, user, sync_service=Exploding())
    publication_hooks.on_publication_deleted(db, pub, sync_service=Exploding())


def test_created_hook_falls_back_to_publication_owner(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    make_connection(db, vault, user, ws)
    pub = make_publication(db, user, ws)
    adapter = FakeAdapter("google")

    outcome = publication_hooks.on_publication_created(
        db, pub, sync_service=_sync_service(db, vault, adapter)
    )

    assert outcome.synced
    assert adapter.event_calls() == [("create", pub.id)]


def test_hooks_swallow_detached_publication(vault):
    db = setup_db()
    user, ws = seed_workspace(db)
    pub = make_publication(db, user, ws)
    db.commit()
    db.close()

    other = setup_db()
    adapter = FakeAdapter("google")
    service = _sync_service(other, vault, adapter)

    assert publication_hooks.on_publication_created(other, pub, sync_service=service) is None
    publication_hooks.on_publication_updated(other, pub, sync_service=service)
    publication_hooks.on_publication_deleted(other, pub, sync_service=service)
    assert adapter.calls == []
