import uuid
from datetime import timedelta

from app.models.presence import PresenceRecord
from app.services.common import utcnow
from app.services.presence import presence


def _age(db_session, person, seconds):
    record = db_session.query(PresenceRecord).filter_by(person_id=person.id).one()
    record.last_seen = utcnow() - timedelta(seconds=seconds)
    db_session.commit()
    return record


class TestHeartbeat:
    def test_heartbeat_creates_record(self, db_session, person) -> None:
        document_id = uuid.uuid4()
        record = presence.heartbeat(
            db_session,
            person.id,
            document_id=document_id,
            cursor_position=12,
            selection={"start": 3, "end": 9},
        )
        assert record.is_active is True
        assert record.document_id == document_id
        assert record.cursor_position == 12
        assert (record.selection_start, record.selection_end) == (3, 9)

    def test_heartbeat_overwrites(self, db_session, person) -> None:
        first = presence.heartbeat(db_session, person.id, document_id=uuid.uuid4())
        second_doc = uuid.uuid4()
        second = presence.heartbeat(db_session, person.id, document_id=second_doc)
        assert first.id == second.id
        assert db_session.query(PresenceRecord).count() == 1
        assert second.document_id == second_doc
        assert second.selection_start is None

    def test_set_inactive(self, db_session, person) -> None:
        assert presence.set_inactive(db_session, person.id) is False
        presence.heartbeat(db_session, person.id, document_id=uuid.uuid4())
        assert presence.set_inactive(db_session, person.id) is True
        record = db_session.query(PresenceRecord).filter_by(person_id=person.id).one()
        assert record.is_active is False


class TestActiveViewers:
    def test_excludes_requester_and_stale(
        self, db_session, person, other_person, person_factory
    ) -> None:
        document_id = uuid.uuid4()
        stale = person_factory("Stale", "Viewer")
        for viewer in (person, other_person, stale):
            presence.heartbeat(
                db_session,
                viewer.id,
                document_id=document_id,
                selection={"start": 1, "end": 2},
            )
        _age(db_session, stale, 31)

        rows = presence.list_active_for_document(
            db_session, document_id, exclude_person_id=person.id
        )
        assert [r["person_id"] for r in rows] == [other_person.id]
        assert rows[0]["person"]["name"] == "Ben Collaborator"
        assert rows[0]["selection"] == {"start": 1, "end": 2}

    def test_within_window_is_live(self, db_session, person) -> None:
        document_id = uuid.uuid4()
        presence.heartbeat(db_session, person.id, document_id=document_id)
        _age(db_session, person, 20)
        rows = presence.list_active_for_document(db_session, document_id)
        assert len(rows) == 1

    def test_inactive_and_deactivated_people_dropped(
        self, db_session, person, other_person
    ) -> None:
        document_id = uuid.uuid4()
        presence.heartbeat(db_session, person.id, document_id=document_id)
        presence.heartbeat(db_session, other_person.id, document_id=document_id)
        presence.set_inactive(db_session, person.id)
        other_person.is_active = False
        db_session.commit()
        assert presence.list_active_for_document(db_session, document_id) == []

    def test_workspace_listing(self, db_session, person, other_person) -> None:
        workspace_id = uuid.uuid4()
        presence.heartbeat(db_session, person.id, workspace_id=workspace_id)
        presence.heartbeat(db_session, other_person.id, workspace_id=uuid.uuid4())
        rows = presence.list_active_for_workspace(db_session, workspace_id)
        assert [r["person_id"] for r in rows] == [person.id]
        assert rows[0]["selection"] is None


class TestDeactivateStale:
    def test_flips_only_stale_records(self, db_session, person, other_person):
        presence.heartbeat(db_session, person.id, document_id=uuid.uuid4())
        presence.heartbeat(db_session, other_person.id, document_id=uuid.uuid4())
        _age(db_session, person, 120)

        assert presence.deactivate_stale(db_session) == 1
        db_session.expire_all()
        records = {
            r.person_id: r.is_active for r in db_session.query(PresenceRecord).all()
        }
        assert records == {person.id: False, other_person.id: True}
