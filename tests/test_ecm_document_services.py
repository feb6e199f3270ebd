import types
import uuid
from datetime import timedelta

import pytest
from fastapi import HTTPException
from prometheus_client import REGISTRY
from sqlalchemy import update

from app.models.ecm import Case, Document, DocumentRole
from app.models.subscription import QuotaFeature
from app.schemas.ecm import DocumentCreate, DocumentPermissionCreate, DocumentUpdate
from app.services import ecm_document as ecm_document_module
from app.services.audit import audit_events
from app.services.ecm_acl import document_permissions
from app.services.ecm_document import Documents
from app.services.ecm_version import version_ledger
from app.services.subscription import quota_guard


def _share(db_session, document, owner, grantee, role):
    return Documents.grant_permission(
        db_session,
        owner.id,
        document.id,
        DocumentPermissionCreate(person_id=grantee.id, role=role),
    )


def _conflicts() -> float:
    return REGISTRY.get_sample_value("docvault_version_conflicts_total") or 0.0


class TestDocumentsCreate:
    def test_create_starts_at_version_one(self, db_session, person) -> None:
        doc = Documents.create(
            db_session, person.id, DocumentCreate(title="Notes", content="abc")
        )
        assert doc.id is not None
        assert doc.version == 1
        assert doc.created_by == person.id
        assert doc.last_modified_by == person.id
        entry = version_ledger.get(db_session, doc.id, 1)
        assert entry.content == "abc"
        assert entry.change_description == "Initial version"

    def test_create_records_audit(self, db_session, person) -> None:
        doc = Documents.create(db_session, person.id, DocumentCreate(title="Notes"))
        events = audit_events.list_for_document(db_session, doc.id)
        assert [e["action"] for e in events] == ["create"]
        assert events[0]["actor"]["email"] == person.email

    def test_create_unknown_owner(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            Documents.create(db_session, uuid.uuid4(), DocumentCreate(title="x"))
        assert exc.value.status_code == 404

    def test_create_over_quota_is_rejected(self, db_session, person) -> None:
        quota_guard.increment(db_session, person.id, QuotaFeature.documents_created, 5)
        with pytest.raises(HTTPException) as exc:
            Documents.create(db_session, person.id, DocumentCreate(title="x"))
        assert exc.value.status_code == 402
        assert exc.value.detail["code"] == "quota_exceeded"

    def test_create_over_quota_when_not_enforced(self, db_session, person) -> None:
        quota_guard.increment(db_session, person.id, QuotaFeature.documents_created, 5)
        doc = Documents.create(
            db_session, person.id, DocumentCreate(title="x"), enforce_quota=False
        )
        assert doc.version == 1

    def test_create_does_not_increment_usage(self, db_session, person) -> None:
        Documents.create(db_session, person.id, DocumentCreate(title="x"))
        assert quota_guard.get_usage(db_session, person.id) is None


class TestDocumentsUpdate:
    def test_content_change_creates_version(self, db_session, document, person):
        doc = Documents.update(
            db_session,
            person.id,
            document.id,
            DocumentUpdate(content="second", change_description="Fixed typo"),
        )
        assert doc.version == 2
        assert doc.content == "second"
        entry = version_ledger.get(db_session, doc.id, 2)
        assert entry.content == "second"
        assert entry.change_description == "Fixed typo"

    def test_default_change_description(self, db_session, document, person):
        Documents.update(db_session, person.id, document.id, DocumentUpdate(content="b"))
        entry = version_ledger.get(db_session, document.id, 2)
        assert entry.change_description == "Document updated"

    def test_title_only_keeps_version(self, db_session, document, person):
        doc = Documents.update(
            db_session, person.id, document.id, DocumentUpdate(title="Renamed")
        )
        assert doc.version == 1
        assert doc.title == "Renamed"
        assert version_ledger.count(db_session, doc.id) == 1
        actions = [e["action"] for e in audit_events.list_for_document(db_session, doc.id)]
        assert actions == ["edit", "create"]

    def test_resaving_same_content_is_a_revision(self, db_session, document, person):
        before = document.version
        doc = Documents.update(
            db_session,
            person.id,
            document.id,
            DocumentUpdate(content=document.content, change_description="resave"),
        )
        assert doc.version == before + 1
        assert version_ledger.count(db_session, doc.id) == 2
        entry = version_ledger.get(db_session, doc.id, before + 1)
        assert entry.content == "hello world"
        assert entry.change_description == "resave"

    def test_versions_increase_without_gaps(self, db_session, document, person):
        seen = []
        for n in range(5):
            doc = Documents.update(
                db_session, person.id, document.id, DocumentUpdate(content=f"c{n}")
            )
            seen.append(doc.version)
        assert seen == [2, 3, 4, 5, 6]
        assert version_ledger.count(db_session, document.id) == document.version

    def test_viewer_cannot_edit(self, db_session, document, person, other_person):
        _share(db_session, document, person, other_person, "viewer")
        with pytest.raises(HTTPException) as exc:
            Documents.update(
                db_session, other_person.id, document.id, DocumentUpdate(content="x")
            )
        assert exc.value.status_code == 403

    def test_editor_can_edit(self, db_session, document, person, other_person):
        _share(db_session, document, person, other_person, "editor")
        doc = Documents.update(
            db_session, other_person.id, document.id, DocumentUpdate(content="x")
        )
        assert doc.version == 2
        assert doc.last_modified_by == other_person.id

    def test_missing_document(self, db_session, person) -> None:
        with pytest.raises(HTTPException) as exc:
            Documents.update(
                db_session, person.id, uuid.uuid4(), DocumentUpdate(content="x")
            )
        assert exc.value.status_code == 404

    def test_concurrent_bump_is_retried(self, db_session, document, person):
        # Another writer claims version 2 behind this session's back.
        db_session.execute(
            update(Document)
            .where(Document.id == document.id)
            .values(version=2)
            .execution_options(synchronize_session=False)
        )
        before = _conflicts()
        assert document.version == 1

        doc = Documents.update(
            db_session, person.id, document.id, DocumentUpdate(content="mine")
        )
        assert doc.version == 3
        assert _conflicts() == before + 1
        assert version_ledger.get(db_session, document.id, 3).content == "mine"

    def test_conflict_when_retries_exhausted(
        self, db_session, document, person, monkeypatch
    ):
        monkeypatch.setattr(
            ecm_document_module,
            "settings",
            types.SimpleNamespace(version_cas_retries=0),
        )
        db_session.execute(
            update(Document)
            .where(Document.id == document.id)
            .values(version=2)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(HTTPException) as exc:
            Documents.update(
                db_session, person.id, document.id, DocumentUpdate(content="lost")
            )
        assert exc.value.status_code == 409
        assert exc.value.detail["code"] == "version_conflict"
        db_session.rollback()
        assert version_ledger.count(db_session, document.id) == 1


class TestDocumentsRollback:
    def test_example_scenario(self, db_session, person) -> None:
        doc = Documents.create(
            db_session, person.id, DocumentCreate(title="Plan", content="original")
        )
        assert doc.version == 1
        Documents.update(db_session, person.id, doc.id, DocumentUpdate(content="two"))
        doc = Documents.update(
            db_session, person.id, doc.id, DocumentUpdate(content="three")
        )
        assert doc.version == 3
        assert version_ledger.count(db_session, doc.id) == 3

        new_version = Documents.rollback_to_version(db_session, person.id, doc.id, 1)
        assert new_version == 4
        current = Documents.read(db_session, person.id, doc.id)
        assert current.version == 4
        assert current.content == "original"

        events = audit_events.list_for_document(db_session, doc.id)
        assert [e["action"] for e in events] == ["edit", "edit", "edit", "create"]
        assert events[0]["detail"] == "Rolled back to version 1"

    def test_rollback_matches_ledger(self, db_session, document, person):
        Documents.update(db_session, person.id, document.id, DocumentUpdate(content="b"))
        Documents.update(db_session, person.id, document.id, DocumentUpdate(content="c"))
        new_version = Documents.rollback_to_version(
            db_session, person.id, document.id, 2
        )
        assert new_version == 4
        assert new_version != 2
        current = Documents.read(db_session, person.id, document.id)
        assert current.content == version_ledger.get(db_session, document.id, 2).content

    def test_rollback_out_of_range(self, db_session, document, person):
        with pytest.raises(HTTPException) as exc:
            Documents.rollback_to_version(db_session, person.id, document.id, 7)
        assert exc.value.status_code == 409
        assert exc.value.detail["code"] == "invalid_state"

    def test_rollback_requires_editor(self, db_session, document, other_person):
        with pytest.raises(HTTPException) as exc:
            Documents.rollback_to_version(db_session, other_person.id, document.id, 1)
        assert exc.value.status_code == 403


class TestDocumentsSharing:
    def test_grant_requires_admin(self, db_session, document, person, other_person):
        _share(db_session, document, person, other_person, "editor")
        with pytest.raises(HTTPException) as exc:
            _share(db_session, document, other_person, person, "viewer")
        assert exc.value.status_code == 403

    def test_grant_is_audited_as_share(
        self, db_session, document, person, other_person
    ):
        grant = _share(db_session, document, person, other_person, "viewer")
        assert grant["role"] == "viewer"
        events = audit_events.list_for_document(db_session, document.id)
        assert events[0]["action"] == "share"

    def test_regrant_updates_role(self, db_session, document, person, other_person):
        _share(db_session, document, person, other_person, "viewer")
        _share(db_session, document, person, other_person, "admin")
        grants = Documents.list_permissions(db_session, person.id, document.id)
        assert len(grants) == 1
        assert grants[0]["role"] == "admin"

    def test_revoke(self, db_session, document, person, other_person):
        _share(db_session, document, person, other_person, "viewer")
        Documents.revoke_permission(db_session, person.id, document.id, other_person.id)
        assert Documents.read(db_session, other_person.id, document.id) is None
        with pytest.raises(HTTPException) as exc:
            Documents.revoke_permission(
                db_session, person.id, document.id, other_person.id
            )
        assert exc.value.status_code == 404

    def test_shareable_link(self, db_session, document, person) -> None:
        token = Documents.generate_shareable_link(db_session, person.id, document.id)
        assert len(token) >= 43
        assert document.is_public is True
        assert Documents.get_by_shareable_link(db_session, token).id == document.id
        assert Documents.read(db_session, None, document.id) is not None
        detail = audit_events.list_for_document(db_session, document.id)[0]["detail"]
        assert token not in detail

    def test_shareable_links_are_unique(self, db_session, document, person):
        first = Documents.generate_shareable_link(db_session, person.id, document.id)
        second = Documents.generate_shareable_link(db_session, person.id, document.id)
        assert first != second
        assert Documents.get_by_shareable_link(db_session, first) is None

    def test_link_ignored_once_private(self, db_session, document, person):
        token = Documents.generate_shareable_link(db_session, person.id, document.id)
        document.is_public = False
        db_session.commit()
        assert Documents.get_by_shareable_link(db_session, token) is None


class TestDocumentsRead:
    def test_read_collapses_missing_and_forbidden(
        self, db_session, document, other_person
    ):
        assert Documents.read(db_session, other_person.id, document.id) is None
        assert Documents.read(db_session, other_person.id, uuid.uuid4()) is None

    def test_list_for_user(self, db_session, document, person, other_person):
        theirs = Documents.create(
            db_session, other_person.id, DocumentCreate(title="Theirs")
        )
        _share(db_session, theirs, other_person, person, "editor")

        items = Documents.list_for_user(db_session, person.id)
        by_id = {item.id: item for item in items}
        assert set(by_id) == {document.id, theirs.id}
        assert by_id[document.id].is_owner is True
        assert by_id[document.id].role == "admin"
        assert by_id[theirs.id].is_owner is False
        assert by_id[theirs.id].role == "editor"
        assert items[0].id == document.id

    def test_list_for_user_dedups_self_grant(self, db_session, document, person):
        document_permissions.upsert(
            db_session, document.id, person.id, DocumentRole.viewer, person.id
        )
        db_session.commit()
        items = Documents.list_for_user(db_session, person.id)
        assert [item.id for item in items] == [document.id]

    def test_search_filters_by_visibility(
        self, db_session, document, person, other_person
    ):
        hidden = Documents.create(
            db_session, other_person.id, DocumentCreate(title="Quarterly secrets")
        )
        results = Documents.search(db_session, person.id, "quarterly")
        assert [d.id for d in results] == [document.id]
        results = Documents.search(db_session, other_person.id, "quarterly")
        assert [d.id for d in results] == [hidden.id]

    def test_search_paginates_past_hidden_documents(
        self, db_session, document, person, other_person
    ):
        base = document.last_modified_at
        hidden = [
            Documents.create(
                db_session,
                other_person.id,
                DocumentCreate(title=f"Quarterly hidden {n}"),
            )
            for n in range(3)
        ]
        shared = Documents.create(
            db_session, other_person.id, DocumentCreate(title="Quarterly shared")
        )
        _share(db_session, shared, other_person, person, "viewer")
        for n, doc in enumerate([shared, *hidden]):
            doc.last_modified_at = base + timedelta(minutes=n + 1)
        db_session.commit()

        page = Documents.search(db_session, person.id, "quarterly", limit=2)
        assert [d.id for d in page] == [shared.id, document.id]
        first = Documents.search(db_session, person.id, "quarterly", limit=1)
        assert [d.id for d in first] == [shared.id]
        second = Documents.search(
            db_session, person.id, "quarterly", limit=1, offset=1
        )
        assert [d.id for d in second] == [document.id]

    def test_search_anonymous_sees_public_only(
        self, db_session, document, person, other_person
    ):
        public = Documents.create(
            db_session, other_person.id, DocumentCreate(title="Quarterly public")
        )
        public.is_public = True
        db_session.commit()
        results = Documents.search(db_session, None, "quarterly")
        assert [d.id for d in results] == [public.id]

    def test_search_content_field(self, db_session, document, person):
        results = Documents.search(db_session, person.id, "WORLD", field="content")
        assert [d.id for d in results] == [document.id]

    def test_list_versions_hidden_from_strangers(
        self, db_session, document, person, other_person
    ):
        Documents.update(db_session, person.id, document.id, DocumentUpdate(content="b"))
        versions = Documents.list_versions(db_session, person.id, document.id)
        assert [v.version for v in versions] == [2, 1]
        assert Documents.list_versions(db_session, other_person.id, document.id) == []
        assert Documents.get_version(db_session, other_person.id, document.id, 1) is None


class TestDocumentsDelete:
    def test_delete_purges_everything(
        self, db_session, document, person, other_person
    ):
        Documents.update(db_session, person.id, document.id, DocumentUpdate(content="b"))
        _share(db_session, document, person, other_person, "editor")
        document_id = document.id

        Documents.delete(db_session, person.id, document_id)

        assert version_ledger.list(db_session, document_id) == []
        assert document_permissions.list_for_document(db_session, document_id) == []
        assert Documents.read(db_session, person.id, document_id) is None
        with pytest.raises(HTTPException) as exc:
            Documents.update(
                db_session, person.id, document_id, DocumentUpdate(content="x")
            )
        assert exc.value.status_code == 404

    def test_delete_keeps_audit_trail(self, db_session, document, person):
        document_id = document.id
        Documents.delete(db_session, person.id, document_id)
        events = audit_events.list_for_document(db_session, document_id)
        assert events[0]["action"] == "delete"
        assert events[0]["document"] is None

    def test_only_owner_deletes(self, db_session, document, person, other_person):
        _share(db_session, document, person, other_person, "admin")
        with pytest.raises(HTTPException) as exc:
            Documents.delete(db_session, other_person.id, document.id)
        assert exc.value.status_code == 403

    def test_delete_releases_case_counters(self, db_session, document, person):
        case = Case(name="Matter", created_by=person.id)
        db_session.add(case)
        db_session.flush()
        delta = Documents.attach_to_case(db_session, document, case.id)
        case.document_count += delta.document_count
        case.total_size += delta.total_size
        db_session.commit()
        assert case.total_size == len("hello world")

        Documents.delete(db_session, person.id, document.id)
        db_session.refresh(case)
        assert case.document_count == 0
        assert case.total_size == 0


class TestCaseAttachment:
    def test_attach_and_detach(self, db_session, document, person) -> None:
        case = Case(name="Matter", created_by=person.id)
        db_session.add(case)
        db_session.flush()
        delta = Documents.attach_to_case(db_session, document, case.id)
        assert delta.document_count == 1
        assert delta.total_size == len("hello world".encode("utf-8"))
        with pytest.raises(HTTPException):
            Documents.attach_to_case(db_session, document, case.id)

        delta = Documents.detach_from_case(db_session, document)
        assert delta.document_count == -1
        assert delta.total_size == -len("hello world")
        assert document.case_id is None
