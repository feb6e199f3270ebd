from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.config import settings
from app.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
)
from app.models.audit import AuditAction
from app.models.ecm import Document, DocumentPermission, DocumentRole
from app.models.person import Person
from app.models.subscription import QuotaFeature
from app.observability import VERSION_CONFLICTS
from app.schemas.ecm import (
    DocumentCreate,
    DocumentListItem,
    DocumentPermissionCreate,
    DocumentRead,
    DocumentUpdate,
)
from app.services.audit import audit_events
from app.services.common import coerce_uuid, content_size, utcnow
from app.services.ecm_acl import document_permissions, permission_resolver
from app.services.ecm_version import version_ledger
from app.services.search import SearchService
from app.services.subscription import quota_guard

logger = logging.getLogger(__name__)

INITIAL_VERSION_DESCRIPTION = "Initial version"
DEFAULT_CHANGE_DESCRIPTION = "Document updated"


@dataclass(frozen=True)
class CaseDelta:
    """Counter adjustment a case applies when a document joins or leaves it."""

    document_count: int
    total_size: int


def _load(db: Session, document_id: str | uuid.UUID) -> Document:
    document = db.get(Document, coerce_uuid(document_id))
    if not document:
        raise NotFoundError("Document not found")
    return document


def _require(
    db: Session,
    document: Document,
    person_id: str | uuid.UUID | None,
    role: DocumentRole,
) -> None:
    if not permission_resolver.authorize(db, document, person_id, role):
        raise ForbiddenError()


def _claim_next_version(db: Session, document: Document) -> int:
    """Compare-and-swap the document's version counter forward by one.

    Succeeds only if nobody else bumped the counter since it was read.
    A miss re-reads the stored value and retries; when retries run out
    the caller gets a conflict and nothing has been written.
    """
    expected = document.version
    for _ in range(settings.version_cas_retries + 1):
        result = db.execute(
            update(Document)
            .where(Document.id == document.id, Document.version == expected)
            .values(version=expected + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            set_committed_value(document, "version", expected + 1)
            return expected + 1

        VERSION_CONFLICTS.inc()
        current = db.scalar(select(Document.version).where(Document.id == document.id))
        if current is None:
            raise NotFoundError("Document not found")
        logger.warning(
            "Version race on document %s: expected %d, found %d",
            document.id,
            expected,
            current,
        )
        expected = current
    raise ConflictError("Document was modified concurrently, please retry")


def _serialize_permission(grant: DocumentPermission) -> dict:
    return {
        "id": grant.id,
        "document_id": grant.document_id,
        "person_id": grant.person_id,
        "role": grant.role.value,
        "granted_by": grant.granted_by,
        "granted_at": grant.granted_at,
    }


class Documents:
    @staticmethod
    def create(
        db: Session,
        owner_id: str | uuid.UUID,
        payload: DocumentCreate,
        enforce_quota: bool | None = None,
    ) -> Document:
        owner_uuid = coerce_uuid(owner_id)
        owner = db.get(Person, owner_uuid)
        if not owner or not owner.is_active:
            raise NotFoundError("Person not found")

        if enforce_quota is None:
            enforce_quota = settings.enforce_document_quota
        usage = quota_guard.check_limit(db, owner_uuid, QuotaFeature.documents_created)
        if not usage.allowed:
            if enforce_quota:
                raise QuotaExceededError(usage.reason, details=usage.as_dict())
            logger.info(
                "Person %s is over the document quota; creating anyway", owner_uuid
            )

        now = utcnow()
        document = Document(
            title=payload.title,
            content=payload.content,
            is_public=payload.is_public,
            version=1,
            created_by=owner_uuid,
            last_modified_by=owner_uuid,
            created_at=now,
            last_modified_at=now,
        )
        db.add(document)
        db.flush()
        version_ledger.append(
            db,
            document.id,
            1,
            document.content,
            owner_uuid,
            INITIAL_VERSION_DESCRIPTION,
        )
        audit_events.record(
            db,
            owner_uuid,
            AuditAction.create,
            document_id=document.id,
            detail=f"Created document '{document.title}'",
        )
        db.commit()
        db.refresh(document)
        logger.info("Created document %s for person %s", document.id, owner_uuid)
        return document

    @staticmethod
    def read(
        db: Session,
        caller_id: str | uuid.UUID | None,
        document_id: str | uuid.UUID,
    ) -> Document | None:
        """Return the document if the caller may view it.

        Absent and forbidden are indistinguishable here.
        """
        document = db.get(Document, coerce_uuid(document_id))
        if document is None:
            return None
        if not permission_resolver.authorize(
            db, document, caller_id, DocumentRole.viewer
        ):
            return None
        return document

    @staticmethod
    def update(
        db: Session,
        caller_id: str | uuid.UUID,
        document_id: str | uuid.UUID,
        payload: DocumentUpdate,
    ) -> Document:
        caller_uuid = coerce_uuid(caller_id)
        document = _load(db, document_id)
        _require(db, document, caller_uuid, DocumentRole.editor)

        data = payload.model_dump(exclude_unset=True)
        description = data.get("change_description") or DEFAULT_CHANGE_DESCRIPTION
        is_revision = data.get("content") is not None

        if is_revision:
            new_version = _claim_next_version(db, document)
            version_ledger.append(
                db,
                document.id,
                new_version,
                data["content"],
                caller_uuid,
                description,
            )
            document.content = data["content"]
        if data.get("title") is not None:
            document.title = data["title"]
        document.last_modified_by = caller_uuid
        document.last_modified_at = utcnow()

        audit_events.record(
            db,
            caller_uuid,
            AuditAction.edit,
            document_id=document.id,
            detail=description,
        )
        db.commit()
        db.refresh(document)
        logger.info(
            "Updated document %s (version %d, content revision: %s)",
            document.id,
            document.version,
            is_revision,
        )
        return document

    @staticmethod
    def rollback_to_version(
        db: Session,
        caller_id: str | uuid.UUID,
        document_id: str | uuid.UUID,
        target_version: int,
    ) -> int:
        """Restore an earlier snapshot as a new forward version.

        History is never rewritten; the restored content becomes the
        next version number. Returns that number.
        """
        caller_uuid = coerce_uuid(caller_id)
        document = _load(db, document_id)
        _require(db, document, caller_uuid, DocumentRole.editor)

        if target_version < 1 or target_version > document.version:
            raise InvalidStateError(
                f"Version {target_version} is outside 1..{document.version}"
            )
        target = version_ledger.get(db, document.id, target_version)
        if target is None:
            raise NotFoundError("Version not found")

        description = f"Rolled back to version {target_version}"
        new_version = _claim_next_version(db, document)
        version_ledger.append(
            db, document.id, new_version, target.content, caller_uuid, description
        )
        document.content = target.content
        document.last_modified_by = caller_uuid
        document.last_modified_at = utcnow()
        audit_events.record(
            db,
            caller_uuid,
            AuditAction.edit,
            document_id=document.id,
            detail=description,
        )
        db.commit()
        logger.info(
            "Rolled document %s back to version %d as version %d",
            document.id,
            target_version,
            new_version,
        )
        return new_version

    @staticmethod
    def grant_permission(
        db: Session,
        granter_id: str | uuid.UUID,
        document_id: str | uuid.UUID,
        payload: DocumentPermissionCreate,
    ) -> dict:
        granter_uuid = coerce_uuid(granter_id)
        document = _load(db, document_id)
        _require(db, document, granter_uuid, DocumentRole.admin)

        grant = document_permissions.upsert(
            db, document.id, payload.person_id, payload.role, granter_uuid
        )
        audit_events.record(
            db,
            granter_uuid,
            AuditAction.share,
            document_id=document.id,
            detail=f"Granted {grant.role.value} to {grant.person_id}",
        )
        db.commit()
        db.refresh(grant)
        return _serialize_permission(grant)

    @staticmethod
    def revoke_permission(
        db: Session,
        caller_id: str | uuid.UUID,
        document_id: str | uuid.UUID,
        person_id: str | uuid.UUID,
    ) -> None:
        caller_uuid = coerce_uuid(caller_id)
        person_uuid = coerce_uuid(person_id)
        document = _load(db, document_id)
        _require(db, document, caller_uuid, DocumentRole.admin)

        if not document_permissions.remove(db, document.id, person_uuid):
            raise NotFoundError("Permission not found")
        audit_events.record(
            db,
            caller_uuid,
            AuditAction.share,
            document_id=document.id,
            detail=f"Revoked access for {person_uuid}",
        )
        db.commit()

    @staticmethod
    def list_permissions(
        db: Session, caller_id: str | uuid.UUID, document_id: str | uuid.UUID
    ) -> list[dict]:
        document = _load(db, document_id)
        _require(db, document, caller_id, DocumentRole.admin)
        return [
            _serialize_permission(grant)
            for grant in document_permissions.list_for_document(db, document.id)
        ]

    @staticmethod
    def generate_shareable_link(
        db: Session, caller_id: str | uuid.UUID, document_id: str | uuid.UUID
    ) -> str:
        caller_uuid = coerce_uuid(caller_id)
        document = _load(db, document_id)
        _require(db, document, caller_uuid, DocumentRole.admin)

        token = secrets.token_urlsafe(settings.share_token_bytes)
        document.shareable_link = token
        document.is_public = True
        document.last_modified_by = caller_uuid
        document.last_modified_at = utcnow()
        audit_events.record(
            db,
            caller_uuid,
            AuditAction.share,
            document_id=document.id,
            detail="Generated shareable link",
        )
        db.commit()
        logger.info("Generated shareable link for document %s", document.id)
        return token

    @staticmethod
    def get_by_shareable_link(db: Session, token: str) -> Document | None:
        document = db.scalar(select(Document).where(Document.shareable_link == token))
        if document is None or not document.is_public:
            return None
        return document

    @staticmethod
    def delete(
        db: Session, caller_id: str | uuid.UUID, document_id: str | uuid.UUID
    ) -> None:
        caller_uuid = coerce_uuid(caller_id)
        document = _load(db, document_id)
        if document.created_by != caller_uuid:
            raise ForbiddenError("Only the owner can delete a document")

        audit_events.record(
            db,
            caller_uuid,
            AuditAction.delete,
            document_id=document.id,
            case_id=document.case_id,
            detail=f"Deleted document '{document.title}'",
        )
        versions_removed = version_ledger.purge(db, document.id)
        document_permissions.purge(db, document.id)
        if document.case_id is not None:
            case = document.case
            delta = Documents.detach_from_case(db, document)
            if case is not None:
                case.document_count = max(0, case.document_count + delta.document_count)
                case.total_size = max(0, case.total_size + delta.total_size)
        db.delete(document)
        db.commit()
        logger.info(
            "Deleted document %s and %d versions", document_id, versions_removed
        )

    @staticmethod
    def list_for_user(
        db: Session, person_id: str | uuid.UUID
    ) -> list[DocumentListItem]:
        """Owned documents first, then those shared with the person."""
        person_uuid = coerce_uuid(person_id)
        owned = db.scalars(
            select(Document)
            .where(Document.created_by == person_uuid)
            .order_by(Document.last_modified_at.desc())
        ).all()
        items = [
            DocumentListItem(
                **DocumentRead.model_validate(doc).model_dump(),
                role=DocumentRole.admin.value,
                is_owner=True,
            )
            for doc in owned
        ]
        seen = {doc.id for doc in owned}

        shared = db.execute(
            select(Document, DocumentPermission.role)
            .join(DocumentPermission, DocumentPermission.document_id == Document.id)
            .where(DocumentPermission.person_id == person_uuid)
            .order_by(Document.last_modified_at.desc())
        ).all()
        for doc, role in shared:
            if doc.id in seen:
                continue
            seen.add(doc.id)
            items.append(
                DocumentListItem(
                    **DocumentRead.model_validate(doc).model_dump(),
                    role=role.value,
                    is_owner=False,
                )
            )
        return items

    @staticmethod
    def search(
        db: Session,
        caller_id: str | uuid.UUID | None,
        q: str,
        field: str = "title",
        limit: int = 25,
        offset: int = 0,
    ) -> list[Document]:
        return SearchService.search(
            db,
            q,
            field=field,
            visible=permission_resolver.viewable_clause(caller_id),
            limit=limit,
            offset=offset,
        )

    @staticmethod
    def list_versions(
        db: Session,
        caller_id: str | uuid.UUID | None,
        document_id: str | uuid.UUID,
        limit: int | None = None,
        offset: int = 0,
    ):
        document = Documents.read(db, caller_id, document_id)
        if document is None:
            return []
        return version_ledger.list(db, document.id, limit=limit, offset=offset)

    @staticmethod
    def get_version(
        db: Session,
        caller_id: str | uuid.UUID | None,
        document_id: str | uuid.UUID,
        version: int,
    ):
        document = Documents.read(db, caller_id, document_id)
        if document is None:
            return None
        return version_ledger.get(db, document.id, version)

    @staticmethod
    def attach_to_case(db: Session, document: Document, case_id: uuid.UUID) -> CaseDelta:
        if document.case_id is not None:
            raise InvalidStateError("Document already belongs to a case")
        size = content_size(document.content)
        document.case_id = case_id
        document.case_size_bytes = size
        db.flush()
        return CaseDelta(document_count=1, total_size=size)

    @staticmethod
    def detach_from_case(db: Session, document: Document) -> CaseDelta:
        if document.case_id is None:
            raise InvalidStateError("Document is not in a case")
        size = document.case_size_bytes
        document.case_id = None
        document.case_size_bytes = 0
        db.flush()
        return CaseDelta(document_count=-1, total_size=-size)


documents = Documents()
