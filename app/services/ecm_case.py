from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ForbiddenError, InvalidStateError, NotFoundError
from app.models.audit import AuditAction
from app.models.ecm import Case, Document, DocumentRole
from app.models.person import Person
from app.schemas.ecm import CaseCreate, CaseUpdate
from app.services.audit import audit_events
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    content_size,
)
from app.services.ecm_acl import permission_resolver
from app.services.ecm_document import CaseDelta, documents
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _load_owned(db: Session, caller_id: uuid.UUID, case_id) -> Case:
    case = db.get(Case, coerce_uuid(case_id))
    if not case:
        raise NotFoundError("Case not found")
    if case.created_by != caller_id:
        raise ForbiddenError("Only the case owner can modify it")
    return case


def _apply(case: Case, delta: CaseDelta) -> None:
    case.document_count = max(0, case.document_count + delta.document_count)
    case.total_size = max(0, case.total_size + delta.total_size)


class Cases(ListResponseMixin):
    """Owner-scoped groupings of documents with size and count caps."""

    @staticmethod
    def create(db: Session, owner_id: str | uuid.UUID, payload: CaseCreate) -> Case:
        owner_uuid = coerce_uuid(owner_id)
        owner = db.get(Person, owner_uuid)
        if not owner or not owner.is_active:
            raise NotFoundError("Person not found")

        case = Case(
            name=payload.name,
            description=payload.description,
            created_by=owner_uuid,
            is_active=True,
            total_size=0,
            document_count=0,
        )
        db.add(case)
        db.flush()
        audit_events.record(
            db,
            owner_uuid,
            AuditAction.create,
            case_id=case.id,
            detail=f"Created case '{case.name}'",
        )
        db.commit()
        db.refresh(case)
        logger.info("Created case %s for person %s", case.id, owner_uuid)
        return case

    @staticmethod
    def get(db: Session, caller_id: str | uuid.UUID | None, case_id) -> Case | None:
        case = db.get(Case, coerce_uuid(case_id))
        if case is None or case.created_by != coerce_uuid(caller_id):
            return None
        return case

    @staticmethod
    def list(
        db: Session,
        owner_id: str | uuid.UUID,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Case]:
        stmt = select(Case).where(Case.created_by == coerce_uuid(owner_id))
        if is_active is None:
            stmt = stmt.where(Case.is_active.is_(True))
        else:
            stmt = stmt.where(Case.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "name": Case.name,
                "created_at": Case.created_at,
                "last_modified_at": Case.last_modified_at,
                "total_size": Case.total_size,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def list_for_owner(db: Session, owner_id: str | uuid.UUID) -> list[Case]:
        return Cases.list(db, owner_id, None, "created_at", "desc", 100, 0)

    @staticmethod
    def list_documents(
        db: Session, caller_id: str | uuid.UUID | None, case_id
    ) -> list[Document]:
        case = Cases.get(db, caller_id, case_id)
        if case is None:
            return []
        return db.scalars(
            select(Document)
            .where(Document.case_id == case.id)
            .order_by(Document.last_modified_at.desc())
        ).all()

    @staticmethod
    def update(
        db: Session, caller_id: str | uuid.UUID, case_id, payload: CaseUpdate
    ) -> Case:
        caller_uuid = coerce_uuid(caller_id)
        case = _load_owned(db, caller_uuid, case_id)
        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            if key == "name" and value is None:
                continue
            setattr(case, key, value)
        audit_events.record(
            db,
            caller_uuid,
            AuditAction.edit,
            case_id=case.id,
            detail=f"Updated case fields: {', '.join(sorted(data)) or 'none'}",
        )
        db.commit()
        db.refresh(case)
        logger.info("Updated case %s", case.id)
        return case

    @staticmethod
    def delete(db: Session, caller_id: str | uuid.UUID, case_id) -> None:
        """Soft-delete the case and release every member document."""
        caller_uuid = coerce_uuid(caller_id)
        case = _load_owned(db, caller_uuid, case_id)
        members = db.scalars(select(Document).where(Document.case_id == case.id)).all()
        for document in members:
            documents.detach_from_case(db, document)
        case.is_active = False
        case.document_count = 0
        case.total_size = 0
        audit_events.record(
            db,
            caller_uuid,
            AuditAction.delete,
            case_id=case.id,
            detail=f"Deleted case '{case.name}' ({len(members)} documents released)",
        )
        db.commit()
        logger.info("Soft-deleted case %s", case.id)

    @staticmethod
    def add_document(
        db: Session, caller_id: str | uuid.UUID, case_id, document_id
    ) -> Case:
        caller_uuid = coerce_uuid(caller_id)
        case = _load_owned(db, caller_uuid, case_id)
        if not case.is_active:
            raise InvalidStateError("Case is not active")
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFoundError("Document not found")
        if not permission_resolver.authorize(
            db, document, caller_uuid, DocumentRole.editor
        ):
            raise ForbiddenError()

        if case.document_count + 1 > settings.case_max_documents:
            raise InvalidStateError(
                f"Case already holds {case.document_count} documents "
                f"(max {settings.case_max_documents})"
            )
        size = content_size(document.content)
        if case.total_size + size > settings.case_max_bytes:
            raise InvalidStateError(
                f"Adding {size} bytes would exceed the case size limit "
                f"of {settings.case_max_bytes} bytes"
            )

        _apply(case, documents.attach_to_case(db, document, case.id))
        audit_events.record(
            db,
            caller_uuid,
            AuditAction.edit,
            document_id=document.id,
            case_id=case.id,
            detail=f"Added document '{document.title}' to case",
        )
        db.commit()
        db.refresh(case)
        logger.info("Added document %s to case %s", document.id, case.id)
        return case

    @staticmethod
    def remove_document(
        db: Session, caller_id: str | uuid.UUID, case_id, document_id
    ) -> Case:
        caller_uuid = coerce_uuid(caller_id)
        case = _load_owned(db, caller_uuid, case_id)
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFoundError("Document not found")
        if document.case_id != case.id:
            raise InvalidStateError("Document is not in this case")

        _apply(case, documents.detach_from_case(db, document))
        audit_events.record(
            db,
            caller_uuid,
            AuditAction.edit,
            document_id=document.id,
            case_id=case.id,
            detail=f"Removed document '{document.title}' from case",
        )
        db.commit()
        db.refresh(case)
        logger.info("Removed document %s from case %s", document.id, case.id)
        return case

    @staticmethod
    def reconcile(db: Session, case_id) -> Case:
        """Recompute the counters from the current members.

        Counters are maintained incrementally and can drift if a write
        path fails half-way; this brings them back in line.
        """
        case = db.get(Case, coerce_uuid(case_id))
        if not case:
            raise NotFoundError("Case not found")
        count, total = db.execute(
            select(
                func.count(Document.id),
                func.coalesce(func.sum(Document.case_size_bytes), 0),
            ).where(Document.case_id == case.id)
        ).one()
        if case.document_count != count or case.total_size != total:
            logger.warning(
                "Case %s counters drifted: count %d->%d, size %d->%d",
                case.id,
                case.document_count,
                count,
                case.total_size,
                total,
            )
        case.document_count = count
        case.total_size = total
        db.commit()
        db.refresh(case)
        return case

    @staticmethod
    def active_case_ids(db: Session) -> list[uuid.UUID]:
        return db.scalars(select(Case.id).where(Case.is_active.is_(True))).all()


cases = Cases()
