import logging
import uuid

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationFailedError
from app.models.ecm import Document, DocumentPermission, DocumentRole
from app.models.person import Person
from app.services.common import coerce_uuid, utcnow

logger = logging.getLogger(__name__)


def parse_role(role: str | DocumentRole) -> DocumentRole:
    if isinstance(role, DocumentRole):
        return role
    try:
        return DocumentRole(role)
    except ValueError:
        raise ValidationFailedError(
            f"Invalid role: {role}. Allowed: {[r.value for r in DocumentRole]}"
        )


class PermissionResolver:
    """Decides whether a person may act on a document.

    The owner holds ``admin``, an explicit grant holds its own role and a
    public document grants ``viewer`` to everyone (anonymous included).
    A person is authorized when their effective role ranks at least as
    high as the one required. Never writes.
    """

    @staticmethod
    def authorize(
        db: Session,
        document: Document,
        person_id: str | uuid.UUID | None,
        required_role: str | DocumentRole,
    ) -> bool:
        required = parse_role(required_role)
        role = PermissionResolver.effective_role(db, document, person_id)
        return role is not None and role.satisfies(required)

    @staticmethod
    def viewable_clause(person_id: str | uuid.UUID | None):
        """SQL filter matching the documents ``person_id`` may view."""
        person_uuid = coerce_uuid(person_id)
        if person_uuid is None:
            return Document.is_public.is_(True)
        return or_(
            Document.created_by == person_uuid,
            Document.is_public.is_(True),
            exists().where(
                DocumentPermission.document_id == Document.id,
                DocumentPermission.person_id == person_uuid,
            ),
        )

    @staticmethod
    def effective_role(
        db: Session, document: Document, person_id: str | uuid.UUID | None
    ) -> DocumentRole | None:
        person_uuid = coerce_uuid(person_id)
        if person_uuid is not None and document.created_by == person_uuid:
            return DocumentRole.admin
        if person_uuid is not None:
            grant = document_permissions.get(db, document.id, person_uuid)
            if grant is not None:
                return grant.role
        if document.is_public:
            return DocumentRole.viewer
        return None


class DocumentPermissions:
    """Storage of explicit grants. Authorization is the caller's job."""

    @staticmethod
    def get(
        db: Session, document_id: uuid.UUID, person_id: uuid.UUID
    ) -> DocumentPermission | None:
        return db.scalar(
            select(DocumentPermission).where(
                DocumentPermission.document_id == document_id,
                DocumentPermission.person_id == person_id,
            )
        )

    @staticmethod
    def upsert(
        db: Session,
        document_id: uuid.UUID,
        person_id: str | uuid.UUID,
        role: str | DocumentRole,
        granted_by: uuid.UUID,
    ) -> DocumentPermission:
        person_uuid = coerce_uuid(person_id)
        parsed = parse_role(role)
        person = db.get(Person, person_uuid)
        if not person or not person.is_active:
            raise NotFoundError("Person not found")

        grant = DocumentPermissions.get(db, document_id, person_uuid)
        if grant is None:
            grant = DocumentPermission(
                document_id=document_id,
                person_id=person_uuid,
                role=parsed,
                granted_by=granted_by,
                granted_at=utcnow(),
            )
            db.add(grant)
        else:
            grant.role = parsed
            grant.granted_by = granted_by
            grant.granted_at = utcnow()
        db.flush()
        logger.info(
            "Granted %s on document %s to person %s",
            parsed.value,
            document_id,
            person_uuid,
        )
        return grant

    @staticmethod
    def remove(db: Session, document_id: uuid.UUID, person_id: uuid.UUID) -> bool:
        grant = DocumentPermissions.get(db, document_id, person_id)
        if grant is None:
            return False
        db.delete(grant)
        db.flush()
        logger.info("Revoked grant on document %s for person %s", document_id, person_id)
        return True

    @staticmethod
    def list_for_document(db: Session, document_id: uuid.UUID) -> list[DocumentPermission]:
        stmt = (
            select(DocumentPermission)
            .where(DocumentPermission.document_id == document_id)
            .order_by(DocumentPermission.granted_at.asc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def list_for_person(db: Session, person_id: uuid.UUID) -> list[DocumentPermission]:
        stmt = select(DocumentPermission).where(
            DocumentPermission.person_id == person_id
        )
        return db.scalars(stmt).all()

    @staticmethod
    def purge(db: Session, document_id: uuid.UUID) -> int:
        result = db.execute(
            delete(DocumentPermission).where(
                DocumentPermission.document_id == document_id
            )
        )
        return result.rowcount or 0


permission_resolver = PermissionResolver()
document_permissions = DocumentPermissions()
