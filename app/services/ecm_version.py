from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.models.ecm import DocumentVersion
from app.services.common import apply_pagination, utcnow

logger = logging.getLogger(__name__)


class VersionLedger:
    """Append-only content snapshots keyed by (document_id, version).

    Rows are never updated. The only removal path is ``purge``, used when
    the whole document is deleted.
    """

    @staticmethod
    def append(
        db: Session,
        document_id: uuid.UUID,
        version: int,
        content: str,
        created_by: uuid.UUID,
        change_description: str | None = None,
    ) -> DocumentVersion:
        entry = DocumentVersion(
            document_id=document_id,
            version=version,
            content=content,
            created_by=created_by,
            change_description=change_description,
            created_at=utcnow(),
        )
        db.add(entry)
        db.flush()
        logger.info("Appended version %d for document %s", version, document_id)
        return entry

    @staticmethod
    def get(db: Session, document_id: uuid.UUID, version: int) -> DocumentVersion | None:
        return db.scalar(
            select(DocumentVersion).where(
                DocumentVersion.document_id == document_id,
                DocumentVersion.version == version,
            )
        )

    @staticmethod
    def latest(db: Session, document_id: uuid.UUID) -> DocumentVersion | None:
        return db.scalar(
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version.desc())
            .limit(1)
        )

    @staticmethod
    def list(
        db: Session,
        document_id: uuid.UUID,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[DocumentVersion]:
        stmt = (
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version.desc())
        )
        if limit is not None:
            stmt = apply_pagination(stmt, limit, offset)
        return db.scalars(stmt).all()

    @staticmethod
    def count(db: Session, document_id: uuid.UUID) -> int:
        return db.scalar(
            select(func.count())
            .select_from(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
        )

    @staticmethod
    def purge(db: Session, document_id: uuid.UUID) -> int:
        result = db.execute(
            delete(DocumentVersion).where(DocumentVersion.document_id == document_id)
        )
        removed = result.rowcount or 0
        logger.info("Purged %d versions for document %s", removed, document_id)
        return removed


version_ledger = VersionLedger()
