import enum
import threading
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, Index, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class AuditAction(enum.Enum):
    create = "create"
    edit = "edit"
    delete = "delete"
    share = "share"
    comment = "comment"
    view = "view"
    custom = "custom"


_sequence_lock = threading.Lock()
_last_sequence = 0


def next_sequence() -> int:
    """Nanosecond clock reading, strictly increasing within the process."""
    global _last_sequence
    with _sequence_lock:
        _last_sequence = max(time.time_ns(), _last_sequence + 1)
        return _last_sequence


class AuditEvent(Base):
    """Append-only audit row.

    References are stored without foreign keys so the trail outlives the
    documents, cases and people it mentions.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_document_id", "document_id"),
        Index("ix_audit_events_case_id", "case_id"),
        Index("ix_audit_events_workspace_id", "workspace_id"),
        Index("ix_audit_events_actor_id", "actor_id"),
        Index("ix_audit_events_created_at", "created_at"),
        Index("ix_audit_events_sequence", "sequence"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    action: Mapped[AuditAction] = mapped_column(Enum(AuditAction), nullable=False)
    document_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    case_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    workspace_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    detail: Mapped[str | None] = mapped_column(Text)
    sequence: Mapped[int] = mapped_column(
        BigInteger, default=next_sequence, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    # No updated_at: immutable record
