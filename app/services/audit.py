from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ValidationFailedError
from app.models.audit import AuditAction, AuditEvent
from app.models.ecm import Document
from app.models.person import Person
from app.observability import AUDIT_DEFERRED_FAILURES
from app.schemas.audit import AuditEventCreate
from app.services.common import apply_pagination, as_utc, coerce_uuid, utcnow

logger = logging.getLogger(__name__)


def parse_action(action: str | AuditAction) -> AuditAction:
    if isinstance(action, AuditAction):
        return action
    try:
        return AuditAction(action)
    except ValueError:
        raise ValidationFailedError(
            f"Invalid action: {action}. Allowed: {[a.value for a in AuditAction]}"
        )


def _clamp_limit(limit: int | None) -> int:
    if limit is None or limit <= 0:
        return settings.audit_default_limit
    return min(limit, settings.audit_max_limit)


def _enrich(db: Session, events: list[AuditEvent]) -> list[dict]:
    """Attach actor and document display data; missing rows degrade to None."""
    actor_ids = {e.actor_id for e in events}
    document_ids = {e.document_id for e in events if e.document_id is not None}

    people = {}
    if actor_ids:
        people = {
            p.id: p for p in db.scalars(select(Person).where(Person.id.in_(actor_ids)))
        }
    titles = {}
    if document_ids:
        titles = {
            row.id: row.title
            for row in db.execute(
                select(Document.id, Document.title).where(
                    Document.id.in_(document_ids)
                )
            )
        }

    enriched = []
    for event in events:
        person = people.get(event.actor_id)
        title = titles.get(event.document_id) if event.document_id else None
        enriched.append(
            {
                "id": event.id,
                "actor_id": event.actor_id,
                "action": event.action.value,
                "document_id": event.document_id,
                "case_id": event.case_id,
                "workspace_id": event.workspace_id,
                "detail": event.detail,
                "created_at": event.created_at,
                "actor": (
                    {"name": person.display_name, "email": person.email}
                    if person
                    else None
                ),
                "document": {"title": title} if title is not None else None,
            }
        )
    return enriched


class AuditEvents:
    @staticmethod
    def record(
        db: Session,
        actor_id: str | uuid.UUID,
        action: str | AuditAction,
        document_id: str | uuid.UUID | None = None,
        case_id: str | uuid.UUID | None = None,
        workspace_id: str | uuid.UUID | None = None,
        detail: str | None = None,
    ) -> AuditEvent:
        """Append an audit row inside the caller's transaction.

        The row commits together with the mutation it describes.
        """
        event = AuditEvent(
            actor_id=coerce_uuid(actor_id),
            action=parse_action(action),
            document_id=coerce_uuid(document_id),
            case_id=coerce_uuid(case_id),
            workspace_id=coerce_uuid(workspace_id),
            detail=detail,
            created_at=utcnow(),
        )
        db.add(event)
        db.flush()
        logger.debug(
            "Recorded audit %s by %s (document=%s case=%s)",
            event.action.value,
            event.actor_id,
            event.document_id,
            event.case_id,
        )
        return event

    @staticmethod
    def record_deferred(
        actor_id: str | uuid.UUID,
        action: str | AuditAction,
        document_id: str | uuid.UUID | None = None,
        case_id: str | uuid.UUID | None = None,
        workspace_id: str | uuid.UUID | None = None,
        detail: str | None = None,
    ) -> None:
        """Queue an audit row for recording by a worker, with retries.

        For callers that have no open transaction to join. Never raises.
        """
        parsed = parse_action(action)
        try:
            from app.tasks.audit import record_audit_event

            record_audit_event.delay(
                actor_id=str(actor_id),
                action=parsed.value,
                document_id=str(document_id) if document_id else None,
                case_id=str(case_id) if case_id else None,
                workspace_id=str(workspace_id) if workspace_id else None,
                detail=detail,
            )
        except Exception as e:
            AUDIT_DEFERRED_FAILURES.inc()
            logger.exception("Failed to queue audit event %s: %s", parsed.value, e)

    @staticmethod
    def create(db: Session, actor_id: str, payload: AuditEventCreate) -> dict:
        event = AuditEvents.record(
            db,
            actor_id,
            payload.action,
            document_id=payload.document_id,
            case_id=payload.case_id,
            workspace_id=payload.workspace_id,
            detail=payload.detail,
        )
        db.commit()
        db.refresh(event)
        logger.info("Recorded %s audit event %s", event.action.value, event.id)
        return _enrich(db, [event])[0]

    @staticmethod
    def list_for_document(
        db: Session, document_id: str, limit: int | None = None, offset: int = 0
    ) -> list[dict]:
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.document_id == coerce_uuid(document_id))
            .order_by(AuditEvent.created_at.desc(), AuditEvent.sequence.desc())
        )
        events = db.scalars(apply_pagination(stmt, _clamp_limit(limit), offset)).all()
        return _enrich(db, events)

    @staticmethod
    def list_for_user(
        db: Session, person_id: str, limit: int | None = None, offset: int = 0
    ) -> list[dict]:
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.actor_id == coerce_uuid(person_id))
            .order_by(AuditEvent.created_at.desc(), AuditEvent.sequence.desc())
        )
        events = db.scalars(apply_pagination(stmt, _clamp_limit(limit), offset)).all()
        return _enrich(db, events)

    @staticmethod
    def list_for_case(
        db: Session, case_id: str, limit: int | None = None, offset: int = 0
    ) -> list[dict]:
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.case_id == coerce_uuid(case_id))
            .order_by(AuditEvent.created_at.desc(), AuditEvent.sequence.desc())
        )
        events = db.scalars(apply_pagination(stmt, _clamp_limit(limit), offset)).all()
        return _enrich(db, events)

    @staticmethod
    def list_system(
        db: Session,
        start: datetime | None = None,
        end: datetime | None = None,
        action: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        stmt = select(AuditEvent)
        if start is not None:
            stmt = stmt.where(AuditEvent.created_at >= as_utc(start))
        if end is not None:
            stmt = stmt.where(AuditEvent.created_at <= as_utc(end))
        if action is not None:
            stmt = stmt.where(AuditEvent.action == parse_action(action))
        stmt = stmt.order_by(AuditEvent.created_at.desc(), AuditEvent.sequence.desc())
        events = db.scalars(apply_pagination(stmt, _clamp_limit(limit), offset)).all()
        return _enrich(db, events)


audit_events = AuditEvents()
