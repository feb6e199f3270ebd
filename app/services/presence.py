import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.person import Person
from app.models.presence import PresenceRecord
from app.services.common import coerce_uuid, utcnow

logger = logging.getLogger(__name__)


def _liveness_cutoff(now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(seconds=settings.presence_liveness_seconds)


def _serialize(record: PresenceRecord, person: Person) -> dict:
    selection = None
    if record.selection_start is not None and record.selection_end is not None:
        selection = {"start": record.selection_start, "end": record.selection_end}
    return {
        "person_id": record.person_id,
        "document_id": record.document_id,
        "workspace_id": record.workspace_id,
        "last_seen": record.last_seen,
        "is_active": record.is_active,
        "cursor_position": record.cursor_position,
        "selection": selection,
        "person": {
            "id": person.id,
            "name": person.display_name,
            "email": person.email,
        },
    }


class PresenceTracker:
    """Best-effort "who is looking at what" map, one record per person.

    Staleness is decided at read time against the liveness window; the
    stored ``is_active`` flag alone is never trusted by readers.
    """

    @staticmethod
    def heartbeat(
        db: Session,
        person_id: str | uuid.UUID,
        document_id: str | uuid.UUID | None = None,
        workspace_id: str | uuid.UUID | None = None,
        cursor_position: int | None = None,
        selection: dict | None = None,
    ) -> PresenceRecord:
        person_uuid = coerce_uuid(person_id)
        values = {
            "document_id": coerce_uuid(document_id),
            "workspace_id": coerce_uuid(workspace_id),
            "last_seen": utcnow(),
            "is_active": True,
            "cursor_position": cursor_position,
            "selection_start": selection["start"] if selection else None,
            "selection_end": selection["end"] if selection else None,
        }

        record = db.scalar(
            select(PresenceRecord).where(PresenceRecord.person_id == person_uuid)
        )
        if record is None:
            record = PresenceRecord(person_id=person_uuid, **values)
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                # Lost the first-insert race; fall back to overwriting.
                db.rollback()
                record = db.scalar(
                    select(PresenceRecord).where(
                        PresenceRecord.person_id == person_uuid
                    )
                )
                for key, value in values.items():
                    setattr(record, key, value)
                db.commit()
        else:
            for key, value in values.items():
                setattr(record, key, value)
            db.commit()
        db.refresh(record)
        logger.debug(
            "Heartbeat from %s on document %s", person_uuid, record.document_id
        )
        return record

    @staticmethod
    def set_inactive(db: Session, person_id: str | uuid.UUID) -> bool:
        person_uuid = coerce_uuid(person_id)
        record = db.scalar(
            select(PresenceRecord).where(PresenceRecord.person_id == person_uuid)
        )
        if record is None:
            return False
        record.is_active = False
        record.last_seen = utcnow()
        db.commit()
        logger.debug("Presence for %s marked inactive", person_uuid)
        return True

    @staticmethod
    def _list_live(db: Session, criterion, exclude_person_id, now) -> list[dict]:
        stmt = (
            select(PresenceRecord, Person)
            .join(Person, Person.id == PresenceRecord.person_id)
            .where(
                criterion,
                PresenceRecord.is_active.is_(True),
                PresenceRecord.last_seen > _liveness_cutoff(now),
                Person.is_active.is_(True),
            )
            .order_by(PresenceRecord.last_seen.desc())
        )
        exclude_uuid = coerce_uuid(exclude_person_id)
        if exclude_uuid is not None:
            stmt = stmt.where(PresenceRecord.person_id != exclude_uuid)
        return [_serialize(record, person) for record, person in db.execute(stmt)]

    @staticmethod
    def list_active_for_document(
        db: Session,
        document_id: str | uuid.UUID,
        exclude_person_id: str | uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        return PresenceTracker._list_live(
            db,
            PresenceRecord.document_id == coerce_uuid(document_id),
            exclude_person_id,
            now,
        )

    @staticmethod
    def list_active_for_workspace(
        db: Session,
        workspace_id: str | uuid.UUID,
        exclude_person_id: str | uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        return PresenceTracker._list_live(
            db,
            PresenceRecord.workspace_id == coerce_uuid(workspace_id),
            exclude_person_id,
            now,
        )

    @staticmethod
    def deactivate_stale(db: Session, now: datetime | None = None) -> int:
        """Flip ``is_active`` off for records past the liveness window.

        Storage hygiene only; readers already ignore stale records.
        """
        result = db.execute(
            update(PresenceRecord)
            .where(
                PresenceRecord.is_active.is_(True),
                PresenceRecord.last_seen <= _liveness_cutoff(now),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount or 0


presence = PresenceTracker()
