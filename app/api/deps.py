import uuid

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.errors import ForbiddenError
from app.models.person import Person
from app.services.common import coerce_uuid

PERSON_HEADER = "X-Person-Id"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def optional_person_id(
    x_person_id: str | None = Header(default=None, alias=PERSON_HEADER),
    db: Session = Depends(get_db),
) -> uuid.UUID | None:
    """Resolve the caller forwarded by the identity gateway, if any.

    Unknown or deactivated people are treated as anonymous.
    """
    if not x_person_id:
        return None
    person_id = coerce_uuid(x_person_id)
    person = db.get(Person, person_id)
    if not person or not person.is_active:
        return None
    return person_id


def require_person_id(
    person_id: uuid.UUID | None = Depends(optional_person_id),
) -> uuid.UUID:
    if person_id is None:
        raise ForbiddenError("Authentication required")
    return person_id


__all__ = ["PERSON_HEADER", "get_db", "optional_person_id", "require_person_id"]
