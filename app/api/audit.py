import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_person_id
from app.schemas.audit import AuditEventCreate, AuditEventRead
from app.services import audit as audit_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.post(
    "/events", response_model=AuditEventRead, status_code=status.HTTP_201_CREATED
)
def create_audit_event(
    payload: AuditEventCreate,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return audit_service.audit_events.create(db, person_id, payload)


@router.get("/events", response_model=list[AuditEventRead])
def list_audit_events(
    start: datetime | None = None,
    end: datetime | None = None,
    action: str | None = None,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return audit_service.audit_events.list_system(
        db, start=start, end=end, action=action, limit=limit, offset=offset
    )


@router.get("/documents/{document_id}", response_model=list[AuditEventRead])
def list_document_audit(
    document_id: str,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return audit_service.audit_events.list_for_document(db, document_id, limit, offset)


@router.get("/people/{actor_id}", response_model=list[AuditEventRead])
def list_person_audit(
    actor_id: str,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return audit_service.audit_events.list_for_user(db, actor_id, limit, offset)


@router.get("/cases/{case_id}", response_model=list[AuditEventRead])
def list_case_audit(
    case_id: str,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return audit_service.audit_events.list_for_case(db, case_id, limit, offset)
