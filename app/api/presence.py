import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, optional_person_id, require_person_id
from app.schemas.presence import HeartbeatRequest, PresenceRead
from app.services import ecm_document as doc_service
from app.services import presence as presence_service

router = APIRouter(prefix="/presence", tags=["presence"])


@router.post("/heartbeat", status_code=status.HTTP_204_NO_CONTENT)
def heartbeat(
    payload: HeartbeatRequest,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    presence_service.presence.heartbeat(
        db,
        person_id,
        document_id=payload.document_id,
        workspace_id=payload.workspace_id,
        cursor_position=payload.cursor_position,
        selection=payload.selection.model_dump() if payload.selection else None,
    )


@router.post("/inactive", status_code=status.HTTP_204_NO_CONTENT)
def set_inactive(
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    presence_service.presence.set_inactive(db, person_id)


@router.get("/documents/{document_id}", response_model=list[PresenceRead])
def list_document_presence(
    document_id: str,
    person_id: uuid.UUID | None = Depends(optional_person_id),
    db: Session = Depends(get_db),
):
    if doc_service.documents.read(db, person_id, document_id) is None:
        return []
    return presence_service.presence.list_active_for_document(
        db, document_id, exclude_person_id=person_id
    )


@router.get("/workspaces/{workspace_id}", response_model=list[PresenceRead])
def list_workspace_presence(
    workspace_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return presence_service.presence.list_active_for_workspace(
        db, workspace_id, exclude_person_id=person_id
    )
