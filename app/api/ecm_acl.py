import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_person_id
from app.schemas.ecm import DocumentPermissionCreate, DocumentPermissionRead
from app.services import ecm_document as doc_service

router = APIRouter(prefix="/documents", tags=["document-permissions"])


@router.get(
    "/{document_id}/permissions", response_model=list[DocumentPermissionRead]
)
def list_document_permissions(
    document_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_permissions(db, person_id, document_id)


@router.post(
    "/{document_id}/permissions",
    response_model=DocumentPermissionRead,
    status_code=status.HTTP_201_CREATED,
)
def grant_document_permission(
    document_id: str,
    payload: DocumentPermissionCreate,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return doc_service.documents.grant_permission(db, person_id, document_id, payload)


@router.delete(
    "/{document_id}/permissions/{grantee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def revoke_document_permission(
    document_id: str,
    grantee_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    doc_service.documents.revoke_permission(db, person_id, document_id, grantee_id)
