import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, optional_person_id, require_person_id
from app.errors import NotFoundError
from app.schemas.common import ListResponse
from app.schemas.ecm import (
    DocumentCreate,
    DocumentListItem,
    DocumentRead,
    DocumentUpdate,
    DocumentVersionRead,
    RollbackRequest,
    RollbackResponse,
    ShareLinkResponse,
)
from app.services import ecm_document as doc_service

router = APIRouter(prefix="/documents", tags=["documents"])


# ------------------------------------------------------------------
# Document CRUD
# ------------------------------------------------------------------


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentCreate,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return doc_service.documents.create(db, person_id, payload)


@router.get("", response_model=list[DocumentListItem])
def list_my_documents(
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_for_user(db, person_id)


@router.get("/search", response_model=ListResponse[DocumentRead])
def search_documents(
    q: str = Query(default=""),
    field: str = Query(default="title", pattern="^(title|content)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    person_id: uuid.UUID | None = Depends(optional_person_id),
    db: Session = Depends(get_db),
):
    items = doc_service.documents.search(
        db, person_id, q, field=field, limit=limit, offset=offset
    )
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


@router.get("/shared/{token}", response_model=DocumentRead)
def get_shared_document(token: str, db: Session = Depends(get_db)):
    document = doc_service.documents.get_by_shareable_link(db, token)
    if document is None:
        raise NotFoundError("Document not found")
    return document


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: str,
    person_id: uuid.UUID | None = Depends(optional_person_id),
    db: Session = Depends(get_db),
):
    document = doc_service.documents.read(db, person_id, document_id)
    if document is None:
        raise NotFoundError("Document not found")
    return document


@router.patch("/{document_id}", response_model=DocumentRead)
def update_document(
    document_id: str,
    payload: DocumentUpdate,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return doc_service.documents.update(db, person_id, document_id, payload)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    doc_service.documents.delete(db, person_id, document_id)


# ------------------------------------------------------------------
# Version history
# ------------------------------------------------------------------


@router.get("/{document_id}/versions", response_model=list[DocumentVersionRead])
def list_document_versions(
    document_id: str,
    limit: int | None = Query(default=None, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    person_id: uuid.UUID | None = Depends(optional_person_id),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_versions(
        db, person_id, document_id, limit=limit, offset=offset
    )


@router.get("/{document_id}/versions/{version}", response_model=DocumentVersionRead)
def get_document_version(
    document_id: str,
    version: int,
    person_id: uuid.UUID | None = Depends(optional_person_id),
    db: Session = Depends(get_db),
):
    entry = doc_service.documents.get_version(db, person_id, document_id, version)
    if entry is None:
        raise NotFoundError("Version not found")
    return entry


@router.post("/{document_id}/rollback", response_model=RollbackResponse)
def rollback_document(
    document_id: str,
    payload: RollbackRequest,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    new_version = doc_service.documents.rollback_to_version(
        db, person_id, document_id, payload.version
    )
    return {"document_id": document_id, "version": new_version}


@router.post("/{document_id}/share-link", response_model=ShareLinkResponse)
def create_share_link(
    document_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    token = doc_service.documents.generate_shareable_link(db, person_id, document_id)
    return {"document_id": document_id, "shareable_link": token}
