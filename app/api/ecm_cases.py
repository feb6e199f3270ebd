import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_person_id
from app.errors import NotFoundError
from app.schemas.common import ListResponse
from app.schemas.ecm import (
    CaseCreate,
    CaseDocumentAdd,
    CaseRead,
    CaseUpdate,
    DocumentRead,
)
from app.services import ecm_case as case_service

router = APIRouter(prefix="/cases", tags=["cases"])


@router.post("", response_model=CaseRead, status_code=status.HTTP_201_CREATED)
def create_case(
    payload: CaseCreate,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return case_service.cases.create(db, person_id, payload)


@router.get("", response_model=ListResponse[CaseRead])
def list_cases(
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return case_service.cases.list_response(
        db, person_id, is_active, order_by, order_dir, limit, offset
    )


@router.get("/{case_id}", response_model=CaseRead)
def get_case(
    case_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    case = case_service.cases.get(db, person_id, case_id)
    if case is None:
        raise NotFoundError("Case not found")
    return case


@router.patch("/{case_id}", response_model=CaseRead)
def update_case(
    case_id: str,
    payload: CaseUpdate,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return case_service.cases.update(db, person_id, case_id, payload)


@router.delete("/{case_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_case(
    case_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    case_service.cases.delete(db, person_id, case_id)


@router.get("/{case_id}/documents", response_model=list[DocumentRead])
def list_case_documents(
    case_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return case_service.cases.list_documents(db, person_id, case_id)


@router.post("/{case_id}/documents", response_model=CaseRead)
def add_case_document(
    case_id: str,
    payload: CaseDocumentAdd,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return case_service.cases.add_document(db, person_id, case_id, payload.document_id)


@router.delete("/{case_id}/documents/{document_id}", response_model=CaseRead)
def remove_case_document(
    case_id: str,
    document_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    return case_service.cases.remove_document(db, person_id, case_id, document_id)


@router.post("/{case_id}/reconcile", response_model=CaseRead)
def reconcile_case(
    case_id: str,
    person_id: uuid.UUID = Depends(require_person_id),
    db: Session = Depends(get_db),
):
    if case_service.cases.get(db, person_id, case_id) is None:
        raise NotFoundError("Case not found")
    return case_service.cases.reconcile(db, case_id)
