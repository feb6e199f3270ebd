from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class DocumentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    content: str = ""
    is_public: bool = False


class DocumentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = None
    change_description: str | None = None


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    content: str
    is_public: bool
    version: int
    shareable_link: str | None = None
    case_id: UUID | None = None
    created_by: UUID
    last_modified_by: UUID
    created_at: datetime
    last_modified_at: datetime


class DocumentListItem(DocumentRead):
    role: str
    is_owner: bool


# ---------------------------------------------------------------------------
# DocumentVersion (immutable, read only)
# ---------------------------------------------------------------------------


class DocumentVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    version: int
    content: str
    change_description: str | None = None
    created_by: UUID
    created_at: datetime


class RollbackRequest(BaseModel):
    version: int = Field(ge=1)


class RollbackResponse(BaseModel):
    document_id: UUID
    version: int


class ShareLinkResponse(BaseModel):
    document_id: UUID
    shareable_link: str


# ---------------------------------------------------------------------------
# DocumentPermission
# ---------------------------------------------------------------------------


class DocumentPermissionCreate(BaseModel):
    person_id: UUID
    role: str


class DocumentPermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    person_id: UUID
    role: str
    granted_by: UUID
    granted_at: datetime


# ---------------------------------------------------------------------------
# Case
# ---------------------------------------------------------------------------


class CaseCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None


class CaseUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


class CaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    created_by: UUID
    is_active: bool
    total_size: int
    document_count: int
    created_at: datetime
    last_modified_at: datetime


class CaseDocumentAdd(BaseModel):
    document_id: UUID
