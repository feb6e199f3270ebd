from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditActor(BaseModel):
    name: str
    email: str


class AuditDocumentRef(BaseModel):
    title: str


class AuditEventCreate(BaseModel):
    action: str
    document_id: UUID | None = None
    case_id: UUID | None = None
    workspace_id: UUID | None = None
    detail: str | None = None


class AuditEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: UUID
    action: str
    document_id: UUID | None = None
    case_id: UUID | None = None
    workspace_id: UUID | None = None
    detail: str | None = None
    created_at: datetime
    actor: AuditActor | None = None
    document: AuditDocumentRef | None = None
