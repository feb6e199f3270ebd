from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator


class Selection(BaseModel):
    start: int
    end: int

    @model_validator(mode="after")
    def _ordered(self):
        if self.end < self.start:
            raise ValueError("selection end must not precede start")
        return self


class HeartbeatRequest(BaseModel):
    document_id: UUID | None = None
    workspace_id: UUID | None = None
    cursor_position: int | None = None
    selection: Selection | None = None


class PresencePerson(BaseModel):
    id: UUID
    name: str
    email: str


class PresenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    person_id: UUID
    document_id: UUID | None = None
    workspace_id: UUID | None = None
    last_seen: datetime
    is_active: bool
    cursor_position: int | None = None
    selection: Selection | None = None
    person: PresencePerson
