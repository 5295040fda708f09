# backend/app/schemas/note.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import required_text


def _clean_tags(tags: List[str]) -> List[str]:
    # trimmed, blanks dropped, first occurrence wins
    seen: dict[str, None] = {}
    for tag in tags:
        t = tag.strip()
        if t:
            seen.setdefault(t, None)
    return list(seen)


class NoteCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = Field(default=None, max_length=100)
    is_shared: bool = False
    shared_with: List[int] = Field(default_factory=list)

    @field_validator("title", "content")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        return required_text(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class NoteUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    tags: Optional[List[str]] = None
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator("title", "content")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        return required_text(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _clean_tags(v)


class NoteOut(BaseModel):
    id: int
    title: str
    content: str
    tenant_id: int
    created_by: int
    created_by_email: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    is_archived: bool
    is_shared: bool
    shared_with: List[int] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class NoteEnvelope(BaseModel):
    note: NoteOut


class NoteListResponse(BaseModel):
    notes: List[NoteOut]


class NoteSearchResponse(BaseModel):
    query: str
    results: List[NoteOut]
    total: int


class ArchiveRequest(BaseModel):
    archived: bool = True


class ArchiveResponse(BaseModel):
    message: str
    archived: bool


class ShareRequest(BaseModel):
    user_ids: List[int] = Field(default_factory=list)
    is_shared: bool


class ShareResponse(BaseModel):
    message: str
    is_shared: bool
    shared_with: List[int]


class SharedUser(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str


class NoteWithSharing(NoteOut):
    shared_users: List[SharedUser] = Field(default_factory=list)


class NoteSharingEnvelope(BaseModel):
    note: NoteWithSharing


class VersionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)

    @field_validator("title", "content")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        return required_text(v)


class VersionCreateResponse(BaseModel):
    message: str
    version: int


class VersionOut(BaseModel):
    id: int
    note_id: int
    title: str
    content: str
    version_number: int
    created_by: int
    created_by_email: Optional[str] = None
    created_at: datetime


class VersionListResponse(BaseModel):
    versions: List[VersionOut]


class AttachmentOut(BaseModel):
    id: int
    note_id: int
    filename: str
    original_name: str
    file_type: Optional[str] = None
    file_size: int
    uploaded_by: int
    uploaded_by_email: Optional[str] = None
    created_at: Optional[datetime] = None


class AttachmentCreateResponse(BaseModel):
    message: str
    attachment: AttachmentOut


class AttachmentListResponse(BaseModel):
    attachments: List[AttachmentOut]
