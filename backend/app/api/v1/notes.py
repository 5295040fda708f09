# backend/app/api/v1/notes.py
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from app.api.v1.auth import get_current_user
from app.core.config import settings
from app.core.plans import get_note_limit_for_plan
from app.crud import notes as notes_crud
from app.crud import users as users_crud
from app.db.adapter import DatabaseAdapter
from app.db.session import get_db
from app.schemas.note import (
    ArchiveRequest,
    ArchiveResponse,
    AttachmentCreateResponse,
    AttachmentListResponse,
    AttachmentOut,
    NoteCreate,
    NoteEnvelope,
    NoteListResponse,
    NoteSearchResponse,
    NoteSharingEnvelope,
    NoteUpdate,
    NoteWithSharing,
    ShareRequest,
    ShareResponse,
    SharedUser,
    VersionCreate,
    VersionCreateResponse,
    VersionListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])

NOTE_LIMIT_MESSAGE = "Note limit reached. Upgrade to Pro for unlimited notes."


def _parse_tags(tags: Optional[str]) -> list[str]:
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")


async def _require_note(db: DatabaseAdapter, *, tenant_id: int, note_id: int) -> dict[str, Any]:
    note = await notes_crud.get_note(db, tenant_id=tenant_id, note_id=note_id)
    if note is None:
        raise _not_found()
    return note


async def _check_share_targets(db: DatabaseAdapter, *, tenant_id: int, user_ids: List[int]) -> list[int]:
    """De-duplicated ids, all of which must be members of the tenant."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return []
    members = await users_crud.list_members_by_ids(db, tenant_id=tenant_id, user_ids=ids)
    found = {int(m["id"]) for m in members}
    unknown = [i for i in ids if i not in found]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Users not found in this tenant: {', '.join(str(i) for i in unknown)}",
        )
    return ids


# =========================================================
# LIST / SEARCH
# =========================================================
@router.get("", response_model=NoteListResponse)
async def list_notes(
    search: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    tags: Optional[str] = Query(default=None, description="Comma separated; every tag must match"),
    archived: Optional[bool] = Query(default=None),
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> NoteListResponse:
    notes = await notes_crud.list_notes(
        db,
        tenant_id=user["tenant_id"],
        search=(search or "").strip() or None,
        category=category or None,
        tags=_parse_tags(tags),
        archived=archived,
    )
    return NoteListResponse(notes=notes)


@router.get("/search", response_model=NoteSearchResponse)
async def search_notes(
    q: str = Query(default=""),
    category: Optional[str] = Query(default=None),
    tags: Optional[str] = Query(default=None),
    archived: bool = Query(default=False),
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> NoteSearchResponse:
    """Title matches rank before content-only matches."""
    query = q.strip()
    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query is required")

    results = await notes_crud.search_notes(
        db,
        tenant_id=user["tenant_id"],
        query=query,
        category=category or None,
        tags=_parse_tags(tags),
        archived=archived,
    )
    return NoteSearchResponse(query=query, results=results, total=len(results))


# =========================================================
# CRUD
# =========================================================
@router.post("", response_model=NoteEnvelope, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteCreate,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> NoteEnvelope:
    tenant_id = user["tenant_id"]

    limit = get_note_limit_for_plan(user["subscription_plan"])
    if limit is not None:
        current = await notes_crud.count_notes(db, tenant_id=tenant_id)
        if current >= limit:
            logger.info("notes.quota_exceeded", extra={"tenant_id": tenant_id, "limit": limit})
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOTE_LIMIT_MESSAGE)

    shared_with = await _check_share_targets(db, tenant_id=tenant_id, user_ids=payload.shared_with)

    note_id = await notes_crud.create_note(
        db,
        tenant_id=tenant_id,
        created_by=user["id"],
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
        category=payload.category,
        is_shared=payload.is_shared,
        shared_with=shared_with,
    )
    note = await _require_note(db, tenant_id=tenant_id, note_id=note_id)
    logger.info("notes.created", extra={"tenant_id": tenant_id, "note_id": note_id})
    return NoteEnvelope(note=note)


@router.get("/{note_id}", response_model=NoteEnvelope)
async def get_note(
    note_id: int,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> NoteEnvelope:
    return NoteEnvelope(note=await _require_note(db, tenant_id=user["tenant_id"], note_id=note_id))


@router.put("/{note_id}", response_model=NoteEnvelope)
async def update_note(
    note_id: int,
    payload: NoteUpdate,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> NoteEnvelope:
    tenant_id = user["tenant_id"]
    changed = await notes_crud.update_note(
        db,
        tenant_id=tenant_id,
        note_id=note_id,
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
        category=payload.category,
    )
    if not changed:
        raise _not_found()
    return NoteEnvelope(note=await _require_note(db, tenant_id=tenant_id, note_id=note_id))


@router.delete("/{note_id}")
async def delete_note(
    note_id: int,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
):
    deleted = await notes_crud.delete_note(db, tenant_id=user["tenant_id"], note_id=note_id)
    if not deleted:
        raise _not_found()
    logger.info("notes.deleted", extra={"tenant_id": user["tenant_id"], "note_id": note_id})
    return {"message": "Note deleted successfully"}


# =========================================================
# ARCHIVE / SHARE
# =========================================================
@router.post("/{note_id}/archive", response_model=ArchiveResponse)
async def archive_note(
    note_id: int,
    payload: Optional[ArchiveRequest] = None,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> ArchiveResponse:
    """Only the archived flag changes; `{"archived": false}` restores the note."""
    archived = payload.archived if payload is not None else True
    changed = await notes_crud.set_archived(db, tenant_id=user["tenant_id"], note_id=note_id, archived=archived)
    if not changed:
        raise _not_found()
    return ArchiveResponse(
        message=f"Note {'archived' if archived else 'unarchived'} successfully",
        archived=archived,
    )


@router.post("/{note_id}/share", response_model=ShareResponse)
async def share_note(
    note_id: int,
    payload: ShareRequest,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> ShareResponse:
    tenant_id = user["tenant_id"]
    await _require_note(db, tenant_id=tenant_id, note_id=note_id)
    shared_with = await _check_share_targets(db, tenant_id=tenant_id, user_ids=payload.user_ids)

    await notes_crud.set_sharing(
        db,
        tenant_id=tenant_id,
        note_id=note_id,
        is_shared=payload.is_shared,
        shared_with=shared_with,
    )
    return ShareResponse(
        message="Note sharing updated successfully",
        is_shared=payload.is_shared,
        shared_with=shared_with,
    )


@router.get("/{note_id}/share", response_model=NoteSharingEnvelope)
async def get_note_sharing(
    note_id: int,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> NoteSharingEnvelope:
    tenant_id = user["tenant_id"]
    note = await _require_note(db, tenant_id=tenant_id, note_id=note_id)
    members = await users_crud.list_members_by_ids(db, tenant_id=tenant_id, user_ids=note["shared_with"])
    return NoteSharingEnvelope(
        note=NoteWithSharing(**note, shared_users=[SharedUser(**m) for m in members]),
    )


# =========================================================
# VERSIONS
# =========================================================
@router.get("/{note_id}/versions", response_model=VersionListResponse)
async def list_note_versions(
    note_id: int,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> VersionListResponse:
    tenant_id = user["tenant_id"]
    await _require_note(db, tenant_id=tenant_id, note_id=note_id)
    return VersionListResponse(versions=await notes_crud.list_versions(db, tenant_id=tenant_id, note_id=note_id))


@router.post("/{note_id}/versions", response_model=VersionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_note_version(
    note_id: int,
    payload: VersionCreate,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> VersionCreateResponse:
    tenant_id = user["tenant_id"]
    await _require_note(db, tenant_id=tenant_id, note_id=note_id)

    version = await notes_crud.create_version(
        db,
        tenant_id=tenant_id,
        note_id=note_id,
        title=payload.title,
        content=payload.content,
        created_by=user["id"],
    )
    logger.info("notes.version_created", extra={"tenant_id": tenant_id, "note_id": note_id, "version": version})
    return VersionCreateResponse(message="Note version created successfully", version=version)


# =========================================================
# ATTACHMENTS
# =========================================================
def _store_upload(note_id: int, original_name: str, data: bytes) -> tuple[str, Path]:
    suffix = Path(original_name).suffix.lower()
    filename = f"{uuid.uuid4()}{suffix}"
    directory = Path(settings.UPLOAD_DIR) / "notes" / str(note_id)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_bytes(data)
    return filename, path


@router.post(
    "/{note_id}/attachments",
    response_model=AttachmentCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    note_id: int,
    file: UploadFile = File(...),
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> AttachmentCreateResponse:
    tenant_id = user["tenant_id"]
    await _require_note(db, tenant_id=tenant_id, note_id=note_id)

    original_name = Path(file.filename or "").name
    if not original_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    data = await file.read()
    filename, path = _store_upload(note_id, original_name, data)

    attachment_id = await notes_crud.create_attachment(
        db,
        tenant_id=tenant_id,
        note_id=note_id,
        filename=filename,
        original_name=original_name,
        file_type=file.content_type,
        file_size=len(data),
        file_path=str(path),
        uploaded_by=user["id"],
    )
    if attachment_id is None:
        path.unlink(missing_ok=True)
        raise _not_found()

    attachments = await notes_crud.list_attachments(db, tenant_id=tenant_id, note_id=note_id)
    attachment = next(a for a in attachments if a["id"] == attachment_id)
    logger.info(
        "notes.attachment_uploaded",
        extra={"tenant_id": tenant_id, "note_id": note_id, "attachment_id": attachment_id, "size": len(data)},
    )
    return AttachmentCreateResponse(message="File uploaded successfully", attachment=AttachmentOut(**attachment))


@router.get("/{note_id}/attachments", response_model=AttachmentListResponse)
async def list_attachments(
    note_id: int,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> AttachmentListResponse:
    tenant_id = user["tenant_id"]
    await _require_note(db, tenant_id=tenant_id, note_id=note_id)
    rows = await notes_crud.list_attachments(db, tenant_id=tenant_id, note_id=note_id)
    return AttachmentListResponse(attachments=[AttachmentOut(**r) for r in rows])
