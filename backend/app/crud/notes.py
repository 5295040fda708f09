# app/crud/notes.py
"""
Note persistence. Every function takes a keyword-only tenant_id and every
statement filters on it, including the ones addressed by note id: an id from
another tenant behaves exactly like a missing one.
"""
from __future__ import annotations

from typing import Optional, Sequence

from app.crud.rows import dump_json, dump_list, normalize_row
from app.db.adapter import DatabaseAdapter, Row

_NOTE_SELECT = (
    "SELECT n.id, n.title, n.content, n.tenant_id, n.created_by, n.tags, n.category, "
    "n.is_archived, n.is_shared, n.shared_with, n.created_at, n.updated_at, "
    "u.email AS created_by_email "
    "FROM notes n JOIN users u ON n.created_by = u.id"
)


def _note(row: Optional[Row]) -> Optional[Row]:
    return normalize_row(row, bools=("is_archived", "is_shared"), lists=("tags", "shared_with"))


_LIKE_ESCAPE = "!"


def _like_literal(value: str) -> str:
    # backslash is an escape in Postgres LIKE by default but not in SQLite; pin one
    for ch in (_LIKE_ESCAPE, "%", "_"):
        value = value.replace(ch, _LIKE_ESCAPE + ch)
    return value


def _filters(
    *,
    tenant_id: int,
    search: Optional[str],
    category: Optional[str],
    tags: Sequence[str],
    archived: Optional[bool],
) -> tuple[str, list]:
    where = ["n.tenant_id = ?"]
    params: list = [tenant_id]

    if search:
        term = f"%{search.lower()}%"
        where.append("(LOWER(n.title) LIKE ? OR LOWER(n.content) LIKE ?)")
        params.extend([term, term])

    if category:
        where.append("n.category = ?")
        params.append(category)

    # tags are stored as a JSON array; match the quoted element
    for tag in tags:
        where.append(f"n.tags LIKE ? ESCAPE '{_LIKE_ESCAPE}'")
        params.append(f"%{_like_literal(dump_json(tag))}%")

    if archived is not None:
        where.append("n.is_archived = ?")
        params.append(archived)

    return " WHERE " + " AND ".join(where), params


async def list_notes(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    search: Optional[str] = None,
    category: Optional[str] = None,
    tags: Sequence[str] = (),
    archived: Optional[bool] = None,
) -> list[Row]:
    where, params = _filters(
        tenant_id=tenant_id, search=search, category=category, tags=tags, archived=archived
    )
    rows = await db.get_many(f"{_NOTE_SELECT}{where} ORDER BY n.updated_at DESC, n.id DESC", params)
    return [_note(r) for r in rows]


async def search_notes(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    query: str,
    category: Optional[str] = None,
    tags: Sequence[str] = (),
    archived: Optional[bool] = False,
) -> list[Row]:
    """Title matches first, then content-only matches; newest first within each group."""
    where, params = _filters(
        tenant_id=tenant_id, search=query, category=category, tags=tags, archived=archived
    )
    rank = "CASE WHEN LOWER(n.title) LIKE ? THEN 1 ELSE 2 END"
    params.append(f"%{query.lower()}%")
    rows = await db.get_many(
        f"{_NOTE_SELECT}{where} ORDER BY {rank}, n.updated_at DESC, n.id DESC",
        params,
    )
    return [_note(r) for r in rows]


async def count_notes(db: DatabaseAdapter, *, tenant_id: int) -> int:
    row = await db.get_one("SELECT COUNT(*) AS count FROM notes WHERE tenant_id = ?", (tenant_id,))
    return int(row["count"]) if row else 0


async def get_note(db: DatabaseAdapter, *, tenant_id: int, note_id: int) -> Optional[Row]:
    return _note(await db.get_one(f"{_NOTE_SELECT} WHERE n.id = ? AND n.tenant_id = ?", (note_id, tenant_id)))


async def create_note(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    created_by: int,
    title: str,
    content: str,
    tags: Sequence[str] = (),
    category: Optional[str] = None,
    is_shared: bool = False,
    shared_with: Sequence[int] = (),
) -> int:
    result = await db.execute(
        "INSERT INTO notes (title, content, tenant_id, created_by, tags, category, is_shared, shared_with) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?) RETURNING id",
        (
            title,
            content,
            tenant_id,
            created_by,
            dump_list(tags),
            category,
            bool(is_shared),
            dump_list(shared_with),
        ),
    )
    return int(result.last_insert_id)


async def update_note(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    note_id: int,
    title: str,
    content: str,
    tags: Optional[Sequence[str]] = None,
    category: Optional[str] = None,
) -> int:
    sets = ["title = ?", "content = ?"]
    params: list = [title, content]
    if tags is not None:
        sets.append("tags = ?")
        params.append(dump_list(tags))
    if category is not None:
        sets.append("category = ?")
        params.append(category)
    sets.append("updated_at = datetime('now')")
    params.extend([note_id, tenant_id])

    result = await db.execute(
        f"UPDATE notes SET {', '.join(sets)} WHERE id = ? AND tenant_id = ?",
        params,
    )
    return result.changes


async def delete_note(db: DatabaseAdapter, *, tenant_id: int, note_id: int) -> int:
    result = await db.execute("DELETE FROM notes WHERE id = ? AND tenant_id = ?", (note_id, tenant_id))
    return result.changes


async def set_archived(db: DatabaseAdapter, *, tenant_id: int, note_id: int, archived: bool) -> int:
    result = await db.execute(
        "UPDATE notes SET is_archived = ?, updated_at = datetime('now') WHERE id = ? AND tenant_id = ?",
        (bool(archived), note_id, tenant_id),
    )
    return result.changes


async def set_sharing(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    note_id: int,
    is_shared: bool,
    shared_with: Sequence[int],
) -> int:
    result = await db.execute(
        "UPDATE notes SET is_shared = ?, shared_with = ?, updated_at = datetime('now') "
        "WHERE id = ? AND tenant_id = ?",
        (bool(is_shared), dump_list(shared_with), note_id, tenant_id),
    )
    return result.changes


# ---------------------------------------------------------
# Versions
# ---------------------------------------------------------
async def list_versions(db: DatabaseAdapter, *, tenant_id: int, note_id: int) -> list[Row]:
    rows = await db.get_many(
        "SELECT nv.id, nv.note_id, nv.title, nv.content, nv.version_number, nv.created_by, nv.created_at, "
        "u.email AS created_by_email "
        "FROM note_versions nv "
        "JOIN notes n ON nv.note_id = n.id "
        "JOIN users u ON nv.created_by = u.id "
        "WHERE nv.note_id = ? AND n.tenant_id = ? "
        "ORDER BY nv.version_number DESC",
        (note_id, tenant_id),
    )
    return [normalize_row(r, datetimes=("created_at",)) for r in rows]


async def create_version(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    note_id: int,
    title: str,
    content: str,
    created_by: int,
) -> int:
    """
    Append version max+1 and make it the note's current title/content.
    The two writes are separate statements; a failure between them leaves the
    version recorded without the note being updated.
    """
    row = await db.get_one(
        "SELECT MAX(nv.version_number) AS max_version FROM note_versions nv "
        "JOIN notes n ON nv.note_id = n.id WHERE nv.note_id = ? AND n.tenant_id = ?",
        (note_id, tenant_id),
    )
    next_version = int((row or {}).get("max_version") or 0) + 1

    await db.execute(
        "INSERT INTO note_versions (note_id, title, content, version_number, created_by) "
        "VALUES (?, ?, ?, ?, ?) RETURNING id",
        (note_id, title, content, next_version, created_by),
    )
    await update_note(db, tenant_id=tenant_id, note_id=note_id, title=title, content=content)
    return next_version


# ---------------------------------------------------------
# Attachments
# ---------------------------------------------------------
async def list_attachments(db: DatabaseAdapter, *, tenant_id: int, note_id: int) -> list[Row]:
    rows = await db.get_many(
        "SELECT na.id, na.note_id, na.filename, na.original_name, na.file_type, na.file_size, "
        "na.uploaded_by, na.created_at, u.email AS uploaded_by_email "
        "FROM note_attachments na "
        "JOIN notes n ON na.note_id = n.id "
        "JOIN users u ON na.uploaded_by = u.id "
        "WHERE na.note_id = ? AND n.tenant_id = ? "
        "ORDER BY na.created_at DESC, na.id DESC",
        (note_id, tenant_id),
    )
    return [normalize_row(r, datetimes=("created_at",)) for r in rows]


async def create_attachment(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    note_id: int,
    filename: str,
    original_name: str,
    file_type: Optional[str],
    file_size: int,
    file_path: str,
    uploaded_by: int,
) -> Optional[int]:
    """Returns None when the note is not in the tenant."""
    if await get_note(db, tenant_id=tenant_id, note_id=note_id) is None:
        return None
    result = await db.execute(
        "INSERT INTO note_attachments "
        "(note_id, filename, original_name, file_type, file_size, file_path, uploaded_by) "
        "VALUES (?, ?, ?, ?, ?, ?, ?) RETURNING id",
        (note_id, filename, original_name, file_type, file_size, file_path, uploaded_by),
    )
    return int(result.last_insert_id)
