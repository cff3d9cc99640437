"""Folder store: CRUD plus the structural operations of the drive.

Containment is not a foreign key: a row belongs to folder F when its stored
``path`` equals F's identity path (``F.path + [F.name]``). Moving or renaming
a folder therefore rewrites the ``path`` of every descendant row, and
recursive delete removes every row whose path lies at or below F's identity
path. Store methods never commit; the caller owns the transaction.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.exceptions import DuplicatePathError, NotFoundError, ValidationError
from localdrive.models.base import utcnow
from localdrive.models.file_entry import FileEntry
from localdrive.models.folder_entry import FolderEntry
from localdrive.schemas.drive import (
    DownloadPayload,
    FileItem,
    FolderItem,
    FolderStats,
    FolderTreeNode,
    FolderWithChildren,
    to_item,
)
from localdrive.services.archive import build_zip
from localdrive.utils.paths import (
    SEPARATOR,
    decode,
    encode,
    is_within,
    rebase,
    slugify,
    validate_name,
    validate_path,
)

logger = logging.getLogger(__name__)


def within(column, key: str):
    """SQL clause: ``column`` equals ``key`` or lies below it, segment-wise.

    Compared with substr rather than LIKE: SQLite LIKE ignores ASCII case.
    """
    prefix = key + SEPARATOR
    return or_(column == key, func.substr(column, 1, len(prefix)) == prefix)


class FolderStore:
    """Folders keyed by id, located by the encoded path of their parent."""

    async def create(self, db: AsyncSession, name: str, path: Sequence[str] = ()) -> str:
        name = validate_name(name)
        segments = validate_path(path)
        now = utcnow()
        entry = FolderEntry(
            id=str(uuid.uuid4()),
            name=name,
            slug=slugify(name),
            path=encode(segments),
            item_count=0,
            is_favorite=0,
            created_at=now,
            modified_at=now,
        )
        db.add(entry)
        await db.flush()
        logger.debug("Created folder %s at '%s'", entry.id, entry.identity_key)
        return entry.id

    async def get_all(self, db: AsyncSession) -> list[FolderEntry]:
        result = await db.execute(select(FolderEntry).order_by(FolderEntry.name))
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, folder_id: str) -> FolderEntry | None:
        return await db.get(FolderEntry, folder_id)

    async def require(self, db: AsyncSession, folder_id: str) -> FolderEntry:
        entry = await self.get_by_id(db, folder_id)
        if entry is None:
            raise NotFoundError("Folder", folder_id)
        return entry

    async def get_by_path(self, db: AsyncSession, path: Sequence[str]) -> list[FolderEntry]:
        """Folders whose parent is exactly ``path``."""
        result = await db.execute(
            select(FolderEntry).where(FolderEntry.path == encode(path)).order_by(FolderEntry.name)
        )
        return list(result.scalars().all())

    async def get_root_folders(self, db: AsyncSession) -> list[FolderEntry]:
        return await self.get_by_path(db, [])

    async def get_by_identity_path(
        self, db: AsyncSession, segments: Sequence[str]
    ) -> FolderEntry | None:
        """The folder whose own full location is ``segments`` (None for root)."""
        if not segments:
            return None
        result = await db.execute(
            select(FolderEntry).where(
                FolderEntry.path == encode(segments[:-1]),
                FolderEntry.name == segments[-1],
            )
        )
        return result.scalar_one_or_none()

    async def update(self, db: AsyncSession, folder_id: str, **fields: Any) -> FolderEntry:
        """Partial update; always bumps ``modified_at``."""
        entry = await self.require(db, folder_id)
        for key, value in fields.items():
            setattr(entry, key, value)
        entry.modified_at = utcnow()
        await db.flush()
        return entry

    async def delete(self, db: AsyncSession, folder_id: str) -> FolderEntry:
        """Shallow delete: the folder row only."""
        entry = await self.require(db, folder_id)
        await db.delete(entry)
        await db.flush()
        return entry

    async def delete_recursive(self, db: AsyncSession, folder_id: str) -> int:
        """Delete a folder and every row below it. Returns rows removed."""
        folder = await self.require(db, folder_id)
        key = folder.identity_key

        n_folders = await db.scalar(
            select(func.count()).select_from(FolderEntry).where(within(FolderEntry.path, key))
        )
        n_files = await db.scalar(
            select(func.count()).select_from(FileEntry).where(within(FileEntry.path, key))
        )
        await db.execute(
            delete(FolderEntry)
            .where(within(FolderEntry.path, key))
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(
            delete(FileEntry)
            .where(within(FileEntry.path, key))
            .execution_options(synchronize_session="fetch")
        )
        await db.delete(folder)
        await db.flush()

        logger.info(
            "Deleted folder '%s' with %d subfolder(s) and %d file(s)", key, n_folders, n_files
        )
        return int(n_folders or 0) + int(n_files or 0) + 1

    async def toggle_favorite(self, db: AsyncSession, folder_id: str) -> bool:
        entry = await self.require(db, folder_id)
        await self.update(db, folder_id, is_favorite=0 if entry.is_favorite else 1)
        return bool(entry.is_favorite)

    async def get_favorites(self, db: AsyncSession) -> list[FolderEntry]:
        result = await db.execute(
            select(FolderEntry).where(FolderEntry.is_favorite == 1).order_by(FolderEntry.name)
        )
        return list(result.scalars().all())

    async def search(self, db: AsyncSession, query: str) -> list[FolderEntry]:
        """Case-insensitive substring match over names."""
        needle = (query or "").lower()
        return [f for f in await self.get_all(db) if needle in f.name.lower()]

    async def count(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(FolderEntry))
        return int(result.scalar() or 0)

    # ----------------------------
    # Structural rewrites
    # ----------------------------
    async def move(self, db: AsyncSession, folder_id: str, new_path: Sequence[str]) -> None:
        """Reparent a folder and rewrite the path of everything below it."""
        folder = await self.require(db, folder_id)
        segments = validate_path(new_path)
        new_key = encode(segments)
        if new_key == folder.path:
            return

        old_identity = folder.identity_segments
        if is_within(new_key, encode(old_identity)):
            raise ValidationError(f"Cannot move folder '{folder.name}' into itself")
        new_identity = [*segments, folder.name]

        folder.path = new_key
        folder.modified_at = utcnow()
        await db.flush()

        n_folders, n_files = await self._rewrite_descendants(db, old_identity, new_identity)
        logger.info(
            "Moved folder '%s' -> '%s' (%d folder(s), %d file(s) rewritten)",
            encode(old_identity), encode(new_identity), n_folders, n_files,
        )

    async def rename(self, db: AsyncSession, folder_id: str, new_name: str) -> None:
        """Rename a folder; descendants follow the new identity path."""
        folder = await self.require(db, folder_id)
        new_name = validate_name(new_name)
        old_identity = folder.identity_segments

        folder.name = new_name
        folder.slug = slugify(new_name)
        folder.modified_at = utcnow()
        await db.flush()

        new_identity = folder.identity_segments
        if new_identity != old_identity:
            await self._rewrite_descendants(db, old_identity, new_identity)

    async def _rewrite_descendants(
        self, db: AsyncSession, old_identity: list[str], new_identity: list[str]
    ) -> tuple[int, int]:
        old_key = encode(old_identity)

        folders = (
            await db.execute(select(FolderEntry).where(within(FolderEntry.path, old_key)))
        ).scalars().all()
        for child in folders:
            child.path = encode(rebase(child.segments, old_identity, new_identity))

        files = await self._descendant_files(db, old_key)
        for f in files:
            f.path = encode(rebase(f.segments, old_identity, new_identity))

        await db.flush()
        return len(folders), len(files)

    async def _descendant_files(self, db: AsyncSession, key: str) -> list[FileEntry]:
        result = await db.execute(select(FileEntry).where(within(FileEntry.path, key)))
        return list(result.scalars().all())

    # ----------------------------
    # Item counts
    # ----------------------------
    async def count_children(self, db: AsyncSession, segments: Sequence[str]) -> int:
        """Direct children (folders + files) whose path equals ``segments``."""
        key = encode(segments)
        n_folders = await db.scalar(
            select(func.count()).select_from(FolderEntry).where(FolderEntry.path == key)
        )
        n_files = await db.scalar(
            select(func.count()).select_from(FileEntry).where(FileEntry.path == key)
        )
        return int(n_folders or 0) + int(n_files or 0)

    async def update_item_count(self, db: AsyncSession, folder_id: str) -> int:
        """Recompute the direct-children count; persists only when it changed."""
        folder = await self.require(db, folder_id)
        count = await self.count_children(db, folder.identity_segments)
        if folder.item_count != count:
            await self.update(db, folder_id, item_count=count)
        return count

    async def sync_item_count_at(
        self, db: AsyncSession, segments: Sequence[str]
    ) -> FolderEntry | None:
        """Recount the folder located at ``segments``, if there is one."""
        folder = await self.get_by_identity_path(db, segments)
        if folder is not None:
            await self.update_item_count(db, folder.id)
        return folder

    # ----------------------------
    # Listing / tree / stats
    # ----------------------------
    async def get_children_by_path(
        self, db: AsyncSession, path: Sequence[str]
    ) -> list[FolderEntry | FileEntry]:
        """Directory listing: folders first, then files, each by name."""
        key = encode(path)
        folders = (
            await db.execute(
                select(FolderEntry).where(FolderEntry.path == key).order_by(FolderEntry.name)
            )
        ).scalars().all()
        files = (
            await db.execute(
                select(FileEntry).where(FileEntry.path == key).order_by(FileEntry.name)
            )
        ).scalars().all()
        return [*folders, *files]

    async def get_with_children(self, db: AsyncSession, folder_id: str) -> FolderWithChildren | None:
        folder = await self.get_by_id(db, folder_id)
        if folder is None:
            return None
        children = await self.get_children_by_path(db, folder.identity_segments)
        return FolderWithChildren(
            **FolderItem.from_entry(folder).model_dump(),
            children=[to_item(c) for c in children],
        )

    async def build_tree(self, db: AsyncSession) -> list[FolderTreeNode]:
        """Assemble the folder hierarchy from the flat tables.

        Pass 1 indexes every folder by id and by identity path; pass 2 links
        each folder under the folder whose identity path equals its path and
        attaches each file the same way. Root-level files are not part of
        the tree.
        """
        folders = await self.get_all(db)
        files = (await db.execute(select(FileEntry).order_by(FileEntry.name))).scalars().all()

        nodes: dict[str, FolderTreeNode] = {}
        by_identity: dict[str, str] = {}
        for folder in folders:
            nodes[folder.id] = FolderTreeNode(**FolderItem.from_entry(folder).model_dump())
            key = folder.identity_key
            if key in by_identity:
                raise DuplicatePathError(f"Two folders share the identity path '{key}'")
            by_identity[key] = folder.id

        roots: list[FolderTreeNode] = []
        for folder in folders:
            node = nodes[folder.id]
            if not folder.path:
                roots.append(node)
                continue
            parent_id = by_identity.get(folder.path)
            if parent_id is None:
                logger.warning("Orphan folder %s: no parent at '%s'", folder.id, folder.path)
                continue
            nodes[parent_id].children.append(node)

        for f in files:
            if not f.path:
                continue
            parent_id = by_identity.get(f.path)
            if parent_id is None:
                logger.warning("Orphan file %s: no folder at '%s'", f.id, f.path)
                continue
            nodes[parent_id].files.append(FileItem.from_entry(f))

        return roots

    async def get_stats(self, db: AsyncSession, folder_id: str) -> FolderStats:
        """Recursive descendant counts and total size."""
        folder = await self.require(db, folder_id)
        key = folder.identity_key

        result = await db.execute(
            select(func.count(FileEntry.id), func.coalesce(func.sum(FileEntry.size_bytes), 0))
            .where(within(FileEntry.path, key))
        )
        file_count, total_size = result.one()
        subfolder_count = await db.scalar(
            select(func.count()).select_from(FolderEntry).where(within(FolderEntry.path, key))
        )
        return FolderStats(
            file_count=int(file_count or 0),
            subfolder_count=int(subfolder_count or 0),
            total_size=int(total_size or 0),
        )

    async def download(self, db: AsyncSession, folder_id: str) -> DownloadPayload:
        """ZIP of every descendant file, relative to this folder."""
        folder = await self.require(db, folder_id)
        identity = folder.identity_segments
        key = encode(identity)

        rows = (
            await db.execute(
                select(FileEntry.path, FileEntry.name, FileEntry.content)
                .where(within(FileEntry.path, key))
                .order_by(FileEntry.path, FileEntry.name)
            )
        ).all()
        subfolders = (
            await db.execute(select(FolderEntry).where(within(FolderEntry.path, key)))
        ).scalars().all()

        archive = build_zip(
            ((rebase(decode(path), identity, []), name, content) for path, name, content in rows),
            (rebase(sub.identity_segments, identity, []) for sub in subfolders),
        )
        return DownloadPayload(
            filename=f"{folder.name}.zip",
            media_type="application/zip",
            content=archive,
        )
