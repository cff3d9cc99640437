"""Drive façade: cross-type operations over the file and folder stores.

Every mutating method is one unit of work: row changes and item-count
maintenance commit together or roll back together. Structural operations on
folders (move, rename, recursive delete) are additionally serialized.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.exceptions import DriveError, NotFoundError, StorageFailure, ValidationError
from localdrive.models.file_entry import FileEntry
from localdrive.models.folder_entry import FolderEntry
from localdrive.schemas.drive import (
    DownloadPayload,
    FolderStats,
    FolderTreeNode,
    ItemType,
    StorageStats,
)
from localdrive.services.file_store import FileStore
from localdrive.services.folder_store import FolderStore
from localdrive.utils.paths import (
    RESERVED_DIRECTORIES,
    encode,
    is_reserved,
    slugify,
    validate_name,
    validate_path,
)

logger = logging.getLogger(__name__)

Entry = FileEntry | FolderEntry


class ItemAction(str, Enum):
    FAVORITE = "favorite"
    DELETE = "delete"
    RENAME = "rename"
    DOWNLOAD = "download"


class DriveManager:
    """Unifies FileStore and FolderStore for one drive namespace."""

    def __init__(self, files: FileStore | None = None, folders: FolderStore | None = None):
        self.files = files or FileStore()
        self.folders = folders or FolderStore()
        self._structure_lock = asyncio.Lock()

    @asynccontextmanager
    async def _unit_of_work(self, db: AsyncSession, operation: str) -> AsyncIterator[None]:
        try:
            yield
            await db.commit()
        except DriveError as exc:
            await db.rollback()
            logger.warning("%s rejected: %s", operation, exc)
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("%s failed, rolled back: %s", operation, exc)
            raise StorageFailure(f"{operation} failed: {exc}") from exc
        except Exception:
            await db.rollback()
            logger.exception("%s failed, rolled back", operation)
            raise

    def _store(self, item_type: ItemType) -> FileStore | FolderStore:
        return self.files if ItemType(item_type) is ItemType.FILE else self.folders

    # ----------------------------
    # Validation
    # ----------------------------
    async def _check_target(self, db: AsyncSession, path: Sequence[str]) -> list[str]:
        """Target directory must be real: not reserved, and an existing folder."""
        segments = validate_path(path)
        if is_reserved(segments):
            raise ValidationError(
                f"Cannot place items in '{segments[0]}'. Please navigate to a folder first."
            )
        if segments and await self.folders.get_by_identity_path(db, segments) is None:
            raise ValidationError(f"Target folder does not exist: '{encode(segments)}'")
        return segments

    async def _check_name(
        self,
        db: AsyncSession,
        path: Sequence[str],
        name: str,
        exclude_id: str | None = None,
    ) -> str:
        """Name must be valid and its slug unique among the directory's children."""
        name = validate_name(name)
        if not path and name in RESERVED_DIRECTORIES:
            raise ValidationError(f"'{name}' is a reserved name")
        slug = slugify(name)
        for sibling in await self.folders.get_children_by_path(db, path):
            if sibling.id != exclude_id and sibling.slug == slug:
                raise ValidationError(
                    f"A file or folder with a similar name already exists in "
                    f"'{encode(path) or '/'}': {name!r}"
                )
        return name

    async def _sync_counts(self, db: AsyncSession, *paths: Sequence[str]) -> None:
        seen: set[str] = set()
        for path in paths:
            key = encode(path)
            if not path or key in seen:
                continue
            seen.add(key)
            await self.folders.sync_item_count_at(db, path)

    # ----------------------------
    # Queries
    # ----------------------------
    async def get_items_by_path(self, db: AsyncSession, path: Sequence[str]) -> list[Entry]:
        return await self.folders.get_children_by_path(db, path)

    async def resolve_item(self, db: AsyncSession, item_id: str) -> Entry:
        """Find an id in either table."""
        entry: Entry | None = await self.files.get_by_id(db, item_id)
        if entry is None:
            entry = await self.folders.get_by_id(db, item_id)
        if entry is None:
            raise NotFoundError("Item", item_id)
        return entry

    async def search(self, db: AsyncSession, query: str) -> list[Entry]:
        folders = await self.folders.search(db, query)
        files = await self.files.search(db, query)
        return [*folders, *files]

    async def get_favorites(self, db: AsyncSession) -> list[Entry]:
        folders = await self.folders.get_favorites(db)
        files = await self.files.get_favorites(db)
        return [*folders, *files]

    async def get_all_recent(self, db: AsyncSession) -> list[Entry]:
        """Every file and folder, most recently modified first."""
        items: list[Entry] = [*await self.folders.get_all(db), *await self.files.get_all(db)]
        items.sort(key=lambda e: e.modified_at, reverse=True)
        return items

    async def get_storage_stats(self, db: AsyncSession) -> StorageStats:
        total_size = await self.files.get_total_size(db)
        file_count = await self.files.count(db)
        folder_count = await self.folders.count(db)
        return StorageStats(
            total_size=total_size,
            file_count=file_count,
            folder_count=folder_count,
            total_items=file_count + folder_count,
        )

    async def build_tree(self, db: AsyncSession) -> list[FolderTreeNode]:
        return await self.folders.build_tree(db)

    async def get_folder_stats(self, db: AsyncSession, folder_id: str) -> FolderStats:
        return await self.folders.get_stats(db, folder_id)

    # ----------------------------
    # Mutations
    # ----------------------------
    async def create_folder(self, db: AsyncSession, name: str, path: Sequence[str] = ()) -> str:
        async with self._unit_of_work(db, "create folder"):
            segments = await self._check_target(db, path)
            name = await self._check_name(db, segments, name)
            folder_id = await self.folders.create(db, name, segments)
            await self._sync_counts(db, segments)
        logger.info("Created folder '%s' in '%s'", name, encode(segments))
        return folder_id

    async def upload_file(
        self, db: AsyncSession, name: str, content: bytes, path: Sequence[str] = ()
    ) -> str:
        ids = await self.upload_files(db, [(name, content)], path)
        return ids[0]

    async def upload_files(
        self, db: AsyncSession, files: Iterable[tuple[str, bytes]], path: Sequence[str] = ()
    ) -> list[str]:
        """Create several files in one directory; all or none are stored."""
        batch = list(files)
        async with self._unit_of_work(db, "upload"):
            segments = await self._check_target(db, path)
            ids = []
            for name, content in batch:
                name = await self._check_name(db, segments, name)
                ids.append(await self.files.create(db, name, content, segments))
            await self._sync_counts(db, segments)
        logger.info("Uploaded %d file(s) to '%s'", len(ids), encode(segments))
        return ids

    async def rename_item(
        self, db: AsyncSession, item_id: str, item_type: ItemType, new_name: str
    ) -> str:
        """Rename a file or folder. File renames keep the original extension."""
        item_type = ItemType(item_type)
        if item_type is ItemType.FILE:
            async with self._unit_of_work(db, "rename file"):
                entry = await self.files.require(db, item_id)
                new_name = validate_name(new_name)
                if entry.extension and not new_name.endswith(f".{entry.extension}"):
                    new_name = f"{new_name}.{entry.extension}"
                new_name = await self._check_name(db, entry.segments, new_name, exclude_id=item_id)
                await self.files.rename(db, item_id, new_name)
            return new_name

        async with self._structure_lock:
            async with self._unit_of_work(db, "rename folder"):
                entry = await self.folders.require(db, item_id)
                new_name = await self._check_name(db, entry.segments, new_name, exclude_id=item_id)
                await self.folders.rename(db, item_id, new_name)
        return new_name

    async def move_item(
        self, db: AsyncSession, item_id: str, item_type: ItemType, new_path: Sequence[str]
    ) -> None:
        """Move a file or folder, then recount the source and destination parents.

        Counts are direct-children counts, so moving a folder changes each
        parent by exactly one regardless of the folder's contents.
        """
        item_type = ItemType(item_type)
        if item_type is ItemType.FILE:
            async with self._unit_of_work(db, "move file"):
                await self._move(db, item_id, item_type, new_path)
            return

        async with self._structure_lock:
            async with self._unit_of_work(db, "move folder"):
                await self._move(db, item_id, item_type, new_path)

    async def _move(
        self, db: AsyncSession, item_id: str, item_type: ItemType, new_path: Sequence[str]
    ) -> None:
        store = self._store(item_type)
        entry = await store.require(db, item_id)
        old_path = entry.segments
        segments = await self._check_target(db, new_path)
        if encode(segments) == entry.path:
            return
        await self._check_name(db, segments, entry.name, exclude_id=item_id)

        await store.move(db, item_id, segments)
        await self._sync_counts(db, old_path, segments)

    async def delete_item(self, db: AsyncSession, item_id: str, item_type: ItemType) -> int:
        """Delete a file, or a folder with everything below it. Returns rows removed."""
        item_type = ItemType(item_type)
        if item_type is ItemType.FILE:
            async with self._unit_of_work(db, "delete file"):
                entry = await self.files.delete(db, item_id)
                await self._sync_counts(db, entry.segments)
            return 1

        async with self._structure_lock:
            async with self._unit_of_work(db, "delete folder"):
                entry = await self.folders.require(db, item_id)
                parent = entry.segments
                removed = await self.folders.delete_recursive(db, item_id)
                await self._sync_counts(db, parent)
        return removed

    async def toggle_favorite(self, db: AsyncSession, item_id: str, item_type: ItemType) -> bool:
        async with self._unit_of_work(db, "toggle favorite"):
            state = await self._store(item_type).toggle_favorite(db, item_id)
        return state

    async def download_item(
        self, db: AsyncSession, item_id: str, item_type: ItemType
    ) -> DownloadPayload:
        return await self._store(item_type).download(db, item_id)

    async def apply_action(
        self,
        db: AsyncSession,
        item_id: str,
        item_type: ItemType,
        action: ItemAction,
        *,
        new_name: str | None = None,
    ) -> Any:
        """Dispatch one of the closed set of item actions."""
        action = ItemAction(action)
        if action is ItemAction.FAVORITE:
            return await self.toggle_favorite(db, item_id, item_type)
        if action is ItemAction.DELETE:
            return await self.delete_item(db, item_id, item_type)
        if action is ItemAction.RENAME:
            if new_name is None:
                raise ValidationError("Rename requires a new name")
            return await self.rename_item(db, item_id, item_type, new_name)
        if action is ItemAction.DOWNLOAD:
            return await self.download_item(db, item_id, item_type)
        raise ValueError(f"Unhandled action: {action}")
