"""File store: CRUD and queries over the drive_files table.

Store methods never commit; the caller owns the transaction.
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.config import settings
from localdrive.exceptions import CorruptedContentError, NotFoundError, StorageFailure
from localdrive.models.base import utcnow
from localdrive.models.file_entry import FileEntry
from localdrive.schemas.drive import DownloadPayload
from localdrive.utils.paths import encode, slugify, split_extension, validate_name, validate_path

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def guess_media_type(name: str) -> str:
    return mimetypes.guess_type(name)[0] or DEFAULT_MEDIA_TYPE


class FileStore:
    """Files keyed by id, located by the encoded path of their folder."""

    def __init__(self, max_storage_bytes: int | None = None):
        self._max_storage_bytes = (
            settings.max_storage_bytes if max_storage_bytes is None else max_storage_bytes
        )

    async def create(
        self, db: AsyncSession, name: str, content: bytes, path: Sequence[str] = ()
    ) -> str:
        """Insert a file; derives extension, slug and size. Returns the new id."""
        name = validate_name(name)
        segments = validate_path(path)
        content = bytes(content or b"")

        if self._max_storage_bytes:
            used = await self.get_total_size(db)
            if used + len(content) > self._max_storage_bytes:
                raise StorageFailure(
                    f"Storage quota exceeded: {used + len(content)} > {self._max_storage_bytes} bytes"
                )

        now = utcnow()
        entry = FileEntry(
            id=str(uuid.uuid4()),
            name=name,
            slug=slugify(name),
            extension=split_extension(name),
            size_bytes=len(content),
            path=encode(segments),
            is_favorite=0,
            content=content,
            created_at=now,
            modified_at=now,
        )
        db.add(entry)
        await db.flush()
        logger.debug("Created file %s at '%s'", entry.id, entry.path)
        return entry.id

    async def bulk_create(
        self, db: AsyncSession, files: Iterable[tuple[str, bytes, Sequence[str]]]
    ) -> list[str]:
        return [await self.create(db, name, content, path) for name, content, path in files]

    async def get_all(self, db: AsyncSession) -> list[FileEntry]:
        result = await db.execute(select(FileEntry).order_by(FileEntry.name))
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, file_id: str) -> FileEntry | None:
        return await db.get(FileEntry, file_id)

    async def require(self, db: AsyncSession, file_id: str) -> FileEntry:
        entry = await self.get_by_id(db, file_id)
        if entry is None:
            raise NotFoundError("File", file_id)
        return entry

    async def get_by_path(self, db: AsyncSession, path: Sequence[str]) -> list[FileEntry]:
        """Files whose containing folder is exactly ``path``."""
        result = await db.execute(
            select(FileEntry).where(FileEntry.path == encode(path)).order_by(FileEntry.name)
        )
        return list(result.scalars().all())

    async def update(self, db: AsyncSession, file_id: str, **fields: Any) -> FileEntry:
        """Partial update; always bumps ``modified_at``."""
        entry = await self.require(db, file_id)
        for key, value in fields.items():
            setattr(entry, key, value)
        entry.modified_at = utcnow()
        await db.flush()
        return entry

    async def delete(self, db: AsyncSession, file_id: str) -> FileEntry:
        entry = await self.require(db, file_id)
        await db.delete(entry)
        await db.flush()
        logger.debug("Deleted file %s", file_id)
        return entry

    async def rename(self, db: AsyncSession, file_id: str, new_name: str) -> None:
        new_name = validate_name(new_name)
        await self.update(db, file_id, name=new_name, slug=slugify(new_name))

    async def move(self, db: AsyncSession, file_id: str, new_path: Sequence[str]) -> None:
        """Overwrite the containing path; parent counts are the caller's job."""
        segments = validate_path(new_path)
        await self.update(db, file_id, path=encode(segments))

    async def toggle_favorite(self, db: AsyncSession, file_id: str) -> bool:
        entry = await self.require(db, file_id)
        await self.update(db, file_id, is_favorite=0 if entry.is_favorite else 1)
        return bool(entry.is_favorite)

    async def get_favorites(self, db: AsyncSession) -> list[FileEntry]:
        result = await db.execute(
            select(FileEntry).where(FileEntry.is_favorite == 1).order_by(FileEntry.name)
        )
        return list(result.scalars().all())

    async def search(self, db: AsyncSession, query: str) -> list[FileEntry]:
        """Case-insensitive substring match over names."""
        needle = (query or "").lower()
        return [f for f in await self.get_all(db) if needle in f.name.lower()]

    async def get_by_extension(self, db: AsyncSession, extension: str) -> list[FileEntry]:
        result = await db.execute(
            select(FileEntry).where(FileEntry.extension == extension).order_by(FileEntry.name)
        )
        return list(result.scalars().all())

    async def get_total_size(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.coalesce(func.sum(FileEntry.size_bytes), 0)))
        return int(result.scalar() or 0)

    async def count(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(FileEntry))
        return int(result.scalar() or 0)

    async def get_content(self, db: AsyncSession, file_id: str) -> bytes | None:
        """Load the payload column explicitly (it is deferred on the model)."""
        result = await db.execute(select(FileEntry.content).where(FileEntry.id == file_id))
        row = result.first()
        if row is None:
            raise NotFoundError("File", file_id)
        return row[0]

    async def download(self, db: AsyncSession, file_id: str) -> DownloadPayload:
        entry = await self.require(db, file_id)
        content = await self.get_content(db, file_id)
        if content is None:
            raise CorruptedContentError(f"File {file_id} has no content")
        return DownloadPayload(
            filename=entry.name,
            media_type=guess_media_type(entry.name),
            content=content,
        )
