"""Preview handles: scoped access to file payloads for rendering.

Each open handle pins one file's bytes in memory until it is released.
A file has at most one open handle: reopening it replaces the old one.
The registry holds at most ``max_open`` handles and evicts the least
recently opened when full.
"""

from __future__ import annotations

import logging
import secrets
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.config import settings
from localdrive.exceptions import CorruptedContentError, NotFoundError
from localdrive.schemas.drive import PreviewInfo
from localdrive.services.file_store import FileStore, guess_media_type

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "svg", "webp"})


def preview_kind(extension: str) -> str:
    ext = (extension or "").lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext == "pdf":
        return "pdf"
    return "other"


@dataclass(frozen=True)
class PreviewHandle:
    token: str
    file_id: str
    filename: str
    media_type: str
    kind: str
    content: bytes

    def info(self) -> PreviewInfo:
        return PreviewInfo(
            token=self.token,
            file_id=self.file_id,
            filename=self.filename,
            media_type=self.media_type,
            kind=self.kind,
            size_bytes=len(self.content),
        )


class PreviewRegistry:
    def __init__(self, files: FileStore | None = None, max_open: int | None = None):
        self.files = files or FileStore()
        self.max_open = max(1, max_open or settings.max_open_previews)
        self._handles: OrderedDict[str, PreviewHandle] = OrderedDict()
        self._by_file: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._handles)

    async def open(self, db: AsyncSession, file_id: str) -> PreviewHandle:
        """Load and validate a file's payload; raises CorruptedContentError."""
        entry = await self.files.require(db, file_id)
        content = await self.files.get_content(db, file_id)
        if content is None:
            raise CorruptedContentError(f"File {file_id} has no stored content")
        if not isinstance(content, (bytes, bytearray, memoryview)):
            raise CorruptedContentError(f"File {file_id} content is not binary")
        if len(content) == 0:
            raise CorruptedContentError(f"File {file_id} content is empty")

        handle = PreviewHandle(
            token=secrets.token_urlsafe(16),
            file_id=file_id,
            filename=entry.name,
            media_type=guess_media_type(entry.name),
            kind=preview_kind(entry.extension),
            content=bytes(content),
        )
        stale = self._by_file.get(file_id)
        if stale is not None:
            self.close(stale)
        while len(self._handles) >= self.max_open:
            oldest = next(iter(self._handles))
            logger.debug("Evicting preview %s", oldest)
            self.close(oldest)

        self._handles[handle.token] = handle
        self._by_file[file_id] = handle.token
        logger.debug("Opened preview %s for file %s", handle.token, file_id)
        return handle

    def get(self, token: str) -> PreviewHandle:
        handle = self._handles.get(token)
        if handle is None:
            raise NotFoundError("Preview", token)
        return handle

    def close(self, token: str) -> bool:
        """Release a handle. Returns False if it was already released."""
        handle = self._handles.pop(token, None)
        if handle is None:
            return False
        if self._by_file.get(handle.file_id) == token:
            del self._by_file[handle.file_id]
        logger.debug("Closed preview %s", token)
        return True

    def close_all(self) -> int:
        count = len(self._handles)
        self._handles.clear()
        self._by_file.clear()
        if count:
            logger.info("Released %d open preview(s)", count)
        return count

    @asynccontextmanager
    async def preview(self, db: AsyncSession, file_id: str) -> AsyncIterator[PreviewHandle]:
        handle = await self.open(db, file_id)
        try:
            yield handle
        finally:
            self.close(handle.token)
