"""Browsing view: current directory, search filter, sort order, pagination."""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.config import settings
from localdrive.services.drive_manager import DriveManager, Entry
from localdrive.utils.paths import RECENT, SHARED, STARRED, TRASH, validate_path


class SortKey(str, Enum):
    NAME = "name"
    MODIFIED = "modified"
    SIZE = "size"
    TYPE = "type"


def _size(entry: Entry) -> int:
    return getattr(entry, "size_bytes", 0) or 0


def sort_entries(entries: Sequence[Entry], sort_by: SortKey) -> list[Entry]:
    sort_by = SortKey(sort_by)
    if sort_by is SortKey.MODIFIED:
        return sorted(entries, key=lambda e: e.modified_at, reverse=True)
    if sort_by is SortKey.SIZE:
        return sorted(entries, key=_size, reverse=True)
    if sort_by is SortKey.TYPE:
        return sorted(entries, key=lambda e: (e.type, e.name.lower()))
    return sorted(entries, key=lambda e: e.name.lower())


class DriveView:
    """What the user is looking at. ``displayed`` feeds range selection."""

    def __init__(self, drive: DriveManager, per_page: int | None = None):
        self.drive = drive
        self.current_path: list[str] = []
        self.search_query = ""
        self.sort_by = SortKey.NAME
        self.page = 1
        self.per_page = per_page or settings.items_per_page
        self.displayed: list[Entry] = []

    def set_current_path(self, segments: Sequence[str]) -> None:
        self.current_path = validate_path(segments)
        self.page = 1

    def set_search_query(self, query: str) -> None:
        self.search_query = (query or "").strip()
        self.page = 1

    def set_sort_by(self, sort_by: SortKey | str) -> None:
        self.sort_by = SortKey(sort_by)
        self.page = 1

    def set_page(self, page: int) -> None:
        self.page = min(max(page, 1), self.total_pages)

    async def _source(self, db: AsyncSession) -> list[Entry]:
        path = self.current_path
        if path == [RECENT]:
            return await self.drive.get_all_recent(db)
        if path == [STARRED]:
            return await self.drive.get_favorites(db)
        if path in ([TRASH], [SHARED]):
            return []
        return await self.drive.get_items_by_path(db, path)

    async def load(self, db: AsyncSession) -> list[Entry]:
        entries = await self._source(db)
        if self.search_query:
            needle = self.search_query.lower()
            entries = [e for e in entries if needle in e.name.lower()]
        self.displayed = sort_entries(entries, self.sort_by)
        return self.displayed

    @property
    def displayed_ids(self) -> list[str]:
        return [e.id for e in self.displayed]

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(len(self.displayed) / self.per_page))

    @property
    def paginated_items(self) -> list[Entry]:
        start = (self.page - 1) * self.per_page
        return self.displayed[start:start + self.per_page]
