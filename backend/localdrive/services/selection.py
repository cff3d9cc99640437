"""Selection state and bulk actions over the selected items."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.exceptions import DriveError, NotFoundError, ValidationError
from localdrive.schemas.drive import BulkDownload, BulkFailure, BulkResult, ItemType
from localdrive.services.drive_manager import DriveManager
from localdrive.utils.paths import encode, is_reserved, is_within, unique_name, validate_path

logger = logging.getLogger(__name__)


@dataclass
class SelectionState:
    """Selected ids in click order, plus the anchor for range selection.

    A range click unions the span between the anchor and the clicked id
    into the selection and leaves the anchor where it was, so consecutive
    range clicks all extend from the same starting item.
    """

    selected: list[str] = field(default_factory=list)
    anchor: str | None = None

    def __contains__(self, item_id: str) -> bool:
        return item_id in self.selected

    def __len__(self) -> int:
        return len(self.selected)

    def click(
        self,
        item_id: str,
        displayed_ids: Sequence[str],
        *,
        toggle: bool = False,
        extend: bool = False,
    ) -> list[str]:
        if toggle:
            self.toggle(item_id)
        elif extend and self.anchor is not None and self.anchor in displayed_ids:
            self.extend_to(item_id, displayed_ids)
        else:
            self.select_only(item_id)
        return list(self.selected)

    def select_only(self, item_id: str) -> None:
        self.selected = [item_id]
        self.anchor = item_id

    def toggle(self, item_id: str) -> None:
        if item_id in self.selected:
            self.selected.remove(item_id)
        else:
            self.selected.append(item_id)
        self.anchor = item_id

    def extend_to(self, item_id: str, displayed_ids: Sequence[str]) -> None:
        if item_id not in displayed_ids:
            raise ValidationError(f"Item {item_id} is not in the displayed list")
        start = displayed_ids.index(self.anchor)
        end = displayed_ids.index(item_id)
        low, high = min(start, end), max(start, end)
        for other in displayed_ids[low:high + 1]:
            if other not in self.selected:
                self.selected.append(other)

    def select_all(self, displayed_ids: Iterable[str]) -> None:
        self.selected = list(dict.fromkeys(displayed_ids))

    def clear(self) -> None:
        self.selected = []
        self.anchor = None


@dataclass
class _Target:
    item_id: str
    item_type: ItemType | None = None
    location: str = ""
    error: DriveError | None = None


class BulkCoordinator:
    """Applies one action to every selected item, isolating failures per item."""

    def __init__(self, drive: DriveManager, selection: SelectionState | None = None):
        self.drive = drive
        self.selection = selection or SelectionState()

    async def _resolve(self, db: AsyncSession, ids: Sequence[str]) -> list[_Target]:
        targets = []
        for item_id in dict.fromkeys(ids):
            try:
                entry = await self.drive.resolve_item(db, item_id)
            except NotFoundError as exc:
                targets.append(_Target(item_id, error=exc))
                continue
            location = entry.identity_key if entry.type == "folder" else entry.path
            targets.append(_Target(item_id, ItemType(entry.type), location))
        return targets

    def _ids(self, ids: Sequence[str] | None) -> list[str]:
        return list(self.selection.selected if ids is None else ids)

    @staticmethod
    def _fail(result: BulkResult, item_id: str, exc: DriveError) -> None:
        result.failed.append(
            BulkFailure(id=item_id, error=type(exc).__name__, message=exc.message)
        )

    async def _run(
        self,
        db: AsyncSession,
        result: BulkResult,
        ids: Sequence[str],
        apply: Callable[[_Target], Awaitable[None]],
    ) -> BulkResult:
        for target in await self._resolve(db, ids):
            if target.error is not None:
                self._fail(result, target.item_id, target.error)
                continue
            try:
                await apply(target)
            except DriveError as exc:
                self._fail(result, target.item_id, exc)
                continue
            result.succeeded.append(target.item_id)

        if result.failed:
            logger.warning(
                "Bulk %s: %d succeeded, %d failed",
                result.action, len(result.succeeded), len(result.failed),
            )
        return result

    async def move(
        self, db: AsyncSession, new_path: Sequence[str], ids: Sequence[str] | None = None
    ) -> BulkResult:
        segments = validate_path(new_path)
        if is_reserved(segments):
            raise ValidationError(f"Cannot move items into '{segments[0]}'")

        async def apply(target: _Target) -> None:
            await self.drive.move_item(db, target.item_id, target.item_type, segments)

        result = await self._run(db, BulkResult(action="move"), self._ids(ids), apply)
        self.selection.clear()
        logger.info("Bulk moved %d item(s) to '%s'", len(result.succeeded), encode(segments))
        return result

    async def delete(self, db: AsyncSession, ids: Sequence[str] | None = None) -> BulkResult:
        """Delete every selected item.

        An item that vanished because an earlier item in the same batch was
        one of its ancestor folders counts as deleted.
        """
        removed_folders: list[str] = []

        async def apply(target: _Target) -> None:
            try:
                await self.drive.delete_item(db, target.item_id, target.item_type)
            except NotFoundError:
                if not any(is_within(target.location, key) for key in removed_folders):
                    raise
                return
            if target.item_type is ItemType.FOLDER:
                removed_folders.append(target.location)

        result = await self._run(db, BulkResult(action="delete"), self._ids(ids), apply)
        self.selection.clear()
        logger.info("Bulk deleted %d item(s)", len(result.succeeded))
        return result

    async def download(self, db: AsyncSession, ids: Sequence[str] | None = None) -> BulkDownload:
        """Export every selected item. Filenames are unique within the batch."""
        result = BulkDownload(action="download")
        taken: set[str] = set()

        async def apply(target: _Target) -> None:
            payload = await self.drive.download_item(db, target.item_id, target.item_type)
            filename = unique_name(payload.filename, taken)
            if filename != payload.filename:
                payload = payload.model_copy(update={"filename": filename})
            result.payloads.append(payload)

        await self._run(db, result, self._ids(ids), apply)
        return result
