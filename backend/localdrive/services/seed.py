"""Demo content for an empty namespace."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.services.drive_manager import DriveManager

logger = logging.getLogger(__name__)

DEMO_FOLDERS: list[tuple[list[str], str]] = [
    ([], "Documents"),
    ([], "Pictures"),
    (["Documents"], "Work"),
    (["Documents"], "Personal"),
]

DEMO_FILES: list[tuple[list[str], str, bytes]] = [
    ([], "README.txt", b"Welcome to LocalDrive.\n"),
    (["Documents"], "notes.md", b"# Notes\n\n- buy milk\n"),
    (["Documents", "Work"], "report.csv", b"quarter,total\nQ1,120\nQ2,140\n"),
    (["Documents", "Personal"], "todo.txt", b"call the bank\n"),
]


async def seed_drive(db: AsyncSession, drive: DriveManager) -> bool:
    """Create the demo hierarchy unless the namespace already holds anything."""
    stats = await drive.get_storage_stats(db)
    if stats.total_items:
        logger.debug("Namespace not empty (%d items), skipping seed", stats.total_items)
        return False

    for path, name in DEMO_FOLDERS:
        await drive.create_folder(db, name, path)
    for path, name, content in DEMO_FILES:
        await drive.upload_file(db, name, content, path)

    logger.info("Seeded demo drive: %d folders, %d files", len(DEMO_FOLDERS), len(DEMO_FILES))
    return True
