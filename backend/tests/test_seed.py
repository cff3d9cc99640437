"""Tests for demo seeding."""

import pytest

from localdrive.services.seed import DEMO_FILES, DEMO_FOLDERS, seed_drive


@pytest.mark.asyncio
async def test_seed_empty_namespace(db_session, drive):
    assert await seed_drive(db_session, drive) is True

    stats = await drive.get_storage_stats(db_session)
    assert stats.folder_count == len(DEMO_FOLDERS)
    assert stats.file_count == len(DEMO_FILES)

    documents = await drive.folders.get_by_identity_path(db_session, ["Documents"])
    assert documents.item_count == 3


@pytest.mark.asyncio
async def test_seed_skips_non_empty(db_session, drive):
    await drive.create_folder(db_session, "Mine", [])
    assert await seed_drive(db_session, drive) is False
    assert (await drive.get_storage_stats(db_session)).total_items == 1
