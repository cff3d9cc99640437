"""Tests for FolderStore: cascading move/rename, recursive delete, counts, tree."""

import io
import zipfile

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from localdrive.exceptions import DuplicatePathError, NotFoundError, ValidationError
from localdrive.models.file_entry import FileEntry
from localdrive.models.folder_entry import FolderEntry
from localdrive.services.archive import build_zip
from localdrive.utils.paths import encode


async def _row_counts(db):
    n_folders = await db.scalar(select(func.count()).select_from(FolderEntry))
    n_files = await db.scalar(select(func.count()).select_from(FileEntry))
    return n_folders, n_files


@pytest_asyncio.fixture
async def nested(db_session, folders, files):
    """A > B > f, plus a sibling X at root."""
    ids = {
        "A": await folders.create(db_session, "A", []),
        "B": await folders.create(db_session, "B", ["A"]),
        "X": await folders.create(db_session, "X", []),
    }
    ids["f"] = await files.create(db_session, "f", b"data", ["A", "B"])
    return ids


@pytest.mark.asyncio
async def test_create_folder(db_session, folders):
    folder_id = await folders.create(db_session, "Projects", ["Work"])
    folder = await folders.get_by_id(db_session, folder_id)
    assert folder.item_count == 0
    assert folder.segments == ["Work"]
    assert folder.identity_segments == ["Work", "Projects"]


@pytest.mark.asyncio
async def test_get_by_identity_path(db_session, folders, nested):
    folder = await folders.get_by_identity_path(db_session, ["A", "B"])
    assert folder.id == nested["B"]
    assert await folders.get_by_identity_path(db_session, ["A", "C"]) is None
    assert await folders.get_by_identity_path(db_session, []) is None


@pytest.mark.asyncio
async def test_root_folders(db_session, folders, nested):
    assert [f.name for f in await folders.get_root_folders(db_session)] == ["A", "X"]


class TestMove:
    @pytest.mark.asyncio
    async def test_scenario_b(self, db_session, folders, files, nested):
        """Moving A to its current path is a no-op; moving under X rewrites B and f."""
        await folders.move(db_session, nested["A"], [])
        assert (await folders.get_by_id(db_session, nested["B"])).segments == ["A"]

        await folders.move(db_session, nested["A"], ["X"])
        assert (await folders.get_by_id(db_session, nested["A"])).segments == ["X"]
        assert (await folders.get_by_id(db_session, nested["B"])).segments == ["X", "A"]
        assert (await files.get_by_id(db_session, nested["f"])).segments == ["X", "A", "B"]

    @pytest.mark.asyncio
    async def test_suffixes_preserved(self, db_session, folders, files):
        """Every descendant keeps the part of its path below the moved folder."""
        await folders.create(db_session, "Src", [])
        await folders.create(db_session, "Dst", [])
        layout = [["Src"], ["Src", "a"], ["Src", "a", "b"], ["Src", "c"]]
        for path in layout[1:]:
            await folders.create(db_session, path[-1], path[:-1])
        file_ids = {}
        for path in layout:
            file_ids[encode(path)] = await files.create(db_session, "leaf.txt", b"x", path)

        src = await folders.get_by_identity_path(db_session, ["Src"])
        await folders.move(db_session, src.id, ["Dst"])

        for old_key, file_id in file_ids.items():
            entry = await files.get_by_id(db_session, file_id)
            suffix = old_key.split("/")[1:]
            assert entry.segments == ["Dst", "Src", *suffix]
            assert entry.path.startswith(encode(["Dst", "Src"]))

    @pytest.mark.asyncio
    async def test_prefix_sibling_untouched(self, db_session, folders, files):
        """Folder 'Docs2' shares a string prefix with 'Docs' and must not move."""
        docs = await folders.create(db_session, "Docs", [])
        await folders.create(db_session, "Docs2", [])
        await folders.create(db_session, "Target", [])
        inside = await files.create(db_session, "in.txt", b"1", ["Docs"])
        outside = await files.create(db_session, "out.txt", b"2", ["Docs2"])

        await folders.move(db_session, docs, ["Target"])

        assert (await files.get_by_id(db_session, inside)).segments == ["Target", "Docs"]
        assert (await files.get_by_id(db_session, outside)).segments == ["Docs2"]

    @pytest.mark.asyncio
    async def test_into_itself_rejected(self, db_session, folders, nested):
        with pytest.raises(ValidationError):
            await folders.move(db_session, nested["A"], ["A", "B"])
        with pytest.raises(ValidationError):
            await folders.move(db_session, nested["A"], ["A"])

    @pytest.mark.asyncio
    async def test_missing_folder(self, db_session, folders):
        with pytest.raises(NotFoundError):
            await folders.move(db_session, "missing", [])


@pytest.mark.asyncio
async def test_rename_cascades(db_session, folders, files, nested):
    await folders.rename(db_session, nested["A"], "Alpha")

    a = await folders.get_by_id(db_session, nested["A"])
    assert a.name == "Alpha"
    assert a.slug == "alpha"
    assert (await folders.get_by_id(db_session, nested["B"])).segments == ["Alpha"]
    assert (await files.get_by_id(db_session, nested["f"])).segments == ["Alpha", "B"]


class TestDeleteRecursive:
    @pytest.mark.asyncio
    async def test_scenario_d(self, db_session, folders, files):
        """3 files + 1 subfolder holding 1 file: six rows disappear."""
        root = await folders.create(db_session, "Root", [])
        for name in ("1.txt", "2.txt", "3.txt"):
            await files.create(db_session, name, b"x", ["Root"])
        await folders.create(db_session, "Sub", ["Root"])
        await files.create(db_session, "deep.txt", b"x", ["Root", "Sub"])
        keep = await files.create(db_session, "keep.txt", b"x", [])

        before = await _row_counts(db_session)
        removed = await folders.delete_recursive(db_session, root)
        after = await _row_counts(db_session)

        assert removed == 6
        assert sum(before) - sum(after) == 6
        assert await folders.get_by_id(db_session, root) is None
        assert await files.get_by_id(db_session, keep) is not None

        remaining = await db_session.execute(
            select(FileEntry).where(FileEntry.path.like("Root%"))
        )
        assert remaining.scalars().all() == []

    @pytest.mark.asyncio
    async def test_prefix_sibling_survives(self, db_session, folders, files):
        docs = await folders.create(db_session, "Docs", [])
        await folders.create(db_session, "Docs2", [])
        survivor = await files.create(db_session, "s.txt", b"x", ["Docs2"])

        assert await folders.delete_recursive(db_session, docs) == 1
        assert await files.get_by_id(db_session, survivor) is not None
        assert await folders.get_by_identity_path(db_session, ["Docs2"]) is not None


@pytest.mark.asyncio
async def test_shallow_delete_leaves_descendants(db_session, folders, files, nested):
    removed = await folders.delete(db_session, nested["A"])

    assert removed.id == nested["A"]
    assert await folders.get_by_id(db_session, nested["A"]) is None
    assert (await folders.get_by_id(db_session, nested["B"])).segments == ["A"]
    assert (await files.get_by_id(db_session, nested["f"])).segments == ["A", "B"]
    with pytest.raises(NotFoundError):
        await folders.delete(db_session, nested["A"])


class TestItemCounts:
    @pytest.mark.asyncio
    async def test_counts_direct_children_only(self, db_session, folders, files, nested):
        await files.create(db_session, "g", b"x", ["A"])
        assert await folders.update_item_count(db_session, nested["A"]) == 2
        assert await folders.update_item_count(db_session, nested["B"]) == 1
        assert (await folders.get_by_id(db_session, nested["A"])).item_count == 2

    @pytest.mark.asyncio
    async def test_unchanged_count_not_rewritten(self, db_session, folders, nested):
        await folders.update_item_count(db_session, nested["X"])
        stamp = (await folders.get_by_id(db_session, nested["X"])).modified_at
        await folders.update_item_count(db_session, nested["X"])
        assert (await folders.get_by_id(db_session, nested["X"])).modified_at == stamp


@pytest.mark.asyncio
async def test_children_listing_folders_first(db_session, folders, files):
    await files.create(db_session, "a-file.txt", b"x", [])
    await folders.create(db_session, "z-folder", [])
    children = await folders.get_children_by_path(db_session, [])
    assert [c.type for c in children] == ["folder", "file"]


@pytest.mark.asyncio
async def test_get_with_children(db_session, folders, nested):
    folder = await folders.get_with_children(db_session, nested["A"])
    assert [c.name for c in folder.children] == ["B"]
    assert await folders.get_with_children(db_session, "missing") is None


class TestBuildTree:
    @pytest.mark.asyncio
    async def test_nesting(self, db_session, folders, files, nested):
        await files.create(db_session, "root.txt", b"x", [])
        roots = await folders.build_tree(db_session)

        assert [r.name for r in roots] == ["A", "X"]
        a = roots[0]
        assert [c.name for c in a.children] == ["B"]
        assert [f.name for f in a.children[0].files] == ["f"]

    @pytest.mark.asyncio
    async def test_duplicate_identity_paths_detected(self, db_session, folders):
        """Two folders at the same location cannot both be placed in the tree."""
        await folders.create(db_session, "Same", [])
        await folders.create(db_session, "Same", [])
        with pytest.raises(DuplicatePathError):
            await folders.build_tree(db_session)


@pytest.mark.asyncio
async def test_stats_are_recursive(db_session, folders, files, nested):
    await files.create(db_session, "top.bin", b"12345", ["A"])
    stats = await folders.get_stats(db_session, nested["A"])
    assert stats.file_count == 2
    assert stats.subfolder_count == 1
    assert stats.total_size == 9


@pytest.mark.asyncio
async def test_download_zip(db_session, folders, files, nested):
    await folders.create(db_session, "Empty", ["A"])
    await files.create(db_session, "top.txt", b"top", ["A"])

    payload = await folders.download(db_session, nested["A"])
    assert payload.filename == "A.zip"
    assert payload.media_type == "application/zip"

    with zipfile.ZipFile(io.BytesIO(payload.content)) as zf:
        names = set(zf.namelist())
        assert names == {"top.txt", "B/f", "Empty/"}
        assert zf.read("B/f") == b"data"


def test_zip_file_without_content_still_populates_folder():
    archive = build_zip(
        [(["Blobless"], "gone.bin", None), (["Full"], "x.txt", b"x")],
        [["Blobless"], ["Full"], ["Empty"]],
    )
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        assert set(zf.namelist()) == {"Full/x.txt", "Empty/"}
