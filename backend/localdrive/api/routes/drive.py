"""Drive API routes: browsing, mutations, bulk actions, previews."""

from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from localdrive.api.deps import get_drive, get_previews
from localdrive.database import get_db
from localdrive.exceptions import NotFoundError
from localdrive.schemas.drive import (
    BulkMoveRequest,
    BulkRequest,
    BulkResult,
    CreateFolderRequest,
    DownloadPayload,
    DriveItem,
    FileItem,
    FolderItem,
    FolderStats,
    FolderTreeNode,
    FolderWithChildren,
    ItemListing,
    ItemType,
    MoveRequest,
    PreviewInfo,
    RenameRequest,
    StorageStats,
    to_item,
)
from localdrive.services.archive import build_zip
from localdrive.services.drive_manager import DriveManager
from localdrive.services.preview import PreviewRegistry
from localdrive.services.selection import BulkCoordinator
from localdrive.services.view import DriveView, SortKey

router = APIRouter()


def _attachment(payload: DownloadPayload) -> Response:
    disposition = f"attachment; filename*=UTF-8''{quote(payload.filename)}"
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Content-Disposition": disposition},
    )


# ----------------------------
# Browsing
# ----------------------------
@router.get("/items", response_model=ItemListing)
async def list_items(
    path: list[str] = Query(default=[]),
    search: str = "",
    sort: SortKey = SortKey.NAME,
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1, le=500),
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    """One page of a directory, or of the Recent/Starred views."""
    view = DriveView(drive, per_page=per_page)
    view.set_current_path(path)
    view.set_search_query(search)
    view.set_sort_by(sort)
    await view.load(db)
    view.set_page(page)
    return ItemListing(
        path=view.current_path,
        items=[to_item(e) for e in view.paginated_items],
        page=view.page,
        per_page=view.per_page,
        total_items=len(view.displayed),
        total_pages=view.total_pages,
    )


@router.get("/search", response_model=list[DriveItem])
async def search_items(
    q: str = "",
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    return [to_item(e) for e in await drive.search(db, q)]


@router.get("/recent", response_model=list[DriveItem])
async def recent_items(drive: DriveManager = Depends(get_drive), db: AsyncSession = Depends(get_db)):
    return [to_item(e) for e in await drive.get_all_recent(db)]


@router.get("/favorites", response_model=list[DriveItem])
async def favorite_items(drive: DriveManager = Depends(get_drive), db: AsyncSession = Depends(get_db)):
    return [to_item(e) for e in await drive.get_favorites(db)]


@router.get("/stats", response_model=StorageStats)
async def storage_stats(drive: DriveManager = Depends(get_drive), db: AsyncSession = Depends(get_db)):
    """Totals across the whole namespace."""
    return await drive.get_storage_stats(db)


@router.get("/tree", response_model=list[FolderTreeNode])
async def folder_tree(drive: DriveManager = Depends(get_drive), db: AsyncSession = Depends(get_db)):
    return await drive.build_tree(db)


@router.get("/folders/{folder_id}", response_model=FolderWithChildren)
async def get_folder(
    folder_id: str,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    folder = await drive.folders.get_with_children(db, folder_id)
    if folder is None:
        raise NotFoundError("Folder", folder_id)
    return folder


@router.get("/folders/{folder_id}/stats", response_model=FolderStats)
async def folder_stats(
    folder_id: str,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    """Recursive descendant counts and size."""
    return await drive.get_folder_stats(db, folder_id)


# ----------------------------
# Mutations
# ----------------------------
@router.post("/folders", response_model=FolderItem, status_code=201)
async def create_folder(
    body: CreateFolderRequest,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    folder_id = await drive.create_folder(db, body.name, body.path)
    return FolderItem.from_entry(await drive.folders.require(db, folder_id))


@router.post("/files", response_model=list[FileItem], status_code=201)
async def upload_files(
    files: list[UploadFile] = File(...),
    path: list[str] = Form(default=[]),
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    """Multipart upload of one or more files into ``path``."""
    batch = [(upload.filename or "", await upload.read()) for upload in files]
    ids = await drive.upload_files(db, batch, path)
    return [FileItem.from_entry(await drive.files.require(db, file_id)) for file_id in ids]


@router.post("/items/{item_type}/{item_id}/rename", response_model=DriveItem)
async def rename_item(
    item_type: ItemType,
    item_id: str,
    body: RenameRequest,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    await drive.rename_item(db, item_id, item_type, body.name)
    return to_item(await drive.resolve_item(db, item_id))


@router.post("/items/{item_type}/{item_id}/move", response_model=DriveItem)
async def move_item(
    item_type: ItemType,
    item_id: str,
    body: MoveRequest,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    await drive.move_item(db, item_id, item_type, body.path)
    return to_item(await drive.resolve_item(db, item_id))


@router.post("/items/{item_type}/{item_id}/favorite")
async def toggle_favorite(
    item_type: ItemType,
    item_id: str,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    is_favorite = await drive.toggle_favorite(db, item_id, item_type)
    return {"id": item_id, "is_favorite": is_favorite}


@router.delete("/items/{item_type}/{item_id}")
async def delete_item(
    item_type: ItemType,
    item_id: str,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    """Files are deleted alone; folders take everything below them."""
    removed = await drive.delete_item(db, item_id, item_type)
    return {"id": item_id, "removed": removed}


@router.get("/items/{item_type}/{item_id}/download")
async def download_item(
    item_type: ItemType,
    item_id: str,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    """File content, or a ZIP of a folder's descendants."""
    return _attachment(await drive.download_item(db, item_id, item_type))


# ----------------------------
# Bulk
# ----------------------------
@router.post("/bulk/move", response_model=BulkResult)
async def bulk_move(
    body: BulkMoveRequest,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    return await BulkCoordinator(drive).move(db, body.path, body.ids)


@router.post("/bulk/delete", response_model=BulkResult)
async def bulk_delete(
    body: BulkRequest,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    return await BulkCoordinator(drive).delete(db, body.ids)


@router.post("/bulk/download")
async def bulk_download(
    body: BulkRequest,
    drive: DriveManager = Depends(get_drive),
    db: AsyncSession = Depends(get_db),
):
    """All selected items bundled in one ZIP; failures listed in headers."""
    result = await BulkCoordinator(drive).download(db, body.ids)
    archive = build_zip(([], p.filename, p.content) for p in result.payloads)
    headers = {
        "Content-Disposition": "attachment; filename=download.zip",
        "X-Bulk-Succeeded": str(len(result.succeeded)),
        "X-Bulk-Failed": ",".join(f.id for f in result.failed),
    }
    return Response(content=archive, media_type="application/zip", headers=headers)


# ----------------------------
# Previews
# ----------------------------
@router.post("/previews/{file_id}", response_model=PreviewInfo, status_code=201)
async def open_preview(
    file_id: str,
    previews: PreviewRegistry = Depends(get_previews),
    db: AsyncSession = Depends(get_db),
):
    handle = await previews.open(db, file_id)
    return handle.info()


@router.get("/previews/{token}")
async def fetch_preview(token: str, previews: PreviewRegistry = Depends(get_previews)):
    handle = previews.get(token)
    return Response(content=handle.content, media_type=handle.media_type)


@router.delete("/previews/{token}", status_code=204)
async def close_preview(token: str, previews: PreviewRegistry = Depends(get_previews)):
    if not previews.close(token):
        raise NotFoundError("Preview", token)
    return Response(status_code=204)
