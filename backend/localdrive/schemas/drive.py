"""Drive schemas: listing items, tree nodes, stats, and request bodies."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field

from localdrive.models.file_entry import FileEntry
from localdrive.models.folder_entry import FolderEntry


class ItemType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class FileItem(BaseModel):
    """File metadata for listing (never carries content)."""
    id: str
    type: Literal["file"] = "file"
    name: str
    slug: str
    extension: str
    size_bytes: int
    path: list[str]
    is_favorite: bool = False
    created_at: datetime
    modified_at: datetime

    @classmethod
    def from_entry(cls, entry: FileEntry) -> "FileItem":
        return cls(
            id=entry.id,
            name=entry.name,
            slug=entry.slug,
            extension=entry.extension,
            size_bytes=entry.size_bytes or 0,
            path=entry.segments,
            is_favorite=bool(entry.is_favorite),
            created_at=entry.created_at,
            modified_at=entry.modified_at,
        )


class FolderItem(BaseModel):
    """Folder metadata for listing."""
    id: str
    type: Literal["folder"] = "folder"
    name: str
    slug: str
    path: list[str]
    item_count: int = 0  # direct children
    is_favorite: bool = False
    created_at: datetime
    modified_at: datetime

    @classmethod
    def from_entry(cls, entry: FolderEntry) -> "FolderItem":
        return cls(
            id=entry.id,
            name=entry.name,
            slug=entry.slug,
            path=entry.segments,
            item_count=entry.item_count,
            is_favorite=bool(entry.is_favorite),
            created_at=entry.created_at,
            modified_at=entry.modified_at,
        )


DriveItem = Union[FolderItem, FileItem]


def to_item(entry: FileEntry | FolderEntry) -> DriveItem:
    if isinstance(entry, FolderEntry):
        return FolderItem.from_entry(entry)
    return FileItem.from_entry(entry)


class FolderTreeNode(FolderItem):
    """Folder with nested subfolders and its own files."""
    children: list["FolderTreeNode"] = Field(default_factory=list)
    files: list[FileItem] = Field(default_factory=list)


class FolderWithChildren(FolderItem):
    """Folder with its direct children (folders first, then files)."""
    children: list[DriveItem] = Field(default_factory=list)


class FolderStats(BaseModel):
    """Recursive statistics of a folder's descendants."""
    file_count: int
    subfolder_count: int
    total_size: int


class StorageStats(BaseModel):
    """Aggregate statistics across the whole namespace."""
    total_size: int
    file_count: int
    folder_count: int
    total_items: int


class DownloadPayload(BaseModel):
    """Content handed to the boundary layer for export."""
    filename: str
    media_type: str
    content: bytes


class BulkFailure(BaseModel):
    id: str
    error: str
    message: str


class BulkResult(BaseModel):
    """Per-item outcome of a bulk action."""
    action: str
    succeeded: list[str] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class BulkDownload(BulkResult):
    """Bulk download outcome with the exported payloads."""
    payloads: list[DownloadPayload] = Field(default_factory=list)


class ItemListing(BaseModel):
    """One page of a directory listing."""
    path: list[str]
    items: list[DriveItem]
    page: int
    per_page: int
    total_items: int
    total_pages: int


class CreateFolderRequest(BaseModel):
    name: str
    path: list[str] = Field(default_factory=list)


class RenameRequest(BaseModel):
    name: str


class MoveRequest(BaseModel):
    path: list[str] = Field(default_factory=list)


class BulkRequest(BaseModel):
    ids: list[str]


class BulkMoveRequest(BulkRequest):
    path: list[str] = Field(default_factory=list)


class PreviewInfo(BaseModel):
    token: str
    file_id: str
    filename: str
    media_type: str
    kind: str  # image, pdf, other
    size_bytes: int
