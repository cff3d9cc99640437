"""SQLAlchemy ORM models for LocalDrive."""

from localdrive.models.base import Base
from localdrive.models.file_entry import FileEntry
from localdrive.models.folder_entry import FolderEntry

__all__ = [
    "Base",
    "FileEntry",
    "FolderEntry",
]
