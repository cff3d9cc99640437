"""Folder entry: located by its parent's path; identity path is path + [name]."""

from datetime import datetime

from sqlalchemy import String, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from localdrive.models.base import Base, utcnow
from localdrive.utils.paths import decode, encode, identity_path


class FolderEntry(Base):
    __tablename__ = "drive_folders"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(500), nullable=False)
    # Encoded path of the parent folder ("" = root)
    path: Mapped[str] = mapped_column(Text, nullable=False, default="", index=True)
    # Direct children only (files + folders)
    item_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_favorite: Mapped[int] = mapped_column(Integer, default=0, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    modified_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    @property
    def segments(self) -> list[str]:
        return decode(self.path)

    @property
    def identity_segments(self) -> list[str]:
        return identity_path(self.segments, self.name)

    @property
    def identity_key(self) -> str:
        return encode(self.identity_segments)

    @property
    def type(self) -> str:
        return "folder"

    def __repr__(self) -> str:
        return f"<FolderEntry(id={self.id}, path='{self.path}', name='{self.name}', items={self.item_count})>"
