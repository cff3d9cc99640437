"""File entry: one stored file, located by its containing folder's path."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer, LargeBinary, Text
from sqlalchemy.orm import Mapped, mapped_column

from localdrive.models.base import Base, utcnow
from localdrive.utils.paths import decode


class FileEntry(Base):
    __tablename__ = "drive_files"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(500), nullable=False)
    extension: Mapped[str] = mapped_column(String(50), nullable=False, default="", index=True)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Encoded path of the containing folder ("" = root)
    path: Mapped[str] = mapped_column(Text, nullable=False, default="", index=True)
    is_favorite: Mapped[int] = mapped_column(Integer, default=0, index=True)
    content: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True, deferred=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    modified_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    @property
    def segments(self) -> list[str]:
        return decode(self.path)

    @property
    def type(self) -> str:
        return "file"

    def __repr__(self) -> str:
        return f"<FileEntry(id={self.id}, path='{self.path}', name='{self.name}')>"
