"""FastAPI dependency injection: per-namespace drive services."""

from __future__ import annotations

from fastapi import Depends

from localdrive.database import get_namespace
from localdrive.services import get_drive_manager, get_preview_registry
from localdrive.services.drive_manager import DriveManager
from localdrive.services.preview import PreviewRegistry


async def get_drive(namespace: str = Depends(get_namespace)) -> DriveManager:
    return get_drive_manager(namespace)


async def get_previews(namespace: str = Depends(get_namespace)) -> PreviewRegistry:
    return get_preview_registry(namespace)
