"""Drive services: per-namespace registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from localdrive.config import settings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from localdrive.services.drive_manager import DriveManager
    from localdrive.services.preview import PreviewRegistry

logger = logging.getLogger(__name__)

_drive_managers: dict[str, DriveManager] = {}
_preview_registries: dict[str, PreviewRegistry] = {}


def get_drive_manager(namespace: str) -> DriveManager:
    """One DriveManager per namespace, so its structure lock spans all requests."""
    from localdrive.services.drive_manager import DriveManager

    manager = _drive_managers.get(namespace)
    if manager is None:
        manager = DriveManager()
        _drive_managers[namespace] = manager
    return manager


def get_preview_registry(namespace: str) -> PreviewRegistry:
    from localdrive.services.preview import PreviewRegistry

    registry = _preview_registries.get(namespace)
    if registry is None:
        registry = PreviewRegistry()
        _preview_registries[namespace] = registry
    return registry


def open_preview_count() -> int:
    return sum(len(r) for r in _preview_registries.values())


async def init_services(db_session: AsyncSession, namespace: str) -> None:
    """Wire up the default namespace; seeds demo data when enabled."""
    from localdrive.services.seed import seed_drive

    drive = get_drive_manager(namespace)
    if settings.seed_demo_data:
        await seed_drive(db_session, drive)
    logger.info("Drive services initialized for namespace '%s'", namespace)


async def shutdown_services() -> None:
    """Release preview handles and forget cached managers."""
    for registry in _preview_registries.values():
        registry.close_all()
    _preview_registries.clear()
    _drive_managers.clear()
