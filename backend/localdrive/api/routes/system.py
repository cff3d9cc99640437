"""System status: host resources and namespace storage footprint."""

import psutil
from fastapi import APIRouter, Depends

from localdrive.config import settings
from localdrive.database import database_path, get_namespace
from localdrive.schemas.system import SystemStatus
from localdrive.services import open_preview_count
from localdrive.utils.storage import get_disk_usage, get_file_size

router = APIRouter()


@router.get("/status", response_model=SystemStatus)
async def system_status(namespace: str = Depends(get_namespace)):
    """CPU, RAM, data-dir disk usage, and the namespace database size."""
    mem = psutil.virtual_memory()
    disk = get_disk_usage(settings.data_dir)

    return SystemStatus(
        namespace=namespace,
        database_bytes=get_file_size(database_path(namespace)),
        cpu_percent=psutil.cpu_percent(interval=None),
        memory_total_mb=round(mem.total / 1024 / 1024, 1),
        memory_percent=mem.percent,
        disk_total_gb=round(disk["total_bytes"] / 1024 / 1024 / 1024, 2),
        disk_used_gb=round(disk["used_bytes"] / 1024 / 1024 / 1024, 2),
        disk_percent=disk["percent"],
        open_previews=open_preview_count(),
    )
