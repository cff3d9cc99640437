"""Disk space utilities."""

import shutil
from pathlib import Path


def get_disk_usage(path: str | Path) -> dict:
    """Disk usage of the filesystem holding ``path`` (nearest existing parent)."""
    target = Path(path)
    while not target.exists() and target != target.parent:
        target = target.parent
    usage = shutil.disk_usage(str(target))
    return {
        "total_bytes": usage.total,
        "used_bytes": usage.used,
        "free_bytes": usage.free,
        "percent": round(usage.used / usage.total * 100, 1) if usage.total > 0 else 0,
    }


def get_file_size(path: str | Path) -> int:
    """Size of a database file plus its WAL/SHM companions; 0 if absent."""
    base = Path(path)
    total = 0
    for candidate in (base, base.with_name(base.name + "-wal"), base.with_name(base.name + "-shm")):
        if candidate.is_file():
            total += candidate.stat().st_size
    return total
