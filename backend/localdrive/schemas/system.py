"""System status schemas."""

from pydantic import BaseModel


class SystemStatus(BaseModel):
    """Host resources and storage footprint of the active namespace."""
    namespace: str
    database_bytes: int
    cpu_percent: float
    memory_total_mb: float
    memory_percent: float
    disk_total_gb: float
    disk_used_gb: float
    disk_percent: float
    open_previews: int = 0


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    service: str = "localdrive"
