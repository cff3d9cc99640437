"""API route registration."""

from fastapi import APIRouter

from localdrive.api.routes import drive, health, system

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(system.router, prefix="/system", tags=["system"])
api_router.include_router(drive.router, prefix="/drive", tags=["drive"])
