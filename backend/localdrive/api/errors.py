"""Map drive errors onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from localdrive.exceptions import DriveError, StorageFailure

logger = logging.getLogger(__name__)


async def drive_error_handler(request: Request, exc: DriveError) -> JSONResponse:
    if isinstance(exc, StorageFailure):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )
