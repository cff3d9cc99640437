"""LocalDrive FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from localdrive import __version__
from localdrive.api.errors import drive_error_handler
from localdrive.config import settings
from localdrive.database import dispose_engines, get_session_factory, init_db, normalize_namespace
from localdrive.exceptions import DriveError
from localdrive.services import init_services, shutdown_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # === STARTUP ===
    _setup_logging()

    for d in (settings.data_dir, settings.database_dir, settings.log_dir):
        Path(d).mkdir(parents=True, exist_ok=True)

    namespace = normalize_namespace(settings.default_namespace)
    await init_db(namespace)
    logger.info("LocalDrive v%s started, listening on %s:%s", __version__, settings.host, settings.port)

    async with get_session_factory(namespace)() as db:
        await init_services(db, namespace)

    try:
        yield
    finally:
        # === SHUTDOWN ===
        await shutdown_services()
        await dispose_engines()
        logger.info("LocalDrive shutting down")


def _setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("aiosqlite", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Application factory."""
    from localdrive.api.routes import api_router

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        debug=settings.debug,
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DriveError, drive_error_handler)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


def run(**kwargs: Any) -> None:
    import uvicorn

    uvicorn.run(
        "localdrive.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.uvicorn_workers,
        log_level=settings.log_level.lower(),
        **kwargs,
    )


if __name__ == "__main__":
    run()
