"""SQLAlchemy async engines & sessions: one SQLite file per drive namespace."""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import AsyncGenerator

from fastapi import Header
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from localdrive.config import settings
from localdrive.models import Base
from localdrive.utils.paths import slugify

logger = logging.getLogger(__name__)

_engines: dict[str, AsyncEngine] = {}
_session_factories: dict[str, async_sessionmaker[AsyncSession]] = {}
_initialized: set[str] = set()

# slugify never emits "_", so a digest suffix cannot collide with a plain slug
_HASHED_KEY_RE = re.compile(r"[\w.-]*_[0-9a-f]{12}")


def _configure_sqlite(dbapi_conn, _connection_record):
    """Apply SQLite PRAGMAs on every new connection."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def normalize_namespace(namespace: str | None) -> str:
    """Map an opaque identifier onto a filesystem-safe namespace key.

    Identifiers that are already slugs are used as-is. Anything else keeps its
    slug for readability plus a digest of the raw value, so distinct
    identifiers such as ``User_1`` and ``user-1`` never share a database.
    Keys are stable under repeated normalization.
    """
    raw = (namespace or "").strip() or settings.default_namespace.strip() or "default"
    slug = slugify(raw)
    if raw == slug or _HASHED_KEY_RE.fullmatch(raw):
        return raw
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:12]
    return f"{slug or 'ns'}_{digest}"


def database_path(namespace: str) -> Path:
    return Path(settings.database_dir) / f"drive_{normalize_namespace(namespace)}.db"


def get_engine(namespace: str) -> AsyncEngine:
    """Return (and cache) the engine backing a namespace."""
    key = normalize_namespace(namespace)
    engine = _engines.get(key)
    if engine is not None:
        return engine

    db_path = database_path(key)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=settings.debug and settings.log_level == "DEBUG",
        pool_size=settings.max_db_connections,
        max_overflow=0,
    )
    event.listen(engine.sync_engine, "connect", _configure_sqlite)
    _engines[key] = engine
    logger.info("Opened drive namespace '%s' at %s", key, db_path)
    return engine


def get_session_factory(namespace: str) -> async_sessionmaker[AsyncSession]:
    key = normalize_namespace(namespace)
    factory = _session_factories.get(key)
    if factory is None:
        factory = async_sessionmaker(get_engine(key), class_=AsyncSession, expire_on_commit=False)
        _session_factories[key] = factory
    return factory


async def init_db(namespace: str) -> None:
    """Create drive tables for a namespace (idempotent)."""
    key = normalize_namespace(namespace)
    if key in _initialized:
        return
    async with get_engine(key).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    _initialized.add(key)
    logger.info("Database tables created/verified for namespace '%s'", key)


async def get_namespace(x_drive_namespace: str | None = Header(default=None)) -> str:
    """FastAPI dependency: namespace from the X-Drive-Namespace header."""
    return normalize_namespace(x_drive_namespace)


async def get_db(x_drive_namespace: str | None = Header(default=None)) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an async DB session for the request's namespace."""
    namespace = normalize_namespace(x_drive_namespace)
    await init_db(namespace)
    async with get_session_factory(namespace)() as session:
        try:
            yield session
        finally:
            await session.close()


async def dispose_engines() -> None:
    for key, engine in list(_engines.items()):
        await engine.dispose()
        logger.debug("Disposed engine for namespace '%s'", key)
    _engines.clear()
    _session_factories.clear()
    _initialized.clear()
