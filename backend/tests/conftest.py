"""Test fixtures: in-memory SQLite database and FastAPI test client."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from localdrive.api.deps import get_drive, get_previews
from localdrive.database import get_db
from localdrive.main import create_app
from localdrive.models.base import Base
from localdrive.services.drive_manager import DriveManager
from localdrive.services.file_store import FileStore
from localdrive.services.folder_store import FolderStore
from localdrive.services.preview import PreviewRegistry


@pytest_asyncio.fixture
async def db_session():
    """Provide an async in-memory SQLite session for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def files():
    return FileStore(max_storage_bytes=0)


@pytest.fixture
def folders():
    return FolderStore()


@pytest.fixture
def drive(files, folders):
    return DriveManager(files=files, folders=folders)


@pytest.fixture
def previews(files):
    return PreviewRegistry(files=files)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, drive: DriveManager, previews: PreviewRegistry):
    """Provide an async test client with overridden DB and service dependencies."""
    app = create_app()

    async def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_drive] = lambda: drive
    app.dependency_overrides[get_previews] = lambda: previews

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
