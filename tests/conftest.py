import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Ensure project root is on sys.path so `import transfer_ack` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Force test settings before any application imports build the engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["POLLER_ENABLED"] = "false"
os.environ["PROVIDER_CLIENT"] = "mock"

from transfer_ack.db import base  # noqa: E402
from transfer_ack.db.base import Base  # noqa: E402
# Import all models to register them with Base.metadata
import transfer_ack.db.models  # noqa: E402,F401


async def _create_factory(url: str, **engine_kwargs):
    engine = create_async_engine(url, echo=False, future=True, **engine_kwargs)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    return engine, factory


@pytest_asyncio.fixture
async def test_db(monkeypatch):
    """
    Provide a session factory over a fresh in-memory database.

    The application's default session factory is pointed at it too, so code
    paths that open their own UnitOfWork see the same data.
    """
    engine, factory = await _create_factory("sqlite+aiosqlite:///:memory:")
    monkeypatch.setattr(base, "engine", engine)
    monkeypatch.setattr(base, "AsyncSessionLocal", factory)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def file_db(tmp_path):
    """
    Session factory over a file-backed database.

    Unlike the in-memory database every session gets its own connection, so
    concurrent transactions really compete for the write lock.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'race.db'}"
    engine, factory = await _create_factory(url, connect_args={"timeout": 30})
    yield factory
    await engine.dispose()

