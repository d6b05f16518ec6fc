# tests/conftest.py
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from storesync.core.config import Settings
from storesync.database import Base
from storesync import models  # noqa: F401  registers the tables on Base.metadata


def build_settings(**overrides) -> Settings:
    """Hermetic settings: no .env, no discovered stores, no delays."""
    values = dict(
        DATABASE_URL="sqlite+aiosqlite://",
        EBAY_AUTHN_AUTH_TOKEN="",
        EBAY_REFRESH_TOKEN="",
        EBAY_APP_ID="",
        EBAY_CERT_ID="",
        EBAY_CLIENT_SECRET="",
        SHOPIFY_STORES=[],
        SHOPIFY_DISCOVER_STORES=False,
        PAGE_DELAY_SECONDS=0,
        UPSERT_CONCURRENCY=1,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    """Provide test settings"""
    return build_settings()


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite engine with the sync tables created (function-scoped)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storesync_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_settings():
    """Factory for settings with per-test overrides"""
    return build_settings
