# tests/unit/test_database.py
import pytest

from storesync.core.exceptions import ConfigurationError
from storesync.database import create_engine_from_settings, create_tables, normalize_database_url


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgres://u:p@db/sales", "postgresql+asyncpg://u:p@db/sales"),
        ("postgresql://u:p@db/sales", "postgresql+asyncpg://u:p@db/sales"),
        ("postgresql+asyncpg://u:p@db/sales", "postgresql+asyncpg://u:p@db/sales"),
        ("sqlite+aiosqlite://", "sqlite+aiosqlite://"),
    ],
)
def test_normalize_database_url(url, expected):
    assert normalize_database_url(url) == expected


def test_missing_database_url(make_settings):
    with pytest.raises(ConfigurationError):
        create_engine_from_settings(make_settings(DATABASE_URL=""))


@pytest.mark.asyncio
async def test_create_tables(tmp_path, make_settings):
    from sqlalchemy import inspect

    engine = create_engine_from_settings(make_settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'tables.db'}"))
    try:
        await create_tables(engine)
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    finally:
        await engine.dispose()

    assert {"orders", "products", "customers"} <= set(tables)
