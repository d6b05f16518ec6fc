from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from storesync.core.utils import utc_now

# JSONB on PostgreSQL, plain JSON on SQLite (tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
TagsType = JSON().with_variant(ARRAY(String), "postgresql")


class SyncedRowMixin:
    """
    Columns shared by every synced table.

    `store_type` + `store_name` + the table's native id column form the
    natural key the upsert conflicts on.
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_type = Column(String(20), nullable=False, index=True)
    store_name = Column(String(100), nullable=False, index=True)
    raw_data = Column(JSONType, nullable=False, default=dict)
    first_synced_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    synced_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
