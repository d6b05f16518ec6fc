"""Create orders, products and customers sync tables

Revision ID: 001_sync_tables
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_sync_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _synced_row_columns():
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('store_type', sa.String(length=20), nullable=False),
        sa.Column('store_name', sa.String(length=100), nullable=False),
        sa.Column('raw_data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('first_synced_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _indexes(table: str) -> None:
    op.create_index(f'ix_{table}_store_type', table, ['store_type'], unique=False)
    op.create_index(f'ix_{table}_store_name', table, ['store_name'], unique=False)


def upgrade() -> None:
    op.create_table(
        'orders',
        *_synced_row_columns(),
        sa.Column('order_id', sa.String(length=100), nullable=False),
        sa.Column('order_number', sa.String(length=100), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('fulfillment_status', sa.String(length=50), nullable=True),
        sa.Column('financial_status', sa.String(length=50), nullable=False),
        sa.Column('order_status', sa.String(length=50), nullable=False),
        sa.Column('buyer_username', sa.String(length=255), nullable=True),
        sa.Column('buyer_email', sa.String(length=255), nullable=True),
        sa.Column('shipping_address', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('line_items', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'store_type', 'store_name', name='uq_orders_natural_key'),
    )
    _indexes('orders')
    op.create_index('ix_orders_created_at', 'orders', ['created_at'], unique=False)

    op.create_table(
        'products',
        *_synced_row_columns(),
        sa.Column('product_id', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('product_type', sa.String(length=255), nullable=False),
        sa.Column('vendor', sa.String(length=255), nullable=False),
        sa.Column('tags', postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column('variants', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('cost', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'store_type', 'store_name', name='uq_products_natural_key'),
    )
    _indexes('products')

    op.create_table(
        'customers',
        *_synced_row_columns(),
        sa.Column('customer_id', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('orders_count', sa.Integer(), nullable=False),
        sa.Column('total_spent', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('tags', postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column('addresses', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_id', 'store_type', 'store_name', name='uq_customers_natural_key'),
    )
    _indexes('customers')


def downgrade() -> None:
    for table in ('customers', 'products', 'orders'):
        op.drop_index(f'ix_{table}_store_name', table_name=table)
        op.drop_index(f'ix_{table}_store_type', table_name=table)
    op.drop_index('ix_orders_created_at', table_name='orders')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('orders')
