# tests/integration/test_sync_pipeline.py
"""
End-to-end runs: mocked eBay and Shopify upstreams, real upserts into SQLite.
"""
import httpx
import pytest
from sqlalchemy import select

from storesync.core.config import ShopifyStoreConfig
from storesync.models import Customer, Order, Product
from storesync.services.sync_service import SyncService
from tests.mocks import (
    EbayMock,
    ShopifyMock,
    ebay_items_xml,
    ebay_orders_xml,
    shopify_customer,
    shopify_order,
    shopify_product,
)


async def snapshot(session_factory) -> dict:
    """Every stored row, minus the per-run sync timestamp."""
    data = {}
    async with session_factory() as session:
        for model in (Order, Product, Customer):
            rows = (await session.execute(select(model).order_by(model.id))).scalars().all()
            data[model.__tablename__] = [
                {c.name: getattr(row, c.name) for c in model.__table__.columns if c.name != "synced_at"}
                for row in rows
            ]
    return data


@pytest.fixture
def upstream_transport():
    ebay = EbayMock(responses={
        "GetOrders": [
            ebay_orders_xml(["1-1", "1-2"], page=1, total_pages=2, has_more=True),
            ebay_orders_xml(["1-3"], page=2, total_pages=2),
        ],
        "GetSellerList": [ebay_items_xml(["110021", "110022"])],
    })
    shopify = ShopifyMock(
        pages={
            "orders": [[shopify_order(1)], [shopify_order(2)]],
            "products": [[shopify_product(10)]],
            "customers": [[shopify_customer(5)]],
        },
        costs={"1000": "8.00"},
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.ebay.com":
            return ebay.handler(request)
        return shopify.handler(request)

    return httpx.MockTransport(handler)


@pytest.fixture
def pipeline_settings(make_settings):
    return make_settings(
        EBAY_AUTHN_AUTH_TOKEN="static-token",
        SHOPIFY_STORES=[ShopifyStoreConfig(name="Main", domain="main.myshopify.com", access_token="shpat_test")],
    )


@pytest.mark.asyncio
async def test_full_run_populates_all_tables(session_factory, pipeline_settings, upstream_transport):
    service = SyncService(session_factory, settings=pipeline_settings, transport=upstream_transport)

    result = await service.run_sync(is_initial_sync=True)

    assert result.errors == []
    assert result.success is True
    assert (result.orders_synced, result.products_synced, result.customers_synced) == (5, 3, 2)

    data = await snapshot(session_factory)
    ebay_customer = next(row for row in data["customers"] if row["store_type"] == "ebay")
    assert ebay_customer["customer_id"] == "jdoe"
    assert ebay_customer["orders_count"] == 3
    shopify_product_row = next(row for row in data["products"] if row["store_type"] == "shopify")
    assert shopify_product_row["cost"] == 8


@pytest.mark.asyncio
async def test_second_run_is_idempotent(session_factory, pipeline_settings, upstream_transport):
    service = SyncService(session_factory, settings=pipeline_settings, transport=upstream_transport)

    first = await service.run_sync()
    before = await snapshot(session_factory)
    second = await service.run_sync()
    after = await snapshot(session_factory)

    assert first.to_dict() == second.to_dict()
    assert [len(rows) for rows in after.values()] == [5, 3, 2]
    assert after == before
