# tests/unit/services/ebay/test_ebay_normalizer.py
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import xmltodict

from storesync.core.enums import PlatformType
from storesync.core.exceptions import PayloadError
from storesync.services.ebay.normalizer import (
    derive_customers,
    extract_amount,
    extract_errors,
    is_auth_error,
    is_failure,
    normalize_item,
    normalize_order,
)
from tests.mocks.upstream import ebay_item_xml, ebay_order_xml


def decode(xml: str, root: str) -> dict:
    return xmltodict.parse(xml)[root]


"""
1. Amounts
"""


@pytest.mark.parametrize(
    "node, expected",
    [
        ("12.50", (Decimal("12.50"), "USD")),
        ({"@currencyID": "GBP", "#text": "7.25"}, (Decimal("7.25"), "GBP")),
        ({"value": "3.10", "currencyID": "EUR"}, (Decimal("3.10"), "EUR")),
        ({"@currencyID": "CAD"}, (Decimal("0"), "CAD")),
        ({"#text": "oops"}, (Decimal("0"), "USD")),
        (None, (Decimal("0"), "USD")),
    ],
)
def test_extract_amount(node, expected):
    assert extract_amount(node) == expected


def test_extract_amount_default_currency():
    assert extract_amount("1.00", default_currency="AUD") == (Decimal("1.00"), "AUD")


def test_extract_amount_from_decoded_attribute():
    node = decode('<Total currencyID="USD">25.00</Total>', "Total")
    assert extract_amount(node) == (Decimal("25.00"), "USD")


"""
2. Error blocks
"""


def test_error_classification():
    body = {
        "Ack": "Failure",
        "Errors": {"ErrorCode": "932", "ShortMessage": "Auth token is hard expired.", "SeverityCode": "Error"},
    }
    errors = extract_errors(body)
    assert errors[0]["code"] == "932"
    assert is_failure(body, errors)
    assert is_auth_error(errors)


def test_warning_only_is_not_failure():
    body = {"Ack": "Warning", "Errors": [{"ErrorCode": "1", "ShortMessage": "Heads up", "SeverityCode": "Warning"}]}
    errors = extract_errors(body)
    assert not is_failure(body, errors)
    assert not is_auth_error(errors)


def test_auth_wording_in_long_message_only_is_not_auth_error():
    body = {
        "Ack": "Failure",
        "Errors": {
            "ErrorCode": "10007",
            "ShortMessage": "Internal error",
            "LongMessage": "Internal error. Validation of the authentication token in API request failed.",
            "SeverityCode": "Error",
        },
    }
    errors = extract_errors(body)
    assert is_failure(body, errors)
    assert not is_auth_error(errors)


"""
3. Orders
"""


def test_normalize_order():
    order = decode(ebay_order_xml("12-34567"), "Order")

    record = normalize_order(order, store_name="eBay")

    assert record.platform == PlatformType.EBAY
    assert record.natural_key == ("ebay", "eBay", "12-34567")
    assert record.order_number == "12-34567"
    assert record.total == Decimal("25.00")
    assert record.currency == "USD"
    assert record.created_at == datetime(2024, 5, 2, 8, 30, tzinfo=timezone.utc)
    assert record.financial_status == "paid"
    assert record.order_status == "completed"
    assert record.fulfillment_status is None
    assert record.buyer_username == "jdoe"
    # masked email is dropped
    assert record.buyer_email is None
    assert record.shipping_address.city == "Austin"
    assert record.line_items[0].quantity == 1
    assert record.line_items[0].price == "25.00"
    assert record.raw["OrderID"] == "12-34567"


def test_normalize_order_keeps_real_email_and_shipped_time():
    order = decode(ebay_order_xml("1-2", email="buyer@example.com"), "Order")
    order["ShippedTime"] = "2024-05-03T10:00:00.000Z"
    order["ExtendedOrderID"] = "1-2!ext"

    record = normalize_order(order, store_name="eBay")

    assert record.buyer_email == "buyer@example.com"
    assert record.fulfillment_status == "fulfilled"
    assert record.order_number == "1-2!ext"


def test_normalize_order_defaults_for_missing_fields():
    record = normalize_order({"OrderID": "9"}, store_name="eBay", default_currency="GBP")

    assert record.total == Decimal("0")
    assert record.currency == "GBP"
    assert record.financial_status == "pending"
    assert record.order_status == "pending"
    assert record.line_items == []
    assert record.shipping_address is None


def test_normalize_order_requires_id():
    with pytest.raises(PayloadError):
        normalize_order({"Total": "1.00"}, store_name="eBay")


"""
4. Listings
"""


def test_normalize_item():
    item = decode(ebay_item_xml("110022"), "Item")

    record = normalize_item(item, store_name="eBay")

    assert record.native_id == "110022"
    assert record.product_type == "Guitars"
    assert record.vendor == "eBay Seller"
    assert record.cost is None
    variant = record.variants[0]
    assert variant.sku == "110022"
    assert variant.price == "99.50"
    assert variant.inventory_quantity == 3
    assert variant.available is True


def test_normalize_item_sold_out_never_negative():
    item = {"ItemID": "5", "Quantity": "1", "SellingStatus": {"QuantitySold": "4"}}

    record = normalize_item(item, store_name="eBay")

    assert record.product_type == "Uncategorized"
    assert record.variants[0].inventory_quantity == 0
    assert record.variants[0].available is False


def test_text_only_child_elements_read_as_empty():
    item = {"ItemID": "9", "Quantity": "2", "SellingStatus": "Active", "PrimaryCategory": "Guitars"}

    record = normalize_item(item, store_name="eBay")

    assert record.product_type == "Uncategorized"
    assert record.variants[0].inventory_quantity == 2


"""
5. Derived customers
"""


def test_derive_customers_groups_by_username_then_email():
    rows = [
        {"buyer_username": "jdoe", "buyer_email": None, "total_price": Decimal("10.00"),
         "created_at": datetime(2024, 5, 1, tzinfo=timezone.utc), "shipping_address": {"city": "Old Town"}},
        {"buyer_username": "jdoe", "buyer_email": None, "total_price": Decimal("5.50"),
         "created_at": datetime(2024, 5, 3, tzinfo=timezone.utc), "shipping_address": {"city": "New Town"}},
        {"buyer_username": "ann smith", "buyer_email": "ann@example.com", "total_price": "2.00",
         "created_at": None, "shipping_address": None},
        {"buyer_username": None, "buyer_email": None, "total_price": "99.00",
         "created_at": None, "shipping_address": None},
    ]

    customers = derive_customers(rows, store_name="eBay")

    assert [c.native_id for c in customers] == ["jdoe", "ann smith"]
    jdoe, ann = customers
    assert jdoe.orders_count == 2
    assert jdoe.total_spent == Decimal("15.50")
    assert jdoe.addresses[0].city == "New Town"
    assert (jdoe.first_name, jdoe.last_name) == ("jdoe", "Buyer")
    assert ann.email == "ann@example.com"
    assert (ann.first_name, ann.last_name) == ("ann", "smith")
    assert ann.addresses == []


def test_derive_customers_keeps_buyer_together_when_email_is_partial():
    rows = [
        {"buyer_username": "jdoe", "buyer_email": None, "total_price": "10.00",
         "created_at": None, "shipping_address": None},
        {"buyer_username": "jdoe", "buyer_email": "jdoe@example.com", "total_price": "4.00",
         "created_at": None, "shipping_address": None},
        {"buyer_username": None, "buyer_email": "guest@example.com", "total_price": "1.00",
         "created_at": None, "shipping_address": None},
    ]

    customers = derive_customers(rows, store_name="eBay")

    assert [c.native_id for c in customers] == ["jdoe", "guest@example.com"]
    jdoe = customers[0]
    assert jdoe.orders_count == 2
    assert jdoe.total_spent == Decimal("14.00")
    assert jdoe.email == "jdoe@example.com"
