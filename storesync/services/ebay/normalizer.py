"""
Map decoded eBay Trading API payloads (xmltodict dicts) to canonical records.

Everything here is pure: no I/O, no logging side effects beyond debug
messages, no exceptions for missing optional fields.
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from storesync.core.enums import PlatformType
from storesync.core.exceptions import PayloadError
from storesync.core.utils import as_list, parse_datetime, safe_decimal, safe_int, text_value
from storesync.schemas.records import Address, CustomerRecord, LineItem, OrderRecord, ProductRecord, Variant

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

# Error codes eBay uses for invalid, expired or revoked tokens
AUTH_ERROR_CODES = {"931", "932", "16110", "17470", "21916013", "21917053"}


def extract_errors(response: Mapping[str, Any]) -> List[Dict[str, str]]:
    """
    Collect `<Errors>` blocks from a decoded response body.

    Returns a list of dicts with code, severity, short_message and
    long_message. Severity defaults to "Error" when eBay omits it.
    """
    errors = []
    for block in as_list(response.get("Errors")):
        if not isinstance(block, Mapping):
            continue
        errors.append({
            "code": text_value(block.get("ErrorCode")),
            "severity": text_value(block.get("SeverityCode"), "Error"),
            "short_message": text_value(block.get("ShortMessage"), "Unknown error"),
            "long_message": text_value(block.get("LongMessage")),
        })
    return errors


def is_failure(response: Mapping[str, Any], errors: Iterable[Mapping[str, str]]) -> bool:
    if text_value(response.get("Ack")).lower() == "failure":
        return True
    return any(error.get("severity", "").lower() == "error" for error in errors)


def is_auth_error(errors: Iterable[Mapping[str, str]]) -> bool:
    for error in errors:
        if error.get("code") in AUTH_ERROR_CODES:
            return True
        message = error.get("short_message", "").lower()
        if "auth token is invalid" in message or "authentication token" in message:
            return True
    return False


def format_errors(errors: Iterable[Mapping[str, str]]) -> str:
    parts = []
    for error in errors:
        code = f"[{error['code']}] " if error.get("code") else ""
        parts.append(f"{code}{error.get('short_message')}")
    return "; ".join(parts) or "Unknown error"


def extract_amount(node: Any, default_currency: str = DEFAULT_CURRENCY) -> Tuple[Decimal, str]:
    """
    Read a money amount from an xmltodict node.

    eBay returns amounts in more than one shape, tried in this order:
    1. inline scalar text: `<Total>12.50</Total>` decodes to "12.50"
    2. an element with a currencyID attribute:
       `<Total currencyID="USD">12.50</Total>` decodes to
       {"@currencyID": "USD", "#text": "12.50"}
    3. a nested structure: `<Total><value>12.50</value><currencyID>USD</currencyID></Total>`

    Unparseable or missing amounts become 0; a missing currency becomes the
    default.
    """
    if node is None:
        return Decimal("0"), default_currency
    if not isinstance(node, Mapping):
        return safe_decimal(node), default_currency

    currency = text_value(node.get("@currencyID")) or text_value(node.get("currencyID"))
    if "#text" in node:
        amount = safe_decimal(node.get("#text"))
    elif "value" in node:
        amount = safe_decimal(text_value(node.get("value")))
    else:
        amount = Decimal("0")
    return amount, currency or default_currency


def _node(value: Any) -> Mapping[str, Any]:
    """Child element as a mapping; text-only or missing elements read as empty."""
    return value if isinstance(value, Mapping) else {}


def _address(node: Any) -> Optional[Address]:
    if not isinstance(node, Mapping):
        return None
    address = Address(
        name=text_value(node.get("Name")),
        street=" ".join(
            part for part in (text_value(node.get("Street1")), text_value(node.get("Street2"))) if part
        ),
        city=text_value(node.get("CityName")),
        region=text_value(node.get("StateOrProvince")),
        country=text_value(node.get("Country")),
        postal_code=text_value(node.get("PostalCode")),
    )
    return None if address.is_empty() else address


def _line_items(order: Mapping[str, Any], default_currency: str) -> List[LineItem]:
    transactions = _node(order.get("TransactionArray")).get("Transaction")
    items = []
    for transaction in as_list(transactions):
        if not isinstance(transaction, Mapping):
            continue
        item = _node(transaction.get("Item"))
        price, _ = extract_amount(transaction.get("TransactionPrice"), default_currency)
        sku = text_value(item.get("SKU")) or text_value(_node(transaction.get("Variation")).get("SKU"))
        items.append(LineItem(
            item_id=text_value(item.get("ItemID")),
            title=text_value(item.get("Title")),
            quantity=safe_int(text_value(transaction.get("QuantityPurchased")), 0),
            price=price,
            sku=sku or None,
        ))
    return items


def _buyer_email(order: Mapping[str, Any]) -> Optional[str]:
    # eBay masks most buyer emails as "Invalid Request"
    transactions = _node(order.get("TransactionArray")).get("Transaction")
    for transaction in as_list(transactions):
        if not isinstance(transaction, Mapping):
            continue
        email = text_value(_node(transaction.get("Buyer")).get("Email"))
        if "@" in email:
            return email
    return None


def _financial_status(order: Mapping[str, Any]) -> str:
    checkout = _node(order.get("CheckoutStatus"))
    status = text_value(checkout.get("eBayPaymentStatus"))
    if status == "NoPaymentFailure":
        status = text_value(checkout.get("Status"))
    if status.lower() == "complete":
        return "paid"
    return status or "pending"


def normalize_order(
    order: Mapping[str, Any],
    store_name: str,
    default_currency: str = DEFAULT_CURRENCY,
) -> OrderRecord:
    """Map one GetOrders `<Order>` element to an OrderRecord."""
    if not isinstance(order, Mapping):
        raise PayloadError(f"Expected an order element, got {type(order).__name__}")
    order_id = text_value(order.get("OrderID"))
    if not order_id:
        raise PayloadError("eBay order has no OrderID")

    total, currency = extract_amount(order.get("Total"), default_currency)
    try:
        return OrderRecord(
            platform=PlatformType.EBAY,
            store_name=store_name,
            native_id=order_id,
            order_number=text_value(order.get("ExtendedOrderID")) or order_id,
            total=total,
            currency=currency,
            created_at=parse_datetime(text_value(order.get("CreatedTime"))),
            fulfillment_status="fulfilled" if text_value(order.get("ShippedTime")) else None,
            financial_status=_financial_status(order),
            order_status=text_value(order.get("OrderStatus")),
            buyer_username=text_value(order.get("BuyerUserID")) or None,
            buyer_email=_buyer_email(order),
            shipping_address=_address(order.get("ShippingAddress")),
            line_items=_line_items(order, default_currency),
            raw=dict(order),
        )
    except ValidationError as e:
        raise PayloadError(f"eBay order {order_id} failed validation: {e}") from e


def normalize_item(
    item: Mapping[str, Any],
    store_name: str,
    default_currency: str = DEFAULT_CURRENCY,
) -> ProductRecord:
    """Map one GetSellerList `<Item>` element to a ProductRecord with a single variant."""
    if not isinstance(item, Mapping):
        raise PayloadError(f"Expected an item element, got {type(item).__name__}")
    item_id = text_value(item.get("ItemID"))
    if not item_id:
        raise PayloadError("eBay item has no ItemID")

    selling_status = _node(item.get("SellingStatus"))
    price, _ = extract_amount(
        selling_status.get("CurrentPrice") or item.get("StartPrice") or item.get("CurrentPrice"),
        default_currency,
    )
    quantity = safe_int(text_value(item.get("Quantity")))
    sold = safe_int(text_value(selling_status.get("QuantitySold") or item.get("QuantitySold")))
    available = max(quantity - sold, 0)
    title = text_value(item.get("Title"))
    category = text_value(_node(item.get("PrimaryCategory")).get("CategoryName"))

    try:
        return ProductRecord(
            platform=PlatformType.EBAY,
            store_name=store_name,
            native_id=item_id,
            title=title,
            description=text_value(item.get("Description")),
            product_type=category or "Uncategorized",
            vendor="eBay Seller",
            tags=[],
            variants=[Variant(
                id=item_id,
                title=title,
                sku=text_value(item.get("SKU")) or item_id,
                price=price,
                inventory_quantity=available,
                available=available > 0,
            )],
            cost=None,
            raw=dict(item),
        )
    except ValidationError as e:
        raise PayloadError(f"eBay item {item_id} failed validation: {e}") from e


def _split_username(username: str) -> Tuple[str, str]:
    parts = username.split()
    first = parts[0] if parts else ""
    last = " ".join(parts[1:])
    return first or "eBay", last or "Buyer"


def derive_customers(order_rows: Iterable[Mapping[str, Any]], store_name: str) -> List[CustomerRecord]:
    """
    Aggregate eBay buyers out of stored order rows.

    eBay has no customer endpoint, so buyers are grouped by username,
    falling back to email when the username is missing. An email seen on
    any of a buyer's orders is attached to that buyer. Rows are expected
    as dicts with buyer_username, buyer_email, total_price, created_at and
    shipping_address. The most recent order's shipping address is kept.
    """
    grouped: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for row in order_rows:
        email = (row.get("buyer_email") or "").strip() or None
        username = (row.get("buyer_username") or "").strip() or None
        key = username or email
        if not key:
            continue
        entry = grouped.setdefault(key, {
            "email": email,
            "username": username,
            "orders_count": 0,
            "total_spent": Decimal("0"),
            "latest_at": None,
            "address": None,
        })
        entry["orders_count"] += 1
        entry["total_spent"] += safe_decimal(row.get("total_price"))
        entry["username"] = entry["username"] or username
        entry["email"] = entry["email"] or email

        created_at = parse_datetime(row.get("created_at"))
        address = row.get("shipping_address")
        if address and (entry["latest_at"] is None or (created_at and created_at >= entry["latest_at"])):
            entry["address"] = address
            entry["latest_at"] = created_at or entry["latest_at"]

    customers = []
    for key, entry in grouped.items():
        first_name, last_name = _split_username(entry["username"] or "")
        addresses = [Address.model_validate(entry["address"])] if entry["address"] else []
        customers.append(CustomerRecord(
            platform=PlatformType.EBAY,
            store_name=store_name,
            native_id=key,
            first_name=first_name,
            last_name=last_name,
            email=entry["email"],
            orders_count=entry["orders_count"],
            total_spent=entry["total_spent"],
            tags=[],
            addresses=addresses,
            raw={"buyer_username": entry["username"], "buyer_email": entry["email"]},
        ))
    logger.debug(f"Derived {len(customers)} eBay customers for {store_name}")
    return customers
