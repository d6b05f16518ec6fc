"""
Map Shopify REST Admin payloads to canonical records.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from storesync.core.enums import PlatformType
from storesync.core.exceptions import PayloadError
from storesync.core.utils import parse_datetime, safe_decimal, safe_int, split_tags
from storesync.schemas.records import Address, CustomerRecord, LineItem, OrderRecord, ProductRecord, Variant


def _native_id(payload: Any, kind: str) -> str:
    if not isinstance(payload, Mapping):
        raise PayloadError(f"Expected a {kind} object, got {type(payload).__name__}")
    native_id = payload.get("id")
    if native_id in (None, ""):
        raise PayloadError(f"Shopify {kind} has no id")
    return str(native_id)


def _address(payload: Any) -> Optional[Address]:
    if not isinstance(payload, Mapping):
        return None
    name = payload.get("name") or " ".join(
        part for part in (payload.get("first_name"), payload.get("last_name")) if part
    )
    address = Address(
        name=name,
        street=" ".join(part for part in (payload.get("address1"), payload.get("address2")) if part),
        city=payload.get("city"),
        region=payload.get("province"),
        country=payload.get("country"),
        postal_code=payload.get("zip"),
    )
    return None if address.is_empty() else address


def _order_status(order: Mapping[str, Any]) -> str:
    if order.get("cancelled_at"):
        return "cancelled"
    if order.get("closed_at"):
        return "closed"
    return "open"


def _buyer_name(customer: Mapping[str, Any]) -> Optional[str]:
    name = " ".join(part for part in (customer.get("first_name"), customer.get("last_name")) if part)
    return name or None


def normalize_order(order: Mapping[str, Any], store_name: str) -> OrderRecord:
    order_id = _native_id(order, "order")
    customer = order.get("customer")
    if not isinstance(customer, Mapping):
        customer = {}
    email = order.get("email") or customer.get("email") or None

    try:
        line_items = [
            LineItem(
                item_id=str(item.get("product_id") or item.get("id") or ""),
                title=item.get("title") or item.get("name"),
                quantity=item.get("quantity"),
                price=item.get("price"),
                sku=item.get("sku") or None,
            )
            for item in order.get("line_items") or []
            if isinstance(item, Mapping)
        ]
        return OrderRecord(
            platform=PlatformType.SHOPIFY,
            store_name=store_name,
            native_id=order_id,
            order_number=str(order.get("name") or order.get("order_number") or order_id),
            total=order.get("total_price"),
            currency=order.get("currency") or "USD",
            created_at=parse_datetime(order.get("created_at")),
            fulfillment_status=order.get("fulfillment_status") or None,
            financial_status=order.get("financial_status"),
            order_status=_order_status(order),
            buyer_username=_buyer_name(customer),
            buyer_email=email,
            shipping_address=_address(order.get("shipping_address")),
            line_items=line_items,
            raw=dict(order),
        )
    except ValidationError as e:
        raise PayloadError(f"Shopify order {order_id} failed validation: {e}") from e


def inventory_item_ids(products: Iterable[Mapping[str, Any]]) -> List[str]:
    ids = []
    for product in products:
        if not isinstance(product, Mapping):
            continue
        for variant in product.get("variants") or []:
            if isinstance(variant, Mapping) and variant.get("inventory_item_id"):
                ids.append(str(variant["inventory_item_id"]))
    return ids


def average_cost(product: Mapping[str, Any], costs: Mapping[str, Decimal]) -> Optional[Decimal]:
    """Mean unit cost over the product's variants that have one, or None."""
    known = [
        costs[str(variant.get("inventory_item_id"))]
        for variant in product.get("variants") or []
        if isinstance(variant, Mapping) and str(variant.get("inventory_item_id")) in costs
    ]
    if not known:
        return None
    return (sum(known) / len(known)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def normalize_product(
    product: Mapping[str, Any],
    store_name: str,
    costs: Optional[Mapping[str, Decimal]] = None,
) -> ProductRecord:
    product_id = _native_id(product, "product")
    try:
        variants = []
        for variant in product.get("variants") or []:
            if not isinstance(variant, Mapping):
                continue
            quantity = safe_int(variant.get("inventory_quantity"))
            variants.append(Variant(
                id=str(variant.get("id") or ""),
                title=variant.get("title"),
                sku=variant.get("sku"),
                price=safe_decimal(variant.get("price")),
                inventory_quantity=quantity,
                available=quantity > 0,
            ))
        return ProductRecord(
            platform=PlatformType.SHOPIFY,
            store_name=store_name,
            native_id=product_id,
            title=product.get("title"),
            description=product.get("body_html"),
            product_type=product.get("product_type"),
            vendor=product.get("vendor"),
            tags=split_tags(product.get("tags")),
            variants=variants,
            cost=average_cost(product, costs or {}),
            raw=dict(product),
        )
    except ValidationError as e:
        raise PayloadError(f"Shopify product {product_id} failed validation: {e}") from e


def normalize_customer(customer: Mapping[str, Any], store_name: str) -> CustomerRecord:
    customer_id = _native_id(customer, "customer")
    try:
        addresses = [
            address
            for address in (_address(entry) for entry in customer.get("addresses") or [])
            if address is not None
        ]
        return CustomerRecord(
            platform=PlatformType.SHOPIFY,
            store_name=store_name,
            native_id=customer_id,
            first_name=customer.get("first_name"),
            last_name=customer.get("last_name"),
            email=customer.get("email") or None,
            orders_count=customer.get("orders_count"),
            total_spent=customer.get("total_spent"),
            tags=split_tags(customer.get("tags")),
            addresses=addresses,
            raw=dict(customer),
        )
    except ValidationError as e:
        raise PayloadError(f"Shopify customer {customer_id} failed validation: {e}") from e
