"""
Canonical record shapes shared by every platform.

Normalizers produce these; the upserter turns them into table rows with
`to_row()`. Required text columns never hold None: validators coerce
missing values to their documented defaults.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storesync.core.enums import EntityType, PlatformType
from storesync.core.utils import safe_decimal, safe_int


class RecordMixin(BaseModel):
    """Natural key fields plus the verbatim upstream payload."""

    model_config = ConfigDict(use_enum_values=False, arbitrary_types_allowed=True)

    entity_type: ClassVar[EntityType]
    id_column: ClassVar[str]

    platform: PlatformType
    store_name: str = Field(min_length=1)
    native_id: str = Field(min_length=1)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("native_id", mode="before")
    @classmethod
    def coerce_native_id(cls, v):
        # Shopify ids arrive as ints
        if v is None:
            return v
        return str(v).strip()

    @property
    def natural_key(self):
        return (self.platform.value, self.store_name, self.native_id)

    def _key_columns(self) -> Dict[str, Any]:
        return {
            self.id_column: self.native_id,
            "store_type": self.platform.value,
            "store_name": self.store_name,
            "raw_data": self.raw,
        }


class Address(BaseModel):
    name: str = ""
    street: str = ""
    city: str = ""
    region: str = ""
    country: str = ""
    postal_code: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class LineItem(BaseModel):
    item_id: str = ""
    title: str = ""
    quantity: int = 0
    price: str = "0"  # unit price as a decimal string
    sku: Optional[str] = None

    @field_validator("item_id", "title", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def non_negative_quantity(cls, v):
        return max(safe_int(v), 0)

    @field_validator("price", mode="before")
    @classmethod
    def decimal_string(cls, v):
        return str(safe_decimal(v))


class OrderRecord(RecordMixin):
    entity_type: ClassVar[EntityType] = EntityType.ORDERS
    id_column: ClassVar[str] = "order_id"

    order_number: str = ""
    total: Decimal = Decimal("0")
    currency: str = "USD"
    created_at: Optional[datetime] = None
    fulfillment_status: Optional[str] = None
    financial_status: str = "pending"
    order_status: str = "pending"
    buyer_username: Optional[str] = None
    buyer_email: Optional[str] = None
    shipping_address: Optional[Address] = None
    line_items: List[LineItem] = Field(default_factory=list)

    @field_validator("financial_status", "order_status", mode="before")
    @classmethod
    def default_status(cls, v):
        if v is None or not str(v).strip():
            return "pending"
        return str(v).strip().lower()

    @field_validator("total", mode="before")
    @classmethod
    def parse_total(cls, v):
        return safe_decimal(v)

    def to_row(self) -> Dict[str, Any]:
        row = self._key_columns()
        row.update(
            order_number=self.order_number,
            total_price=self.total,
            currency=self.currency,
            created_at=self.created_at,
            fulfillment_status=self.fulfillment_status,
            financial_status=self.financial_status,
            order_status=self.order_status,
            buyer_username=self.buyer_username,
            buyer_email=self.buyer_email,
            shipping_address=self.shipping_address.model_dump() if self.shipping_address else None,
            line_items=[item.model_dump() for item in self.line_items],
        )
        return row


class Variant(BaseModel):
    id: str = ""
    title: str = ""
    sku: str = ""
    price: str = "0"
    inventory_quantity: int = 0
    available: bool = False

    @field_validator("id", "title", "sku", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("price", mode="before")
    @classmethod
    def decimal_string(cls, v):
        return str(safe_decimal(v))

    @field_validator("inventory_quantity", mode="before")
    @classmethod
    def parse_quantity(cls, v):
        return safe_int(v)


class ProductRecord(RecordMixin):
    entity_type: ClassVar[EntityType] = EntityType.PRODUCTS
    id_column: ClassVar[str] = "product_id"

    title: str = ""
    description: str = ""
    product_type: str = ""
    vendor: str = ""
    tags: List[str] = Field(default_factory=list)
    variants: List[Variant] = Field(default_factory=list)
    cost: Optional[Decimal] = None

    @field_validator("title", "description", "product_type", "vendor", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    def to_row(self) -> Dict[str, Any]:
        row = self._key_columns()
        row.update(
            title=self.title,
            description=self.description,
            product_type=self.product_type,
            vendor=self.vendor,
            tags=list(self.tags),
            variants=[variant.model_dump() for variant in self.variants],
            cost=self.cost,
        )
        return row


class CustomerRecord(RecordMixin):
    entity_type: ClassVar[EntityType] = EntityType.CUSTOMERS
    id_column: ClassVar[str] = "customer_id"

    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    orders_count: int = 0
    total_spent: Decimal = Decimal("0")
    tags: List[str] = Field(default_factory=list)
    addresses: List[Address] = Field(default_factory=list)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("orders_count", mode="before")
    @classmethod
    def parse_count(cls, v):
        return max(safe_int(v), 0)

    @field_validator("total_spent", mode="before")
    @classmethod
    def parse_total_spent(cls, v):
        return safe_decimal(v)

    def to_row(self) -> Dict[str, Any]:
        row = self._key_columns()
        row.update(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            orders_count=self.orders_count,
            total_spent=self.total_spent,
            tags=list(self.tags),
            addresses=[address.model_dump() for address in self.addresses],
        )
        return row
