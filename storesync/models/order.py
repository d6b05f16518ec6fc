from sqlalchemy import Column, DateTime, Numeric, String, UniqueConstraint

from storesync.database import Base
from storesync.models.common import JSONType, SyncedRowMixin


class Order(SyncedRowMixin, Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("order_id", "store_type", "store_name", name="uq_orders_natural_key"),
    )

    order_id = Column(String(100), nullable=False)  # eBay OrderID or Shopify numeric id
    order_number = Column(String(100), nullable=False, default="")  # #1001, eBay OrderID

    # Money
    total_price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    # Status
    created_at = Column(DateTime(timezone=True), index=True)
    fulfillment_status = Column(String(50))  # fulfilled, partial, or null
    financial_status = Column(String(50), nullable=False, default="pending")
    order_status = Column(String(50), nullable=False, default="pending")

    # Buyer
    buyer_username = Column(String(255))
    buyer_email = Column(String(255))
    shipping_address = Column(JSONType)

    line_items = Column(JSONType, nullable=False, default=list)

    def __repr__(self):
        return f"<Order {self.store_type}/{self.store_name} {self.order_id}>"
