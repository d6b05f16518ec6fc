from sqlalchemy import Column, Integer, Numeric, String, UniqueConstraint

from storesync.database import Base
from storesync.models.common import JSONType, SyncedRowMixin, TagsType


class Customer(SyncedRowMixin, Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("customer_id", "store_type", "store_name", name="uq_customers_natural_key"),
    )

    customer_id = Column(String(255), nullable=False)  # Shopify id, eBay buyer email or username
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    email = Column(String(255))
    orders_count = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(12, 2), nullable=False, default=0)
    tags = Column(TagsType, nullable=False, default=list)
    addresses = Column(JSONType, nullable=False, default=list)

    def __repr__(self):
        return f"<Customer {self.store_type}/{self.store_name} {self.customer_id}>"
