from sqlalchemy import Column, Numeric, String, Text, UniqueConstraint

from storesync.database import Base
from storesync.models.common import JSONType, SyncedRowMixin, TagsType


class Product(SyncedRowMixin, Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("product_id", "store_type", "store_name", name="uq_products_natural_key"),
    )

    product_id = Column(String(100), nullable=False)  # eBay ItemID or Shopify numeric id
    title = Column(String(500), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    product_type = Column(String(255), nullable=False, default="")
    vendor = Column(String(255), nullable=False, default="")
    tags = Column(TagsType, nullable=False, default=list)
    variants = Column(JSONType, nullable=False, default=list)
    cost = Column(Numeric(12, 2))  # unit cost, null when unknown

    def __repr__(self):
        return f"<Product {self.store_type}/{self.store_name} {self.product_id}>"
