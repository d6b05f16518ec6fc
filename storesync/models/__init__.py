from .order import Order
from .product import Product
from .customer import Customer
from storesync.core.enums import EntityType

# Table model and native id column per entity type
ENTITY_MODELS = {
    EntityType.ORDERS: (Order, "order_id"),
    EntityType.PRODUCTS: (Product, "product_id"),
    EntityType.CUSTOMERS: (Customer, "customer_id"),
}
