"""
Shared enums used across the sync pipeline.
"""

from enum import Enum


class PlatformType(str, Enum):
    EBAY = "ebay"
    SHOPIFY = "shopify"


class EntityType(str, Enum):
    ORDERS = "orders"
    PRODUCTS = "products"
    CUSTOMERS = "customers"

    @property
    def label(self) -> str:
        # "Orders", "Products", "Customers" as used in error strings
        return self.value.capitalize()


class PaginationStyle(str, Enum):
    CURSOR = "cursor"
    PAGE_NUMBER = "page_number"


class TokenSource(str, Enum):
    STATIC = "static"
    REFRESH_TOKEN = "refresh_token"
    CLIENT_CREDENTIALS = "client_credentials"
