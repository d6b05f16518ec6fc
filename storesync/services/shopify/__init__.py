from .client import ShopifyClient
from .sync import ShopifySync
