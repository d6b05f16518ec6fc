from .upstream import (
    EbayMock,
    ShopifyMock,
    ebay_error_xml,
    ebay_items_xml,
    ebay_orders_xml,
    shopify_customer,
    shopify_order,
    shopify_product,
)
