from .records import (
    Address,
    CustomerRecord,
    LineItem,
    OrderRecord,
    ProductRecord,
    Variant,
)
