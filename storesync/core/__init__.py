"""
Core module exports.
"""
from .enums import (
    PlatformType,
    EntityType,
    PaginationStyle,
    TokenSource,
)

from .exceptions import (
    BaseServiceError,
    ConfigurationError,
    PayloadError,
    DatabaseError,
    PersistenceError,
    PlatformServiceError,
    PlatformTransportError,
    PlatformResponseError,
    PlatformAuthError,
    EbayServiceError,
    EbayAPIError,
    EbayTokenError,
)

from .utils import (
    safe_decimal,
    safe_int,
    parse_datetime,
    split_tags,
)
