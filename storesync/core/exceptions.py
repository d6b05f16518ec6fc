from typing import Any, Dict, List, Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class ConfigurationError(BaseServiceError):
    """Raised when a platform or store is missing required settings."""
    pass

class PayloadError(BaseServiceError):
    """Raised when an upstream record cannot be normalized."""
    pass

class DatabaseError(BaseServiceError):
    """Exception raised for database-related errors."""
    pass

class PersistenceError(DatabaseError):
    """Raised when a single record upsert fails."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass

class PlatformTransportError(PlatformServiceError):
    """Raised on a non-2xx response or a network failure while fetching a page."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

class PlatformResponseError(PlatformServiceError):
    """Raised when a 2xx response body carries platform-reported errors."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message)

class PlatformAuthError(PlatformResponseError):
    """Raised when the platform reports an invalid or expired credential."""
    pass

class EbayServiceError(PlatformServiceError):
    """Base exception for eBay-specific errors."""
    pass

class EbayAPIError(EbayServiceError):
    """Raised when eBay API calls fail."""
    pass

class EbayTokenError(EbayAPIError):
    """Raised when no eBay access token could be obtained."""
    pass
