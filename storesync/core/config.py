# storesync/core/config.py

import os
from functools import lru_cache
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

ENV_FILE = os.environ.get("ENV_FILE", ".env")


class ShopifyStoreConfig(BaseModel):
    """One seller account on the REST platform."""

    model_config = ConfigDict(frozen=True)

    name: str
    domain: str
    access_token: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.domain and self.access_token)


class EbayCredentials(BaseModel):
    """
    Everything the token manager may use to obtain an eBay credential.

    All fields are optional on their own; `is_configured` tells whether the
    platform was set up at all.
    """

    model_config = ConfigDict(frozen=True)

    store_name: str = "eBay"
    static_token: Optional[str] = None
    refresh_token: Optional[str] = None
    app_id: Optional[str] = None
    cert_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def oauth_secret(self) -> Optional[str]:
        # eBay calls the client secret "Cert ID" in the developer portal
        return self.client_secret or self.cert_id

    @property
    def has_app_keys(self) -> bool:
        return bool(self.app_id and self.oauth_secret)

    @property
    def is_configured(self) -> bool:
        return any([self.static_token, self.refresh_token, self.app_id, self.cert_id, self.client_secret])


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # eBay credentials, first usable one wins
    EBAY_AUTHN_AUTH_TOKEN: str = Field(
        default="",
        validation_alias=AliasChoices("EBAY_AUTHN_AUTH_TOKEN", "OAUTH_TOKEN", "EBAY_USER_TOKEN"),
    )
    EBAY_REFRESH_TOKEN: str = ""
    EBAY_APP_ID: str = ""
    EBAY_CERT_ID: str = ""
    EBAY_CLIENT_SECRET: str = ""

    # eBay API
    EBAY_STORE_NAME: str = "eBay"
    EBAY_TRADING_API_URL: str = "https://api.ebay.com/ws/api.dll"
    EBAY_TOKEN_URL: str = "https://api.ebay.com/identity/v1/oauth2/token"
    EBAY_OAUTH_SCOPE: str = "https://api.ebay.com/oauth/api_scope"
    EBAY_SITE_ID: str = "0"
    EBAY_COMPATIBILITY_LEVEL: str = "1421"
    EBAY_MAX_LOOKBACK_DAYS: int = 90
    EBAY_DEFAULT_CURRENCY: str = "USD"

    # Shopify API
    SHOPIFY_API_VERSION: str = "2024-07"
    SHOPIFY_PAGE_LIMIT: int = 250
    SHOPIFY_STORES: List[ShopifyStoreConfig] = []
    SHOPIFY_DISCOVER_STORES: bool = True  # read <NAME>_STORE / <NAME>_ACCESS_TOKEN pairs

    # Sync behaviour
    INITIAL_SYNC_DAYS: int = 60
    INCREMENTAL_SYNC_DAYS: int = 1
    PAGE_DELAY_SECONDS: float = 0.5
    MAX_PAGES_INCREMENTAL: int = 50
    MAX_PAGES_FULL: int = 500
    HTTP_TIMEOUT_SECONDS: float = 30.0
    UPSERT_CONCURRENCY: int = 5

    # Scheduler
    SYNC_SCHEDULE: str = "0 12 * * *"  # daily at noon
    SYNC_SCHEDULE_ENABLED: bool = True

    # Environment
    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=ENV_FILE if os.path.exists(ENV_FILE) else None,
        case_sensitive=True,
        extra="ignore",
    )

    def ebay_credentials(self) -> EbayCredentials:
        return EbayCredentials(
            store_name=self.EBAY_STORE_NAME,
            static_token=self.EBAY_AUTHN_AUTH_TOKEN.strip() or None,
            refresh_token=self.EBAY_REFRESH_TOKEN.strip() or None,
            app_id=self.EBAY_APP_ID or None,
            cert_id=self.EBAY_CERT_ID or None,
            client_secret=self.EBAY_CLIENT_SECRET or None,
        )

    def shopify_stores(self, environ: Optional[Mapping[str, str]] = None) -> List[ShopifyStoreConfig]:
        """Explicit SHOPIFY_STORES entries first, then stores discovered from env pairs."""
        stores = list(self.SHOPIFY_STORES)
        if not self.SHOPIFY_DISCOVER_STORES:
            return stores
        if environ is None:
            environ = _load_environ()
        known = {store.name.lower() for store in stores}
        for store in discover_shopify_stores(environ):
            if store.name.lower() not in known:
                stores.append(store)
                known.add(store.name.lower())
        return stores


def _load_environ() -> Dict[str, str]:
    values: Dict[str, str] = {}
    if os.path.exists(ENV_FILE):
        values.update({k: v for k, v in dotenv_values(ENV_FILE).items() if v is not None})
    values.update(os.environ)
    return values


def discover_shopify_stores(environ: Mapping[str, str]) -> List[ShopifyStoreConfig]:
    """
    Find stores declared as `<NAME>_STORE=domain` / `<NAME>_ACCESS_TOKEN=token` pairs.

    A pair with no token is still returned, so the caller can report it,
    but only when the domain is a `*.myshopify.com` shop domain. Any other
    variable ending in `_STORE` (`SESSION_STORE=redis`) is ignored.
    """
    stores = []
    for key in sorted(environ):
        if not key.endswith("_STORE") or key == "_STORE":
            continue
        domain = (environ.get(key) or "").strip()
        if not domain:
            continue
        prefix = key[: -len("_STORE")]
        token = (environ.get(f"{prefix}_ACCESS_TOKEN") or "").strip() or None
        if token is None and not _is_shop_domain(domain):
            continue
        stores.append(
            ShopifyStoreConfig(
                name=prefix.lower().capitalize(),
                domain=domain,
                access_token=token,
            )
        )
    return stores


def _is_shop_domain(domain: str) -> bool:
    host = domain.lower().split("://", 1)[-1].split("/", 1)[0]
    return host.endswith(".myshopify.com")


@lru_cache()
def get_settings() -> Settings:
    """Cached settings to avoid loading .env file for every call"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
