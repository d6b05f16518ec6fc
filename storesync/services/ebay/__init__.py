from .auth import EbayAuthClient
from .token_manager import EbayTokenManager
from .trading import EbayTradingClient
from .sync import EbaySync
