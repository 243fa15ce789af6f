"""Remote shop adapters and the protocols they implement."""

from .base import DirectoryClient, OrderService
from .memory import InMemoryShop
from .shopify import ShopifyClient

__all__ = ["DirectoryClient", "InMemoryShop", "OrderService", "ShopifyClient"]
