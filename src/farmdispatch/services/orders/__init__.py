"""Order source clients."""

from .shopify_client import (
    OrderSourceConfigurationError,
    OrderSourceError,
    ShopifyOrderSource,
    normalize_order,
)

__all__ = [
    "ShopifyOrderSource",
    "OrderSourceError",
    "OrderSourceConfigurationError",
    "normalize_order",
]
