"""Order source backed by the Shopify Admin REST API."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

import httpx

from ...config import settings
from ...models.domain import Address, CustomerInfo, LineItem, Order, ShippingLine

logger = logging.getLogger(__name__)

DELIVERY_METHOD_ATTRIBUTES = frozenset({"delivery method", "delivery_method", "deliverymethod"})


class OrderSourceConfigurationError(ValueError):
    """Raised when Shopify credentials are missing."""


class OrderSourceError(RuntimeError):
    """Raised when orders cannot be fetched from Shopify."""


def _address(raw: Optional[dict]) -> Optional[Address]:
    if not raw:
        return None
    return Address(
        address1=raw.get("address1"),
        address2=raw.get("address2"),
        city=raw.get("city"),
        province=raw.get("province"),
        zip=raw.get("zip"),
        country=raw.get("country"),
        phone=raw.get("phone"),
    )


def _split_tags(value: Any) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(tag).strip() for tag in value if str(tag).strip())
    if not value:
        return ()
    return tuple(tag.strip() for tag in str(value).split(",") if tag.strip())


def _delivery_method(attributes: Iterable[dict]) -> Optional[str]:
    for attribute in attributes or ():
        name = str(attribute.get("name") or "").strip().lower()
        if name in DELIVERY_METHOD_ATTRIBUTES and attribute.get("value"):
            return str(attribute["value"]).strip()
    return None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def normalize_order(raw: dict) -> Order:
    """Convert a Shopify order payload into an ``Order``."""
    customer_raw = raw.get("customer") or {}
    shipping_address = _address(raw.get("shipping_address"))
    billing_address = _address(raw.get("billing_address"))

    name = f"{customer_raw.get('first_name') or ''} {customer_raw.get('last_name') or ''}".strip()
    phone = (
        customer_raw.get("phone")
        or (billing_address.phone if billing_address else None)
        or (shipping_address.phone if shipping_address else None)
    )

    order_number = raw.get("order_number") or raw.get("name") or raw.get("id")
    return Order(
        id=str(raw.get("id")),
        order_number=str(order_number),
        name=raw.get("name"),
        customer=CustomerInfo(
            name=name or "Unknown Customer",
            phone=phone or None,
            email=customer_raw.get("email"),
        ),
        shipping_address=shipping_address,
        billing_address=billing_address,
        tags=_split_tags(raw.get("tags")),
        shipping_lines=tuple(
            ShippingLine(title=line.get("title") or "", code=line.get("code") or "")
            for line in raw.get("shipping_lines") or []
        ),
        line_items=tuple(
            LineItem(title=item.get("name") or item.get("title") or "Item", quantity=int(item.get("quantity") or 1))
            for item in raw.get("line_items") or []
        ),
        fulfillment_status=raw.get("fulfillment_status") or "unfulfilled",
        delivery_method=_delivery_method(raw.get("note_attributes") or []),
        created_at=_parse_datetime(raw.get("created_at")),
    )


class ShopifyOrderSource:
    def __init__(
        self,
        shop: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.shop = shop or settings.shopify_shop
        self.access_token = access_token or settings.shopify_access_token
        if not self.shop or not self.access_token:
            raise OrderSourceConfigurationError("Shopify shop and access token are not configured.")
        self.api_version = api_version or settings.shopify_api_version
        self.timeout = timeout or settings.shopify_timeout_seconds
        self._transport = transport

    def fetch_orders(self, *, days: int, limit: int, status: str = "any") -> list[Order]:
        """Fetch orders created within the last ``days`` days."""
        since = datetime.now(timezone.utc) - timedelta(days=days)
        params = {
            "status": status,
            "limit": limit,
            "created_at_min": since.isoformat(),
        }
        url = f"https://{self.shop}/admin/api/{self.api_version}/orders.json"
        headers = {"X-Shopify-Access-Token": self.access_token}
        with httpx.Client(timeout=httpx.Timeout(self.timeout), transport=self._transport) as client:
            try:
                response = client.get(url, params=params, headers=headers)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as exc:
                raise OrderSourceError(f"Failed to fetch orders: {exc}") from exc
            except ValueError as exc:
                raise OrderSourceError("Failed to fetch orders: invalid JSON from Shopify") from exc

        orders = [normalize_order(raw) for raw in payload.get("orders") or []]
        logger.info("Fetched %d orders from Shopify (last %d days)", len(orders), days)
        return orders

    def fetch_unfulfilled_orders(self, *, days: int, limit: int) -> list[Order]:
        return [order for order in self.fetch_orders(days=days, limit=limit) if order.is_eligible]
