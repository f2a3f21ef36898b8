"""Pickup vs home-delivery classification.

Orders are tagged by hand and the storefront shipping method is free text, so
no single field can be trusted. The classifier evaluates an ordered list of
named rules; the first rule that returns a method wins and its name is kept on
the classified order so the decision can be audited later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from ...models.domain import (
    SECTION_FOR_TYPE,
    Address,
    ClassifiedOrder,
    DeliveryMethod,
    DeliveryType,
    GeocodeStatus,
    Order,
)

logger = logging.getLogger(__name__)

PICKUP_KEYWORDS = ("pickup", "collection", "market")
DELIVERY_KEYWORDS = ("delivery", "shipping", "post", "courier")

SHIPPING_LINE_PICKUP_KEYWORDS = ("pickup", "collection", "collect", "market", "store pickup", "local pickup")
SHIPPING_LINE_DELIVERY_KEYWORDS = (
    "delivery",
    "shipping",
    "post",
    "courier",
    "express",
    "standard",
    "home delivery",
)


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    evaluate: Callable[[Order], Optional[DeliveryMethod]]


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _match_keywords(
    text: str,
    pickup_keywords: Sequence[str] = PICKUP_KEYWORDS,
    delivery_keywords: Sequence[str] = DELIVERY_KEYWORDS,
) -> Optional[DeliveryMethod]:
    if _contains_any(text, pickup_keywords):
        return DeliveryMethod.PICKUP
    if _contains_any(text, delivery_keywords):
        return DeliveryMethod.HOME_DELIVERY
    return None


def _explicit_method(order: Order) -> Optional[DeliveryMethod]:
    raw = (order.delivery_method or "").strip()
    for method in DeliveryMethod:
        if raw == method.value:
            return method
    return None


def _method_keywords(order: Order) -> Optional[DeliveryMethod]:
    raw = (order.delivery_method or "").strip().lower()
    if not raw:
        return None
    return _match_keywords(raw)


def _tag_keywords(order: Order) -> Optional[DeliveryMethod]:
    tags = [tag.strip().lower() for tag in order.tags if tag and tag.strip()]
    # pickup wins over delivery across the whole tag set
    for keywords, method in (
        (PICKUP_KEYWORDS, DeliveryMethod.PICKUP),
        (DELIVERY_KEYWORDS, DeliveryMethod.HOME_DELIVERY),
    ):
        if any(_contains_any(tag, keywords) for tag in tags):
            return method
    return None


def _shipping_line_keywords(order: Order) -> Optional[DeliveryMethod]:
    if not order.shipping_lines:
        return None
    line = order.shipping_lines[0]
    text = f"{line.title or ''} {line.code or ''}".lower().strip()
    if not text:
        return None
    return _match_keywords(text, SHIPPING_LINE_PICKUP_KEYWORDS, SHIPPING_LINE_DELIVERY_KEYWORDS)


def _normalized(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


def addresses_differ(first: Address, second: Address) -> bool:
    """Return True when two addresses differ in street line or city."""
    return _normalized(first.address1) != _normalized(second.address1) or _normalized(
        first.city
    ) != _normalized(second.city)


def _address_heuristics(order: Order) -> Optional[DeliveryMethod]:
    shipping = order.shipping_address if order.shipping_address and order.shipping_address.is_present else None
    billing = order.billing_address if order.billing_address and order.billing_address.is_present else None

    if shipping and billing:
        if addresses_differ(shipping, billing):
            return DeliveryMethod.HOME_DELIVERY
        # identical addresses are inconclusive and fall through to the default
        return None
    if shipping:
        return DeliveryMethod.HOME_DELIVERY
    if billing:
        return DeliveryMethod.PICKUP
    return None


RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("explicit_method", _explicit_method),
    ClassificationRule("method_keywords", _method_keywords),
    ClassificationRule("tag_keywords", _tag_keywords),
    ClassificationRule("shipping_line_keywords", _shipping_line_keywords),
    ClassificationRule("address_heuristics", _address_heuristics),
)

FALLBACK_RULE = "default_pickup"


def determine_delivery_method(
    order: Order, rules: Sequence[ClassificationRule] = RULES
) -> tuple[DeliveryMethod, str]:
    """Return the delivery method for an order and the name of the rule that decided it."""
    for rule in rules:
        method = rule.evaluate(order)
        if method is not None:
            logger.debug("Order %s classified as %s by rule %s", order.order_number, method.value, rule.name)
            return method, rule.name
    logger.debug("Order %s defaulted to %s", order.order_number, DeliveryMethod.PICKUP.value)
    return DeliveryMethod.PICKUP, FALLBACK_RULE


def classify(order: Order) -> DeliveryMethod:
    method, _ = determine_delivery_method(order)
    return method


def classify_order(order: Order) -> ClassifiedOrder:
    """Build the classified record for an order with its fixed truck section."""
    method, rule = determine_delivery_method(order)
    delivery_type = DeliveryType.PICKUP if method is DeliveryMethod.PICKUP else DeliveryType.DELIVERY
    if delivery_type is DeliveryType.DELIVERY:
        geocode_status = GeocodeStatus.NO_ADDRESS if order.delivery_address is None else GeocodeStatus.UNRESOLVED
    else:
        geocode_status = GeocodeStatus.NOT_REQUIRED
    return ClassifiedOrder(
        order=order,
        delivery_type=delivery_type,
        delivery_method=method,
        section=SECTION_FOR_TYPE[delivery_type],
        rule=rule,
        geocode_status=geocode_status,
    )
