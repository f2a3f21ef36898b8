"""Domain models for orders flowing through the truck-loading workflow."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class DeliveryMethod(str, Enum):
    PICKUP = "Pickup"
    HOME_DELIVERY = "Home Delivery"


class DeliveryType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class Section(str, Enum):
    """Physical truck compartment."""

    FRIDGE = "fridge"
    FREEZER = "freezer"


class GeocodeStatus(str, Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    NO_ADDRESS = "no_address"
    NOT_REQUIRED = "not_required"


ELIGIBLE_FULFILLMENT_STATUSES = frozenset({"unfulfilled", "partial"})


@dataclass(slots=True, frozen=True)
class Address:
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_present(self) -> bool:
        return bool((self.address1 or "").strip() or (self.city or "").strip())

    def display(self) -> str:
        return f"{self.address1 or ''} {self.city or ''}".strip()


@dataclass(slots=True, frozen=True)
class CustomerInfo:
    name: str = "Unknown Customer"
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ShippingLine:
    title: str = ""
    code: str = ""


@dataclass(slots=True, frozen=True)
class LineItem:
    title: str
    quantity: int = 1


@dataclass(slots=True, frozen=True)
class Order:
    """A store order as received from the order source."""

    id: str
    order_number: str
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    name: Optional[str] = None
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    tags: tuple[str, ...] = ()
    shipping_lines: tuple[ShippingLine, ...] = ()
    line_items: tuple[LineItem, ...] = ()
    fulfillment_status: str = "unfulfilled"
    delivery_method: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_eligible(self) -> bool:
        return (self.fulfillment_status or "").lower() in ELIGIBLE_FULFILLMENT_STATUSES

    @property
    def delivery_address(self) -> Optional[Address]:
        """Address used for delivery: shipping address, else billing address."""
        for address in (self.shipping_address, self.billing_address):
            if address is not None and address.is_present:
                return address
        return None

    def item_summary(self) -> str:
        if not self.line_items:
            return "Order items"
        parts = []
        for item in self.line_items:
            if item.quantity > 1:
                parts.append(f"{item.quantity} x {item.title}")
            else:
                parts.append(item.title)
        return ", ".join(parts)


@dataclass(slots=True, frozen=True)
class Coordinates:
    longitude: float
    latitude: float
    confidence: float = 0.0

    def as_lonlat(self) -> list[float]:
        return [self.longitude, self.latitude]


SECTION_FOR_TYPE = {
    DeliveryType.PICKUP: Section.FRIDGE,
    DeliveryType.DELIVERY: Section.FREEZER,
}


@dataclass(slots=True, frozen=True)
class ClassifiedOrder:
    """An order after classification; geocoding produces a new copy."""

    order: Order
    delivery_type: DeliveryType
    delivery_method: DeliveryMethod
    section: Section
    rule: str
    coordinates: Optional[Coordinates] = None
    geocode_status: GeocodeStatus = GeocodeStatus.NOT_REQUIRED

    @property
    def id(self) -> str:
        return self.order.id

    @property
    def order_number(self) -> str:
        return self.order.order_number

    @property
    def is_delivery(self) -> bool:
        return self.delivery_type is DeliveryType.DELIVERY

    @property
    def is_routable(self) -> bool:
        return self.is_delivery and self.coordinates is not None

    def with_geocode(self, coordinates: Optional[Coordinates], status: GeocodeStatus) -> "ClassifiedOrder":
        return replace(self, coordinates=coordinates, geocode_status=status)


@dataclass(slots=True, frozen=True)
class LoadedEntry:
    timestamp: datetime
    section: Section
