"""Address resolution through the OpenRouteService geocoder."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import Address, ClassifiedOrder, Coordinates, GeocodeStatus
from .ors_client import OpenRouteServiceClient, OpenRouteServiceError

logger = logging.getLogger(__name__)


def build_query(address: Address, default_country: str | None = None) -> str:
    country = address.country or default_country or settings.geocode_default_country
    parts = [address.address1, address.city, address.province, country]
    return " ".join(part.strip() for part in parts if part and part.strip())


def _feature_to_coordinates(feature: dict) -> Optional[Coordinates]:
    try:
        longitude, latitude = feature["geometry"]["coordinates"][:2]
        confidence = (feature.get("properties") or {}).get("confidence") or 0.0
        return Coordinates(longitude=float(longitude), latitude=float(latitude), confidence=float(confidence))
    except (KeyError, TypeError, ValueError):
        return None


class AddressResolver:
    """Resolve addresses one lookup at a time, never failing the batch."""

    def __init__(
        self,
        client: OpenRouteServiceClient | None = None,
        *,
        country: str | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.client = client or OpenRouteServiceClient()
        self.country = country or settings.geocode_country
        self.max_workers = max_workers or settings.geocode_max_workers

    def resolve(self, address: Optional[Address]) -> Optional[Coordinates]:
        if address is None or not (address.address1 or "").strip():
            logger.warning("Skipping geocoding for malformed address: %s", address)
            return None
        query = build_query(address)
        try:
            features = self.client.geocode_search(query, country=self.country, size=1)
        except OpenRouteServiceError as exc:
            logger.warning("Geocoding failed for %r: %s", query, exc)
            return None
        if not features:
            logger.warning("No geocoding results found for %r", query)
            return None
        coordinates = _feature_to_coordinates(features[0])
        if coordinates is None:
            logger.warning("Geocoding result for %r has no usable coordinates", query)
        return coordinates

    def _geocode_one(self, classified: ClassifiedOrder) -> ClassifiedOrder:
        if not classified.is_delivery:
            return classified
        address = classified.order.delivery_address
        if address is None:
            return classified.with_geocode(None, GeocodeStatus.NO_ADDRESS)
        coordinates = self.resolve(address)
        if coordinates is None:
            logger.warning("Order %s excluded from routing: address unresolved", classified.order_number)
            return classified.with_geocode(None, GeocodeStatus.UNRESOLVED)
        return classified.with_geocode(coordinates, GeocodeStatus.RESOLVED)

    def geocode_orders(self, orders: Sequence[ClassifiedOrder]) -> list[ClassifiedOrder]:
        """Geocode the delivery orders of a batch, preserving input order."""
        pending = [order for order in orders if order.is_delivery]
        if not pending:
            return list(orders)
        logger.info("Geocoding %d delivery addresses with %d workers", len(pending), self.max_workers)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            resolved = list(executor.map(self._geocode_one, pending))
        by_id = {order.id: order for order in resolved}
        results = [by_id.get(order.id, order) for order in orders]
        found = sum(1 for order in resolved if order.coordinates is not None)
        logger.info("Geocoded %d/%d delivery addresses", found, len(pending))
        return results
