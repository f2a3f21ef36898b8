"""Serializers for loading lists and route sheets."""

from __future__ import annotations

import csv
import io
from typing import Sequence

from ...models.domain import ClassifiedOrder, Section
from ..loading.tracker import LoadingTracker
from ..routing.models import OptimizedRoute

LOADING_LIST_FIELDS = ["Order Number", "Customer Name", "Section", "Items", "Status"]
ROUTE_SHEET_FIELDS = ["Stop Number", "Order Number", "Customer Name", "Address", "Items", "Phone"]


def _clean(value: object) -> str:
    """Free text with commas replaced so every row keeps its column count."""
    return str(value if value is not None else "").replace(",", ";").replace("\n", " ").strip()


def loading_list_to_csv(orders: Sequence[ClassifiedOrder], tracker: LoadingTracker) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=LOADING_LIST_FIELDS, lineterminator="\n")
    writer.writeheader()
    for order in orders:
        writer.writerow(
            {
                "Order Number": _clean(order.order_number),
                "Customer Name": _clean(order.order.customer.name or "Unknown"),
                "Section": "Freezer" if order.section is Section.FREEZER else "Fridge",
                "Items": _clean(order.order.item_summary()),
                "Status": "Loaded" if tracker.is_loaded(order.id) else "Not Loaded",
            }
        )
    return buffer.getvalue()


def route_sheet_to_csv(route: OptimizedRoute) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=ROUTE_SHEET_FIELDS, lineterminator="\n")
    writer.writeheader()
    for index, stop in enumerate(route.stops, start=1):
        order = stop.order.order
        address = order.delivery_address
        writer.writerow(
            {
                "Stop Number": index,
                "Order Number": _clean(order.order_number),
                "Customer Name": _clean(order.customer.name or "Unknown"),
                "Address": _clean(address.display() if address else "No address"),
                "Items": _clean(order.item_summary()),
                "Phone": _clean(order.customer.phone or ""),
            }
        )
    return buffer.getvalue()


def order_to_json(order: ClassifiedOrder, tracker: LoadingTracker | None = None) -> dict:
    source = order.order
    address = source.delivery_address if order.is_delivery else None
    entry = tracker.get(order.id) if tracker is not None else None
    return {
        "id": source.id,
        "orderNumber": source.order_number,
        "name": source.name,
        "customer": {
            "name": source.customer.name,
            "phone": source.customer.phone,
            "email": source.customer.email,
            "address": {
                "address1": address.address1,
                "city": address.city,
                "province": address.province,
                "zip": address.zip,
                "longitude": order.coordinates.longitude if order.coordinates else None,
                "latitude": order.coordinates.latitude if order.coordinates else None,
            }
            if address
            else None,
        },
        "tags": list(source.tags),
        "fulfillmentStatus": source.fulfillment_status,
        "items": source.item_summary(),
        "deliveryType": order.delivery_type.value,
        "deliveryMethod": order.delivery_method.value,
        "section": order.section.value,
        "classificationRule": order.rule,
        "geocodeStatus": order.geocode_status.value,
        "loaded": entry is not None,
        "loadedAt": entry.timestamp.isoformat() if entry else None,
    }


def route_to_json(route: OptimizedRoute, tracker: LoadingTracker | None = None) -> dict:
    def _stop(stop) -> dict:
        return {
            **order_to_json(stop.order, tracker),
            "sequence": stop.sequence,
            "arrivalTime": stop.arrival_time,
            "location": list(stop.location),
        }

    return {
        "optimizedRoute": [_stop(stop) for stop in route.stops],
        "packingOrder": [_stop(stop) for stop in route.packing_order],
        "totalDistance": route.total_distance,
        "totalTime": route.total_time,
        "geometry": route.geometry,
        "summary": route.summary(),
    }
