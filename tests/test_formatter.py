import csv
import io

from src.farmdispatch.models.domain import Address, Coordinates, CustomerInfo, GeocodeStatus, LineItem, Order
from src.farmdispatch.services.delivery.classifier import classify_order
from src.farmdispatch.services.loading.tracker import LoadingTracker
from src.farmdispatch.services.outputs.formatter import (
    LOADING_LIST_FIELDS,
    ROUTE_SHEET_FIELDS,
    loading_list_to_csv,
    order_to_json,
    route_sheet_to_csv,
    route_to_json,
)
from src.farmdispatch.services.routing.models import OptimizedRoute, RouteStop


def _rows(content: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content)))


def _delivery(number: str, name: str = "Alex Green", phone: str | None = "0400 000 000"):
    order = classify_order(
        Order(
            id=number,
            order_number=number,
            customer=CustomerInfo(name=name, phone=phone),
            delivery_method="Home Delivery",
            shipping_address=Address(address1="12 Farm Rd, Unit 3", city="Newcastle"),
            line_items=(LineItem(title="Beef Mince", quantity=2), LineItem(title="Lamb Chops")),
        )
    )
    return order.with_geocode(Coordinates(151.7, -32.9), GeocodeStatus.RESOLVED)


def test_comma_in_customer_name_keeps_column_count():
    order = classify_order(
        Order(id="1001", order_number="1001", customer=CustomerInfo(name="Smith, J"), delivery_method="Pickup")
    )

    rows = _rows(loading_list_to_csv([order], LoadingTracker()))

    assert rows[0] == LOADING_LIST_FIELDS
    assert rows[1] == ["1001", "Smith; J", "Fridge", "Order items", "Not Loaded"]
    assert all(len(row) == 5 for row in rows)


def test_loading_list_marks_loaded_orders_and_sections():
    tracker = LoadingTracker()
    order = _delivery("1002")
    tracker.load(order)

    rows = _rows(loading_list_to_csv([order], tracker))

    assert rows[1] == ["1002", "Alex Green", "Freezer", "2 x Beef Mince; Lamb Chops", "Loaded"]


def test_route_sheet_lists_stops_in_delivery_order():
    first, second = _delivery("2001"), _delivery("2002", name="Sam\nLee", phone=None)
    route = OptimizedRoute(
        stops=[
            RouteStop(order=second, sequence=1, arrival_time=600, location=(151.7, -32.9)),
            RouteStop(order=first, sequence=2, arrival_time=1200, location=(151.7, -32.9)),
        ]
    )

    rows = _rows(route_sheet_to_csv(route))

    assert rows[0] == ROUTE_SHEET_FIELDS
    assert rows[1] == ["1", "2002", "Sam Lee", "12 Farm Rd; Unit 3 Newcastle", "2 x Beef Mince; Lamb Chops", ""]
    assert rows[2][:2] == ["2", "2001"]
    assert all(len(row) == 6 for row in rows)


def test_order_to_json_shape():
    tracker = LoadingTracker()
    order = _delivery("3001")
    tracker.load(order)

    body = order_to_json(order, tracker)

    assert body["orderNumber"] == "3001"
    assert body["deliveryType"] == "delivery"
    assert body["section"] == "freezer"
    assert body["geocodeStatus"] == "resolved"
    assert body["customer"]["address"]["longitude"] == 151.7
    assert body["loaded"] is True
    assert body["loadedAt"] is not None


def test_order_to_json_hides_address_for_pickups():
    order = classify_order(
        Order(
            id="3002",
            order_number="3002",
            delivery_method="Pickup",
            shipping_address=Address(address1="1 Market St", city="Maitland"),
        )
    )

    body = order_to_json(order)

    assert body["customer"]["address"] is None
    assert body["loaded"] is False


def test_route_to_json_includes_packing_order():
    stops = [
        RouteStop(order=_delivery(str(number)), sequence=index, arrival_time=0, location=(151.0, -32.0))
        for index, number in enumerate((4001, 4002, 4003), start=1)
    ]
    route = OptimizedRoute(stops=stops, total_distance=12340.0, total_time=1800.0)

    body = route_to_json(route)

    assert [stop["orderNumber"] for stop in body["optimizedRoute"]] == ["4001", "4002", "4003"]
    assert [stop["orderNumber"] for stop in body["packingOrder"]] == ["4003", "4002", "4001"]
    assert body["summary"]["totalDistance"] == 12.34
    assert body["summary"]["totalTime"] == 30
