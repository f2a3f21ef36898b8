from datetime import datetime, timezone

import pytest

from src.farmdispatch.models.domain import Address, Coordinates, CustomerInfo, GeocodeStatus, Order, Section
from src.farmdispatch.services.delivery.session import (
    InvalidSessionKeyError,
    LoadingAction,
    SessionRegistry,
    SessionState,
    SessionValidationError,
    TruckLoadingSession,
)
from src.farmdispatch.services.routing.models import OptimizedRoute, RouteStop
from src.farmdispatch.services.routing.optimizer import NO_DELIVERIES_MESSAGE

FIXED = datetime(2024, 3, 2, 7, 30, tzinfo=timezone.utc)


def _order(number: str, *, delivery: bool, address1: str | None = "1 Farm Rd", status: str = "unfulfilled") -> Order:
    return Order(
        id=number,
        order_number=number,
        customer=CustomerInfo(name=f"Customer {number}"),
        delivery_method="Home Delivery" if delivery else "Pickup",
        shipping_address=Address(address1=address1, city="Newcastle") if address1 else None,
        fulfillment_status=status,
    )


class DummyResolver:
    """Resolves every address except the ones listed in ``fail``."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = 0

    def geocode_orders(self, orders):
        self.calls += 1
        results = []
        for order in orders:
            if order.geocode_status is not GeocodeStatus.UNRESOLVED:
                results.append(order)
            elif order.id in self.fail:
                results.append(order)
            else:
                results.append(order.with_geocode(Coordinates(151.0, -32.0), GeocodeStatus.RESOLVED))
        return results


class DummyOptimizer:
    def __init__(self, on_call=None):
        self.on_call = on_call
        self.submitted = []

    def optimize(self, orders, depot=None, end_location=None):
        self.submitted.append([order.id for order in orders])
        if self.on_call:
            self.on_call()
        stops = [
            RouteStop(order=order, sequence=index, arrival_time=index * 600, location=(151.0, -32.0))
            for index, order in enumerate(orders, start=1)
        ]
        return OptimizedRoute(stops=stops, total_distance=1000.0, total_time=600.0)


def _loaded_session(resolver=None) -> TruckLoadingSession:
    session = TruckLoadingSession("test", clock=lambda: FIXED)
    orders = [
        _order("1001", delivery=True),
        _order("1002", delivery=True),
        _order("1003", delivery=False, address1=None),
        _order("1004", delivery=True),
        _order("1005", delivery=False, status="fulfilled"),
    ]
    resolver = resolver or DummyResolver()
    session.load_orders(orders, resolver_factory=lambda: resolver)
    return session


def test_state_transitions():
    session = TruckLoadingSession("test")
    assert session.state is SessionState.IDLE

    session.load_orders([_order("1", delivery=True)], resolver_factory=DummyResolver)
    assert session.state is SessionState.ORDERS_LOADED

    outcome = session.optimize(DummyOptimizer)
    assert outcome.applied
    assert session.state is SessionState.ROUTE_OPTIMIZED

    session.reset_route()
    assert session.state is SessionState.ORDERS_LOADED

    session.clear()
    assert session.state is SessionState.IDLE


def test_load_orders_filters_and_partitions():
    session = _loaded_session()

    assert [order.id for order in session.orders] == ["1001", "1002", "1003", "1004"]
    assert [order.id for order in session.delivery_orders] == ["1001", "1002", "1004"]
    assert [order.id for order in session.pickup_orders] == ["1003"]
    assert session.summary() == {"total": 4, "deliveries": 3, "pickups": 1, "geocoded": 3, "unresolved": 0}


def test_pickups_only_never_builds_a_resolver():
    session = TruckLoadingSession("test")

    def _factory():
        raise AssertionError("resolver should not be built")

    session.load_orders([_order("1", delivery=False)], resolver_factory=_factory)

    assert session.state is SessionState.ORDERS_LOADED


def test_optimize_without_orders_is_rejected():
    with pytest.raises(SessionValidationError, match="No orders loaded"):
        TruckLoadingSession("test").optimize(DummyOptimizer)


def test_unresolved_orders_stay_listed_but_are_not_submitted():
    session = _loaded_session(DummyResolver(fail={"1002"}))
    optimizer = DummyOptimizer()

    outcome = session.optimize(lambda: optimizer)

    assert "1002" in [order.id for order in session.delivery_orders]
    assert optimizer.submitted == [["1001", "1004"]]
    assert outcome.submitted == 2
    assert outcome.debug == {"totalOrders": 3, "deliveryOrders": 3, "ordersWithCoordinates": 2}


def test_nothing_routable_returns_message_without_optimizer():
    session = _loaded_session(DummyResolver(fail={"1001", "1002", "1004"}))

    def _factory():
        raise AssertionError("optimizer should not be built")

    outcome = session.optimize(_factory)

    assert outcome.route.is_empty
    assert outcome.route.message == NO_DELIVERIES_MESSAGE
    assert session.state is SessionState.ORDERS_LOADED


def test_optimize_subset_by_order_ids():
    session = _loaded_session()
    optimizer = DummyOptimizer()

    session.optimize(lambda: optimizer, order_ids=["1004", "1003", "1001"])

    assert optimizer.submitted == [["1004", "1001"]]


def test_optimize_unknown_order_id_is_rejected():
    session = _loaded_session()

    with pytest.raises(SessionValidationError, match="Unknown order ids: 9999"):
        session.optimize(DummyOptimizer, order_ids=["9999"])


def test_stale_optimization_result_is_discarded():
    session = _loaded_session()
    optimizer = DummyOptimizer(on_call=session.reset_route)

    outcome = session.optimize(lambda: optimizer)

    assert not outcome.applied
    assert session.route is None
    assert session.state is SessionState.ORDERS_LOADED


def test_reset_route_keeps_loaded_state():
    session = _loaded_session()
    session.optimize(DummyOptimizer)
    order = session.get_order(order_number="1001")
    session.set_loading(order, LoadingAction.LOAD)

    session.reset_route()

    assert session.route is None
    assert session.tracker.is_loaded("1001")


def test_clear_empties_loaded_state_and_history():
    session = _loaded_session()
    session.scan("1001")

    session.clear()

    assert session.orders == []
    assert len(session.tracker) == 0
    assert not session.recent_scans
    assert not session.history


def test_loaded_state_survives_a_short_reload():
    session = _loaded_session()
    session.scan("1001")
    session.scan("1003")

    session.load_orders([_order("1003", delivery=False, address1=None)])
    assert session.tracker.is_loaded("1001")

    session.load_orders([_order("1001", delivery=True), _order("1003", delivery=False, address1=None)], DummyResolver)

    assert session.tracker.is_loaded("1001")
    assert session.tracker.is_loaded("1003")
    assert session.loading_status()["summary"]["totalLoaded"] == 2


def test_set_loading_rejects_wrong_section():
    session = _loaded_session()
    order = session.get_order(order_number="1003")

    with pytest.raises(SessionValidationError, match="fridge section"):
        session.set_loading(order, LoadingAction.LOAD, Section.FREEZER)


def test_set_loading_toggle_and_history():
    session = _loaded_session()
    order = session.get_order(order_id="1001")

    entry = session.set_loading(order, LoadingAction.TOGGLE, Section.FREEZER)
    assert entry.timestamp == FIXED
    assert session.set_loading(order, LoadingAction.TOGGLE) is None

    assert [event.action for event in session.history] == ["unload", "load"]
    assert session.history[0].customer_name == "Customer 1001"


def test_get_order_unknown_raises_key_error():
    with pytest.raises(KeyError):
        _loaded_session().get_order(order_number="404")


def test_scan_loads_and_reports_already_loaded():
    session = _loaded_session()

    first = session.scan("1002")
    second = session.scan("1002")

    assert first.found and not first.already_loaded
    assert first.entry.section is Section.FREEZER
    assert second.already_loaded
    assert session.tracker.is_loaded("1002")
    assert [scan.code for scan in session.recent_scans] == ["1002", "1002"]


def test_scan_miss_is_recorded():
    session = _loaded_session()

    outcome = session.scan("100")

    assert not outcome.found
    assert outcome.lookup.match == "ambiguous"
    assert session.recent_scans[0].found is False
    assert len(session.tracker) == 0


def test_feed_keys_scans_completed_codes():
    session = _loaded_session()
    keys = [(key, index * 0.01) for index, key in enumerate("1004")] + [("Enter", 0.05)]
    keys += [(key, 1.0 + index * 0.01) for index, key in enumerate("1003")]

    outcomes = session.feed_keys(keys, now=2.0)

    assert [outcome.lookup.code for outcome in outcomes] == ["1004", "1003"]
    assert session.tracker.is_loaded("1004")
    assert session.tracker.is_loaded("1003")


def test_loading_status_and_exports():
    session = _loaded_session()
    session.scan("1003")

    status = session.loading_status()

    assert status["loadedOrders"] == {"1003": {"timestamp": FIXED.isoformat(), "section": "fridge"}}
    assert status["summary"]["fridgeLoaded"] == 1
    assert "1003,Customer 1003,Fridge,Order items,Loaded" in session.export_loading_list()

    with pytest.raises(SessionValidationError, match="optimize route first"):
        session.export_route_sheet()

    session.optimize(DummyOptimizer)
    assert session.export_route_sheet().splitlines()[1].startswith("1,1001,Customer 1001,1 Farm Rd Newcastle")


def test_export_loading_list_needs_orders():
    with pytest.raises(SessionValidationError):
        TruckLoadingSession("empty").export_loading_list()


def test_registry_defaults_to_today_and_reuses_sessions():
    registry = SessionRegistry()

    today = registry.get()
    named = registry.get("market-day")

    assert today.key == SessionRegistry.default_key()
    assert registry.get("  ") is today
    assert registry.get("market-day") is named
    assert registry.keys() == sorted([today.key, "market-day"])

    registry.drop("market-day")
    assert registry.get("market-day") is not named


@pytest.mark.parametrize("key", ["x/../../../escaped", "..", "a b", "x" * 65, "route\\win"])
def test_session_keys_must_be_plain_names(key):
    with pytest.raises(InvalidSessionKeyError):
        SessionRegistry().get(key)
    with pytest.raises(InvalidSessionKeyError):
        TruckLoadingSession(key)


def test_session_key_with_trailing_newline_is_rejected():
    with pytest.raises(InvalidSessionKeyError):
        TruckLoadingSession("truck\n")
