from datetime import datetime, timezone

import pytest

from src.farmdispatch.models.domain import Address, Order, Section
from src.farmdispatch.services.delivery.classifier import classify_order
from src.farmdispatch.services.loading.lookup import find_order_by_code
from src.farmdispatch.services.loading.scanner import ScanBuffer, ScanState
from src.farmdispatch.services.loading.tracker import LoadingTracker

FIXED = datetime(2024, 3, 2, 7, 30, tzinfo=timezone.utc)


def _pickup(number: str, name: str | None = None):
    return classify_order(Order(id=f"gid-{number}", order_number=number, name=name, delivery_method="Pickup"))


def _delivery(number: str):
    return classify_order(
        Order(
            id=f"gid-{number}",
            order_number=number,
            delivery_method="Home Delivery",
            shipping_address=Address(address1="1 Farm Rd", city="Newcastle"),
        )
    )


def test_toggle_twice_restores_state():
    tracker = LoadingTracker(clock=lambda: FIXED)
    order = _pickup("1001")

    assert tracker.toggle(order) is True
    assert tracker.get(order.id).section is Section.FRIDGE
    assert tracker.get(order.id).timestamp == FIXED
    assert tracker.toggle(order) is False
    assert not tracker.is_loaded(order.id)
    assert len(tracker) == 0


def test_load_is_idempotent_and_keeps_first_timestamp():
    times = iter([FIXED, datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)])
    tracker = LoadingTracker(clock=lambda: next(times))
    order = _delivery("1002")

    first = tracker.load(order)
    second = tracker.load(order)

    assert first is second
    assert first.timestamp == FIXED
    assert first.section is Section.FREEZER


def test_unload_of_unloaded_order_is_noop():
    tracker = LoadingTracker()

    assert tracker.unload(_pickup("1003")) is False


def test_summary_counts_sections():
    tracker = LoadingTracker()
    orders = [_pickup("1"), _pickup("2"), _delivery("3"), _delivery("4"), _delivery("5")]
    tracker.load(orders[0])
    tracker.load(orders[2])
    tracker.load(orders[3])

    summary = tracker.summary(orders)

    assert summary == {
        "freezerLoaded": 2,
        "fridgeLoaded": 1,
        "totalLoaded": 3,
        "freezerTotal": 3,
        "fridgeTotal": 2,
        "totalOrders": 5,
    }


def test_lookup_prefers_exact_match():
    orders = [_pickup("1001"), _pickup("1007"), _pickup("1010")]

    result = find_order_by_code("1007", orders)

    assert result.found
    assert result.match == "exact"
    assert result.order.order_number == "1007"


def test_lookup_reports_ambiguous_partial_matches():
    orders = [_pickup("1001"), _pickup("1007"), _pickup("1010")]

    result = find_order_by_code("100", orders)

    assert not result.found
    assert result.match == "ambiguous"
    assert result.candidates == ["1001", "1007"]


def test_lookup_accepts_unique_partial_and_display_name():
    orders = [_pickup("1001", name="#1001"), _pickup("2002", name="#2002")]

    partial = find_order_by_code("200", orders)
    by_name = find_order_by_code("  #1001 ", orders)

    assert partial.match == "partial"
    assert partial.order.order_number == "2002"
    assert by_name.match == "exact"
    assert by_name.order.order_number == "1001"


def test_lookup_misses():
    assert find_order_by_code("9999", [_pickup("1001")]).match == "none"
    assert not find_order_by_code("   ", [_pickup("1001")]).found


def test_scanner_emits_on_enter():
    buffer = ScanBuffer(debounce_ms=100)

    emitted = []
    for offset, key in enumerate("1007"):
        emitted += buffer.feed(key, offset * 0.01)
        assert buffer.state is ScanState.ACCUMULATING
    emitted += buffer.feed("Enter", 0.05)

    assert emitted == ["1007"]
    assert buffer.state is ScanState.IDLE
    assert buffer.pending == ""


def test_scanner_flushes_after_quiet_period():
    buffer = ScanBuffer(debounce_ms=100)
    for offset, key in enumerate("42"):
        buffer.feed(key, offset * 0.01)

    assert buffer.poll(0.05) is None
    assert buffer.poll(0.2) == "42"
    assert buffer.state is ScanState.IDLE


def test_scanner_splits_codes_separated_by_a_pause():
    buffer = ScanBuffer(debounce_ms=100)
    buffer.feed("1", 0.0)
    buffer.feed("2", 0.01)

    emitted = buffer.feed("3", 0.5)

    assert emitted == ["12"]
    assert buffer.pending == "3"


def test_scanner_ignores_control_keys_and_blank_codes():
    buffer = ScanBuffer(debounce_ms=100)

    assert buffer.feed("Shift", 0.0) == []
    assert buffer.feed("Enter", 0.01) == []
    buffer.feed("7", 0.02)
    buffer.feed("Shift", 0.03)
    assert buffer.feed("\r", 0.04) == ["7"]


@pytest.mark.parametrize("key", ["Enter", "\n", "\r"])
def test_scanner_enter_variants(key):
    buffer = ScanBuffer(debounce_ms=100)
    buffer.feed("9", 0.0)

    assert buffer.feed(key, 0.01) == ["9"]
