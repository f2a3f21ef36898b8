"""Truck-loading session: orders, optimized route and loading progress for one operator."""

from __future__ import annotations

import logging
import re
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from ...models.domain import ClassifiedOrder, GeocodeStatus, LoadedEntry, Order, Section
from ..loading.lookup import LookupResult, find_order_by_code
from ..loading.scanner import ScanBuffer
from ..loading.tracker import LoadingTracker
from ..outputs.formatter import loading_list_to_csv, route_sheet_to_csv
from ..routing.geocoder import AddressResolver
from ..routing.models import OptimizedRoute
from ..routing.optimizer import NO_DELIVERIES_MESSAGE, RouteOptimizer
from .classifier import classify_order

logger = logging.getLogger(__name__)

RECENT_SCAN_LIMIT = 10
HISTORY_LIMIT = 200
SESSION_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class SessionState(str, Enum):
    IDLE = "idle"
    ORDERS_LOADED = "orders_loaded"
    ROUTE_OPTIMIZED = "route_optimized"


class LoadingAction(str, Enum):
    LOAD = "load"
    UNLOAD = "unload"
    TOGGLE = "toggle"


class SessionValidationError(ValueError):
    """Raised for requests that do not fit the current session contents."""


class InvalidSessionKeyError(SessionValidationError):
    """Raised for session keys that are not short alphanumeric names."""


def validate_session_key(key: str) -> str:
    if not SESSION_KEY_PATTERN.fullmatch(key or ""):
        raise InvalidSessionKeyError(
            "Invalid session key: use 1-64 letters, digits, '-' or '_'."
        )
    return key


@dataclass(slots=True, frozen=True)
class LoadingEvent:
    order_id: str
    order_number: str
    customer_name: str
    action: str
    section: Section
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class ScanRecord:
    code: str
    found: bool
    timestamp: datetime


@dataclass(slots=True)
class ScanOutcome:
    lookup: LookupResult
    entry: Optional[LoadedEntry] = None
    already_loaded: bool = False

    @property
    def found(self) -> bool:
        return self.lookup.found


@dataclass(slots=True)
class OptimizationOutcome:
    route: OptimizedRoute
    applied: bool
    submitted: int
    debug: dict = field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TruckLoadingSession:
    """State for one loading session.

    The loaded-state table outlives route resets and order reloads; only
    :meth:`clear` empties it.
    """

    def __init__(
        self,
        key: str,
        tracker: LoadingTracker | None = None,
        scanner: ScanBuffer | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.key = validate_session_key(key)
        self.tracker = tracker or LoadingTracker(clock=clock)
        self.scanner = scanner or ScanBuffer()
        self._clock = clock
        self._lock = threading.RLock()
        self._orders: list[ClassifiedOrder] = []
        self._route: Optional[OptimizedRoute] = None
        self._generation = 0
        self.recent_scans: deque[ScanRecord] = deque(maxlen=RECENT_SCAN_LIMIT)
        self.history: deque[LoadingEvent] = deque(maxlen=HISTORY_LIMIT)

    # -- views ---------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            if self._route is not None:
                return SessionState.ROUTE_OPTIMIZED
            if self._orders:
                return SessionState.ORDERS_LOADED
            return SessionState.IDLE

    @property
    def orders(self) -> list[ClassifiedOrder]:
        with self._lock:
            return list(self._orders)

    @property
    def delivery_orders(self) -> list[ClassifiedOrder]:
        return [order for order in self.orders if order.is_delivery]

    @property
    def pickup_orders(self) -> list[ClassifiedOrder]:
        return [order for order in self.orders if not order.is_delivery]

    @property
    def route(self) -> Optional[OptimizedRoute]:
        with self._lock:
            return self._route

    def summary(self) -> dict:
        orders = self.orders
        deliveries = [order for order in orders if order.is_delivery]
        return {
            "total": len(orders),
            "deliveries": len(deliveries),
            "pickups": len(orders) - len(deliveries),
            "geocoded": sum(1 for order in deliveries if order.coordinates is not None),
            "unresolved": sum(1 for order in deliveries if order.coordinates is None),
        }

    # -- orders --------------------------------------------------------------

    def load_orders(
        self,
        orders: Iterable[Order],
        resolver_factory: Callable[[], AddressResolver] | None = None,
    ) -> list[ClassifiedOrder]:
        """Classify and geocode a fresh batch of orders and make it the session's batch.

        Any optimized route is discarded because it was built from the previous batch.
        Loaded entries are kept, even for orders missing from the new batch.
        """
        classified = [classify_order(order) for order in orders if order.is_eligible]
        needs_geocoding = any(order.geocode_status is GeocodeStatus.UNRESOLVED for order in classified)
        if needs_geocoding:
            if resolver_factory is None:
                raise SessionValidationError("Delivery orders need geocoding but no resolver is available.")
            classified = resolver_factory().geocode_orders(classified)

        with self._lock:
            self._orders = classified
            self._route = None
            self._generation += 1
        logger.info("Session %s loaded orders: %s", self.key, self.summary())
        return list(classified)

    def get_order(self, *, order_id: str | None = None, order_number: str | None = None) -> ClassifiedOrder:
        for order in self.orders:
            if order_id is not None and order.id == str(order_id):
                return order
            if order_number is not None and order.order_number == str(order_number):
                return order
        raise KeyError(order_id or order_number)

    # -- route ---------------------------------------------------------------

    def select_for_routing(self, order_ids: Sequence[str] | None = None) -> list[ClassifiedOrder]:
        deliveries = self.delivery_orders
        if not order_ids:
            return deliveries
        by_id = {order.id: order for order in self.orders}
        unknown = [order_id for order_id in order_ids if str(order_id) not in by_id]
        if unknown:
            raise SessionValidationError(f"Unknown order ids: {', '.join(map(str, unknown))}")
        return [by_id[str(order_id)] for order_id in order_ids if by_id[str(order_id)].is_delivery]

    def optimize(
        self,
        optimizer_factory: Callable[[], RouteOptimizer],
        order_ids: Sequence[str] | None = None,
        depot: tuple[float, float] | None = None,
        end_location: tuple[float, float] | None = None,
    ) -> OptimizationOutcome:
        """Optimize the delivery subset and apply the result unless a newer request superseded it.

        The optimizer is only built when there is something to route, so an
        empty delivery list never needs routing credentials.
        """
        with self._lock:
            if not self._orders:
                raise SessionValidationError("No orders loaded. Load orders before optimizing the route.")
            candidates = self.select_for_routing(order_ids)
            self._generation += 1
            token = self._generation

        routable = [order for order in candidates if order.is_routable]
        debug = {
            "totalOrders": len(candidates),
            "deliveryOrders": sum(1 for order in candidates if order.is_delivery),
            "ordersWithCoordinates": len(routable),
        }
        if not routable:
            return OptimizationOutcome(
                route=OptimizedRoute(message=NO_DELIVERIES_MESSAGE), applied=False, submitted=0, debug=debug
            )
        route = optimizer_factory().optimize(routable, depot, end_location)

        with self._lock:
            applied = token == self._generation
            if applied:
                self._route = route
            else:
                logger.info("Discarding stale optimization result for session %s", self.key)
        return OptimizationOutcome(route=route, applied=applied, submitted=len(routable), debug=debug)

    def reset_route(self) -> None:
        """Drop the route and packing order.

        The session falls back to ``ORDERS_LOADED`` rather than ``IDLE`` because
        the orders and loaded entries remain; :meth:`clear` is the full reset.
        """
        with self._lock:
            self._route = None
            self._generation += 1
        logger.info("Session %s route reset", self.key)

    def clear(self) -> None:
        with self._lock:
            self._orders = []
            self._route = None
            self._generation += 1
            self.tracker.clear()
            self.scanner.reset()
            self.recent_scans.clear()
            self.history.clear()
        logger.info("Session %s cleared", self.key)

    # -- loading -------------------------------------------------------------

    def _record(self, order: ClassifiedOrder, action: str) -> None:
        self.history.appendleft(
            LoadingEvent(
                order_id=order.id,
                order_number=order.order_number,
                customer_name=order.order.customer.name,
                action=action,
                section=order.section,
                timestamp=self._clock(),
            )
        )

    def set_loading(
        self, order: ClassifiedOrder, action: LoadingAction, section: Section | None = None
    ) -> Optional[LoadedEntry]:
        """Apply a load/unload/toggle action; returns the entry when the order ends up loaded."""
        if section is not None and section is not order.section:
            raise SessionValidationError(
                f"Order {order.order_number} belongs in the {order.section.value} section, not {section.value}."
            )
        with self._lock:
            if action is LoadingAction.TOGGLE:
                action = LoadingAction.UNLOAD if self.tracker.is_loaded(order.id) else LoadingAction.LOAD
            if action is LoadingAction.LOAD:
                entry = self.tracker.load(order)
                self._record(order, "load")
                return entry
            if self.tracker.unload(order):
                self._record(order, "unload")
            return None

    def find(self, code: str) -> LookupResult:
        return find_order_by_code(code, self.orders)

    def scan(self, code: str) -> ScanOutcome:
        """Look up a scanned or typed code and mark the matching order as loaded."""
        with self._lock:
            lookup = self.find(code)
            self.recent_scans.appendleft(ScanRecord(code=lookup.code, found=lookup.found, timestamp=self._clock()))
            if not lookup.found:
                logger.info("Scan %r not matched (%s, %d candidates)", code, lookup.match, len(lookup.candidates))
                return ScanOutcome(lookup=lookup)
            order = lookup.order
            if self.tracker.is_loaded(order.id):
                return ScanOutcome(lookup=lookup, entry=self.tracker.get(order.id), already_loaded=True)
            entry = self.set_loading(order, LoadingAction.LOAD)
            return ScanOutcome(lookup=lookup, entry=entry)

    def feed_keys(self, keys: Iterable[tuple[str, float]], now: float | None = None) -> list[ScanOutcome]:
        """Feed raw scanner keystrokes (key, seconds) and scan every completed code."""
        outcomes: list[ScanOutcome] = []
        with self._lock:
            for key, at in keys:
                for code in self.scanner.feed(key, at):
                    outcomes.append(self.scan(code))
            if now is not None:
                code = self.scanner.poll(now)
                if code:
                    outcomes.append(self.scan(code))
        return outcomes

    def loading_status(self) -> dict:
        with self._lock:
            return {
                "loadedOrders": {
                    order_id: {"timestamp": entry.timestamp.isoformat(), "section": entry.section.value}
                    for order_id, entry in self.tracker.entries().items()
                },
                "summary": self.tracker.summary(self._orders),
            }

    # -- exports -------------------------------------------------------------

    def export_loading_list(self) -> str:
        with self._lock:
            if not self._orders:
                raise SessionValidationError("No orders loaded to export.")
            return loading_list_to_csv(self._orders, self.tracker)

    def export_route_sheet(self) -> str:
        with self._lock:
            if self._route is None or self._route.is_empty:
                raise SessionValidationError("No optimized route to export. Please optimize route first.")
            return route_sheet_to_csv(self._route)


class SessionRegistry:
    """Process-wide table of loading sessions, keyed by session name (default: today's date)."""

    def __init__(self) -> None:
        self._sessions: dict[str, TruckLoadingSession] = {}
        self._lock = threading.Lock()

    @staticmethod
    def default_key() -> str:
        return date.today().isoformat()

    def get(self, key: str | None = None) -> TruckLoadingSession:
        key = validate_session_key((key or "").strip() or self.default_key())
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = TruckLoadingSession(key)
                self._sessions[key] = session
            return session

    def drop(self, key: str) -> None:
        with self._lock:
            self._sessions.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._sessions)


registry = SessionRegistry()
