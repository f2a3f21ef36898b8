"""Wiring between the delivery API and the external collaborators."""

from __future__ import annotations

import logging
from pathlib import Path

from ...persistence.filesystem import FileStorage
from ..orders.shopify_client import ShopifyOrderSource
from ..outputs.formatter import loading_list_to_csv, route_sheet_to_csv, route_to_json
from ..routing.geocoder import AddressResolver
from ..routing.optimizer import RouteOptimizer
from ..routing.ors_client import OpenRouteServiceClient
from .session import TruckLoadingSession

logger = logging.getLogger(__name__)


def build_order_source() -> ShopifyOrderSource:
    return ShopifyOrderSource()


def build_resolver() -> AddressResolver:
    return AddressResolver(OpenRouteServiceClient())


def build_optimizer() -> RouteOptimizer:
    return RouteOptimizer(OpenRouteServiceClient())


def refresh_session_orders(session: TruckLoadingSession, *, days: int, limit: int) -> None:
    """Fetch unfulfilled orders and load them into the session."""
    orders = build_order_source().fetch_unfulfilled_orders(days=days, limit=limit)
    session.load_orders(orders, resolver_factory=build_resolver)


def persist_session_run(session: TruckLoadingSession, storage: FileStorage | None = None) -> Path:
    """Write the current route and loading list into a new run directory."""
    route = session.route
    if route is None:
        raise ValueError("No optimized route to persist.")
    storage = storage or FileStorage()
    run_dir = storage.make_run_directory(prefix=f"route_{session.key}")
    storage.write_json(
        run_dir / "summary.json",
        {"session": session.key, "orders": session.summary(), **route_to_json(route, session.tracker)},
    )
    storage.write_csv(run_dir / "route_sheet.csv", route_sheet_to_csv(route))
    storage.write_csv(run_dir / "loading_list.csv", loading_list_to_csv(session.orders, session.tracker))
    logger.info("Persisted route run for session %s to %s", session.key, run_dir)
    return run_dir
