"""Truck-loading and delivery route endpoints."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, Response

from ...config import settings
from ...schemas.delivery import (
    GeocodeTestRequest,
    OptimizeRouteRequest,
    ScannerKeysRequest,
    ScanRequest,
    SplitRouteRequest,
    TrackLoadingRequest,
)
from ...services.delivery import service as delivery_service
from ...services.delivery.session import ScanOutcome, SessionValidationError, TruckLoadingSession, registry
from ...services.orders.shopify_client import OrderSourceConfigurationError, OrderSourceError
from ...services.outputs.formatter import order_to_json, route_to_json
from ...services.routing.optimizer import RouteOptimizationError
from ...services.routing.ors_client import OpenRouteServiceClient, RoutingConfigurationError, check_health
from ...services.routing.split import split_route

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/delivery", tags=["delivery"])

CONFIGURATION_ERRORS = (RoutingConfigurationError, OrderSourceConfigurationError)


def get_session(
    session: Optional[str] = Query(default=None, description="Loading session key (defaults to today's date)"),
) -> TruckLoadingSession:
    return registry.get(session)


def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def _csv_response(content: str, prefix: str) -> Response:
    filename = f"{prefix}-{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _scan_to_json(outcome: ScanOutcome) -> dict:
    lookup = outcome.lookup
    return {
        "code": lookup.code,
        "found": lookup.found,
        "match": lookup.match,
        "orderNumber": lookup.order.order_number if lookup.order else None,
        "alreadyLoaded": outcome.already_loaded,
        "candidates": len(lookup.candidates),
    }


@router.get("/orders", status_code=status.HTTP_200_OK)
def get_orders(
    days: int = Query(default=settings.default_lookback_days, ge=1, le=90),
    limit: int = Query(default=settings.default_order_limit, ge=1, le=250),
    session: TruckLoadingSession = Depends(get_session),
):
    """Fetch unfulfilled orders, classify them and geocode the deliveries."""
    try:
        delivery_service.refresh_session_orders(session, days=days, limit=limit)
    except CONFIGURATION_ERRORS as exc:
        logger.error("Order loading not configured: %s", exc)
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), deliveries=[], pickups=[])
    except OrderSourceError as exc:
        logger.error("Error fetching delivery orders: %s", exc)
        return _failure(status.HTTP_502_BAD_GATEWAY, str(exc), deliveries=[], pickups=[])

    tracker = session.tracker
    return {
        "success": True,
        "session": session.key,
        "state": session.state.value,
        "summary": session.summary(),
        "deliveries": [order_to_json(order, tracker) for order in session.delivery_orders],
        "pickups": [order_to_json(order, tracker) for order in session.pickup_orders],
        "allOrders": [order_to_json(order, tracker) for order in session.orders],
    }


@router.post("/optimize-route", status_code=status.HTTP_200_OK)
def optimize_route(
    payload: Optional[OptimizeRouteRequest] = None,
    session: TruckLoadingSession = Depends(get_session),
):
    payload = payload or OptimizeRouteRequest()
    try:
        outcome = session.optimize(delivery_service.build_optimizer, payload.order_ids)
    except SessionValidationError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))
    except RoutingConfigurationError as exc:
        logger.error("Route optimization not configured: %s", exc)
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), optimizedRoute=[], packingOrder=[])
    except RouteOptimizationError as exc:
        return _failure(
            status.HTTP_502_BAD_GATEWAY,
            f"Route optimization failed: {exc}",
            retryable=exc.retryable,
            optimizedRoute=[],
            packingOrder=[],
        )

    route = outcome.route
    if route.is_empty:
        return {
            "success": True,
            "optimizedRoute": [],
            "packingOrder": [],
            "message": route.message,
            "debug": outcome.debug,
        }

    body = {
        "success": True,
        "applied": outcome.applied,
        "state": session.state.value,
        **route_to_json(route, session.tracker),
    }
    if payload.persist and outcome.applied:
        body["runDirectory"] = str(delivery_service.persist_session_run(session))
    return body


@router.post("/reset-route", status_code=status.HTTP_200_OK)
def reset_route(session: TruckLoadingSession = Depends(get_session)) -> dict:
    session.reset_route()
    return {"success": True, "state": session.state.value, "message": "Route reset"}


@router.post("/clear", status_code=status.HTTP_200_OK)
def clear_session(session: TruckLoadingSession = Depends(get_session)) -> dict:
    session.clear()
    return {"success": True, "state": session.state.value, "message": f"Session {session.key} cleared"}


@router.post("/track-loading", status_code=status.HTTP_200_OK)
def track_loading(payload: TrackLoadingRequest, session: TruckLoadingSession = Depends(get_session)):
    try:
        order = session.get_order(order_id=payload.order_id, order_number=payload.order_number)
    except KeyError:
        reference = payload.order_number or payload.order_id
        return _failure(status.HTTP_404_NOT_FOUND, f"Order {reference} not found in current order list")
    try:
        entry = session.set_loading(order, payload.action, payload.section)
    except SessionValidationError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))

    loaded = entry is not None
    action = "loaded" if loaded else "unloaded"
    return {
        "success": True,
        "orderNumber": order.order_number,
        "section": order.section.value,
        "action": "load" if loaded else "unload",
        "loaded": loaded,
        "timestamp": entry.timestamp.isoformat() if entry else None,
        "message": f"Order {order.order_number} {action} in {order.section.value} section",
    }


@router.get("/loading-status", status_code=status.HTTP_200_OK)
def loading_status(session: TruckLoadingSession = Depends(get_session)) -> dict:
    return {
        "success": True,
        "session": session.key,
        "state": session.state.value,
        **session.loading_status(),
        "recentScans": [
            {"code": scan.code, "found": scan.found, "timestamp": scan.timestamp.isoformat()}
            for scan in session.recent_scans
        ],
        "history": [
            {
                "orderNumber": event.order_number,
                "customerName": event.customer_name,
                "action": event.action,
                "section": event.section.value,
                "timestamp": event.timestamp.isoformat(),
            }
            for event in session.history
        ],
    }


@router.post("/scan", status_code=status.HTTP_200_OK)
def scan(payload: ScanRequest, session: TruckLoadingSession = Depends(get_session)):
    outcome = session.scan(payload.code)
    if not outcome.found:
        return _failure(
            status.HTTP_404_NOT_FOUND,
            f"Order {outcome.lookup.code} not found in current order list",
            debug={"match": outcome.lookup.match, "candidates": len(outcome.lookup.candidates)},
        )
    return {
        "success": True,
        **_scan_to_json(outcome),
        "order": order_to_json(outcome.lookup.order, session.tracker),
    }


@router.post("/scanner/keys", status_code=status.HTTP_200_OK)
def scanner_keys(payload: ScannerKeysRequest, session: TruckLoadingSession = Depends(get_session)) -> dict:
    keys = [(stroke.key, stroke.at / 1000.0) for stroke in payload.keys]
    now = payload.now / 1000.0 if payload.now is not None else None
    outcomes = session.feed_keys(keys, now=now)
    return {
        "success": True,
        "pending": session.scanner.pending,
        "scans": [_scan_to_json(outcome) for outcome in outcomes],
    }


@router.post("/split-route", status_code=status.HTTP_200_OK)
def split_delivery_route(payload: SplitRouteRequest, session: TruckLoadingSession = Depends(get_session)):
    route = session.route
    if route is None or route.is_empty:
        return _failure(status.HTTP_400_BAD_REQUEST, "No optimized route to split. Please optimize route first.")
    try:
        first, second = split_route(route.stops, payload.split_point, payload.driver1_name, payload.driver2_name)
    except ValueError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))

    def _driver(driver) -> dict:
        return {
            "name": driver.name,
            "count": driver.count,
            "orders": [
                {**order_to_json(stop.order, session.tracker), "sequence": stop.sequence}
                for stop in driver.stops
            ],
        }

    return {
        "success": True,
        "split": {"driver1": _driver(first), "driver2": _driver(second)},
        "summary": {
            "totalOrders": len(route.stops),
            "driver1Count": first.count,
            "driver2Count": second.count,
        },
    }


@router.get("/export/loading-list")
def export_loading_list(session: TruckLoadingSession = Depends(get_session)):
    try:
        return _csv_response(session.export_loading_list(), "loading-list")
    except SessionValidationError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))


@router.get("/export/route-sheet")
def export_route_sheet(session: TruckLoadingSession = Depends(get_session)):
    try:
        return _csv_response(session.export_route_sheet(), "route-sheet")
    except SessionValidationError as exc:
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))


@router.get("/validate-ors", status_code=status.HTTP_200_OK)
def validate_ors() -> dict:
    try:
        configured = check_health(OpenRouteServiceClient())
    except RoutingConfigurationError:
        configured = False
    return {
        "success": True,
        "orsConfigured": configured,
        "message": "ORS API configured correctly" if configured else "ORS API configuration issue",
        "apiKey": "Set" if settings.ors_api_key else "Not set",
    }


@router.post("/test-geocoding", status_code=status.HTTP_200_OK)
def test_geocoding(payload: GeocodeTestRequest):
    try:
        resolver = delivery_service.build_resolver()
    except RoutingConfigurationError as exc:
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    coordinates = resolver.resolve(payload.address.to_domain())
    return {
        "success": True,
        "address": payload.address.model_dump(),
        "coordinates": {
            "longitude": coordinates.longitude,
            "latitude": coordinates.latitude,
            "confidence": coordinates.confidence,
        }
        if coordinates
        else None,
        "message": "Geocoding successful" if coordinates else "No coordinates found",
    }
