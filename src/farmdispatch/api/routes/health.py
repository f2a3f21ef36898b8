"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_ors_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.ors_client import check_health as ors_health_check
    return ors_health_check


@router.get("/health/ors", status_code=status.HTTP_200_OK)
def health_ors() -> dict:
    """Check OpenRouteService connectivity."""
    ors_health_check = _get_ors_health_check()
    return {"service": "openrouteservice", "healthy": ors_health_check()}


@router.get("/health/config", status_code=status.HTTP_200_OK)
def health_config() -> dict:
    """Report which external integrations have credentials configured."""
    return {
        "ors_configured": bool(settings.ors_api_key),
        "shopify_configured": bool(settings.shopify_shop and settings.shopify_access_token),
        "farm_location": list(settings.farm_location),
        "market_location": list(settings.market_location),
    }


@router.get("/health/sessions", status_code=status.HTTP_200_OK)
def health_sessions() -> dict:
    """List the loading sessions held in memory."""
    from ...services.delivery.session import registry

    return {"sessions": registry.keys()}
