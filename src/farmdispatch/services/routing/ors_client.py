"""HTTP client for the OpenRouteService geocoding and optimization APIs."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RoutingConfigurationError(ValueError):
    """Raised when OpenRouteService credentials are missing."""


class OpenRouteServiceError(RuntimeError):
    """Raised for OpenRouteService transport or response issues."""

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = True) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class OpenRouteServiceClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        profile: str | None = None,
        geocode_timeout: float | None = None,
        optimize_timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = (api_key or settings.ors_api_key or "").strip()
        if not self.api_key:
            raise RoutingConfigurationError("ORS_API_KEY is not configured.")
        self.base_url = (base_url or settings.ors_base_url).rstrip("/")
        self.profile = profile or settings.ors_profile
        self.geocode_timeout = geocode_timeout or settings.geocode_timeout_seconds
        self.optimize_timeout = optimize_timeout or settings.optimize_timeout_seconds
        self._transport = transport

    def _get_client(self, timeout: float) -> httpx.Client:
        # one client per call; geocoding runs on several worker threads
        return httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
            transport=self._transport,
        )

    def _request(self, method: str, path: str, *, timeout: float, **kwargs: Any) -> dict:
        client = self._get_client(timeout)
        try:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            message = exc.response.text.strip() or str(exc)
            raise OpenRouteServiceError(
                f"OpenRouteService HTTP {status_code} for {path}: {message}",
                status_code=status_code,
                retryable=status_code in RETRYABLE_STATUS_CODES,
            ) from exc
        except httpx.TimeoutException as exc:
            raise OpenRouteServiceError(
                f"OpenRouteService request to {path} timed out after {timeout:.0f}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise OpenRouteServiceError(f"OpenRouteService request failed for {path}: {exc}") from exc
        except ValueError as exc:
            raise OpenRouteServiceError(
                f"OpenRouteService returned invalid JSON for {path}", retryable=False
            ) from exc
        finally:
            client.close()

    def geocode_search(self, text: str, *, country: str | None = None, size: int = 1) -> list[dict]:
        """Return the geocoder features for a free-text query, best match first."""
        params: dict[str, Any] = {
            "api_key": self.api_key,
            "text": text,
            "size": size,
        }
        if country:
            params["boundary.country"] = country
        data = self._request("GET", "/geocode/search", timeout=self.geocode_timeout, params=params)
        if not isinstance(data, dict):
            raise OpenRouteServiceError("Invalid response from ORS geocoder: expected an object.", retryable=False)
        features = data.get("features") or []
        if not isinstance(features, list):
            raise OpenRouteServiceError("Invalid response from ORS geocoder: features is not a list.", retryable=False)
        return features

    def optimization(self, jobs: list[dict], vehicles: list[dict], *, geometry: bool = True) -> dict:
        """Submit a VRP problem to the optimization endpoint."""
        payload = {
            "jobs": jobs,
            "vehicles": vehicles,
            "options": {"g": geometry},
        }
        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        data = self._request(
            "POST", "/optimization", timeout=self.optimize_timeout, json=payload, headers=headers
        )
        if not isinstance(data, dict) or not data.get("routes"):
            raise OpenRouteServiceError("Invalid response from ORS API: no routes returned.", retryable=False)
        return data


def check_health(client: OpenRouteServiceClient | None = None) -> bool:
    """Check ORS connectivity with a minimal geocoding request."""
    try:
        ors = client or OpenRouteServiceClient()
        ors.geocode_search("Sydney, Australia")
        return True
    except (RoutingConfigurationError, OpenRouteServiceError) as exc:
        logger.warning("OpenRouteService health check failed: %s", exc)
        return False
