"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FARM_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Farm Dispatch API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied at startup.")
    data_root: Path = Field(default=Path("data"), description="Root directory for persisted exports.")

    # OpenRouteService
    ors_api_key: Optional[str] = Field(
        default=None,
        description="OpenRouteService API key used for geocoding and optimization.",
    )
    ors_base_url: str = Field(default="https://api.openrouteservice.org")
    ors_profile: Literal["driving-car", "driving-hgv"] = Field(
        default="driving-car",
        description="Vehicle profile submitted to the optimization endpoint.",
    )
    geocode_country: str = Field(default="AU", description="ISO country restriction for geocoding.")
    geocode_default_country: str = Field(
        default="Australia",
        description="Country appended to geocoding queries when the address has none.",
    )
    geocode_timeout_seconds: float = Field(default=10.0, gt=0.0)
    geocode_max_workers: int = Field(default=3, ge=1)
    optimize_timeout_seconds: float = Field(default=30.0, gt=0.0)
    service_seconds: int = Field(default=300, ge=0, description="Time spent at each delivery stop.")
    spare_capacity: int = Field(default=10, ge=0)

    # Route endpoints as (longitude, latitude)
    farm_location: tuple[float, float] = Field(default=(151.2093, -33.8688))
    market_location: tuple[float, float] = Field(default=(151.7789, -32.9283))

    # Shopify
    shopify_shop: Optional[str] = Field(default=None, description="Shop domain, e.g. my-farm.myshopify.com.")
    shopify_access_token: Optional[str] = None
    shopify_api_version: str = "2023-10"
    shopify_timeout_seconds: float = Field(default=15.0, gt=0.0)
    default_lookback_days: int = Field(default=14, ge=1)
    default_order_limit: int = Field(default=100, ge=1, le=250)

    scan_debounce_ms: int = Field(default=100, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("farm_location", "market_location", mode="before")
    @classmethod
    def _parse_coordinate_pair(cls, value: Any) -> tuple[float, float]:
        """Parse a "lon,lat" pair from the environment (comma-separated or JSON array)."""
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                parsed = [item.strip() for item in value.split(",") if item.strip()]
            value = parsed
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        raise ValueError("Coordinate pairs must be given as 'longitude,latitude'.")


settings = Settings()
