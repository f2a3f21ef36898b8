"""Split an optimized delivery sequence between two drivers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .models import RouteStop


@dataclass(slots=True)
class DriverRoute:
    name: str
    stops: list[RouteStop]

    @property
    def count(self) -> int:
        return len(self.stops)


def split_route(
    stops: Sequence[RouteStop],
    split_point: int | None = None,
    driver1_name: str = "Driver 1",
    driver2_name: str = "Driver 2",
) -> tuple[DriverRoute, DriverRoute]:
    """Give the first ``split_point`` stops to driver 1 and the rest to driver 2."""
    index = len(stops) // 2 if not split_point else split_point
    if index < 0 or index > len(stops):
        raise ValueError(f"Split point {index} is outside the route (0..{len(stops)}).")
    return (
        DriverRoute(name=driver1_name, stops=list(stops[:index])),
        DriverRoute(name=driver2_name, stops=list(stops[index:])),
    )
