"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import ClassifiedOrder


@dataclass(slots=True, frozen=True)
class RouteJob:
    id: int
    order_id: str
    location: tuple[float, float]
    service: int
    description: str

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "service": self.service,
            "amount": [1],
            "location": list(self.location),
            "description": self.description,
        }


@dataclass(slots=True, frozen=True)
class RouteStop:
    order: ClassifiedOrder
    sequence: int
    arrival_time: float
    location: tuple[float, float]


@dataclass(slots=True)
class OptimizedRoute:
    stops: List[RouteStop] = field(default_factory=list)
    total_distance: float = 0.0
    total_time: float = 0.0
    geometry: Optional[str] = None
    start_location: Optional[tuple[float, float]] = None
    end_location: Optional[tuple[float, float]] = None
    message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.stops

    @property
    def packing_order(self) -> List[RouteStop]:
        """Loading sequence: the last delivery goes into the truck first."""
        return list(reversed(self.stops))

    def summary(self) -> dict:
        return {
            "deliveries": len(self.stops),
            "totalDistance": round(self.total_distance / 1000 * 100) / 100,
            "totalTime": round(self.total_time / 60),
            "startLocation": list(self.start_location) if self.start_location else None,
            "endLocation": list(self.end_location) if self.end_location else None,
        }
