"""Single-vehicle delivery route optimization via the ORS VRP solver."""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import settings
from ...models.domain import ClassifiedOrder
from .models import OptimizedRoute, RouteJob, RouteStop
from .ors_client import OpenRouteServiceClient, OpenRouteServiceError

logger = logging.getLogger(__name__)

NO_DELIVERIES_MESSAGE = "No delivery orders with valid addresses found"


class RouteOptimizationError(RuntimeError):
    """Raised when the solver fails or its answer cannot be matched to the submitted orders."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


def _job_ids(orders: Sequence[ClassifiedOrder]) -> list[int]:
    """Numeric job ids: the order ids themselves when all are unique integers, else positions."""
    ids = [order.id for order in orders]
    if all(str(value).isdigit() for value in ids):
        numeric = [int(value) for value in ids]
        if len(set(numeric)) == len(numeric):
            return numeric
    return list(range(1, len(orders) + 1))


def build_jobs(orders: Sequence[ClassifiedOrder], service_seconds: int | None = None) -> list[RouteJob]:
    """Build one route job per routable delivery order."""
    routable = [order for order in orders if order.is_routable]
    service = settings.service_seconds if service_seconds is None else service_seconds
    jobs: list[RouteJob] = []
    for job_id, order in zip(_job_ids(routable), routable):
        coordinates = order.coordinates
        jobs.append(
            RouteJob(
                id=job_id,
                order_id=order.id,
                location=(coordinates.longitude, coordinates.latitude),
                service=service,
                description=f"Order {order.order_number} - {order.order.customer.name}",
            )
        )
    return jobs


class RouteOptimizer:
    def __init__(
        self,
        client: OpenRouteServiceClient | None = None,
        *,
        profile: str | None = None,
        spare_capacity: int | None = None,
    ) -> None:
        self.client = client or OpenRouteServiceClient()
        self.profile = profile or settings.ors_profile
        self.spare_capacity = settings.spare_capacity if spare_capacity is None else spare_capacity

    def _vehicle(self, job_count: int, depot: tuple[float, float], end: tuple[float, float]) -> dict:
        return {
            "id": 1,
            "profile": self.profile,
            "start": list(depot),
            "end": list(end),
            "capacity": [job_count + self.spare_capacity],
        }

    def optimize(
        self,
        orders: Sequence[ClassifiedOrder],
        depot: tuple[float, float] | None = None,
        end_location: tuple[float, float] | None = None,
    ) -> OptimizedRoute:
        """Optimize the visiting order of all routable delivery orders.

        Orders without coordinates, and pickup orders, never reach the solver.
        An empty job set yields an empty route with a message instead of an error.
        """
        depot = depot or settings.farm_location
        end_location = end_location or settings.market_location
        jobs = build_jobs(orders)
        if not jobs:
            return OptimizedRoute(start_location=depot, end_location=end_location, message=NO_DELIVERIES_MESSAGE)

        logger.info("Optimizing route for %d deliveries", len(jobs))
        try:
            response = self.client.optimization(
                [job.to_payload() for job in jobs],
                [self._vehicle(len(jobs), depot, end_location)],
            )
        except OpenRouteServiceError as exc:
            logger.error("Route optimization error: %s", exc)
            raise RouteOptimizationError(str(exc), retryable=exc.retryable) from exc

        route = response["routes"][0]
        stops = self._match_steps(route.get("steps") or [], jobs, orders)
        if len(stops) != len(jobs):
            matched = {stop.order.id for stop in stops}
            missing = [job.id for job in jobs if job.order_id not in matched]
            raise RouteOptimizationError(
                f"Solver returned {len(stops)} of {len(jobs)} stops; unassigned jobs: {missing}"
            )

        result = OptimizedRoute(
            stops=stops,
            total_distance=float(route.get("distance") or 0.0),
            total_time=float(route.get("duration") or 0.0),
            geometry=route.get("geometry"),
            start_location=depot,
            end_location=end_location,
        )
        logger.info("Route optimized: %s", result.summary())
        return result

    def _match_steps(
        self, steps: Sequence[dict], jobs: Sequence[RouteJob], orders: Sequence[ClassifiedOrder]
    ) -> list[RouteStop]:
        jobs_by_id = {job.id: job for job in jobs}
        orders_by_id = {order.id: order for order in orders}
        seen: set[int] = set()
        stops: list[RouteStop] = []
        for step in steps:
            if step.get("type") != "job":
                continue
            raw_id = step.get("id", step.get("job"))
            try:
                job_id = int(raw_id)
            except (TypeError, ValueError) as exc:
                raise RouteOptimizationError(f"Solver returned a job step without a valid id: {raw_id!r}") from exc
            job = jobs_by_id.get(job_id)
            if job is None:
                raise RouteOptimizationError(f"Solver returned unknown job id {job_id}")
            if job_id in seen:
                raise RouteOptimizationError(f"Solver returned job id {job_id} more than once")
            seen.add(job_id)
            stops.append(
                RouteStop(
                    order=orders_by_id[job.order_id],
                    sequence=len(stops) + 1,
                    arrival_time=float(step.get("arrival") or 0.0),
                    location=job.location,
                )
            )
        return stops
