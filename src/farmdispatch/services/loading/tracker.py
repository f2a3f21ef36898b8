"""Loaded/not-loaded state for the orders of one loading session."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ...models.domain import ClassifiedOrder, LoadedEntry, Section

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoadingTracker:
    """Table of order id -> loaded entry. Presence of an entry means loaded."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._entries: dict[str, LoadedEntry] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, order_id: object) -> bool:
        return str(order_id) in self._entries

    def get(self, order_id: str) -> Optional[LoadedEntry]:
        return self._entries.get(str(order_id))

    def is_loaded(self, order_id: str) -> bool:
        return str(order_id) in self._entries

    def entries(self) -> dict[str, LoadedEntry]:
        return dict(self._entries)

    def load(self, order: ClassifiedOrder) -> LoadedEntry:
        existing = self._entries.get(order.id)
        if existing is not None:
            return existing
        entry = LoadedEntry(timestamp=self._clock(), section=order.section)
        self._entries[order.id] = entry
        logger.info("Order %s loaded in %s section", order.order_number, order.section.value)
        return entry

    def unload(self, order: ClassifiedOrder) -> bool:
        removed = self._entries.pop(order.id, None)
        if removed is not None:
            logger.info("Order %s unloaded from %s section", order.order_number, removed.section.value)
        return removed is not None

    def toggle(self, order: ClassifiedOrder) -> bool:
        """Flip the loaded state of an order and return the new state."""
        if self.unload(order):
            return False
        self.load(order)
        return True

    def clear(self) -> None:
        self._entries.clear()

    def summary(self, orders: Iterable[ClassifiedOrder]) -> dict:
        totals = {Section.FREEZER: 0, Section.FRIDGE: 0}
        loaded = {Section.FREEZER: 0, Section.FRIDGE: 0}
        for order in orders:
            totals[order.section] += 1
            if order.id in self._entries:
                loaded[order.section] += 1
        return {
            "freezerLoaded": loaded[Section.FREEZER],
            "fridgeLoaded": loaded[Section.FRIDGE],
            "totalLoaded": loaded[Section.FREEZER] + loaded[Section.FRIDGE],
            "freezerTotal": totals[Section.FREEZER],
            "fridgeTotal": totals[Section.FRIDGE],
            "totalOrders": totals[Section.FREEZER] + totals[Section.FRIDGE],
        }
