"""Find an order from a scanned or typed code."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from ...models.domain import ClassifiedOrder


@dataclass(slots=True)
class LookupResult:
    code: str
    order: Optional[ClassifiedOrder] = None
    match: str = "none"
    candidates: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.order is not None


def _fields(order: ClassifiedOrder) -> tuple[str, ...]:
    values = (order.order.order_number, order.order.id, order.order.name)
    return tuple(str(value) for value in values if value not in (None, ""))


def find_order_by_code(code: str, orders: Sequence[ClassifiedOrder]) -> LookupResult:
    """Exact match on order number, id or display name, then a unique substring match.

    Several substring candidates are reported as not found; the operator is
    expected to scan again or type the full number.
    """
    code = (code or "").strip()
    if not code:
        return LookupResult(code=code)

    for order in orders:
        if code in _fields(order):
            return LookupResult(code=code, order=order, match="exact", candidates=[order.order_number])

    candidates = [order for order in orders if any(code in value for value in _fields(order))]
    if len(candidates) == 1:
        return LookupResult(code=code, order=candidates[0], match="partial", candidates=[candidates[0].order_number])
    match = "ambiguous" if candidates else "none"
    return LookupResult(code=code, match=match, candidates=[order.order_number for order in candidates])
