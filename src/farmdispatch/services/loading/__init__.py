"""Truck loading helpers."""

from .lookup import LookupResult, find_order_by_code
from .scanner import ScanBuffer, ScanState
from .tracker import LoadingTracker

__all__ = [
    "LoadingTracker",
    "LookupResult",
    "ScanBuffer",
    "ScanState",
    "find_order_by_code",
]
