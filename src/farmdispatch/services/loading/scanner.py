"""Keystroke buffering for USB barcode scanners.

Scanners type a code as a burst of keystrokes, usually followed by Enter.
A code is emitted on Enter, or once no key has arrived for the debounce
window. Timestamps are passed in by the caller so the buffer stays free of
timers and can be driven from any event source.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from ...config import settings

ENTER_KEYS = frozenset({"Enter", "\n", "\r"})


class ScanState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class ScanBuffer:
    def __init__(self, debounce_ms: int | None = None) -> None:
        self.debounce_seconds = (debounce_ms or settings.scan_debounce_ms) / 1000.0
        self._buffer: list[str] = []
        self._last_key_at: Optional[float] = None

    @property
    def state(self) -> ScanState:
        return ScanState.ACCUMULATING if self._buffer else ScanState.IDLE

    @property
    def pending(self) -> str:
        return "".join(self._buffer)

    def _emit(self) -> Optional[str]:
        code = "".join(self._buffer).strip()
        self._buffer.clear()
        self._last_key_at = None
        return code or None

    def _expired(self, now: float) -> bool:
        return self._last_key_at is not None and now - self._last_key_at >= self.debounce_seconds

    def feed(self, key: str, at: float) -> list[str]:
        """Process one keystroke at time ``at`` (seconds) and return any completed codes."""
        emitted: list[str] = []
        if self._buffer and self._expired(at):
            code = self._emit()
            if code:
                emitted.append(code)

        if key in ENTER_KEYS:
            code = self._emit()
            if code:
                emitted.append(code)
        elif len(key) == 1:
            self._buffer.append(key)
            self._last_key_at = at
        # modifier and navigation keys are ignored
        return emitted

    def poll(self, now: float) -> Optional[str]:
        """Emit the buffered code if the debounce window has elapsed."""
        if self._buffer and self._expired(now):
            return self._emit()
        return None

    def reset(self) -> None:
        self._buffer.clear()
        self._last_key_at = None
