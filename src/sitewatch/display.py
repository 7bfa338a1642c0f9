"""
Console display for aggregation results and the alert log.

The alert log is redrawn after every aggregation output so that alert
messages stay visible on screen.
"""
from __future__ import annotations

import sys
import threading
from typing import List, Optional, Sequence, TextIO


class Display:
    """
    Writes aggregator snapshots and the alert log to a text stream.

    Usage:
        display = Display()
        display.alert(alert_service.alerts)
        display.log(scheduler.snapshot())
    """

    def __init__(self, stream: Optional[TextIO] = None, enabled: bool = True) -> None:
        self._stream = stream
        self._enabled = enabled
        self._alerts: List[str] = []
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self, enabled: bool) -> None:
        self._enabled = enabled

    def log(self, text: str) -> None:
        """Write text followed by the alert log."""
        if not self._enabled:
            return
        with self._lock:
            self._write(text if text.endswith("\n") else text + "\n")
            self._write_alerts()

    def alert(self, alerts: Sequence[str]) -> None:
        """Replace the alert log view and redraw it."""
        with self._lock:
            self._alerts = list(alerts)
            if self._enabled:
                self._write_alerts()

    def render_alerts(self) -> str:
        if not self._alerts:
            return ""
        rows = "".join(f" - {a}\n" for a in self._alerts)
        return f"--- Alerts log\n{rows}\n"

    def _write_alerts(self) -> None:
        block = self.render_alerts()
        if block:
            self._write(block)

    def _write(self, text: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(text)
        stream.flush()
