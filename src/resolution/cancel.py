"""Cooperative cancellation for long-running resolutions."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import Cancelled


class CancellationToken:
    """Signal checked by the resolver between decision steps.

    May be cancelled from any thread. An optional timeout turns into a
    deadline measured from construction.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._reason = "cancelled by caller"
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "timed out"
            self._event.set()
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def check(self) -> None:
        """Raise Cancelled when the token has fired."""
        if self.cancelled:
            raise Cancelled(self._reason)
