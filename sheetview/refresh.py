from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Hashable, Optional, TypeVar

from sheetview.config import REFRESH_INTERVAL_SECONDS
from sheetview.errors import SheetViewError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshMonitor(Generic[T]):
    """Holds the current dataset and swaps it when a periodic reload looks different.

    The swap is a single attribute assignment, so readers see either the old
    dataset or the new one. At most one reload runs at a time; a tick that
    finds a reload in flight is skipped.
    """

    def __init__(
        self,
        loader: Callable[[], T],
        signature: Callable[[T], Hashable],
        *,
        interval: float = REFRESH_INTERVAL_SECONDS,
    ) -> None:
        self._loader = loader
        self._signature = signature
        self.interval = interval
        self._in_flight = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.current: Optional[T] = None
        self.current_signature: Optional[Hashable] = None
        self.version = 0
        self.last_error: Optional[str] = None

    def load(self) -> T:
        """Initial load; errors propagate so the caller can show them."""
        with self._in_flight:
            data = self._loader()
            self._replace(data, self._signature(data))
        return data

    def _replace(self, data: T, signature: Hashable) -> None:
        self.current = data
        self.current_signature = signature
        self.version += 1
        self.last_error = None

    def refresh(self) -> bool:
        """Reload once; True when the dataset was replaced."""
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Refresh skipped: another reload is in flight")
            return False
        try:
            data = self._loader()
            signature = self._signature(data)
            if signature == self.current_signature:
                return False
            self._replace(data, signature)
            logger.info("Dataset replaced (version %s)", self.version)
            return True
        except SheetViewError as exc:
            self.last_error = exc.status_message
            logger.warning("Refresh failed, keeping previous data: %s", exc)
            return False
        except Exception as exc:
            self.last_error = str(exc)
            logger.exception("Refresh failed, keeping previous data")
            return False
        finally:
            self._in_flight.release()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.refresh()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="sheetview-refresh", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval)
            self._thread = None
