"""
Owned debounce timer with cancel-and-reschedule semantics.
"""
import threading
from typing import Callable, Optional

from utils.logger import get_logger


class DebouncedTimer:
    """
    Runs ``callback`` once ``delay_sec`` has passed without another ``trigger()``.

    ``flush()`` cancels the pending run and executes the callback synchronously;
    ``close()`` does the same and refuses any later trigger. Callback executions never
    overlap.
    """

    def __init__(self, delay_sec: float, callback: Callable[[], None], name: str = "DebouncedTimer"):
        self.logger = get_logger(__name__)
        self.delay_sec = delay_sec
        self.name = name
        self._callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.RLock()
        self._run_lock = threading.Lock()
        self._closed = False

    def trigger(self) -> bool:
        """(Re)start the idle timer. Returns False once the timer is closed."""
        with self._lock:
            if self._closed:
                return False
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay_sec, self._fire)
            self._timer.daemon = True
            self._timer.name = self.name
            self._timer.start()
            return True

    def cancel(self) -> bool:
        """Cancel the pending run. Returns True if one was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            return True

    def is_pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def flush(self) -> None:
        """Cancel any pending run and execute the callback now."""
        self.cancel()
        self._run()

    def close(self, flush: bool = True) -> None:
        """Stop accepting triggers; optionally run the callback one last time."""
        with self._lock:
            self._closed = True
        if flush:
            self.flush()
        else:
            self.cancel()

    @property
    def closed(self) -> bool:
        return self._closed

    def _fire(self) -> None:
        with self._lock:
            if self._timer is None or threading.current_thread() is not self._timer:
                # cancelled or superseded after the timer thread woke up
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        with self._run_lock:
            try:
                self._callback()
            except Exception as e:
                self.logger.error(f"{self.name} callback failed: {e}")
