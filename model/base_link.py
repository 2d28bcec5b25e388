"""
Base abstract class for device links with thread-safe callback plumbing.
"""
from abc import ABC, abstractmethod
from typing import Callable, Optional
import threading

FrameHandler = Callable[[bytes], None]
StatusHandler = Callable[[str], None]


class BaseDeviceLink(ABC):
    """
    Abstract base class for the transport that carries protocol frames to and from
    the device. Subclasses own the socket; the core only calls ``send`` and receives
    raw frames through the frame handler.
    """

    def __init__(self):
        self._shutdown_event = threading.Event()
        self._thread_lock = threading.RLock()
        self._frame_handler: Optional[FrameHandler] = None
        self._status_handler: Optional[StatusHandler] = None
        self._status = "Not Connected."

    @abstractmethod
    def connect(self) -> bool:
        """Open the link. Returns True when connected."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close the link without shutting the object down."""
        pass

    @abstractmethod
    def set_connection_params(self, ip: str, port: int, sn: str = "") -> None:
        """Change the device address used by the next connect."""
        pass

    @abstractmethod
    def send(self, payload_hex: str, description: str = "", logical_value: object = None) -> bool:
        """Transmit one hex-encoded payload. Returns True if it left the process."""
        pass

    def reconnect(self) -> bool:
        """Drop the current connection and connect again."""
        with self._thread_lock:
            self.disconnect()
            return self.connect()

    def set_frame_handler(self, handler: Optional[FrameHandler]) -> None:
        with self._thread_lock:
            self._frame_handler = handler

    def set_status_handler(self, handler: Optional[StatusHandler]) -> None:
        with self._thread_lock:
            self._status_handler = handler

    @property
    def status(self) -> str:
        return self._status

    def shutdown(self) -> None:
        """Safely shutdown the link."""
        with self._thread_lock:
            if self._shutdown_event.is_set():
                return
            self._shutdown_event.set()
            self.disconnect()

    def is_shutdown(self) -> bool:
        return self._shutdown_event.is_set()

    def _emit_frame(self, data: bytes) -> None:
        handler = self._frame_handler
        if handler is not None:
            handler(data)

    def _emit_status(self, message: str) -> None:
        self._status = message
        handler = self._status_handler
        if handler is not None:
            handler(message)
