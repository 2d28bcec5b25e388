"""
WebSocket link to the mixer interface.
The device serves binary WebSocket frames at ws://<ip>:<port>/<serial number>; each
message carries exactly one protocol frame in either direction.
"""
import threading
from typing import Optional

import websocket

from config.settings import (
    DEFAULT_DEVICE_IP,
    DEFAULT_DEVICE_PORT,
    DEFAULT_DEVICE_SN,
    LINK_CONNECT_TIMEOUT_SEC,
    LINK_RECV_TIMEOUT_SEC,
    LINK_THREAD_DAEMON,
    MAX_CONNECT_RETRIES,
    RECONNECT_INTERVAL_SEC,
)
from model.base_link import BaseDeviceLink
from utils.logger import get_logger

_FRAME_OPCODES = (websocket.ABNF.OPCODE_BINARY, websocket.ABNF.OPCODE_TEXT)


class WebSocketDeviceLink(BaseDeviceLink):
    """
    Device link over a ``websocket-client`` connection with a background receive
    thread. Connection attempts are retried up to ``max_retries`` times; a manual
    ``reconnect()`` starts a fresh series.
    """

    def __init__(self, ip: str = DEFAULT_DEVICE_IP, port: int = DEFAULT_DEVICE_PORT,
                 sn: str = DEFAULT_DEVICE_SN,
                 max_retries: int = MAX_CONNECT_RETRIES,
                 reconnect_interval: float = RECONNECT_INTERVAL_SEC,
                 connect_timeout: float = LINK_CONNECT_TIMEOUT_SEC,
                 recv_timeout: float = LINK_RECV_TIMEOUT_SEC):
        super().__init__()
        self.logger = get_logger(__name__)
        self.ip = ip
        self.port = port
        self.sn = sn
        self.max_retries = max_retries
        self.reconnect_interval = reconnect_interval
        self.connect_timeout = connect_timeout
        self.recv_timeout = recv_timeout

        self.retry_count = 0
        self._ws: Optional[websocket.WebSocket] = None
        self._reader_thread: Optional[threading.Thread] = None
        self._reader_stop = threading.Event()
        self._retry_timer: Optional[threading.Timer] = None
        self._did_show_failure = False

    @property
    def url(self) -> str:
        return f"ws://{self.ip}:{self.port}/{self.sn or ''}"

    def set_connection_params(self, ip: str, port: int, sn: str = "") -> None:
        with self._thread_lock:
            self.ip = ip
            self.port = port
            self.sn = sn
        self.logger.info(f"Device connection settings: {ip}:{port} (sn: {sn or '-'})")

    def is_connected(self) -> bool:
        with self._thread_lock:
            return self._ws is not None

    def connect(self) -> bool:
        with self._thread_lock:
            if self.is_shutdown():
                return False
            if self._ws is not None:
                return True

            if self.retry_count >= self.max_retries:
                self._show_connection_failure()
                return False

            if not self.ip or not self.port:
                # configuration problem, not a failed attempt
                self._emit_status("Connection settings incomplete.")
                self.logger.warning("Cannot connect to device: connection settings are not fully configured.")
                return False

            self.retry_count += 1
            self._did_show_failure = False
            attempt = f"Attempting to connect to device... (Attempt {self.retry_count}/{self.max_retries})"
            self._emit_status(attempt)
            self.logger.info(attempt)

            url = self.url
            ws = websocket.WebSocket()
            try:
                ws.settimeout(self.connect_timeout)
                ws.connect(url)
                ws.settimeout(self.recv_timeout)
            except (websocket.WebSocketException, OSError, ValueError) as e:
                self._close_quietly(ws)
                self._emit_status(f"Error - {e}")
                self.logger.error(f"WebSocket error (device): {e}")
                self._schedule_retry()
                return False

            self._ws = ws
            self.retry_count = 0
            self._start_reader()
            self._emit_status(f"Connected to {self.ip}:{self.port}.")
            self.logger.info(f"WebSocket connection to device at {url} established.")
            return True

    def disconnect(self) -> None:
        with self._thread_lock:
            self._cancel_retry()
            self._reader_stop.set()
            ws, self._ws = self._ws, None
            reader, self._reader_thread = self._reader_thread, None
            if ws is not None:
                self._close_quietly(ws)
                self._emit_status("Disconnected.")
                self.logger.info("WebSocket connection to device closed.")
        if reader is not None and reader is not threading.current_thread() and reader.is_alive():
            reader.join(timeout=2.0)

    def reconnect(self) -> bool:
        self._emit_status("Reconnecting due to settings change...")
        self.logger.info("Settings changed. Forcing device reconnection...")
        with self._thread_lock:
            self.retry_count = 0
            return super().reconnect()

    def send(self, payload_hex: str, description: str = "", logical_value: object = None) -> bool:
        with self._thread_lock:
            if self._ws is None:
                self._emit_status("Cannot send - Not Connected.")
                self.logger.error("Cannot send command to device: WebSocket is not connected.")
                return False
            try:
                self._ws.send(bytes.fromhex(payload_hex), opcode=websocket.ABNF.OPCODE_BINARY)
            except (websocket.WebSocketException, OSError, ValueError) as e:
                self._emit_status(f"Send Error - {e}")
                self.logger.error(f"Failed to send command to device: {e}")
                return False
        self.logger.info(f"State send to device        : {description} = {logical_value}({payload_hex})")
        return True

    def _start_reader(self) -> None:
        self._reader_stop = threading.Event()
        self._reader_thread = threading.Thread(
            target=self._read_loop,
            args=(self._ws, self._reader_stop),
            daemon=LINK_THREAD_DAEMON,
            name="DeviceLinkReader",
        )
        self._reader_thread.start()

    def _read_loop(self, ws: websocket.WebSocket, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                opcode, data = ws.recv_data()
            except websocket.WebSocketTimeoutException:
                continue
            except (websocket.WebSocketException, OSError) as e:
                if stop.is_set():
                    break
                self.logger.error(f"WebSocket error (device): {e}")
                self._drop_and_retry(ws)
                break

            if opcode == websocket.ABNF.OPCODE_CLOSE:
                if not stop.is_set():
                    self.logger.info("Device closed the WebSocket connection.")
                    self._drop_and_retry(ws)
                break
            if opcode not in _FRAME_OPCODES or not data:
                continue
            try:
                self._emit_frame(data)
            except Exception as e:
                self.logger.exception(f"Error handling device frame {data.hex()}: {e}")

    def _drop_and_retry(self, ws: websocket.WebSocket) -> None:
        with self._thread_lock:
            if self._ws is not ws:
                return
            self._ws = None
            self._reader_thread = None
            self._close_quietly(ws)
            self._emit_status("Disconnected.")
            self._schedule_retry()

    def _close_quietly(self, ws: websocket.WebSocket) -> None:
        try:
            # no closing handshake wait; the reader thread owns the receive side
            ws.close(timeout=0)
        except (websocket.WebSocketException, OSError) as e:
            self.logger.warning(f"Error closing device WebSocket: {e}")

    def _schedule_retry(self) -> None:
        if self.is_shutdown():
            return
        self._cancel_retry()
        self.logger.info(f"Will attempt to reconnect in {self.reconnect_interval} second(s)...")
        self._retry_timer = threading.Timer(self.reconnect_interval, self.connect)
        self._retry_timer.daemon = True
        self._retry_timer.start()

    def _cancel_retry(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    def _show_connection_failure(self) -> None:
        if self._did_show_failure:
            return
        self._did_show_failure = True
        self.logger.warning(
            f"Failed to connect to the device after {self.max_retries} attempts. "
            f"Check that the interface is powered on and that {self.url} is correct."
        )
        self._emit_status("Connection failed. Please check settings.")
