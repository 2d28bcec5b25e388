"""
Change notifier that fans state-change events out to UI listeners over OSC.
"""
import json
import threading
from typing import Dict, List, Tuple

from pythonosc import udp_client

from config.settings import NOTIFIER_ADDRESS_PREFIX
from model.events import StateEvent
from utils.logger import get_logger

Target = Tuple[str, int]


class OscChangeNotifier:
    """
    Holds the listener list the core deliberately does not have. Each event is sent
    as one OSC message whose address is ``<prefix>/<event type>`` and whose single
    argument is the JSON-encoded event.
    """

    def __init__(self, address_prefix: str = NOTIFIER_ADDRESS_PREFIX):
        self.logger = get_logger(__name__)
        self.address_prefix = address_prefix.rstrip("/")
        self._clients: Dict[Target, udp_client.SimpleUDPClient] = {}
        self._lock = threading.RLock()

    def add_target(self, host: str, port: int) -> bool:
        target = (host, int(port))
        with self._lock:
            if target in self._clients:
                return False
            try:
                self._clients[target] = udp_client.SimpleUDPClient(host, int(port))
            except (OSError, ValueError) as e:
                self.logger.error(f"Cannot create OSC client for {host}:{port}: {e}")
                return False
        self.logger.info(f"UI listener registered: {host}:{port}")
        return True

    def remove_target(self, host: str, port: int) -> bool:
        with self._lock:
            removed = self._clients.pop((host, int(port)), None)
        if removed is not None:
            self.logger.info(f"UI listener removed: {host}:{port}")
        return removed is not None

    def targets(self) -> List[Target]:
        with self._lock:
            return list(self._clients)

    def address_for(self, event: StateEvent) -> str:
        return f"{self.address_prefix}/{event.kind.value.lower()}"

    def publish(self, event: StateEvent) -> int:
        """Send the event to every target. Returns how many sends succeeded."""
        address = self.address_for(event)
        message = json.dumps(event.to_message(), ensure_ascii=False)
        with self._lock:
            clients = list(self._clients.items())

        delivered = 0
        for (host, port), client in clients:
            try:
                client.send_message(address, message)
                delivered += 1
            except OSError as e:
                self.logger.error(f"OSC notify to {host}:{port} failed: {e}")
        return delivered

    def shutdown(self) -> None:
        with self._lock:
            self._clients.clear()
        self.logger.info("Change notifier stopped")
