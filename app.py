#!/usr/bin/env python3
"""
Main entry point for the mixer command bridge.
Loads the command catalog, restores saved state, connects the device link and keeps
running until a shutdown signal arrives. State is flushed to disk exactly once on exit.
"""
import atexit
import signal
import sys
import threading
from typing import Optional

from config.connection_settings import ConfigError, ensure_config_dir, load_connection_settings
from config.settings import (
    COMMANDS_JSON_PATH,
    SAVE_DEBOUNCE_SEC,
    SETTINGS_JSON_PATH,
    STATE_JSON_PATH,
    validate_config,
)
from controller.bridge_controller import BridgeController
from model.base_link import BaseDeviceLink
from model.catalog import CatalogError, CommandCatalog
from model.device_link import WebSocketDeviceLink
from model.osc_notifier import OscChangeNotifier
from model.state_store import CommandStateStore
from utils.logger import get_logger


class BridgeApp:
    """
    Main application class with signal handling and a single, idempotent cleanup path.
    """

    def __init__(self, commands_path: str = COMMANDS_JSON_PATH, state_path: str = STATE_JSON_PATH,
                 settings_path: str = SETTINGS_JSON_PATH, debounce_sec: float = SAVE_DEBOUNCE_SEC):
        self.logger = get_logger(__name__)
        self.commands_path = commands_path
        self.state_path = state_path
        self.settings_path = settings_path
        self.debounce_sec = debounce_sec

        self.store: Optional[CommandStateStore] = None
        self.link: Optional[BaseDeviceLink] = None
        self.notifier: Optional[OscChangeNotifier] = None
        self.controller: Optional[BridgeController] = None
        self.shutdown_event = threading.Event()

        self._exit_lock = threading.Lock()
        self._is_exiting = False

    def setup(self, link: Optional[BaseDeviceLink] = None) -> None:
        """Build the object graph. Raises CatalogError when there is no usable command model."""
        catalog = CommandCatalog.load(self.commands_path)

        self.store = CommandStateStore(catalog, state_path=self.state_path, debounce_sec=self.debounce_sec)
        self.store.load_snapshot()

        settings = load_connection_settings(self.settings_path)
        self.notifier = OscChangeNotifier()
        for target in settings["notifierTargets"]:
            if "host" in target and "port" in target:
                self.notifier.add_target(target["host"], target["port"])

        if link is None:
            connection = settings["connectionSettings"]
            link = WebSocketDeviceLink(
                connection["deviceIp"], int(connection["devicePort"]), str(connection.get("deviceSn") or "")
            )
        self.link = link
        self.controller = BridgeController(self.store, link, self.notifier.publish, self.settings_path)
        self.logger.info("Bridge initialized")

    def install_exit_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        if hasattr(signal, "SIGHUP"):
            signal.signal(signal.SIGHUP, self._signal_handler)
        atexit.register(self.handle_exit)

    def _signal_handler(self, signum, frame):
        self.logger.info(f"Signal received: {signum}, shutting down...")
        self.handle_exit()

    def handle_exit(self, exit_code: int = 0) -> bool:
        """
        Cancel any pending save, flush state synchronously and release the link.
        Only the first call does anything; later calls return False.
        """
        with self._exit_lock:
            if self._is_exiting:
                return False
            self._is_exiting = True

        self.logger.info("Saving state before exit...")
        try:
            if self.store is not None:
                self.store.close()
            if self.link is not None:
                self.link.shutdown()
            if self.notifier is not None:
                self.notifier.shutdown()
        finally:
            self.shutdown_event.set()
        self.logger.info(f"Exit code: {exit_code}")
        return True

    @property
    def is_exiting(self) -> bool:
        return self._is_exiting

    def run(self) -> int:
        """Run until a shutdown signal arrives."""
        try:
            self.setup()
        except CatalogError as e:
            self.logger.critical(f"Error loading or processing {self.commands_path}: {e}")
            return 1

        self.install_exit_handlers()
        try:
            self.link.connect()
            while not self.shutdown_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            self.handle_exit(0)
        except Exception as e:
            self.logger.exception(f"Uncaught exception: {e}")
            self.handle_exit(1)
            return 1
        return 0


def main() -> int:
    """Main entry point."""
    logger = get_logger(__name__)
    if not validate_config():
        logger.critical("Invalid configuration, check the environment variables")
        return 1

    try:
        ensure_config_dir()
    except ConfigError as e:
        logger.critical(str(e))
        return 1

    app = BridgeApp()
    return app.run()


if __name__ == "__main__":
    sys.exit(main())
