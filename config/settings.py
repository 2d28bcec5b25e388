"""
Application configuration settings.
"""
import os
from typing import Tuple, Dict, Any

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE: str = os.getenv("LOG_FILE", "")

# Config files
CONFIG_DIR: str = os.path.abspath(os.getenv("BRIDGE_CONFIG_DIR", os.path.join(os.getcwd(), "config_data")))
COMMANDS_JSON_PATH: str = os.path.join(CONFIG_DIR, "commands.json")
STATE_JSON_PATH: str = os.path.join(CONFIG_DIR, "state.json")
SETTINGS_JSON_PATH: str = os.path.join(CONFIG_DIR, "settings.json")

# Persistence
SAVE_DEBOUNCE_SEC: float = float(os.getenv("SAVE_DEBOUNCE_SEC", "10.0"))

# Device link
DEFAULT_DEVICE_IP: str = "127.0.0.1"
DEFAULT_DEVICE_PORT: int = 1281
DEFAULT_DEVICE_SN: str = ""
RECONNECT_INTERVAL_SEC: float = float(os.getenv("RECONNECT_INTERVAL_SEC", "1.0"))
MAX_CONNECT_RETRIES: int = 5
LINK_CONNECT_TIMEOUT_SEC: float = float(os.getenv("LINK_CONNECT_TIMEOUT_SEC", "5.0"))
LINK_RECV_TIMEOUT_SEC: float = 0.5
LINK_THREAD_DAEMON: bool = True

# Change notifier (OSC)
DEFAULT_NOTIFIER_HOST: str = "127.0.0.1"
DEFAULT_NOTIFIER_PORT: int = 9000
NOTIFIER_ADDRESS_PREFIX: str = "/bridge"

# Validation Settings
VALID_LOG_LEVELS: Tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_config() -> Dict[str, Any]:
    """Get all configuration settings as a dictionary."""
    return {
        "logging": {
            "level": LOG_LEVEL,
            "format": LOG_FORMAT,
            "file": LOG_FILE,
        },
        "paths": {
            "config_dir": CONFIG_DIR,
            "commands": COMMANDS_JSON_PATH,
            "state": STATE_JSON_PATH,
            "settings": SETTINGS_JSON_PATH,
        },
        "persistence": {
            "save_debounce_sec": SAVE_DEBOUNCE_SEC,
        },
        "device": {
            "ip": DEFAULT_DEVICE_IP,
            "port": DEFAULT_DEVICE_PORT,
            "sn": DEFAULT_DEVICE_SN,
            "reconnect_interval": RECONNECT_INTERVAL_SEC,
            "max_retries": MAX_CONNECT_RETRIES,
            "connect_timeout": LINK_CONNECT_TIMEOUT_SEC,
            "recv_timeout": LINK_RECV_TIMEOUT_SEC,
        },
        "notifier": {
            "host": DEFAULT_NOTIFIER_HOST,
            "port": DEFAULT_NOTIFIER_PORT,
            "address_prefix": NOTIFIER_ADDRESS_PREFIX,
        },
    }


def validate_config() -> bool:
    """Validate configuration settings."""
    if LOG_LEVEL.upper() not in VALID_LOG_LEVELS:
        return False

    if SAVE_DEBOUNCE_SEC <= 0:
        return False

    if not (1 <= DEFAULT_DEVICE_PORT <= 65535):
        return False

    if not (1 <= DEFAULT_NOTIFIER_PORT <= 65535):
        return False

    if RECONNECT_INTERVAL_SEC <= 0 or MAX_CONNECT_RETRIES < 1 or LINK_CONNECT_TIMEOUT_SEC <= 0:
        return False

    return True
