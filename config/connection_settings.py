"""
settings.json handling: device address and change-notifier targets.
"""
import copy
import os
from typing import Any, Dict, Optional

from config.settings import (
    CONFIG_DIR,
    COMMANDS_JSON_PATH,
    SETTINGS_JSON_PATH,
    DEFAULT_DEVICE_IP,
    DEFAULT_DEVICE_PORT,
    DEFAULT_DEVICE_SN,
    DEFAULT_NOTIFIER_HOST,
    DEFAULT_NOTIFIER_PORT,
)
from config.default_commands import get_default_commands
from utils.json_store import load_json, save_json
from utils.logger import get_logger

_logger = get_logger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "connectionSettings": {
        "deviceIp": DEFAULT_DEVICE_IP,
        "devicePort": DEFAULT_DEVICE_PORT,
        "deviceSn": DEFAULT_DEVICE_SN,
    },
    "notifierTargets": [{"host": DEFAULT_NOTIFIER_HOST, "port": DEFAULT_NOTIFIER_PORT}],
}


class ConfigError(RuntimeError):
    """The configuration directory or a mandatory file could not be prepared."""


def ensure_config_dir(
    config_dir: str = CONFIG_DIR,
    settings_path: str = SETTINGS_JSON_PATH,
    commands_path: str = COMMANDS_JSON_PATH,
) -> None:
    """Create the config directory and seed missing settings/commands files."""
    try:
        os.makedirs(config_dir, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Failed to create configuration directory {config_dir}: {e}") from e

    if not os.path.exists(settings_path):
        if save_json(settings_path, get_default_settings()):
            _logger.info(f"Default settings.json created at {settings_path}")

    if not os.path.exists(commands_path):
        if not save_json(commands_path, get_default_commands()):
            raise ConfigError(f"Could not create default commands.json at {commands_path}")
        _logger.info(f"Default commands.json created at {commands_path}")


def get_default_settings() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_SETTINGS)


def load_connection_settings(path: str = SETTINGS_JSON_PATH) -> Dict[str, Any]:
    """Read settings.json, falling back to defaults when it is unreadable."""
    try:
        data = load_json(path)
    except (OSError, ValueError) as e:
        _logger.error(f"Error reading {path}, falling back to defaults: {e}")
        return get_default_settings()

    if not isinstance(data, dict):
        _logger.error(f"{path} does not contain an object, falling back to defaults")
        return get_default_settings()

    settings = get_default_settings()
    connection = data.get("connectionSettings")
    if isinstance(connection, dict):
        settings["connectionSettings"].update(connection)
    targets = data.get("notifierTargets")
    if isinstance(targets, list):
        settings["notifierTargets"] = [t for t in targets if isinstance(t, dict)]
    return settings


def update_connection_settings(
    ip: Optional[str] = None,
    port: Optional[int] = None,
    sn: Optional[str] = None,
    path: str = SETTINGS_JSON_PATH,
) -> bool:
    """Persist a new device address. Returns True only if something changed and was written."""
    settings = load_connection_settings(path)
    connection = settings["connectionSettings"]

    changed = False
    for field, value in (("deviceIp", ip), ("devicePort", port), ("deviceSn", sn)):
        if value is not None and value != connection.get(field):
            connection[field] = value
            changed = True

    if not changed:
        return False

    if save_json(path, settings):
        _logger.info(f"settings.json has been updated in {os.path.dirname(path)}")
        return True
    return False
