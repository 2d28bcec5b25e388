"""
JSON file load/save helpers shared by the catalog, settings and state snapshot.
"""
import json
import os
import threading
from typing import Any

from utils.logger import get_logger


# Thread-safe file operations
_file_lock = threading.RLock()
_logger = get_logger(__name__)


def load_json(path: str) -> Any:
    """
    Load a JSON document.

    Raises OSError if the file cannot be read and ValueError if it is not valid JSON;
    callers decide whether that is fatal.
    """
    with _file_lock:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)


def save_json(path: str, data: Any) -> bool:
    """Write a JSON document, keeping the previous file until the write succeeds."""
    with _file_lock:
        backup_path = path + ".backup"
        try:
            if os.path.exists(path):
                os.replace(path, backup_path)

            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)

            if os.path.exists(backup_path):
                try:
                    os.remove(backup_path)
                except OSError:
                    pass  # stale backup is harmless
            return True
        except (OSError, TypeError, ValueError) as e:
            _logger.error(f"Failed to write {path}: {e}")
            if os.path.exists(backup_path):
                try:
                    os.replace(backup_path, path)
                except OSError as restore_error:
                    _logger.error(f"Failed to restore {path} from backup: {restore_error}")
            return False
