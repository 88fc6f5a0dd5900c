# storage.py
# Key-value JSON persistence for links, students and attendance.

import json
import logging
import os
import sys
from typing import Any

logger = logging.getLogger(__name__)


def get_executable_dir() -> str:
    """Directory next to the executable for frozen builds, else the cwd."""
    if getattr(sys, "frozen", False):
        return os.path.dirname(sys.executable)
    return os.path.abspath(".")


def data_path(relative_path: str) -> str:
    if os.path.isabs(relative_path):
        return relative_path
    return os.path.join(get_executable_dir(), relative_path)


class JsonStore:
    """One JSON document per key under `root_dir`.

    Reads never raise: a missing or unreadable document yields the default.
    """

    def __init__(self, root_dir: str = "attendance_data"):
        self.root_dir = data_path(root_dir)
        os.makedirs(self.root_dir, exist_ok=True)

    def _key_path(self, key: str) -> str:
        return os.path.join(self.root_dir, f"{key}.json")

    def load(self, key: str, default: Any = None) -> Any:
        path = self._key_path(key)
        if not os.path.exists(path):
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load {key}: {e}")
            return default

    def save(self, key: str, value: Any) -> bool:
        path = self._key_path(key)
        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            os.replace(tmp_path, path)
            return True
        except (OSError, TypeError) as e:
            logger.error(f"Failed to save {key}: {e}")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            return False
