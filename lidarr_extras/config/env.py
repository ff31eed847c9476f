"""Bootstrap settings read from the environment before anything else loads."""

import os
import sys
from pathlib import Path


def string_to_bool(s: str) -> bool:
    return s.strip().lower() in ("true", "yes", "1", "y", "on")


def _default_config_dir() -> Path:
    home = Path.home()
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(appdata) / "lidarr-import-extras"
    return home / ".config" / "lidarr-import-extras"


CONFIG_DIR = Path(os.getenv("CONFIG_DIR") or _default_config_dir())
CONFIG_FILE = CONFIG_DIR / "config.json"

LOG_DIR = Path(os.getenv("LOG_DIR") or (CONFIG_DIR / "logs"))
LOG_FILE = LOG_DIR / "lidarr-import-extras.log"
ENABLE_LOGGING = string_to_bool(os.getenv("ENABLE_LOGGING", "false"))

DEBUG = string_to_bool(os.getenv("DEBUG", "false"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

DEFAULT_PORT = 15032
