"""Application configuration.

Values are resolved in priority order:
1. Environment variable
2. ``config.json`` in CONFIG_DIR
3. Built-in default

The result is an immutable :class:`AppConfig` built once at startup and passed
explicitly to whatever needs it.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from lidarr_extras.config import env
from lidarr_extras.core.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_EXTRA_EXTENSIONS: Tuple[str, ...] = (
    ".cue",
    ".log",
    ".png",
    ".jpg",
    ".jpeg",
    ".txt",
    ".m3u",
    ".m3u8",
    ".yml",
    ".yaml",
)


@dataclass(frozen=True)
class PathMapping:
    """Prefix substitution from the download client's view to ours."""

    from_: str
    to: str


@dataclass(frozen=True)
class QBittorrentSettings:
    url: str = "http://localhost:8080"
    username: str = "admin"
    password: str = "secret"
    timeout: float = 10.0


@dataclass(frozen=True)
class AppConfig:
    host: str = "0.0.0.0"
    port: int = env.DEFAULT_PORT
    qbittorrent: QBittorrentSettings = field(default_factory=QBittorrentSettings)
    path_mappings: Tuple[PathMapping, ...] = ()
    extra_extensions: frozenset = frozenset(DEFAULT_EXTRA_EXTENSIONS)
    case_sensitive_paths: Optional[bool] = None  # None = follow the platform
    copy_fallback: bool = True


def load_config_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        logger.warning(f"Config file not found at {config_path}, using defaults.")
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in config file {config_path}: {e}")
        return {}
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read config file {config_path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Config file {config_path} must contain a JSON object")
        return {}

    logger.info(f"Loaded config from {config_path}")
    return data


def parse_path_mappings(raw: Any) -> Tuple[PathMapping, ...]:
    """Parse ``[{"from": ..., "to": ...}]`` into mappings, keeping list order."""
    if not raw:
        return ()
    if not isinstance(raw, list):
        logger.warning(f"pathMappings must be a list, got {type(raw).__name__}; ignoring")
        return ()

    mappings: List[PathMapping] = []
    for entry in raw:
        if (
            isinstance(entry, dict)
            and isinstance(entry.get("from"), str)
            and entry.get("from")
            and isinstance(entry.get("to"), str)
        ):
            mappings.append(PathMapping(from_=entry["from"], to=entry["to"]))
        else:
            logger.warning(f"Skipping malformed path mapping: {entry!r}")
    return tuple(mappings)


def normalize_extensions(raw: Any) -> frozenset:
    """Lower-case extensions and make sure each has a leading dot."""
    if isinstance(raw, str):
        raw = raw.split(",")
    if not raw:
        return frozenset(DEFAULT_EXTRA_EXTENSIONS)

    normalized = set()
    for ext in raw:
        ext = str(ext).strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(normalized) if normalized else frozenset(DEFAULT_EXTRA_EXTENSIONS)


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return env.string_to_bool(value)
    return default


def _parse_case_mode(value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("", "auto"):
        return None
    return env.string_to_bool(text)


def _parse_number(value: Any, default, cast):
    try:
        return cast(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid numeric setting {value!r}, using {default}")
        return default


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Build the process configuration from file and environment."""
    environ = os.environ if environ is None else environ
    data = load_config_file(config_path or env.CONFIG_FILE)

    qbt = data.get("qbittorrent") or {}
    if not isinstance(qbt, dict):
        logger.warning("qbittorrent section must be an object; using defaults")
        qbt = {}

    defaults = QBittorrentSettings()
    qbittorrent = QBittorrentSettings(
        url=environ.get("QBITTORRENT_URL") or qbt.get("url") or defaults.url,
        username=environ.get("QBITTORRENT_USERNAME", qbt.get("username", defaults.username)),
        password=environ.get("QBITTORRENT_PASSWORD", qbt.get("password", defaults.password)),
        timeout=_parse_number(
            environ.get("QBITTORRENT_TIMEOUT", qbt.get("timeout", defaults.timeout)),
            defaults.timeout,
            float,
        ),
    )

    raw_mappings = data.get("pathMappings")
    if "PATH_MAPPINGS" in environ:
        try:
            raw_mappings = json.loads(environ["PATH_MAPPINGS"])
        except json.JSONDecodeError:
            logger.warning("Invalid JSON for PATH_MAPPINGS, using config file value")

    raw_extensions = environ.get("EXTRA_EXTENSIONS", data.get("extraExtensions"))
    raw_case = environ.get("CASE_SENSITIVE_PATHS", data.get("caseSensitivePaths"))

    return AppConfig(
        host=environ.get("FLASK_HOST") or data.get("host") or "0.0.0.0",
        port=_parse_number(
            environ.get("FLASK_PORT", data.get("port") or env.DEFAULT_PORT),
            env.DEFAULT_PORT,
            int,
        ),
        qbittorrent=qbittorrent,
        path_mappings=parse_path_mappings(raw_mappings),
        extra_extensions=normalize_extensions(raw_extensions),
        case_sensitive_paths=_parse_case_mode(raw_case),
        copy_fallback=_parse_bool(environ.get("COPY_FALLBACK", data.get("copyFallback")), True),
    )


def describe_config(cfg: AppConfig) -> List[str]:
    """Human-readable lines for logging at startup. Passwords are omitted."""
    lines = [
        f"  Listening: {cfg.host}:{cfg.port}",
        f"  qBittorrent: {cfg.qbittorrent.url} (user '{cfg.qbittorrent.username}')",
        f"  Extra extensions: {', '.join(sorted(cfg.extra_extensions))}",
        f"  Case-sensitive paths: {'auto' if cfg.case_sensitive_paths is None else cfg.case_sensitive_paths}",
        f"  Copy fallback: {cfg.copy_fallback}",
    ]
    if cfg.path_mappings:
        for mapping in cfg.path_mappings:
            lines.append(f"  Path mapping: {mapping.from_} -> {mapping.to}")
    else:
        lines.append("  Path mappings: none")
    return lines
