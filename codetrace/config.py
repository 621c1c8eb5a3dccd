"""Runtime configuration for CodeTrace.

Defaults live here; ``~/.codetrace/config.toml`` overrides them and
``CODETRACE_*`` environment variables override the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("CODETRACE_HOME", str(Path.home() / ".codetrace"))).expanduser()

DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024
DEFAULT_MAX_DEPTH = 30
DEFAULT_MAX_FILES = 20000
DEFAULT_MAX_RESULTS = 500
DEFAULT_BATCH_SIZE = 500
DEFAULT_MAX_WORKERS = 8
DEFAULT_MAX_MATCHES_PER_FILE = 3
DEFAULT_CACHE_SIZE = 1000
DEFAULT_TRAVERSAL_DEPTH = 10
DEFAULT_CONFIG_NAMESPACES = ("ConfigStore", "Const", "Config", "AppConfig", "Settings")

# Environment variable -> (settings field, parser)
_ENV_FIELDS = {
    "CODETRACE_MAX_FILE_SIZE": ("max_file_size", int),
    "CODETRACE_MAX_DEPTH": ("max_depth", int),
    "CODETRACE_MAX_FILES": ("max_files", int),
    "CODETRACE_MAX_RESULTS": ("max_results", int),
    "CODETRACE_BATCH_SIZE": ("batch_size", int),
    "CODETRACE_MAX_WORKERS": ("max_workers", int),
    "CODETRACE_TRAVERSAL_DEPTH": ("max_traversal_depth", int),
    "CODETRACE_CACHE_SIZE": ("cache_size", int),
}


@dataclass(frozen=True)
class SearchSettings:
    """Immutable settings injected into every engine component."""
    allowed_paths: Tuple[str, ...] = field(default_factory=lambda: (os.getcwd(),))
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_depth: int = DEFAULT_MAX_DEPTH
    max_files: int = DEFAULT_MAX_FILES
    max_results: int = DEFAULT_MAX_RESULTS
    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    max_matches_per_file: int = DEFAULT_MAX_MATCHES_PER_FILE
    max_traversal_depth: int = DEFAULT_TRAVERSAL_DEPTH
    cache_enabled: bool = True
    cache_size: int = DEFAULT_CACHE_SIZE
    config_namespaces: Tuple[str, ...] = DEFAULT_CONFIG_NAMESPACES

    @property
    def query_defaults(self) -> Dict[str, int]:
        return {"max_results": self.max_results, "max_files": self.max_files}

    def with_overrides(self, **overrides: Any) -> "SearchSettings":
        return replace(self, **overrides)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def _split_paths(value: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


def _from_mapping(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick recognised keys out of a ``[search]`` TOML section."""
    known = set(SearchSettings.__dataclass_fields__)
    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown config key '%s'", key)
            continue
        if key in ("allowed_paths", "config_namespaces"):
            value = _split_paths(value) if isinstance(value, str) else tuple(value)
        values[key] = value
    return values


def load_settings(env: Optional[Mapping[str, str]] = None, use_file: bool = True) -> SearchSettings:
    """Build :class:`SearchSettings` from defaults, the TOML file and the environment."""
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}

    if use_file:
        from .config_manager import load_search_config
        values.update(_from_mapping(load_search_config()))

    if env.get("CODETRACE_ALLOWED_PATHS"):
        values["allowed_paths"] = _split_paths(env["CODETRACE_ALLOWED_PATHS"])
    if env.get("CODETRACE_CACHE_ENABLED") is not None:
        values["cache_enabled"] = _parse_bool(env["CODETRACE_CACHE_ENABLED"])
    for var, (name, parser) in _ENV_FIELDS.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            values[name] = parser(raw)
        except ValueError:
            logger.warning("Invalid value for %s: %r (using default)", var, raw)

    return SearchSettings(**values)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging to stderr; ``CODETRACE_LOG_LEVEL`` is the fallback."""
    name = (level or os.environ.get("CODETRACE_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
