"""Configuration manager for CodeTrace using TOML files."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

import toml

from .config import BASE_DIR

logger = logging.getLogger(__name__)

CONFIG_FILE = BASE_DIR / "config.toml"


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    try:
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write %s: %s", CONFIG_FILE, exc)
        return False


def load_search_config() -> Dict[str, Any]:
    """Load the ``[search]`` section.

    Returns:
        Dict of raw settings values, or an empty dict when the file or
        section is missing.
    """
    return dict(load_full_config().get("search", {}))


def save_search_config(
    allowed_paths: Optional[Iterable[str]] = None,
    **limits: int,
) -> bool:
    """Save search settings to the config TOML.

    Preserves other sections and any ``[search]`` keys not being changed.

    Args:
        allowed_paths: Root directories the Path Guard should allow.
        **limits: Numeric limits such as ``max_depth`` or ``max_results``.

    Returns:
        True if saved successfully, False otherwise
    """
    config = load_full_config()
    section = dict(config.get("search", {}))
    if allowed_paths is not None:
        section["allowed_paths"] = [str(p) for p in allowed_paths]
    for key, value in limits.items():
        if value is not None:
            section[key] = value
    config["search"] = section
    return _save_full_config(config)


def clear_search_config() -> bool:
    """Remove ``[search]`` section from config, resetting to defaults."""
    config = load_full_config()
    config.pop("search", None)
    return _save_full_config(config)
