"""Configuration manager for repolens using a TOML file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)

# Resolved here rather than in .config, which imports this module.
CONFIG_HOME = Path(os.environ.get("REPOLENS_HOME", str(Path.home() / ".repolens"))).expanduser()
CONFIG_FILE = CONFIG_HOME / "config.toml"


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing file yields an empty dict. A malformed file is logged and
    ignored so that a bad config never blocks a scan.
    """
    config_path = path or CONFIG_FILE
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config_path, exc)
        return {}


def _section(name: str, path: Optional[Path] = None) -> Dict[str, Any]:
    section = load_full_config(path).get(name, {})
    if not isinstance(section, dict):
        logger.warning("Config section [%s] is not a table; ignoring it", name)
        return {}
    return section


def load_scan_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """``[scan]`` section: ``workers``, ``extra_skip_dirs``."""
    return _section("scan", path)


def load_debt_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """``[debt]`` section: ``top_k`` and ``<term>_weight`` keys."""
    return _section("debt", path)


def load_graph_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """``[graph]`` section: ``top_n``, ``keep_isolated_top_k``."""
    return _section("graph", path)


def save_section(name: str, values: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """Write one section back to the TOML file, preserving the others."""
    config_path = path or CONFIG_FILE
    config = load_full_config(config_path)
    config[name] = {**config.get(name, {}), **values}
    config_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(config_path, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", config_path, exc)
        return False
