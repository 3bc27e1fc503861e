"""Configuration paths and scan defaults for repolens."""

from __future__ import annotations

import os
from pathlib import Path

from .config_manager import (
    CONFIG_FILE,
    CONFIG_HOME,
    load_debt_config,
    load_graph_config,
    load_scan_config,
)

BASE_DIR = CONFIG_HOME
MEMORY_DIR = BASE_DIR / "memory"
STATE_FILE = BASE_DIR / "state.json"

SOURCE_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}

# Tried in order when resolving a relative import without an extension.
RESOLVE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")

SKIP_DIRS = {
    "node_modules", ".git", ".hg", ".svn", "dist", "build", "out",
    "coverage", ".next", ".nuxt", ".svelte-kit", ".turbo", ".cache",
    ".vercel", ".yarn", "vendor", "storybook-static", "bower_components",
}

# Framework data-loading entry points kept in frontend files even when
# they are not exported.
DATA_LOADER_NAMES = {
    "getServerSideProps", "getStaticProps", "getStaticPaths",
    "getInitialProps", "loader", "action", "generateMetadata",
    "generateStaticParams",
}

DEFAULT_WORKERS = min(8, os.cpu_count() or 1)

DEFAULT_DEBT_WEIGHTS = {
    "complexity": 0.5,
    "todo": 1.0,
    "coverage": 0.3,
    "age": 0.2,
}
DEFAULT_DEBT_TOP_K = 5
DEFAULT_COVERAGE_FILE = Path("coverage") / "lcov.info"

# Overrides from config.toml
_scan_config = load_scan_config()
_debt_config = load_debt_config()
_graph_config = load_graph_config()

SCAN_WORKERS = int(_scan_config.get("workers", DEFAULT_WORKERS))
EXTRA_SKIP_DIRS = set(_scan_config.get("extra_skip_dirs", []))
DEBT_TOP_K = int(_debt_config.get("top_k", DEFAULT_DEBT_TOP_K))
DEBT_WEIGHTS = {
    key: float(_debt_config.get(f"{key}_weight", default))
    for key, default in DEFAULT_DEBT_WEIGHTS.items()
}
GRAPH_TOP_N = _graph_config.get("top_n")
GRAPH_KEEP_ISOLATED = int(_graph_config.get("keep_isolated_top_k", 0))


def ensure_base_dirs() -> None:
    """Create base directories for local storage if needed."""
    MEMORY_DIR.mkdir(parents=True, exist_ok=True)
    BASE_DIR.mkdir(parents=True, exist_ok=True)
