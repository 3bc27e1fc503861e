"""Line-coverage report parsing (lcov ``SF:`` / ``LH:`` records)."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def parse_lcov(text: str, root: Optional[Path] = None) -> Dict[str, int]:
    """Return ``{absolute file path: lines hit}`` from lcov *text*.

    Relative ``SF:`` paths are taken relative to *root*. A malformed
    ``LH:`` value is skipped.
    """
    hits: Dict[str, int] = {}
    current: Optional[str] = None
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("SF:"):
            current = _absolute(line[3:].strip(), root)
        elif line.startswith("LH:") and current is not None:
            try:
                hits[current] = int(line[3:].strip())
            except ValueError:
                logger.debug("Ignoring malformed LH record for %s: %r", current, line)
        elif line == "end_of_record":
            current = None
    return hits


def load_coverage(path: Path, root: Optional[Path] = None) -> Dict[str, int]:
    """Read and parse a coverage report. A missing report yields ``{}``."""
    if not path.exists():
        logger.debug("No coverage report at %s", path)
        return {}
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Cannot read coverage report %s: %s", path, exc)
        return {}
    return parse_lcov(text, root or path.parent)


def _absolute(sf_path: str, root: Optional[Path]) -> str:
    if os.path.isabs(sf_path) or root is None:
        return os.path.normpath(sf_path)
    return os.path.normpath(os.path.join(str(root), sf_path))
