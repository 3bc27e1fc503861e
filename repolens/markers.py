"""TODO / FIXME comment-marker scanning with severity tags."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional

from .models import SEVERITIES

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY = "medium"

# // TODO(high): ...   /* FIXME [critical] */   * TODO: low - ...
_MARKER_RE = re.compile(
    r"(?://|/\*|^\s*\*)\s*(?P<marker>TODO|FIXME)\b"
    r"(?:\s*(?:\((?P<paren>[^)]*)\)|\[(?P<bracket>[^\]]*)\]|:\s*(?P<colon>\w+)\s*:))?",
    re.MULTILINE,
)

_ALIASES = {
    "crit": "critical",
    "blocker": "critical",
    "urgent": "critical",
    "hi": "high",
    "major": "high",
    "med": "medium",
    "normal": "medium",
    "lo": "low",
    "minor": "low",
    "trivial": "low",
}


@dataclass
class MarkerTally:
    count: int = 0
    severity: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in SEVERITIES})


def classify_severity(tag: Optional[str]) -> str:
    """Map a free-text tag to a severity bucket.

    A missing tag counts as ``medium``; a tag that is present but not
    recognised goes to ``unclassified`` rather than skewing ``medium``.
    """
    if tag is None or not tag.strip():
        return DEFAULT_SEVERITY
    word = tag.strip().lower()
    if word in SEVERITIES and word != "unclassified":
        return word
    if word in _ALIASES:
        return _ALIASES[word]
    if word.startswith("p") and word[1:].isdigit():
        return ("critical", "high", "medium", "low")[min(int(word[1:]), 3)]
    return "unclassified"


def scan_markers(text: str) -> MarkerTally:
    tally = MarkerTally()
    for match in _MARKER_RE.finditer(text):
        tag = match.group("paren") or match.group("bracket") or match.group("colon")
        tally.count += 1
        tally.severity[classify_severity(tag)] += 1
    return tally


def scan_files(paths: Iterable[str]) -> Dict[str, MarkerTally]:
    """Scan each distinct path once. Unreadable files count as zero markers."""
    result: Dict[str, MarkerTally] = {}
    for path in paths:
        if path in result:
            continue
        try:
            text = Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Cannot read %s for marker scan: %s", path, exc)
            result[path] = MarkerTally()
            continue
        result[path] = scan_markers(text)
    return result
