"""Technical-debt scoring, ranked snapshots and snippet lookup."""

from __future__ import annotations

import logging
import math
import threading
import time
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .config import DEBT_TOP_K, DEBT_WEIGHTS, DEFAULT_COVERAGE_FILE
from .coverage import load_coverage
from .errors import ScanCancelled
from .markers import MarkerTally, scan_files
from .models import SEVERITIES, CodeUnit, DebtEntry, DebtSnapshot, NoSnippet, NotFound, Snippet
from .sanitize import sanitize_code
from .storage import GraphStore

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


def _finite(value: float) -> float:
    """Coerce NaN / infinity to 0 so a score never carries them."""
    return value if math.isfinite(value) else 0.0


def _ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return _finite(numerator / denominator)


class DebtScorer:
    """Weighted combination of complexity, markers, coverage gap and age.

    ``score = wc * complexity / max_complexity + wt * todo_count
    + wv * (max_hits - hits) / max_hits + wa * age_days / 365``

    The marker count is deliberately left unnormalised so heavily flagged
    files dominate the ranking.
    """

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        top_k: Optional[int] = None,
        now: Optional[float] = None,
    ) -> None:
        self.weights = {**DEBT_WEIGHTS, **(weights or {})}
        self.top_k = DEBT_TOP_K if top_k is None else top_k
        self._now = now

    def _age_days(self, unit: CodeUnit, now: float) -> float:
        stamp = unit.last_modified or unit.created_at or now
        return max(0.0, _finite((now - stamp) / SECONDS_PER_DAY))

    def score_units(
        self,
        units: Iterable[CodeUnit],
        markers: Mapping[str, MarkerTally],
        coverage: Mapping[str, int],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[DebtEntry]:
        """Score every unit; returns all entries sorted by descending score."""
        units = list(units)
        now = self._now if self._now is not None else time.time()
        max_complexity = max((u.complexity for u in units), default=0)
        max_hits = max(coverage.values(), default=0)
        w = self.weights

        entries: List[DebtEntry] = []
        for unit in units:
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled("debt scoring cancelled")
            tally = markers.get(unit.file_path) or MarkerTally()
            hits = int(coverage.get(unit.file_path, 0))
            age_days = self._age_days(unit, now)

            terms = (
                w["complexity"] * _ratio(unit.complexity, max_complexity),
                w["todo"] * tally.count,
                w["coverage"] * _ratio(max_hits - hits, max_hits),
                w["age"] * (age_days / 365.0),
            )
            score = sum(_finite(t) for t in terms)
            entries.append(DebtEntry(
                node_id=unit.node_id,
                file_path=unit.file_path,
                module_name=unit.module_name,
                complexity=unit.complexity,
                todo_count=tally.count,
                severity=tuple((s, tally.severity.get(s, 0)) for s in SEVERITIES),
                coverage_hits=hits,
                age_days=round(age_days, 3),
                score=round(score, 6),
            ))

        entries.sort(key=lambda e: (-e.score, e.node_id))
        return entries

    def snapshot(
        self,
        repo_id: str,
        units: Iterable[CodeUnit],
        markers: Mapping[str, MarkerTally],
        coverage: Mapping[str, int],
        cancel_event: Optional[threading.Event] = None,
    ) -> DebtSnapshot:
        """Rank *units* and keep the top-k entries in an immutable snapshot."""
        ranked = self.score_units(units, markers, coverage, cancel_event)
        timestamp = self._now if self._now is not None else time.time()
        return DebtSnapshot(repo_id=repo_id, timestamp=timestamp, entries=tuple(ranked[: self.top_k]))


def compute_hotspots(
    store: GraphStore,
    repo_id: str,
    root: Optional[Path] = None,
    coverage_path: Optional[Path] = None,
    scorer: Optional[DebtScorer] = None,
    cancel_event: Optional[threading.Event] = None,
) -> DebtSnapshot:
    """Score the stored units of *repo_id* and append a new snapshot.

    The snapshot is written only after every unit has been scored; a
    cancelled run raises :class:`ScanCancelled` and writes nothing.
    """
    scorer = scorer or DebtScorer()
    units = store.find_by_repo(repo_id)
    markers = scan_files(u.file_path for u in units)

    coverage: Dict[str, int] = {}
    if coverage_path is None and root is not None:
        coverage_path = root / DEFAULT_COVERAGE_FILE
    if coverage_path is not None:
        coverage = load_coverage(coverage_path, root)

    snapshot = scorer.snapshot(repo_id, units, markers, coverage, cancel_event)
    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelled("debt scoring cancelled")
    store.append_snapshot(snapshot)
    logger.info("Stored debt snapshot for %s with %d entries", repo_id, len(snapshot.entries))
    return snapshot


def get_snippet(
    store: GraphStore,
    node_id: str,
    redact: bool = False,
) -> Union[Snippet, NoSnippet, NotFound]:
    """Return the source text of a unit by its line span."""
    unit = store.get_unit(node_id)
    if unit is None:
        return NotFound(node_id=node_id)
    try:
        lines = Path(unit.file_path).read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as exc:
        logger.warning("Snippet unavailable for %s: %s", node_id, exc)
        return NoSnippet(node_id=node_id, reason=str(exc))

    text = "\n".join(lines[unit.start_line - 1: unit.end_line])
    if redact:
        text = sanitize_code(text)
    return Snippet(
        node_id=node_id,
        file_path=unit.file_path,
        start_line=unit.start_line,
        end_line=unit.end_line,
        text=text,
    )
