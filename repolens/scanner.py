"""Scan orchestration: collect, extract in parallel, then assemble."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .assembler import CallGraph, assemble
from .collector import collect_source_files
from .config import SCAN_WORKERS
from .errors import ScanCancelled
from .models import CodeUnit, FileExtraction, FileRecord
from .parser import JSParser
from .storage import GraphStore

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    units: List[CodeUnit] = field(default_factory=list)
    files: List[FileRecord] = field(default_factory=list)
    graph: CallGraph = field(default_factory=CallGraph)
    failed_files: List[str] = field(default_factory=list)


class RepoScanner:
    """Run the extraction pipeline over one repository root.

    Files are extracted concurrently; assembly starts only once every
    extraction has finished. Setting ``cancel_event`` aborts the scan with
    :class:`ScanCancelled` before anything is returned or stored.
    """

    def __init__(
        self,
        root: Path,
        repo_id: str,
        parser: Optional[JSParser] = None,
        workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.root = Path(os.path.abspath(root))
        self.repo_id = repo_id
        self.parser = parser or JSParser()
        self.workers = max(1, workers or SCAN_WORKERS)
        self.cancel_event = cancel_event or threading.Event()

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise ScanCancelled(f"scan of {self.root} cancelled")

    def _extract(self, path: Path) -> FileExtraction:
        self._check_cancelled()
        return self.parser.extract_file(path, root=self.root)

    def extract_all(self, paths: List[Path]) -> List[FileExtraction]:
        """Extract *paths* in parallel; results keep the input order."""
        results: List[Optional[FileExtraction]] = [None] * len(paths)
        if not paths:
            return []

        with ThreadPoolExecutor(max_workers=min(self.workers, len(paths))) as executor:
            future_to_index = {
                executor.submit(self._extract, path): i
                for i, path in enumerate(paths)
            }
            try:
                for future in as_completed(future_to_index):
                    results[future_to_index[future]] = future.result()
            except ScanCancelled:
                for future in future_to_index:
                    future.cancel()
                raise

        self._check_cancelled()
        return [r for r in results if r is not None]

    def _finish(self, extractions: Iterable[FileExtraction], carried: List[CodeUnit],
                carried_files: List[FileRecord]) -> ScanResult:
        units = list(carried)
        files = list(carried_files)
        failed: List[str] = []
        for extraction in extractions:
            files.append(extraction.record)
            units.extend(extraction.units)
            if extraction.error:
                failed.append(extraction.record.path)

        files.sort(key=lambda f: f.path)
        graph = assemble(units, files)
        self._check_cancelled()
        return ScanResult(units=units, files=files, graph=graph, failed_files=failed)

    def scan(self) -> ScanResult:
        """Full scan of the repository root."""
        paths = collect_source_files(self.root)
        logger.info("Scanning %d source files under %s with %d workers", len(paths), self.root, self.workers)
        result = self._finish(self.extract_all(paths), [], [])
        if result.failed_files:
            logger.warning("%d file(s) could not be extracted", len(result.failed_files))
        return result

    def rescan(
        self,
        store: GraphStore,
        changed: Iterable[Path],
        removed: Iterable[Path] = (),
    ) -> ScanResult:
        """Re-extract *changed* files and drop *removed* ones.

        Units of untouched files are reloaded from *store* and the whole set
        is assembled again, so reverse edges into changed files are rebuilt.
        The stored scan is replaced in one transaction.
        """
        changed_paths = sorted({Path(os.path.abspath(p)) for p in changed})
        removed_set = {str(Path(os.path.abspath(p))) for p in removed}

        missing = [p for p in changed_paths if not p.is_file()]
        for path in missing:
            logger.debug("Changed file %s no longer exists; treating as removed", path)
            removed_set.add(str(path))
        changed_paths = [p for p in changed_paths if p.is_file()]

        touched = removed_set | {str(p) for p in changed_paths}
        carried = [u for u in store.find_by_repo(self.repo_id) if u.file_path not in touched]
        carried_files = [f for f in store.get_files(self.repo_id) if f.path not in touched]

        logger.info(
            "Rescanning %s: %d changed, %d removed, %d units carried over",
            self.root, len(changed_paths), len(removed_set), len(carried),
        )
        result = self._finish(self.extract_all(changed_paths), carried, carried_files)
        store.replace_scan(self.repo_id, result.units, result.files)
        return result


def scan_repository(
    root: Path,
    store: GraphStore,
    repo_id: str,
    workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ScanResult:
    """Full scan of *root* persisted into *store* as the current scan."""
    scanner = RepoScanner(root, repo_id, workers=workers, cancel_event=cancel_event)
    result = scanner.scan()
    store.replace_scan(repo_id, result.units, result.files)
    stats: Dict[str, object] = {
        "project_root": str(scanner.root),
        "repo_id": repo_id,
        "unit_count": len(result.units),
        "edge_count": len(result.graph.edges()),
        "file_count": len(result.files),
        "failed_files": result.failed_files,
    }
    store.set_metadata(stats)
    return result
