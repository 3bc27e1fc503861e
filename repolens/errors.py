"""Exception types raised by the scan pipeline."""

from __future__ import annotations

from pathlib import Path


class RepoLensError(Exception):
    """Base class for repolens failures."""


class ScanRootError(RepoLensError):
    """The scan root is missing or unreadable. Aborts the whole scan."""

    def __init__(self, root: Path, reason: str) -> None:
        super().__init__(f"Cannot scan '{root}': {reason}")
        self.root = root
        self.reason = reason


class SourceParseError(RepoLensError):
    """A single file could not be parsed. Caught per file by the scanner."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ScanCancelled(RepoLensError):
    """A scan or scoring run was cancelled before completion."""
