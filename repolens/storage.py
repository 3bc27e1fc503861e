"""Persistence layer for per-project scan results.

Each project gets a directory under ``MEMORY_DIR`` holding a SQLite
``graph.db`` (units, file records, debt snapshots) and a small
``project.json`` with scan metadata.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import MEMORY_DIR, STATE_FILE, ensure_base_dirs
from .models import CodeUnit, DebtSnapshot, FileRecord

logger = logging.getLogger(__name__)


# ===================================================================
# ProjectManager  (project directories / active project)
# ===================================================================

class ProjectManager:
    """Manage project memory directories and active project state."""

    def __init__(self) -> None:
        ensure_base_dirs()

    def list_projects(self) -> List[str]:
        if not MEMORY_DIR.exists():
            return []
        return sorted([p.name for p in MEMORY_DIR.iterdir() if p.is_dir()])

    def project_dir(self, project_name: str) -> Path:
        return MEMORY_DIR / project_name

    def create_or_get_project(self, project_name: str) -> Path:
        path = self.project_dir(project_name)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def set_current_project(self, project_name: str) -> None:
        ensure_base_dirs()
        STATE_FILE.write_text(
            json.dumps({"current_project": project_name}, indent=2),
            encoding="utf-8",
        )

    def get_current_project(self) -> Optional[str]:
        if not STATE_FILE.exists():
            return None
        try:
            payload = json.loads(STATE_FILE.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        return payload.get("current_project")

    def unload_project(self) -> None:
        ensure_base_dirs()
        STATE_FILE.write_text(
            json.dumps({"current_project": None}, indent=2),
            encoding="utf-8",
        )

    def delete_project(self, project_name: str) -> bool:
        path = self.project_dir(project_name)
        if not path.exists():
            return False
        for child in sorted(path.glob("**/*"), reverse=True):
            if child.is_file():
                child.unlink()
            elif child.is_dir():
                child.rmdir()
        path.rmdir()
        if self.get_current_project() == project_name:
            self.unload_project()
        return True


# ===================================================================
# GraphStore  (SQLite)
# ===================================================================

class GraphStore:
    """SQLite store for code units, file records and debt snapshots.

    Units are replaced wholesale on every write; only ``created_at``
    carries over from an earlier row with the same node id. Snapshots are
    append-only.
    """

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = project_dir
        self.db_path = project_dir / "graph.db"
        self.meta_path = project_dir / "project.json"
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute("""
            CREATE TABLE IF NOT EXISTS units (
                repo_id     TEXT NOT NULL,
                node_id     TEXT NOT NULL,
                file_path   TEXT NOT NULL,
                kind        TEXT NOT NULL,
                name        TEXT NOT NULL,
                module_name TEXT NOT NULL,
                complexity  INTEGER NOT NULL,
                created_at  REAL,
                payload     TEXT NOT NULL,
                PRIMARY KEY (repo_id, node_id)
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS files (
                repo_id TEXT NOT NULL,
                path    TEXT NOT NULL,
                payload TEXT NOT NULL,
                PRIMARY KEY (repo_id, path)
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS snapshots (
                id        INTEGER PRIMARY KEY AUTOINCREMENT,
                repo_id   TEXT NOT NULL,
                timestamp REAL NOT NULL,
                payload   TEXT NOT NULL
            )
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_units_file ON units(repo_id, file_path)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_units_node ON units(node_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_snapshots_repo ON snapshots(repo_id, id)")
        self.conn.commit()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def set_metadata(self, payload: Dict[str, Any]) -> None:
        self.meta_path.write_text(
            json.dumps(payload, indent=2), encoding="utf-8",
        )

    def get_metadata(self) -> Dict[str, Any]:
        if not self.meta_path.exists():
            return {}
        try:
            return json.loads(self.meta_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    def _created_at(self, repo_id: str) -> Dict[str, float]:
        rows = self.conn.execute(
            "SELECT node_id, created_at FROM units WHERE repo_id = ?", (repo_id,),
        ).fetchall()
        return {r["node_id"]: r["created_at"] for r in rows if r["created_at"] is not None}

    def _write_units(self, repo_id: str, units: List[CodeUnit], created: Dict[str, float]) -> None:
        now = time.time()
        rows = []
        for unit in units:
            unit.created_at = created.get(unit.node_id, unit.created_at or now)
            rows.append((
                repo_id,
                unit.node_id,
                unit.file_path,
                unit.kind,
                unit.name,
                unit.module_name,
                unit.complexity,
                unit.created_at,
                json.dumps(unit.to_dict()),
            ))
        self.conn.executemany(
            """
            INSERT OR REPLACE INTO units (
                repo_id, node_id, file_path, kind, name, module_name,
                complexity, created_at, payload
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )

    def upsert_many(self, repo_id: str, units: Iterable[CodeUnit]) -> int:
        units = list(units)
        if not units:
            return 0
        with self.conn:
            self._write_units(repo_id, units, self._created_at(repo_id))
        return len(units)

    def delete_by_file(self, repo_id: str, file_path: str) -> int:
        """Remove every unit and the file record stored for *file_path*."""
        with self.conn:
            cur = self.conn.execute(
                "DELETE FROM units WHERE repo_id = ? AND file_path = ?",
                (repo_id, file_path),
            )
            self.conn.execute(
                "DELETE FROM files WHERE repo_id = ? AND path = ?",
                (repo_id, file_path),
            )
        return cur.rowcount

    def find_by_repo(self, repo_id: str) -> List[CodeUnit]:
        rows = self.conn.execute(
            "SELECT payload FROM units WHERE repo_id = ? ORDER BY node_id", (repo_id,),
        ).fetchall()
        return [CodeUnit.from_dict(json.loads(r["payload"])) for r in rows]

    def find_by_file(self, repo_id: str, file_path: str) -> List[CodeUnit]:
        rows = self.conn.execute(
            "SELECT payload FROM units WHERE repo_id = ? AND file_path = ? ORDER BY node_id",
            (repo_id, file_path),
        ).fetchall()
        return [CodeUnit.from_dict(json.loads(r["payload"])) for r in rows]

    def get_unit(self, node_id: str) -> Optional[CodeUnit]:
        row = self.conn.execute(
            "SELECT payload FROM units WHERE node_id = ? LIMIT 1", (node_id,),
        ).fetchone()
        if row is None:
            return None
        return CodeUnit.from_dict(json.loads(row["payload"]))

    # ------------------------------------------------------------------
    # File records
    # ------------------------------------------------------------------

    def _write_files(self, repo_id: str, files: List[FileRecord]) -> None:
        self.conn.executemany(
            "INSERT OR REPLACE INTO files (repo_id, path, payload) VALUES (?, ?, ?)",
            [(repo_id, f.path, json.dumps(f.to_dict())) for f in files],
        )

    def save_files(self, repo_id: str, files: Iterable[FileRecord]) -> None:
        with self.conn:
            self._write_files(repo_id, list(files))

    def get_files(self, repo_id: str) -> List[FileRecord]:
        rows = self.conn.execute(
            "SELECT payload FROM files WHERE repo_id = ? ORDER BY path", (repo_id,),
        ).fetchall()
        return [FileRecord.from_dict(json.loads(r["payload"])) for r in rows]

    # ------------------------------------------------------------------
    # Whole-scan replacement
    # ------------------------------------------------------------------

    def replace_scan(
        self,
        repo_id: str,
        units: Iterable[CodeUnit],
        files: Iterable[FileRecord],
    ) -> None:
        """Swap the stored scan of *repo_id* for a new one in one transaction.

        Either the whole new scan is visible afterwards or, on failure, the
        previous one is left untouched.
        """
        units = list(units)
        files = list(files)
        created = self._created_at(repo_id)
        with self.conn:
            self.conn.execute("DELETE FROM units WHERE repo_id = ?", (repo_id,))
            self.conn.execute("DELETE FROM files WHERE repo_id = ?", (repo_id,))
            self._write_units(repo_id, units, created)
            self._write_files(repo_id, files)
        logger.info("Stored scan for %s: %d units, %d files", repo_id, len(units), len(files))

    # ------------------------------------------------------------------
    # Debt snapshots (append-only)
    # ------------------------------------------------------------------

    def append_snapshot(self, snapshot: DebtSnapshot) -> int:
        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO snapshots (repo_id, timestamp, payload) VALUES (?, ?, ?)",
                (snapshot.repo_id, snapshot.timestamp, json.dumps(snapshot.to_dict())),
            )
        return cur.lastrowid

    def latest_snapshot(self, repo_id: str) -> Optional[DebtSnapshot]:
        row = self.conn.execute(
            "SELECT payload FROM snapshots WHERE repo_id = ? ORDER BY id DESC LIMIT 1",
            (repo_id,),
        ).fetchone()
        if row is None:
            return None
        return DebtSnapshot.from_dict(json.loads(row["payload"]))

    def list_snapshots(self, repo_id: str) -> List[DebtSnapshot]:
        """All snapshots of *repo_id*, oldest first."""
        rows = self.conn.execute(
            "SELECT payload FROM snapshots WHERE repo_id = ? ORDER BY id", (repo_id,),
        ).fetchall()
        return [DebtSnapshot.from_dict(json.loads(r["payload"])) for r in rows]
