"""Tests for scan orchestration and incremental rescans."""

import logging
import threading
from pathlib import Path

import pytest

from repolens.errors import ScanCancelled, ScanRootError
from repolens.scanner import RepoScanner, scan_repository
from repolens.storage import GraphStore


class TestScan:
    """Full scans over the sample repository."""

    def test_scan_sample_repo(self, js_parser, sample_repo_path: Path):
        result = RepoScanner(sample_repo_path, "sample", parser=js_parser, workers=4).scan()
        ids = {u.node_id for u in result.units}

        controller = sample_repo_path / "server" / "controllers" / "userController.js"
        assert f"{controller}::listUsers" in ids
        assert not any("node_modules" in i for i in ids)
        assert len(result.files) == 9
        assert result.graph.units[f"{controller}::listUsers"].http_endpoint == "GET /users"

    def test_syntax_error_does_not_abort(self, js_parser, sample_repo_path: Path, caplog):
        """Test a file with a syntax error contributes nothing and is logged."""
        with caplog.at_level(logging.WARNING):
            result = RepoScanner(sample_repo_path, "sample", parser=js_parser).scan()

        broken = str(sample_repo_path / "server" / "broken.js")
        assert result.failed_files == [broken]
        assert not any(u.file_path == broken for u in result.units)
        assert any("broken.js" in r.getMessage() for r in caplog.records)

    def test_parallel_and_serial_scans_agree(self, js_parser, sample_repo_path: Path):
        serial = RepoScanner(sample_repo_path, "s", parser=js_parser, workers=1).scan()
        parallel = RepoScanner(sample_repo_path, "p", parser=js_parser, workers=8).scan()

        def shape(result):
            return {u.node_id: (u.calls, u.called_by, u.complexity) for u in result.units}

        assert shape(serial) == shape(parallel)

    def test_missing_root(self, js_parser, temp_dir: Path):
        with pytest.raises(ScanRootError):
            RepoScanner(temp_dir / "missing", "x", parser=js_parser).scan()

    def test_cancelled_scan_raises(self, js_parser, sample_repo_path: Path):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ScanCancelled):
            RepoScanner(sample_repo_path, "x", parser=js_parser, cancel_event=cancel).scan()

    def test_scan_repository_persists(self, js_parser, sample_repo_path: Path, temp_store: GraphStore):
        result = scan_repository(sample_repo_path, temp_store, "sample")

        assert len(temp_store.find_by_repo("sample")) == len(result.units)
        assert len(temp_store.get_files("sample")) == len(result.files)
        meta = temp_store.get_metadata()
        assert meta["project_root"] == str(sample_repo_path)
        assert meta["unit_count"] == len(result.units)


class TestRescan:
    """Incremental rescans."""

    def _scan(self, js_parser, root: Path, store: GraphStore):
        scanner = RepoScanner(root, "repo", parser=js_parser)
        result = scanner.scan()
        store.replace_scan("repo", result.units, result.files)
        return scanner

    def test_changed_file_relinks_callers(self, js_parser, write_source, temp_dir: Path, temp_store: GraphStore):
        b = write_source("server/b.js", "export function foo() {}\n")
        a = write_source("server/a.js", """
            import { foo } from './b';
            export function useFoo() { return foo(); }
        """)
        scanner = self._scan(js_parser, temp_dir, temp_store)

        write_source("server/b.js", """
            export function foo() {
              if (Math.random() > 0.5) { return 1; }
              return 0;
            }
            export function bar() { return foo(); }
        """)
        result = scanner.rescan(temp_store, changed=[b])

        units = {u.node_id: u for u in temp_store.find_by_repo("repo")}
        assert units[f"{b}::foo"].complexity == 1
        assert units[f"{b}::foo"].called_by == [f"{a}::useFoo", f"{b}::bar"]
        assert f"{b}::bar" in units
        assert len(result.units) == 3

    def test_removed_file_drops_units_and_edges(self, js_parser, write_source, temp_dir: Path, temp_store: GraphStore):
        b = write_source("server/b.js", "export function foo() {}\n")
        a = write_source("server/a.js", """
            import { foo } from './b';
            export function useFoo() { return foo(); }
        """)
        scanner = self._scan(js_parser, temp_dir, temp_store)

        b.unlink()
        scanner.rescan(temp_store, changed=[], removed=[b])

        units = {u.node_id: u for u in temp_store.find_by_repo("repo")}
        assert set(units) == {f"{a}::useFoo"}
        assert [f.path for f in temp_store.get_files("repo")] == [str(a)]

    def test_changed_but_deleted_file_is_removed(self, js_parser, write_source, temp_dir: Path, temp_store: GraphStore):
        b = write_source("server/b.js", "export function foo() {}\n")
        write_source("server/a.js", "export function other() {}\n")
        scanner = self._scan(js_parser, temp_dir, temp_store)

        b.unlink()
        scanner.rescan(temp_store, changed=[b])

        assert not any(u.file_path == str(b) for u in temp_store.find_by_repo("repo"))

    def test_created_at_survives_rescan(self, js_parser, write_source, temp_dir: Path, temp_store: GraphStore):
        b = write_source("server/b.js", "export function foo() {}\n")
        scanner = self._scan(js_parser, temp_dir, temp_store)
        created = temp_store.get_unit(f"{b}::foo").created_at

        write_source("server/b.js", "export function foo() { return 2; }\n")
        scanner.rescan(temp_store, changed=[b])

        unit = temp_store.get_unit(f"{b}::foo")
        assert unit.created_at == created
        assert unit.returns_value
