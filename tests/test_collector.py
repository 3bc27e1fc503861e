"""Tests for source file discovery."""

import os
from pathlib import Path

import pytest

from repolens.collector import collect_source_files, is_source_file
from repolens.errors import ScanRootError


class TestIsSourceFile:
    """Tests for the extension allow-list."""

    @pytest.mark.parametrize("name", ["a.js", "b.jsx", "c.ts", "d.tsx", "e.mjs", "f.cjs"])
    def test_accepts_js_family(self, name: str):
        assert is_source_file(name)

    @pytest.mark.parametrize("name", ["types.d.ts", "README.md", "style.css", "main.py"])
    def test_rejects_others(self, name: str):
        assert not is_source_file(name)


class TestCollectSourceFiles:
    """Tests for collect_source_files."""

    def test_sample_repo(self, sample_repo_path: Path):
        """Test collecting the sample repository."""
        files = collect_source_files(sample_repo_path)
        rel = [p.relative_to(sample_repo_path).as_posix() for p in files]

        assert rel == [
            "client/components/UserCard.jsx",
            "client/pages/UsersPage.tsx",
            "server/app.js",
            "server/broken.js",
            "server/controllers/userController.js",
            "server/models/User.js",
            "server/routes/users.js",
            "server/services/userService.js",
            "utils/format.ts",
        ]

    def test_paths_are_absolute(self, sample_repo_path: Path):
        for path in collect_source_files(sample_repo_path):
            assert path.is_absolute()

    def test_skip_dirs_at_any_depth(self, write_source, temp_dir: Path):
        """Test that excluded directory names are pruned wherever they occur."""
        write_source("src/index.js", "export const a = 1;\n")
        write_source("src/nested/dist/bundle.js", "var x;\n")
        write_source("packages/web/node_modules/react/index.js", "var y;\n")
        write_source(".git/hooks/pre-commit.js", "var z;\n")

        files = collect_source_files(temp_dir)

        assert [p.relative_to(temp_dir).as_posix() for p in files] == ["src/index.js"]

    def test_custom_skip_dirs(self, write_source, temp_dir: Path):
        write_source("legacy/old.js", "var a;\n")
        write_source("src/new.js", "var b;\n")

        files = collect_source_files(temp_dir, skip_dirs={"legacy"})

        assert [p.name for p in files] == ["new.js"]

    def test_files_and_dirs_interleave_by_name(self, write_source, temp_dir: Path):
        """Test deterministic depth-first ordering."""
        write_source("b.js", "")
        write_source("a/z.js", "")
        write_source("c/a.js", "")

        files = collect_source_files(temp_dir)

        assert [p.relative_to(temp_dir).as_posix() for p in files] == ["a/z.js", "b.js", "c/a.js"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_does_not_follow_directory_symlinks(self, write_source, temp_dir: Path):
        target = write_source("real/mod.js", "").parent
        (temp_dir / "linked").symlink_to(target, target_is_directory=True)

        files = collect_source_files(temp_dir)

        assert [p.relative_to(temp_dir).as_posix() for p in files] == ["real/mod.js"]

    def test_missing_root_raises(self, temp_dir: Path):
        with pytest.raises(ScanRootError):
            collect_source_files(temp_dir / "does-not-exist")

    def test_file_root_raises(self, write_source):
        path = write_source("single.js", "")
        with pytest.raises(ScanRootError):
            collect_source_files(path)
