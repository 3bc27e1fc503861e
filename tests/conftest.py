"""Pytest configuration and fixtures for repolens tests."""

import shutil
import tempfile
import textwrap
from pathlib import Path
from typing import Callable, Generator

import pytest

from repolens.parser import JSParser
from repolens.storage import GraphStore, ProjectManager


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_repo_path() -> Path:
    """Get path to the sample JS/TS repository."""
    return Path(__file__).parent / "fixtures" / "sample_repo"


@pytest.fixture
def write_source(temp_dir: Path) -> Callable[[str, str], Path]:
    """Write a dedented source file under ``temp_dir`` and return its path."""

    def _write(rel_path: str, body: str) -> Path:
        path = temp_dir / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture(scope="session")
def js_parser() -> JSParser:
    """One parser shared by the whole session; grammars load once."""
    return JSParser()


@pytest.fixture
def temp_project_manager(temp_dir: Path, monkeypatch) -> ProjectManager:
    """Create a ProjectManager with temporary storage."""
    base_dir = temp_dir / "home"
    memory_dir = base_dir / "memory"
    state_file = base_dir / "state.json"
    config_file = base_dir / "config.toml"

    # Patch both config AND storage modules (storage imports at module load)
    monkeypatch.setattr("repolens.config.BASE_DIR", base_dir)
    monkeypatch.setattr("repolens.config.MEMORY_DIR", memory_dir)
    monkeypatch.setattr("repolens.config.STATE_FILE", state_file)
    monkeypatch.setattr("repolens.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("repolens.config_manager.CONFIG_FILE", config_file)
    monkeypatch.setattr("repolens.storage.MEMORY_DIR", memory_dir)
    monkeypatch.setattr("repolens.storage.STATE_FILE", state_file)

    return ProjectManager()


@pytest.fixture
def temp_store(temp_dir: Path) -> Generator[GraphStore, None, None]:
    """A GraphStore backed by a fresh SQLite file."""
    project_dir = temp_dir / "project"
    project_dir.mkdir()
    store = GraphStore(project_dir)
    yield store
    store.close()
