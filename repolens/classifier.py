"""Coarse role assignment (frontend/backend/util/shared/test) for source files."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Optional, Set

ROLE_DIRS: Dict[str, Set[str]] = {
    "frontend": {
        "frontend", "client", "components", "component", "pages", "app",
        "views", "ui", "hooks", "layouts", "screens", "widgets", "styles",
        "public", "web",
    },
    "backend": {
        "backend", "server", "api", "routes", "controllers", "services",
        "models", "middleware", "middlewares", "handlers", "resolvers",
        "graphql", "db", "database", "migrations", "jobs", "workers",
    },
    "util": {"utils", "util", "helpers", "helper", "lib", "libs"},
    "shared": {"shared", "common", "types", "constants", "config", "core"},
}

TEST_DIRS = {"test", "tests", "__tests__", "__mocks__", "spec", "e2e", "cypress"}
_TEST_FILE_RE = re.compile(r"\.(test|spec|stories)\.[cm]?[jt]sx?$")

_BACKEND_TOKENS = re.compile(
    r"require\(['\"]express['\"]\)|from ['\"]express['\"]|express\(\)|"
    r"\bapp\.listen\(|\brouter\.(get|post|put|patch|delete)\(|\breq\.(body|params|query)\b|"
    r"\bres\.(json|send|status)\(|\bmongoose\b|\bprisma\.|\bfastify\b|\bkoa\b|"
    r"\bctx\.request\b|\bprocess\.env\b|\bcreateServer\("
)
_FRONTEND_TOKENS = re.compile(
    r"from ['\"]react['\"]|require\(['\"]react['\"]\)|\buse(State|Effect|Memo|Callback|Ref|Context)\(|"
    r"className=|<div\b|<span\b|<button\b|\bdocument\.|\bwindow\.|\bReactDOM\b|"
    r"from ['\"]vue['\"]|@angular/|from ['\"]next/"
)


def classify_file(path: Path, root: Optional[Path] = None, content: Optional[str] = None) -> str:
    """Return the role of *path*: frontend, backend, util, shared or test."""
    rel = _relative(path, root)
    dirs = [part.lower() for part in rel.parts[:-1]]

    if _TEST_FILE_RE.search(rel.name) or any(d in TEST_DIRS for d in dirs):
        return "test"

    matched = {role for role, names in ROLE_DIRS.items() if any(d in names for d in dirs)}
    if len(matched) == 1:
        return matched.pop()

    return _classify_by_content(rel, content, matched)


def _classify_by_content(rel: Path, content: Optional[str], candidates: Set[str]) -> str:
    backend = len(_BACKEND_TOKENS.findall(content)) if content else 0
    frontend = len(_FRONTEND_TOKENS.findall(content)) if content else 0
    if rel.suffix in (".jsx", ".tsx"):
        frontend += 1

    if backend > frontend and (not candidates or "backend" in candidates):
        return "backend"
    if frontend > backend and (not candidates or "frontend" in candidates):
        return "frontend"
    return "shared"


def _relative(path: Path, root: Optional[Path]) -> Path:
    if root is not None:
        try:
            return path.relative_to(root)
        except ValueError:
            pass
    return path
