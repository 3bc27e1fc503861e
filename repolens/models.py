"""Core data models shared by extraction, assembly, scoring and projection."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

UNIT_KINDS = ("function", "method", "class", "resolver", "data-loader")
FILE_ROLES = ("frontend", "backend", "util", "shared", "test")
SEVERITIES = ("critical", "high", "medium", "low", "unclassified")


@dataclass
class SourceFile:
    path: Path
    role: str
    text: str


@dataclass
class ComplexityBreakdown:
    if_statements: int = 0
    loops: int = 0
    switch_cases: int = 0
    ternaries: int = 0
    logical_expressions: int = 0
    catch_clauses: int = 0

    @property
    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def as_dict(self) -> Dict[str, int]:
        return {
            "ifStatements": self.if_statements,
            "loops": self.loops,
            "switchCases": self.switch_cases,
            "ternaries": self.ternaries,
            "logicalExpressions": self.logical_expressions,
            "catchClauses": self.catch_clauses,
        }


@dataclass
class ImportBinding:
    """One local name bound by an import or ``require`` in a single file.

    ``imported`` is the exported name on the other side: ``default`` for
    default imports and ``*`` for namespace imports / whole-module requires.
    """

    local: str
    specifier: str
    imported: str
    resolved_path: Optional[str] = None


@dataclass
class FileTable:
    """Pass-1 result for one file: export surface, imports, declarations."""

    path: str
    exports: Dict[str, str] = field(default_factory=dict)
    imports: Dict[str, ImportBinding] = field(default_factory=dict)
    declarations: Dict[str, str] = field(default_factory=dict)

    def is_exported(self, local_name: str) -> bool:
        return local_name in self.exports.values()


@dataclass
class RouteBinding:
    method: str
    path: str
    handler: Optional[str] = None
    registered_in: Optional[str] = None

    @property
    def endpoint(self) -> str:
        return f"{self.method.upper()} {self.path}"


@dataclass
class CodeUnit:
    node_id: str
    kind: str
    name: str
    file_path: str
    start_line: int
    end_line: int
    module_name: str = "root"
    file_type: str = "shared"
    parent: Optional[str] = None
    parameters: List[str] = field(default_factory=list)
    signature: str = ""
    jsdoc: str = ""
    is_async: bool = False
    is_exported: bool = False
    returns_value: bool = False
    scope_level: str = "top-level"
    breakdown: ComplexityBreakdown = field(default_factory=ComplexityBreakdown)
    calls: List[str] = field(default_factory=list)
    external_calls: List[str] = field(default_factory=list)
    related_components: List[str] = field(default_factory=list)
    route_handlers: List[str] = field(default_factory=list)
    called_by: List[str] = field(default_factory=list)
    invokes_api: bool = False
    invokes_db_query: bool = False
    http_endpoint: str = ""
    last_modified: Optional[float] = None
    created_at: Optional[float] = None
    # References as extracted, before linking: "calls", "components", "external".
    raw_references: Optional[Dict[str, List[str]]] = None

    @property
    def complexity(self) -> int:
        return self.breakdown.total

    @property
    def qualname(self) -> str:
        return self.node_id.rsplit("::", 1)[-1]

    def references(self) -> List[Tuple[str, str]]:
        """All outgoing ``(target, edge kind)`` pairs recorded on this unit."""
        refs = [(t, "call") for t in self.calls]
        refs.extend((t, "render") for t in self.related_components)
        refs.extend((t, "route") for t in self.route_handlers)
        return refs

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["complexity"] = self.complexity
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CodeUnit":
        data = {k: v for k, v in payload.items() if k in _UNIT_FIELDS}
        data["breakdown"] = ComplexityBreakdown(**(payload.get("breakdown") or {}))
        return cls(**data)


_UNIT_FIELDS = {f.name for f in fields(CodeUnit)}


@dataclass
class FileRecord:
    """Per-file scan facts the store keeps so rescans can relink."""

    path: str
    role: str
    mtime: Optional[float] = None
    exports: Dict[str, str] = field(default_factory=dict)
    routes: List[RouteBinding] = field(default_factory=list)
    parse_failed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "FileRecord":
        routes = [RouteBinding(**r) for r in payload.get("routes", [])]
        return cls(
            path=payload["path"],
            role=payload.get("role", "shared"),
            mtime=payload.get("mtime"),
            exports=dict(payload.get("exports", {})),
            routes=routes,
            parse_failed=bool(payload.get("parse_failed", False)),
        )


@dataclass
class FileExtraction:
    """Everything one file contributes to a scan."""

    record: FileRecord
    units: List[CodeUnit] = field(default_factory=list)
    error: str = ""


@dataclass(frozen=True)
class DebtEntry:
    node_id: str
    file_path: str
    module_name: str
    complexity: int
    todo_count: int
    severity: Tuple[Tuple[str, int], ...]
    coverage_hits: int
    age_days: float
    score: float

    def severity_counts(self) -> Dict[str, int]:
        return dict(self.severity)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["severity"] = self.severity_counts()
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DebtEntry":
        severity = payload.get("severity", {})
        return cls(
            node_id=payload["node_id"],
            file_path=payload["file_path"],
            module_name=payload.get("module_name", "root"),
            complexity=int(payload["complexity"]),
            todo_count=int(payload["todo_count"]),
            severity=tuple((k, int(severity.get(k, 0))) for k in SEVERITIES),
            coverage_hits=int(payload.get("coverage_hits", 0)),
            age_days=float(payload.get("age_days", 0.0)),
            score=float(payload["score"]),
        )


@dataclass(frozen=True)
class DebtSnapshot:
    repo_id: str
    timestamp: float
    entries: Tuple[DebtEntry, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repo_id": self.repo_id,
            "timestamp": self.timestamp,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DebtSnapshot":
        return cls(
            repo_id=payload["repo_id"],
            timestamp=float(payload["timestamp"]),
            entries=tuple(DebtEntry.from_dict(e) for e in payload.get("entries", [])),
        )


@dataclass
class ProjectionEdge:
    source: str
    target: str
    relationship: str
    kind: str = "call"


@dataclass
class GraphProjection:
    modules: List[str] = field(default_factory=list)
    nodes: List[CodeUnit] = field(default_factory=list)
    edges: List[ProjectionEdge] = field(default_factory=list)

    def to_elements(self) -> Dict[str, List[Dict[str, Any]]]:
        """Cytoscape-style ``{"elements": [...]}`` document."""
        from .projector import render_elements

        return {"elements": render_elements(self)}


@dataclass
class Snippet:
    node_id: str
    file_path: str
    start_line: int
    end_line: int
    text: str


@dataclass
class NoSnippet:
    node_id: str
    reason: str


@dataclass
class NotFound:
    node_id: str
