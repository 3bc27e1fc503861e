"""Repo-wide call graph assembly.

Runs once, after every file of a scan has been extracted: references to
units defined later in a file, or in files processed later, can only be
matched against the complete node id lookup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Set, Tuple

from .models import CodeUnit, FileRecord
from .resolver import link_reference

logger = logging.getLogger(__name__)


@dataclass
class CallGraph:
    units: Dict[str, CodeUnit] = field(default_factory=dict)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.units

    def __len__(self) -> int:
        return len(self.units)

    def forward(self, node_id: str) -> List[str]:
        """Targets of *node_id* that exist in this graph."""
        unit = self.units.get(node_id)
        if unit is None:
            return []
        targets: List[str] = []
        for target, _kind in unit.references():
            if target in self.units and target not in targets:
                targets.append(target)
        return targets

    def reverse(self, node_id: str) -> List[str]:
        unit = self.units.get(node_id)
        return list(unit.called_by) if unit is not None else []

    def edges(self) -> List[Tuple[str, str, str]]:
        """Materialised ``(source, target, kind)`` edges."""
        out: List[Tuple[str, str, str]] = []
        for unit in self.units.values():
            seen = set()
            for target, kind in unit.references():
                if target in self.units and (target, kind) not in seen:
                    seen.add((target, kind))
                    out.append((unit.node_id, target, kind))
        return out


def _raw_references(unit: CodeUnit) -> Dict[str, List[str]]:
    if unit.raw_references is None:
        unit.raw_references = {
            "calls": list(unit.calls),
            "components": list(unit.related_components),
            "external": list(unit.external_calls),
        }
    return unit.raw_references


def _link_known(
    unit: CodeUnit,
    refs: List[str],
    exports: Mapping[str, Dict[str, str]],
    known: Set[str],
) -> List[str]:
    """Link *refs*; targets that are not units of this scan become external."""
    linked: List[str] = []
    for ref in refs:
        target = link_reference(ref, unit.file_path, exports)
        if target in known:
            if target not in linked:
                linked.append(target)
        elif target not in unit.external_calls:
            unit.external_calls.append(target)
    return linked


def assemble(units: Iterable[CodeUnit], files: Iterable[FileRecord]) -> CallGraph:
    """Link cross-file references and build ``called_by`` for every unit.

    Linking always starts from the references recorded at extraction
    (``CodeUnit.raw_references``), and assembler-derived fields are reset
    first, so assembling an already assembled set gives the same result.
    After assembly ``calls`` and ``related_components`` only hold node ids
    of this set; anything else is moved to ``external_calls``.
    """
    units = list(units)
    files = list(files)
    exports_by_file = {f.path: f.exports for f in files}
    known = {u.node_id for u in units}
    graph = CallGraph()

    for unit in units:
        raw = _raw_references(unit)
        unit.called_by = []
        unit.http_endpoint = ""
        unit.route_handlers = []
        unit.external_calls = list(raw["external"])
        unit.calls = _link_known(unit, raw["calls"], exports_by_file, known)
        unit.related_components = _link_known(unit, raw["components"], exports_by_file, known)
        graph.units[unit.node_id] = unit

    for record in files:
        for route in record.routes:
            if not route.handler:
                continue
            handler_id = link_reference(route.handler, record.path, exports_by_file)
            handler = graph.units.get(handler_id)
            if handler is None:
                continue
            endpoints = [e for e in handler.http_endpoint.split(", ") if e]
            if route.endpoint not in endpoints:
                endpoints.append(route.endpoint)
                handler.http_endpoint = ", ".join(endpoints)
            registrar = graph.units.get(route.registered_in or "")
            if registrar is not None and registrar is not handler and handler_id not in registrar.route_handlers:
                registrar.route_handlers.append(handler_id)

    edge_count = 0
    for unit in graph.units.values():
        for target_id, _kind in unit.references():
            target = graph.units.get(target_id)
            if target is None or target is unit or unit.node_id in target.called_by:
                continue
            target.called_by.append(unit.node_id)
            edge_count += 1

    for unit in graph.units.values():
        unit.called_by.sort()

    logger.info("Assembled call graph: %d units, %d edges", len(graph.units), edge_count)
    return graph
