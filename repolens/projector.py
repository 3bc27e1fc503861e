"""Projection of code units into a module-grouped visual graph."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from .models import CodeUnit, GraphProjection, ProjectionEdge

logger = logging.getLogger(__name__)

MODULE_PREFIX = "module:"

# Edge style hints: cross-module edges stand out, routes are dashed.
_EDGE_STYLE = {
    "intra-module": {"lineColor": "#9aa5b1", "width": 1},
    "cross-module": {"lineColor": "#e4572e", "width": 2},
}
_LINE_STYLE = {"call": "solid", "render": "dotted", "route": "dashed"}


def _by_complexity(units: Iterable[CodeUnit]) -> List[CodeUnit]:
    return sorted(units, key=lambda u: (-u.complexity, u.node_id))


def module_node_id(module_name: str) -> str:
    return f"{MODULE_PREFIX}{module_name}"


def project_units(
    units: Iterable[CodeUnit],
    top_n: Optional[int] = None,
    keep_isolated_top_k: int = 0,
) -> GraphProjection:
    """Build a :class:`GraphProjection` from *units*.

    ``top_n`` first narrows the set to the most complex units. Leaves
    without any incident edge are dropped unless they are among the
    ``keep_isolated_top_k`` most complex units of the set. Module
    containers are kept even when all of their leaves were dropped.
    """
    selected = _by_complexity(units)
    if top_n is not None:
        selected = selected[: max(0, top_n)]
    by_id = {u.node_id: u for u in selected}

    edges: List[ProjectionEdge] = []
    seen: Set[tuple] = set()
    connected: Set[str] = set()
    for unit in selected:
        for target_id, kind in unit.references():
            target = by_id.get(target_id)
            if target is None or target is unit or (unit.node_id, target_id, kind) in seen:
                continue
            seen.add((unit.node_id, target_id, kind))
            relationship = "intra-module" if target.module_name == unit.module_name else "cross-module"
            edges.append(ProjectionEdge(unit.node_id, target_id, relationship, kind))
            connected.update((unit.node_id, target_id))

    retained = {u.node_id for u in selected[: max(0, keep_isolated_top_k)]}
    nodes = [u for u in selected if u.node_id in connected or u.node_id in retained]
    modules = sorted({u.module_name for u in selected})

    logger.debug(
        "Projected %d of %d units, %d edges, %d modules",
        len(nodes), len(selected), len(edges), len(modules),
    )
    return GraphProjection(modules=modules, nodes=nodes, edges=edges)


def _flags(unit: CodeUnit) -> Dict[str, bool]:
    return {
        "async": unit.is_async,
        "exported": unit.is_exported,
        "api": unit.invokes_api,
        "db": unit.invokes_db_query,
        "route": bool(unit.http_endpoint),
    }


def _tooltip(unit: CodeUnit) -> str:
    lines = [unit.signature or unit.qualname, f"{unit.file_path}:{unit.start_line}"]
    lines.append(f"complexity {unit.complexity}")
    if unit.http_endpoint:
        lines.append(unit.http_endpoint)
    if unit.jsdoc:
        lines.append(unit.jsdoc.splitlines()[0])
    return "\n".join(lines)


def render_elements(projection: GraphProjection) -> List[Dict[str, Any]]:
    """Flatten a projection into Cytoscape element dicts."""
    elements: List[Dict[str, Any]] = []
    for module in projection.modules:
        elements.append({
            "group": "nodes",
            "data": {"id": module_node_id(module), "label": module, "type": "module"},
            "classes": "module",
        })

    for unit in projection.nodes:
        elements.append({
            "group": "nodes",
            "data": {
                "id": unit.node_id,
                "parent": module_node_id(unit.module_name),
                "label": unit.qualname,
                "kind": unit.kind,
                "module": unit.module_name,
                "filePath": unit.file_path,
                "complexity": unit.complexity,
                "fileType": unit.file_type,
                "flags": _flags(unit),
                "tooltip": _tooltip(unit),
            },
            "classes": f"unit {unit.kind} {unit.file_type}",
        })

    for edge in projection.edges:
        style = dict(_EDGE_STYLE[edge.relationship])
        style["lineStyle"] = _LINE_STYLE.get(edge.kind, "solid")
        elements.append({
            "group": "edges",
            "data": {
                "id": f"{edge.source}->{edge.target}:{edge.kind}",
                "source": edge.source,
                "target": edge.target,
                "relationship": edge.relationship,
                "kind": edge.kind,
                "style": style,
            },
            "classes": edge.relationship,
        })
    return elements
