"""Graph export helpers for Cytoscape JSON, DOT and standalone HTML outputs."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict

from .models import GraphProjection

_UNSAFE_ID = re.compile(r"[^a-zA-Z0-9]")


def complexity_fill(complexity: int) -> str:
    if complexity >= 15:
        return "lightcoral"
    if complexity >= 8:
        return "gold"
    return "lightgreen"


def export_json(projection: GraphProjection, output_file: Path) -> None:
    output_file.write_text(json.dumps(projection.to_elements(), indent=2), encoding="utf-8")


def export_dot(projection: GraphProjection, output_file: Path) -> None:
    """Write a DOT digraph with one cluster per module."""
    ids: Dict[str, str] = {
        unit.node_id: f"N{i}_{_UNSAFE_ID.sub('_', unit.name)}"
        for i, unit in enumerate(projection.nodes)
    }

    lines = ["digraph RepoLens {"]
    lines.append("  rankdir=LR;")
    lines.append('  node [shape=box, style="rounded,filled", fontname="Helvetica"];')
    lines.append("  edge [arrowsize=0.6];")

    for gi, module in enumerate(projection.modules):
        members = [u for u in projection.nodes if u.module_name == module]
        lines.append(f"  subgraph cluster_{gi} {{")
        lines.append(f'    label="{_esc(module)}";')
        lines.append("    style=filled; color=lightgrey;")
        for unit in members:
            label = f"{unit.qualname}\\n(C={unit.complexity})"
            lines.append(
                f'    {ids[unit.node_id]} [label="{_esc(label)}", fillcolor="{complexity_fill(unit.complexity)}"];'
            )
        lines.append("  }")

    for edge in projection.edges:
        src, dst = ids.get(edge.source), ids.get(edge.target)
        if src is None or dst is None:
            continue
        style = "dashed" if edge.kind == "route" else "solid"
        lines.append(f'  {src} -> {dst} [label="{edge.kind}", style={style}];')

    lines.append("}")
    output_file.write_text("\n".join(lines) + "\n", encoding="utf-8")


def export_html(projection: GraphProjection, output_file: Path) -> None:
    """Write a self-contained HTML page listing modules, units and edges."""
    elements = projection.to_elements()
    doc = f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>RepoLens Graph</title>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 20px; }}
    #container {{ display: grid; grid-template-columns: 1fr 1fr; gap: 18px; }}
    .panel {{ border: 1px solid #ddd; border-radius: 8px; padding: 10px; }}
    ul {{ list-style: none; padding: 0; margin: 0; }}
    li {{ margin: 4px 0; }}
    .cross-module {{ color: #e4572e; }}
  </style>
</head>
<body>
  <h1>RepoLens Graph</h1>
  <div id="container">
    <div class="panel">
      <h2>Units</h2>
      <ul id="nodes"></ul>
    </div>
    <div class="panel">
      <h2>Edges</h2>
      <ul id="edges"></ul>
    </div>
  </div>
  <script>
    const graph = {json.dumps(elements)};
    const nodesEl = document.getElementById('nodes');
    const edgesEl = document.getElementById('edges');
    graph.elements.forEach(el => {{
      const li = document.createElement('li');
      const d = el.data;
      if (el.group === 'edges') {{
        li.className = d.relationship;
        li.textContent = `${{d.source}} --${{d.kind}}--> ${{d.target}}`;
        edgesEl.appendChild(li);
      }} else if (d.type === 'module') {{
        li.innerHTML = `<strong>${{d.label}}</strong>`;
        nodesEl.appendChild(li);
      }} else {{
        li.title = d.tooltip;
        li.textContent = `  ${{d.label}} (C=${{d.complexity}})`;
        nodesEl.appendChild(li);
      }}
    }});
  </script>
</body>
</html>
"""
    output_file.write_text(doc, encoding="utf-8")


def _esc(text: str) -> str:
    return text.replace('"', '\\"')
