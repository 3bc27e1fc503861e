"""Typer-based CLI for repolens."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__, config
from .config_manager import save_section
from .debt import DebtScorer, compute_hotspots, get_snippet
from .errors import RepoLensError, ScanRootError
from .graph_export import export_dot, export_html, export_json
from .models import NotFound, Snippet
from .projector import project_units
from .scanner import RepoScanner, scan_repository
from .storage import GraphStore, ProjectManager

app = typer.Typer(
    help="repolens: call graph, technical-debt hotspots and module graphs for JS/TS repositories.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"repolens v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show progress and per-file warnings."),
):
    """repolens: structural model of a JavaScript / TypeScript source tree."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
            force=True,
        )


def _project_name_from_path(project_path: Path) -> str:
    return project_path.resolve().name.replace(" ", "_")


def _open_current_store(pm: ProjectManager) -> Tuple[str, GraphStore]:
    project = pm.get_current_project()
    if not project:
        raise typer.BadParameter("No project loaded. Use 'repolens load-project <name>' or run 'repolens scan <path>'.")
    project_dir = pm.project_dir(project)
    if not project_dir.exists():
        raise typer.BadParameter(f"Loaded project '{project}' does not exist in memory.")
    return project, GraphStore(project_dir)


def _fail(exc: RepoLensError) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("scan")
def scan(
    project_path: Path = typer.Argument(..., help="Root of the JS/TS repository."),
    project_name: Optional[str] = typer.Option(None, "--name", "-n", help="Explicit memory name for project."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Parallel extraction workers."),
):
    """Scan a repository and store its code units and call graph."""
    pm = ProjectManager()
    resolved_path = project_path.resolve()
    name = project_name or _project_name_from_path(resolved_path)

    if not resolved_path.is_dir():
        raise typer.BadParameter(f"'{project_path}' is not a directory.")

    store = GraphStore(pm.create_or_get_project(name))
    try:
        result = scan_repository(resolved_path, store, name, workers=workers)
    except ScanRootError as exc:
        store.close()
        raise typer.BadParameter(str(exc))
    except RepoLensError as exc:
        store.close()
        _fail(exc)

    store.set_metadata({
        **store.get_metadata(),
        "project_name": name,
        "scanned_at": datetime.now().isoformat(),
    })
    pm.set_current_project(name)
    store.close()

    typer.echo(f"Scanned '{resolved_path}' as project '{name}'.")
    typer.echo(
        f"Files: {len(result.files)} | Units: {len(result.units)} | Edges: {len(result.graph.edges())}"
    )
    if result.failed_files:
        typer.echo(f"Skipped {len(result.failed_files)} file(s) with parse errors:", err=True)
        for path in result.failed_files:
            typer.echo(f"  {path}", err=True)


@app.command("rescan")
def rescan(
    changed: Optional[List[Path]] = typer.Option(None, "--changed", "-c", help="Changed file (repeatable)."),
    removed: Optional[List[Path]] = typer.Option(None, "--removed", "-r", help="Removed file (repeatable)."),
):
    """Re-extract changed files of the loaded project and rebuild its graph."""
    pm = ProjectManager()
    project, store = _open_current_store(pm)
    root = store.get_metadata().get("project_root")
    if not root:
        store.close()
        raise typer.BadParameter(f"Project '{project}' has no stored scan root; run 'repolens scan' first.")

    scanner = RepoScanner(Path(root), project)
    try:
        result = scanner.rescan(store, changed or [], removed or [])
    except RepoLensError as exc:
        store.close()
        _fail(exc)

    store.set_metadata({
        **store.get_metadata(),
        "unit_count": len(result.units),
        "edge_count": len(result.graph.edges()),
        "file_count": len(result.files),
        "scanned_at": datetime.now().isoformat(),
    })
    store.close()
    typer.echo(f"Rescanned project '{project}': {len(result.units)} units, {len(result.graph.edges())} edges.")


@app.command("units")
def units(
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Only units defined in this file."),
    limit: int = typer.Option(50, min=1, help="Maximum number of rows."),
):
    """List stored code units, most complex first."""
    pm = ProjectManager()
    project, store = _open_current_store(pm)
    if file is not None:
        rows = store.find_by_file(project, str(file.resolve()))
    else:
        rows = store.find_by_repo(project)
    store.close()

    if not rows:
        typer.echo("No code units stored.")
        raise typer.Exit(code=0)

    rows.sort(key=lambda u: (-u.complexity, u.node_id))
    table = Table(title=f"Code units in '{project}'", show_header=True)
    table.add_column("Unit", style="cyan")
    table.add_column("Kind")
    table.add_column("Complexity", justify="right")
    table.add_column("Calls", justify="right")
    table.add_column("Called by", justify="right")
    table.add_column("Location")
    for unit in rows[:limit]:
        table.add_row(
            unit.qualname,
            unit.kind,
            str(unit.complexity),
            str(len(unit.calls)),
            str(len(unit.called_by)),
            f"{unit.file_path}:{unit.start_line}",
        )
    console.print(table)


@app.command("debt")
def debt(
    coverage: Optional[Path] = typer.Option(None, "--coverage", help="lcov.info report (default: <root>/coverage/lcov.info)."),
    top_k: Optional[int] = typer.Option(None, "--top-k", "-k", min=1, help="Number of hotspots to keep."),
):
    """Score technical debt and store a new hotspot snapshot."""
    pm = ProjectManager()
    project, store = _open_current_store(pm)
    root = store.get_metadata().get("project_root")
    scorer = DebtScorer(top_k=top_k)
    try:
        snapshot = compute_hotspots(
            store, project,
            root=Path(root) if root else None,
            coverage_path=coverage,
            scorer=scorer,
        )
    except RepoLensError as exc:
        store.close()
        _fail(exc)
    store.close()

    if not snapshot.entries:
        typer.echo("No code units to score. Run 'repolens scan <path>' first.")
        raise typer.Exit(code=0)

    table = Table(title=f"Technical-debt hotspots in '{project}'", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Unit", style="cyan")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Complexity", justify="right")
    table.add_column("TODOs", justify="right")
    table.add_column("Coverage hits", justify="right")
    table.add_column("Age (days)", justify="right")
    for rank, entry in enumerate(snapshot.entries, 1):
        table.add_row(
            str(rank),
            entry.node_id.rsplit("::", 1)[-1],
            f"{entry.score:.3f}",
            str(entry.complexity),
            str(entry.todo_count),
            str(entry.coverage_hits),
            f"{entry.age_days:.0f}",
        )
    console.print(table)


@app.command("debt-history")
def debt_history():
    """Show every stored hotspot snapshot of the loaded project."""
    pm = ProjectManager()
    project, store = _open_current_store(pm)
    snapshots = store.list_snapshots(project)
    store.close()

    if not snapshots:
        typer.echo("No debt snapshots yet. Run 'repolens debt'.")
        raise typer.Exit(code=0)

    for snapshot in snapshots:
        stamp = datetime.fromtimestamp(snapshot.timestamp).isoformat(timespec="seconds")
        top = snapshot.entries[0] if snapshot.entries else None
        summary = f"{top.node_id.rsplit('::', 1)[-1]} ({top.score:.3f})" if top else "empty"
        typer.echo(f"{stamp}  {len(snapshot.entries)} entries  top: {summary}")


@app.command("snippet")
def snippet(
    node_id: str = typer.Argument(..., help="Node id of the unit (<path>::<name>)."),
    redact: bool = typer.Option(False, "--redact", help="Mask secrets, e-mails and IPs."),
):
    """Print the source of a stored code unit."""
    pm = ProjectManager()
    _project, store = _open_current_store(pm)
    result = get_snippet(store, node_id, redact=redact)
    store.close()

    if isinstance(result, NotFound):
        typer.echo(f"Unit '{node_id}' not found in current project.", err=True)
        raise typer.Exit(code=1)
    if not isinstance(result, Snippet):
        typer.echo(f"Source unavailable for '{node_id}': {result.reason}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"{result.file_path}:{result.start_line}-{result.end_line}")
    typer.echo(result.text)


@app.command("graph")
def graph(
    top: Optional[int] = typer.Option(config.GRAPH_TOP_N, "--top", min=1, help="Keep only the N most complex units."),
    keep_isolated: int = typer.Option(
        config.GRAPH_KEEP_ISOLATED, "--keep-isolated", min=0,
        help="Keep this many of the most complex units even without edges.",
    ),
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json, dot or html."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
):
    """Export the module-grouped unit graph."""
    fmt = fmt.lower()
    if fmt not in {"json", "dot", "html"}:
        raise typer.BadParameter("Format must be one of: json, dot, html")

    pm = ProjectManager()
    project, store = _open_current_store(pm)
    projection = project_units(store.find_by_repo(project), top_n=top, keep_isolated_top_k=keep_isolated)
    store.close()

    if output is None:
        output = Path.cwd() / f"{project}_graph.{fmt}"

    if fmt == "json":
        export_json(projection, output)
    elif fmt == "dot":
        export_dot(projection, output)
    else:
        export_html(projection, output)

    typer.echo(
        f"Exported {len(projection.nodes)} units, {len(projection.edges)} edges "
        f"in {len(projection.modules)} modules to {output}"
    )


@app.command("set-debt")
def set_debt(
    top_k: Optional[int] = typer.Option(None, "--top-k", min=1, help="Hotspots kept per snapshot."),
    complexity_weight: Optional[float] = typer.Option(None, "--complexity-weight"),
    todo_weight: Optional[float] = typer.Option(None, "--todo-weight"),
    coverage_weight: Optional[float] = typer.Option(None, "--coverage-weight"),
    age_weight: Optional[float] = typer.Option(None, "--age-weight"),
):
    """Persist debt scoring settings to config.toml."""
    values = {
        "top_k": top_k,
        "complexity_weight": complexity_weight,
        "todo_weight": todo_weight,
        "coverage_weight": coverage_weight,
        "age_weight": age_weight,
    }
    values = {k: v for k, v in values.items() if v is not None}
    if not values:
        raise typer.BadParameter("Pass at least one setting to change.")
    if not save_section("debt", values):
        typer.echo(f"Could not write {config.CONFIG_FILE}", err=True)
        raise typer.Exit(code=1)

    console.print(
        Panel(
            "\n".join(f"{k} = {json.dumps(v)}" for k, v in values.items()),
            title="[bold]Saved [debt] settings[/bold]",
            border_style="green",
        )
    )


@app.command("list-projects")
def list_projects():
    """List all persisted project memories."""
    pm = ProjectManager()
    projects = pm.list_projects()
    current = pm.get_current_project()

    if not projects:
        typer.echo("No projects scanned yet.")
        raise typer.Exit(code=0)

    for p in projects:
        marker = "*" if p == current else " "
        typer.echo(f"{marker} {p}")


@app.command("load-project")
def load_project(project_name: str = typer.Argument(..., help="Name of project memory to load.")):
    """Switch active project memory."""
    pm = ProjectManager()
    if project_name not in pm.list_projects():
        raise typer.BadParameter(f"Project '{project_name}' not found.")
    pm.set_current_project(project_name)
    typer.echo(f"Loaded project '{project_name}'.")


@app.command("unload-project")
def unload_project():
    """Unload active project memory without deleting data."""
    pm = ProjectManager()
    pm.unload_project()
    typer.echo("Unloaded active project.")


@app.command("delete-project")
def delete_project(project_name: str = typer.Argument(..., help="Project memory to delete.")):
    """Delete persisted project memory."""
    pm = ProjectManager()
    if not pm.delete_project(project_name):
        raise typer.BadParameter(f"Project '{project_name}' not found.")
    typer.echo(f"Deleted project '{project_name}'.")


if __name__ == "__main__":
    app()
