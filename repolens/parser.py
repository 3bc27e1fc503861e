"""Tree-sitter based extraction of Code Units from JavaScript / TypeScript.

Each file goes through two stages:

1. **Table build** -- the export surface (ES and CommonJS), import
   bindings (``import`` and ``require``) and top-level declaration names.
2. **Extraction** -- module-scope declarations are materialised as
   :class:`~repolens.models.CodeUnit` objects when the file's role
   qualifies them, with complexity, calls, JSX usage, flags and router
   registrations gathered in a single walk of each unit's subtree.

Traversal state lives in explicit context objects (:class:`_FileContext`,
:class:`_UnitScan`) passed through the walk, so one :class:`JSParser` can
serve many worker threads at once.
"""

from __future__ import annotations

import importlib
import logging
import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .classifier import classify_file
from .complexity import tally
from .config import DATA_LOADER_NAMES
from .errors import SourceParseError
from .models import (
    CodeUnit,
    ComplexityBreakdown,
    FileExtraction,
    FileRecord,
    FileTable,
    ImportBinding,
    RouteBinding,
)
from .resolver import resolve_specifier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

FUNCTION_TYPES = {
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
}
CLASS_TYPES = {"class_declaration", "abstract_class_declaration", "class"}
FUNCTION_VALUE_TYPES = {"function_expression", "function", "generator_function", "arrow_function"}

HTTP_VERBS = {"get", "post", "put", "patch", "delete", "del", "all", "options", "head"}
API_ROOTS = {"fetch", "axios", "got", "ky", "superagent", "$http", "ofetch", "$fetch"}
DB_ROOTS = {
    "prisma", "db", "knex", "mongoose", "sequelize", "pool", "pg", "sql",
    "supabase", "redis", "mongo", "collection", "firestore", "drizzle",
}
DB_METHODS = {
    "find", "findOne", "findMany", "findUnique", "findFirst", "findById",
    "findAll", "aggregate", "insertOne", "insertMany", "updateOne",
    "updateMany", "deleteOne", "deleteMany", "countDocuments", "upsert",
    "query", "execute", "raw",
}

_RESOLVER_NAME = re.compile(r"resolvers?$", re.IGNORECASE)
_WS = re.compile(r"\s+")


# ===================================================================
# Traversal contexts
# ===================================================================

@dataclass
class _FileContext:
    path: str
    role: str
    module_name: str
    table: FileTable
    mtime: Optional[float]
    seen_ids: Set[str] = field(default_factory=set)
    units: List[CodeUnit] = field(default_factory=list)
    routes: List[RouteBinding] = field(default_factory=list)

    def includes(self, kind: str, exported: bool) -> bool:
        """Role-dependent inclusion policy."""
        if self.role == "backend":
            return True
        if self.role == "frontend":
            return exported or kind == "data-loader"
        return exported

    def unique_id(self, qualname: str, line: int) -> str:
        node_id = f"{self.path}::{qualname}"
        if node_id in self.seen_ids:
            node_id = f"{node_id}@{line}"
        self.seen_ids.add(node_id)
        return node_id

    def qualify(self, name: str, member: Optional[str] = None) -> Tuple[str, bool]:
        """Qualify an identifier; returns ``(reference, is_repo_local)``."""
        binding = self.table.imports.get(name)
        if binding is not None:
            if binding.imported == "*":
                imported = member or "default"
            else:
                imported = binding.imported if member is None else f"{binding.imported}.{member}"
            if binding.resolved_path:
                return f"{binding.resolved_path}::{imported}", True
            return f"{binding.specifier}::{imported}", False
        if name in self.table.declarations:
            qualname = name if member is None else f"{name}.{member}"
            return f"{self.path}::{qualname}", True
        return name if member is None else f"{name}.{member}", False


@dataclass
class _UnitScan:
    node_id: str
    class_name: Optional[str]
    breakdown: ComplexityBreakdown = field(default_factory=ComplexityBreakdown)
    calls: List[str] = field(default_factory=list)
    external: List[str] = field(default_factory=list)
    components: List[str] = field(default_factory=list)
    routes: List[RouteBinding] = field(default_factory=list)
    returns_value: bool = False
    invokes_api: bool = False
    invokes_db: bool = False

    def add_ref(self, ref: str, internal: bool) -> None:
        if ref == self.node_id:
            return
        bucket = self.calls if internal else self.external
        if ref not in bucket:
            bucket.append(ref)


# ===================================================================
# Parser
# ===================================================================

class JSParser:
    """Error-detecting JS/TS/JSX parser built on tree-sitter grammars.

    Grammar ``Language`` objects are loaded once; ``tree_sitter.Parser``
    instances are created lazily per thread because they are not safe to
    share between concurrent parses.
    """

    # language name -> (module, function returning the Language capsule)
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "javascript": ("tree_sitter_javascript", "language"),
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
    }

    def __init__(self, languages: Optional[List[str]] = None) -> None:
        self._languages: Dict[str, Any] = {}
        self._local = threading.local()
        self._init_languages(languages or list(self._GRAMMAR_MODULES))

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def _init_languages(self, requested: List[str]) -> None:
        from tree_sitter import Language

        for lang in requested:
            spec = self._GRAMMAR_MODULES.get(lang)
            if spec is None:
                logger.warning("No grammar module mapped for language '%s'", lang)
                continue
            mod_name, func_name = spec
            try:
                mod = importlib.import_module(mod_name)
                self._languages[lang] = Language(getattr(mod, func_name)())
                logger.debug("Loaded tree-sitter grammar for %s", lang)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, lang, mod_name.replace("_", "-"),
                )

    def supports_language(self, language: str) -> bool:
        return language in self._languages

    def _parser_for(self, language: str) -> Any:
        from tree_sitter import Parser as TSParser

        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}
        if language not in parsers:
            parsers[language] = TSParser(self._languages[language])
        return parsers[language]

    def parse_source(self, source: str, language: str) -> Any:
        """Parse *source*; raises :class:`SourceParseError` on syntax errors."""
        tree = self._parser_for(language).parse(source.encode("utf-8"))
        if tree.root_node.has_error:
            raise SourceParseError(Path("<source>"), f"syntax error ({language})")
        return tree

    # ------------------------------------------------------------------
    # File-level extraction
    # ------------------------------------------------------------------

    def extract_file(
        self,
        file_path: Path,
        root: Optional[Path] = None,
        source: Optional[str] = None,
    ) -> FileExtraction:
        """Extract every qualifying Code Unit from one file.

        Unreadable and unparseable files yield an extraction with no units
        and ``error`` set; nothing is raised.
        """
        path_str = str(file_path)
        root = root or file_path.parent
        language = LANGUAGE_MAP.get(file_path.suffix)
        if language is None or not self.supports_language(language):
            return _failed(path_str, "shared", None, f"unsupported file type '{file_path.suffix}'")

        try:
            mtime: Optional[float] = os.path.getmtime(file_path)
        except OSError:
            mtime = None

        if source is None:
            try:
                source = file_path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Skipping unreadable file %s: %s", file_path, exc)
                return _failed(path_str, "shared", mtime, f"unreadable: {exc}")

        role = classify_file(file_path, root, source)
        try:
            tree = self.parse_source(source, language)
        except SourceParseError as exc:
            logger.warning("Parse error in %s: %s", file_path, exc.reason)
            return _failed(path_str, role, mtime, exc.reason)

        table = build_file_table(tree.root_node, path_str)
        ctx = _FileContext(
            path=path_str,
            role=role,
            module_name=module_name_for(file_path, root),
            table=table,
            mtime=mtime,
        )
        self._extract_units(tree.root_node, ctx)

        record = FileRecord(
            path=path_str,
            role=role,
            mtime=mtime,
            exports=dict(table.exports),
            routes=list(ctx.routes),
        )
        return FileExtraction(record=record, units=ctx.units)

    # ------------------------------------------------------------------
    # Module-scope walker
    # ------------------------------------------------------------------

    def _extract_units(self, root: Any, ctx: _FileContext) -> None:
        for child in root.named_children:
            self._visit_top_level(child, ctx)
        for call in _module_scope_calls(root):
            route = _route_binding(call, ctx)
            if route is not None:
                ctx.routes.append(route)

    def _visit_top_level(self, node: Any, ctx: _FileContext) -> None:
        kind = node.type
        if kind == "export_statement":
            decl = node.child_by_field_name("declaration")
            if decl is not None:
                self._visit_top_level(decl, ctx)
                return
            value = node.child_by_field_name("value")
            if value is not None and value.type in FUNCTION_VALUE_TYPES:
                self._emit_function(_name_of(value) or "default", value, node, ctx)
            elif value is not None and value.type in CLASS_TYPES:
                self._emit_class(_name_of(value) or "default", value, node, ctx)

        elif kind in ("function_declaration", "generator_function_declaration"):
            name = _name_of(node)
            if name:
                self._emit_function(name, node, node, ctx)

        elif kind in ("class_declaration", "abstract_class_declaration"):
            name = _name_of(node)
            if name:
                self._emit_class(name, node, node, ctx)

        elif kind in ("lexical_declaration", "variable_declaration"):
            declarators = [c for c in node.named_children if c.type == "variable_declarator"]
            for decl in declarators:
                outer = node if len(declarators) == 1 else decl
                self._visit_declarator(decl, outer, ctx)

        elif kind == "expression_statement" and node.named_children:
            expr = node.named_children[0]
            if expr.type == "assignment_expression":
                self._visit_commonjs_export(expr, node, ctx)

    def _visit_declarator(self, decl: Any, outer: Any, ctx: _FileContext) -> None:
        name_node = decl.child_by_field_name("name")
        value = decl.child_by_field_name("value")
        if name_node is None or value is None or name_node.type != "identifier":
            return
        name = _text(name_node)
        if value.type in FUNCTION_VALUE_TYPES:
            self._emit_function(name, value, outer, ctx)
        elif value.type in CLASS_TYPES:
            self._emit_class(name, value, outer, ctx)
        elif value.type == "object" and _RESOLVER_NAME.search(name):
            self._emit_resolvers(value, [name], ctx.table.is_exported(name), ctx)
        elif value.type == "call_expression":
            # const getUser = asyncHandler(async (req, res) => { ... })
            wrapped = _wrapped_function(value)
            if wrapped is not None:
                self._emit_function(name, wrapped, outer, ctx)

    def _visit_commonjs_export(self, assign: Any, outer: Any, ctx: _FileContext) -> None:
        target = _member_path(assign.child_by_field_name("left"))
        right = assign.child_by_field_name("right")
        if target is None or right is None:
            return
        if target == ["module", "exports"]:
            if right.type in FUNCTION_VALUE_TYPES:
                self._emit_function(_name_of(right) or "default", right, outer, ctx)
            elif right.type in CLASS_TYPES:
                self._emit_class(_name_of(right) or "default", right, outer, ctx)
            elif right.type == "object":
                for member in right.named_children:
                    name, fn = _object_member_function(member)
                    if name and fn is not None:
                        self._emit_function(name, fn, member, ctx)
        elif len(target) in (2, 3) and target[:-1] in (["exports"], ["module", "exports"]):
            if right.type in FUNCTION_VALUE_TYPES:
                self._emit_function(target[-1], right, outer, ctx)

    # ------------------------------------------------------------------
    # Unit emission
    # ------------------------------------------------------------------

    def _emit_function(
        self,
        name: str,
        fn: Any,
        outer: Any,
        ctx: _FileContext,
        parent: Optional[str] = None,
        qualname: Optional[str] = None,
        kind: Optional[str] = None,
        exported: Optional[bool] = None,
        force: bool = False,
    ) -> None:
        if kind is None:
            if parent is not None:
                kind = "method"
            elif name in DATA_LOADER_NAMES:
                kind = "data-loader"
            else:
                kind = "function"
        if exported is None:
            exported = ctx.table.is_exported(name)
        if not force and not ctx.includes(kind, exported):
            return

        start_line = outer.start_point[0] + 1
        node_id = ctx.unique_id(qualname or name, start_line)
        scan = _scan_unit(fn, ctx, node_id, class_name=parent, function_root=True)

        body = fn.child_by_field_name("body")
        if fn.type == "arrow_function" and body is not None and body.type != "statement_block":
            scan.returns_value = True

        ctx.units.append(CodeUnit(
            node_id=node_id,
            kind=kind,
            name=name,
            file_path=ctx.path,
            start_line=start_line,
            end_line=outer.end_point[0] + 1,
            module_name=ctx.module_name,
            file_type=ctx.role,
            parent=parent,
            parameters=_parameter_names(fn),
            signature=_signature(outer, body),
            jsdoc=_leading_jsdoc(outer),
            is_async=any(c.type == "async" for c in fn.children),
            is_exported=exported,
            returns_value=scan.returns_value,
            scope_level="class-method" if parent else "top-level",
            breakdown=scan.breakdown,
            calls=scan.calls,
            external_calls=scan.external,
            related_components=scan.components,
            invokes_api=scan.invokes_api,
            invokes_db_query=scan.invokes_db,
            last_modified=ctx.mtime,
        ))
        ctx.routes.extend(scan.routes)

    def _emit_class(self, name: str, cls: Any, outer: Any, ctx: _FileContext) -> None:
        exported = ctx.table.is_exported(name)
        if not ctx.includes("class", exported):
            return

        start_line = outer.start_point[0] + 1
        node_id = ctx.unique_id(name, start_line)
        scan = _scan_unit(cls, ctx, node_id, class_name=name, function_root=False)
        body = cls.child_by_field_name("body")

        ctx.units.append(CodeUnit(
            node_id=node_id,
            kind="class",
            name=name,
            file_path=ctx.path,
            start_line=start_line,
            end_line=outer.end_point[0] + 1,
            module_name=ctx.module_name,
            file_type=ctx.role,
            signature=_signature(outer, body),
            jsdoc=_leading_jsdoc(outer),
            is_exported=exported,
            breakdown=scan.breakdown,
            calls=scan.calls,
            external_calls=scan.external,
            related_components=scan.components,
            invokes_api=scan.invokes_api,
            invokes_db_query=scan.invokes_db,
            last_modified=ctx.mtime,
        ))
        ctx.routes.extend(scan.routes)

        if body is None:
            return
        for member in body.named_children:
            method_name, fn = _class_member_function(member)
            if method_name and fn is not None:
                self._emit_function(
                    method_name, fn, member, ctx,
                    parent=name,
                    qualname=f"{name}.{method_name}",
                    exported=exported,
                    force=True,
                )

    def _emit_resolvers(self, obj: Any, prefix: List[str], exported: bool, ctx: _FileContext) -> None:
        """GraphQL-style ``const resolvers = { Query: { user: () => ... } }``."""
        for member in obj.named_children:
            if member.type == "pair":
                value = member.child_by_field_name("value")
                key = _property_key(member.child_by_field_name("key"))
                if key and value is not None and value.type == "object":
                    self._emit_resolvers(value, prefix + [key], exported, ctx)
                    continue
            name, fn = _object_member_function(member)
            if name and fn is not None:
                self._emit_function(
                    name, fn, member, ctx,
                    qualname=".".join(prefix + [name]),
                    kind="resolver",
                    exported=exported,
                )


# ===================================================================
# Pass 1: export surface, imports, declarations
# ===================================================================

def build_file_table(root: Any, path: str) -> FileTable:
    """Collect the export surface, import bindings and top-level names."""
    table = FileTable(path=path)
    for child in root.named_children:
        kind = child.type
        if kind == "import_statement":
            _collect_import(child, table)
        elif kind == "export_statement":
            _collect_export(child, table)
        elif kind in ("lexical_declaration", "variable_declaration"):
            _collect_variables(child, table)
        elif kind in ("function_declaration", "generator_function_declaration"):
            _declare(child, "function", table)
        elif kind in ("class_declaration", "abstract_class_declaration"):
            _declare(child, "class", table)
        elif kind == "expression_statement" and child.named_children:
            expr = child.named_children[0]
            if expr.type == "assignment_expression":
                _collect_commonjs_export(expr, table)
    return table


def _declare(node: Any, kind: str, table: FileTable) -> Optional[str]:
    name = _name_of(node)
    if name:
        table.declarations[name] = kind
    return name


def _bind(table: FileTable, local: str, specifier: str, imported: str) -> None:
    resolved = resolve_specifier(specifier, table.path)
    table.imports[local] = ImportBinding(
        local=local,
        specifier=specifier,
        imported=imported,
        resolved_path=str(resolved) if resolved is not None else None,
    )


def _collect_import(node: Any, table: FileTable) -> None:
    specifier = _string_value(node.child_by_field_name("source"))
    if specifier is None:
        return
    for clause in node.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                _bind(table, _text(part), specifier, "default")
            elif part.type == "namespace_import":
                for ident in part.named_children:
                    if ident.type == "identifier":
                        _bind(table, _text(ident), specifier, "*")
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = _text(spec.child_by_field_name("name"))
                    alias = spec.child_by_field_name("alias")
                    _bind(table, _text(alias) if alias is not None else name, specifier, name)


def _collect_export(node: Any, table: FileTable) -> None:
    if node.child_by_field_name("source") is not None:
        # re-exports (export ... from '...') declare nothing locally
        return
    is_default = any(c.type == "default" for c in node.children)
    decl = node.child_by_field_name("declaration")
    if decl is not None:
        if decl.type in ("lexical_declaration", "variable_declaration"):
            names = _collect_variables(decl, table)
        else:
            if decl.type in CLASS_TYPES:
                kind = "class"
            elif decl.type in ("function_declaration", "generator_function_declaration"):
                kind = "function"
            else:
                kind = "variable"
            name = _declare(decl, kind, table)
            names = [name] if name else []
        if is_default:
            table.exports["default"] = names[0] if names else "default"
        else:
            for name in names:
                table.exports[name] = name
        return

    value = node.child_by_field_name("value")
    if is_default and value is not None:
        if value.type == "identifier":
            table.exports["default"] = _text(value)
        elif value.type in FUNCTION_VALUE_TYPES or value.type in CLASS_TYPES:
            name = _name_of(value) or "default"
            table.declarations[name] = "class" if value.type in CLASS_TYPES else "function"
            table.exports["default"] = name
        return

    for clause in node.named_children:
        if clause.type != "export_clause":
            continue
        for spec in clause.named_children:
            if spec.type != "export_specifier":
                continue
            name = _text(spec.child_by_field_name("name"))
            alias = spec.child_by_field_name("alias")
            table.exports[_text(alias) if alias is not None else name] = name


def _collect_variables(node: Any, table: FileTable) -> List[str]:
    names: List[str] = []
    for decl in node.named_children:
        if decl.type != "variable_declarator":
            continue
        name_node = decl.child_by_field_name("name")
        value = decl.child_by_field_name("value")
        specifier = _require_specifier(value)
        if name_node is None:
            continue
        if name_node.type == "identifier":
            name = _text(name_node)
            names.append(name)
            if specifier is not None:
                _bind(table, name, specifier, "*")
            elif value is not None and value.type in CLASS_TYPES:
                table.declarations[name] = "class"
            else:
                table.declarations[name] = "function" if _is_function_value(value) else "variable"
        elif name_node.type == "object_pattern" and specifier is not None:
            # const { a, b: c } = require('./x')
            for prop in name_node.named_children:
                if prop.type == "shorthand_property_identifier_pattern":
                    _bind(table, _text(prop), specifier, _text(prop))
                elif prop.type == "pair_pattern":
                    key = _property_key(prop.child_by_field_name("key"))
                    local = prop.child_by_field_name("value")
                    if key and local is not None and local.type == "identifier":
                        _bind(table, _text(local), specifier, key)
    return names


def _collect_commonjs_export(assign: Any, table: FileTable) -> None:
    target = _member_path(assign.child_by_field_name("left"))
    right = assign.child_by_field_name("right")
    if target is None or right is None:
        return
    if target == ["module", "exports"]:
        if right.type == "identifier":
            table.exports["default"] = _text(right)
        elif right.type in FUNCTION_VALUE_TYPES or right.type in CLASS_TYPES:
            name = _name_of(right) or "default"
            table.declarations.setdefault(name, "class" if right.type in CLASS_TYPES else "function")
            table.exports["default"] = name
        elif right.type == "object":
            for member in right.named_children:
                if member.type == "shorthand_property_identifier":
                    table.exports[_text(member)] = _text(member)
                elif member.type == "pair":
                    key = _property_key(member.child_by_field_name("key"))
                    value = member.child_by_field_name("value")
                    if not key or value is None:
                        continue
                    if value.type == "identifier":
                        table.exports[key] = _text(value)
                    elif _is_function_value(value):
                        table.declarations.setdefault(key, "function")
                        table.exports[key] = key
                elif member.type == "method_definition":
                    key = _property_key(member.child_by_field_name("name"))
                    if key:
                        table.declarations.setdefault(key, "function")
                        table.exports[key] = key
    elif len(target) in (2, 3) and target[:-1] in (["exports"], ["module", "exports"]):
        name = target[-1]
        if right.type == "identifier":
            table.exports[name] = _text(right)
        else:
            if _is_function_value(right):
                table.declarations.setdefault(name, "function")
            table.exports[name] = name


# ===================================================================
# Pass 2 helpers: per-unit walk
# ===================================================================

def _scan_unit(
    root: Any,
    ctx: _FileContext,
    node_id: str,
    class_name: Optional[str],
    function_root: bool,
) -> _UnitScan:
    """Walk one unit's subtree once, filling complexity, calls and flags.

    ``depth`` counts function/class boundaries crossed below *root*. Return
    statements only count at depth 0. Classes record calls only outside
    their methods, since methods are units of their own.
    """
    scan = _UnitScan(node_id=node_id, class_name=class_name)
    stack: List[Tuple[Any, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        tally(node, scan.breakdown)
        kind = node.type
        records = function_root or depth == 0

        if kind == "return_statement" and depth == 0:
            if any(c.type != "comment" for c in node.named_children):
                scan.returns_value = True
        elif records and kind == "call_expression":
            _record_call(node, ctx, scan)
        elif records and kind == "new_expression":
            ctor = node.child_by_field_name("constructor")
            if ctor is not None and ctor.type == "identifier":
                scan.add_ref(*ctx.qualify(_text(ctor)))
        elif records and kind in ("jsx_opening_element", "jsx_self_closing_element"):
            _record_component(node, ctx, scan)

        for child in reversed(node.children):
            boundary = child.type in FUNCTION_TYPES or child.type in CLASS_TYPES
            stack.append((child, depth + 1 if boundary else depth))
    return scan


def _record_call(node: Any, ctx: _FileContext, scan: _UnitScan) -> None:
    fn = node.child_by_field_name("function")
    if fn is None:
        return
    root_name = _callee_root(fn)
    if root_name in API_ROOTS:
        scan.invokes_api = True
    if _is_db_call(fn, root_name):
        scan.invokes_db = True

    route = _route_binding(node, ctx)
    if route is not None:
        route.registered_in = scan.node_id
        scan.routes.append(route)

    if fn.type == "identifier":
        name = _text(fn)
        if name != "require":
            scan.add_ref(*ctx.qualify(name))
    elif fn.type == "member_expression":
        obj = fn.child_by_field_name("object")
        prop = fn.child_by_field_name("property")
        if obj is None or prop is None or prop.type not in ("property_identifier", "private_property_identifier"):
            return
        member = _text(prop)
        if obj.type == "this" and scan.class_name:
            scan.add_ref(f"{ctx.path}::{scan.class_name}.{member}", True)
        elif obj.type == "identifier":
            name = _text(obj)
            if name in ctx.table.imports or ctx.table.declarations.get(name) == "class":
                scan.add_ref(*ctx.qualify(name, member))


def _record_component(node: Any, ctx: _FileContext, scan: _UnitScan) -> None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return
    if name_node.type == "identifier":
        name = _text(name_node)
        if not name[:1].isupper():
            return
        ref, internal = ctx.qualify(name)
    elif name_node.type in ("member_expression", "nested_identifier"):
        parts = _text(name_node).split(".")
        if len(parts) != 2:
            return
        binding = ctx.table.imports.get(parts[0])
        if binding is None or binding.imported != "*":
            return
        ref, internal = ctx.qualify(parts[0], parts[1])
    else:
        return
    if internal and ref != scan.node_id and ref not in scan.components:
        scan.components.append(ref)


def _route_binding(call: Any, ctx: _FileContext) -> Optional[RouteBinding]:
    """Best-effort ``router.get('/path', ..., handler)`` detection."""
    fn = call.child_by_field_name("function")
    if fn is None or fn.type != "member_expression":
        return None
    obj = fn.child_by_field_name("object")
    prop = fn.child_by_field_name("property")
    if obj is None or prop is None or obj.type != "identifier":
        return None
    verb = _text(prop).lower()
    if verb not in HTTP_VERBS or _text(obj) in API_ROOTS:
        return None
    args_node = call.child_by_field_name("arguments")
    args = [a for a in (args_node.named_children if args_node is not None else []) if a.type != "comment"]
    if len(args) < 2:
        return None
    path = _string_value(args[0])
    if path is None:
        return None

    handler: Optional[str] = None
    last = args[-1]
    if last.type == "identifier":
        ref, internal = ctx.qualify(_text(last))
        handler = ref if internal else None
    elif last.type == "member_expression":
        base = last.child_by_field_name("object")
        member = last.child_by_field_name("property")
        if base is not None and member is not None and base.type == "identifier":
            binding = ctx.table.imports.get(_text(base))
            if binding is not None and binding.imported == "*":
                ref, internal = ctx.qualify(_text(base), _text(member))
                handler = ref if internal else None
    method = "DELETE" if verb == "del" else verb.upper()
    return RouteBinding(method=method, path=path, handler=handler)


def _module_scope_calls(root: Any) -> List[Any]:
    """Call expressions at module scope, not inside any function or class."""
    calls: List[Any] = []
    stack = list(reversed(root.named_children))
    while stack:
        node = stack.pop()
        if node.type in FUNCTION_TYPES or node.type in CLASS_TYPES:
            continue
        if node.type == "call_expression":
            calls.append(node)
        stack.extend(reversed(node.named_children))
    return calls


# ===================================================================
# Shared node helpers
# ===================================================================

def _failed(path: str, role: str, mtime: Optional[float], reason: str) -> FileExtraction:
    return FileExtraction(
        record=FileRecord(path=path, role=role, mtime=mtime, parse_failed=True),
        error=reason,
    )


def module_name_for(file_path: Path, root: Path) -> str:
    """Module grouping: the file's directory relative to the scan root."""
    try:
        rel = file_path.parent.relative_to(root)
    except ValueError:
        return file_path.parent.name or "root"
    name = rel.as_posix()
    return "root" if name in ("", ".") else name


def _text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace") if node is not None else ""


def _name_of(node: Any) -> Optional[str]:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    return _text(name_node)


def _is_function_value(node: Any) -> bool:
    if node is None:
        return False
    if node.type in FUNCTION_VALUE_TYPES:
        return True
    return node.type == "call_expression" and _wrapped_function(node) is not None


def _wrapped_function(call: Any) -> Optional[Any]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return None
    for arg in args.named_children:
        if arg.type in FUNCTION_VALUE_TYPES:
            return arg
    return None


def _string_value(node: Any) -> Optional[str]:
    if node is None:
        return None
    if node.type == "string":
        return _text(node)[1:-1]
    if node.type == "template_string" and not any(
        c.type == "template_substitution" for c in node.named_children
    ):
        return _text(node)[1:-1]
    return None


def _require_specifier(node: Any) -> Optional[str]:
    if node is None:
        return None
    if node.type == "await_expression" and node.named_children:
        node = node.named_children[0]
    if node.type != "call_expression":
        return None
    fn = node.child_by_field_name("function")
    if fn is None or fn.type != "identifier" or _text(fn) != "require":
        return None
    args = node.child_by_field_name("arguments")
    if args is None or not args.named_children:
        return None
    return _string_value(args.named_children[0])


def _member_path(node: Any) -> Optional[List[str]]:
    """``module.exports.foo`` -> ``["module", "exports", "foo"]``."""
    if node is None:
        return None
    if node.type == "identifier":
        return [_text(node)]
    if node.type == "member_expression":
        obj = _member_path(node.child_by_field_name("object"))
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        return obj + [_text(prop)]
    return None


def _callee_root(fn: Any) -> Optional[str]:
    node = fn
    while node is not None and node.type in ("member_expression", "call_expression"):
        field_name = "object" if node.type == "member_expression" else "function"
        node = node.child_by_field_name(field_name)
    if node is not None and node.type == "identifier":
        return _text(node)
    return None


def _is_db_call(fn: Any, root_name: Optional[str]) -> bool:
    if fn.type != "member_expression" or root_name is None:
        return False
    if root_name in DB_ROOTS:
        return True
    prop = fn.child_by_field_name("property")
    # Model.find(...) style: capitalised receiver, query-like method
    return prop is not None and _text(prop) in DB_METHODS and root_name[:1].isupper()


def _property_key(node: Any) -> Optional[str]:
    if node is None:
        return None
    if node.type in ("property_identifier", "identifier", "private_property_identifier"):
        return _text(node)
    return _string_value(node)


def _object_member_function(member: Any) -> Tuple[Optional[str], Optional[Any]]:
    if member.type == "method_definition":
        return _property_key(member.child_by_field_name("name")), member
    if member.type == "pair":
        value = member.child_by_field_name("value")
        if value is not None and value.type in FUNCTION_VALUE_TYPES:
            return _property_key(member.child_by_field_name("key")), value
    return None, None


def _class_member_function(member: Any) -> Tuple[Optional[str], Optional[Any]]:
    if member.type == "method_definition":
        return _property_key(member.child_by_field_name("name")), member
    if member.type in ("field_definition", "public_field_definition"):
        key = member.child_by_field_name("property") or member.child_by_field_name("name")
        value = member.child_by_field_name("value")
        if value is not None and value.type in FUNCTION_VALUE_TYPES:
            return _property_key(key), value
    return None, None


def _parameter_names(fn: Any) -> List[str]:
    params = fn.child_by_field_name("parameters")
    if params is None:
        single = fn.child_by_field_name("parameter")
        return [_text(single)] if single is not None else []
    names: List[str] = []
    for param in params.named_children:
        name = _parameter_name(param)
        if name:
            names.append(name)
    return names


def _parameter_name(param: Any) -> Optional[str]:
    kind = param.type
    if kind == "identifier":
        return _text(param)
    if kind == "assignment_pattern":
        return _parameter_name(param.child_by_field_name("left"))
    if kind == "rest_pattern":
        inner = param.named_children[0] if param.named_children else None
        return "..." + (_parameter_name(inner) or "") if inner is not None else "..."
    if kind in ("required_parameter", "optional_parameter"):
        pattern = param.child_by_field_name("pattern")
        return _parameter_name(pattern) if pattern is not None else None
    if kind in ("object_pattern", "array_pattern"):
        return _WS.sub(" ", _text(param))
    return None


def _signature(outer: Any, body: Any) -> str:
    raw = outer.text
    if body is not None:
        raw = raw[: max(0, body.start_byte - outer.start_byte)]
    text = raw.decode("utf-8", errors="replace")
    if body is None:
        text = text.split("\n", 1)[0]
    return _WS.sub(" ", text).strip().rstrip("{").strip()[:200]


def _leading_jsdoc(outer: Any) -> str:
    node = outer
    if node.parent is not None and node.parent.type == "export_statement":
        node = node.parent
    prev = node.prev_sibling
    if prev is None or prev.type != "comment":
        return ""
    raw = _text(prev)
    if not raw.startswith("/**"):
        return ""
    body = raw[3:-2] if raw.endswith("*/") else raw[3:]
    lines = []
    for line in body.split("\n"):
        line = line.strip()
        if line.startswith("*"):
            line = line[1:].strip()
        lines.append(line)
    return "\n".join(lines).strip()
