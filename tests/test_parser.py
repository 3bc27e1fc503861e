"""Tests for the tree-sitter JS/TS extractor."""

import logging
from pathlib import Path
from typing import Dict

import pytest

from repolens.complexity import compute_breakdown
from repolens.models import CodeUnit
from repolens.parser import JSParser, build_file_table, module_name_for


def _by_qualname(units) -> Dict[str, CodeUnit]:
    return {u.qualname: u for u in units}


class TestComplexity:
    """Decision-point breakdown per unit."""

    def test_two_ifs_and_a_loop(self, js_parser: JSParser, write_source, temp_dir: Path):
        """Test a backend function with two ifs and one for loop."""
        path = write_source("server/handler.js", """
            function process(items) {
              if (!items) {
                return [];
              }
              for (const item of items) {
                if (item.skip) {
                  continue;
                }
              }
              return items;
            }
        """)

        extraction = js_parser.extract_file(path, root=temp_dir)

        assert len(extraction.units) == 1
        unit = extraction.units[0]
        assert unit.breakdown.as_dict() == {
            "ifStatements": 2,
            "loops": 1,
            "switchCases": 0,
            "ternaries": 0,
            "logicalExpressions": 0,
            "catchClauses": 0,
        }
        assert unit.complexity == 3

    def test_every_construct(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/all.js", """
            function all(x) {
              switch (x) {
                case 1: break;
                case 2: break;
                default: break;
              }
              const y = x ? 1 : 2;
              if (x && y || !x) {}
              try { run(); } catch (e) {}
              while (false) {}
              do {} while (false);
              for (let i = 0; i < 1; i++) {}
              for (const k in x) {}
            }
        """)

        unit = js_parser.extract_file(path, root=temp_dir).units[0]

        b = unit.breakdown
        assert (b.if_statements, b.loops, b.switch_cases) == (1, 4, 2)
        assert (b.ternaries, b.logical_expressions, b.catch_clauses) == (1, 2, 1)
        assert unit.complexity == b.total == 11

    def test_straight_line_scores_zero(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/plain.js", """
            function add(a, b) {
              const sum = a + b;
              return sum;
            }
        """)

        assert js_parser.extract_file(path, root=temp_dir).units[0].complexity == 0

    def test_nested_functions_count_towards_the_outer_unit(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/nested.js", """
            function outer(list) {
              return list.filter((x) => {
                if (x) { return true; }
                return false;
              });
            }
        """)

        unit = js_parser.extract_file(path, root=temp_dir).units[0]

        assert unit.breakdown.if_statements == 1

    def test_compute_breakdown_on_tree(self, js_parser: JSParser):
        tree = js_parser.parse_source("if (a) { b ? c : d; }", "javascript")
        breakdown = compute_breakdown(tree.root_node)
        assert breakdown.if_statements == 1
        assert breakdown.ternaries == 1
        assert breakdown.total == 2


class TestInclusionPolicy:
    """Which declarations become units depends on the file role."""

    def test_backend_includes_everything(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/service.js", """
            function privateHelper() {}
            const arrow = () => 1;
            const expr = function () {};
            export function publicApi() {}
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert set(units) == {"privateHelper", "arrow", "expr", "publicApi"}
        assert units["publicApi"].is_exported
        assert not units["privateHelper"].is_exported
        assert all(u.file_type == "backend" for u in units.values())

    def test_frontend_includes_exports_and_data_loaders(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("client/components/List.jsx", """
            import React from 'react';

            function helper() { return 1; }

            async function getStaticProps() {
              return { props: {} };
            }

            export function List() {
              return <ul className="list" />;
            }
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert set(units) == {"getStaticProps", "List"}
        assert units["getStaticProps"].kind == "data-loader"
        assert units["List"].kind == "function"

    def test_util_includes_exports_only(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("utils/math.ts", """
            export interface Point { x: number; y: number }
            export type Pair = [number, number];
            export function add(a: number, b: number): number { return a + b; }
            function hidden(): void {}
        """)

        extraction = js_parser.extract_file(path, root=temp_dir)

        assert [u.name for u in extraction.units] == ["add"]
        assert extraction.units[0].parameters == ["a", "b"]

    def test_methods_follow_their_class(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("utils/store.js", """
            export class Store {
              read(key) { return this.data[key]; }
              write = (key, value) => { this.data[key] = value; };
            }
            class Hidden {
              run() {}
            }
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert set(units) == {"Store", "Store.read", "Store.write"}
        assert units["Store.read"].kind == "method"
        assert units["Store.read"].parent == "Store"
        assert units["Store.read"].scope_level == "class-method"


class TestExports:
    """Export surface and export-driven extraction."""

    def test_commonjs_assignment_exports(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("src/thing.js", """
            function a() {}
            const b = () => 1;
            exports.c = function () {};
            module.exports.d = () => 2;
        """)

        extraction = js_parser.extract_file(path, root=temp_dir)

        assert sorted(u.name for u in extraction.units) == ["c", "d"]
        assert extraction.record.exports == {"c": "c", "d": "d"}

    def test_module_exports_object(self, js_parser: JSParser, sample_repo_path: Path):
        path = sample_repo_path / "server" / "controllers" / "userController.js"

        extraction = js_parser.extract_file(path, root=sample_repo_path)

        assert extraction.record.exports == {"listUsers": "listUsers", "getUser": "getUser"}
        assert extraction.record.role == "backend"

    def test_es_exports_default_and_alias(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("src/service.js", """
            function internal() {}
            function impl() {}
            export { impl as publicName };
            export default class Service {
              run() { return this.helper(); }
              helper() {}
            }
        """)

        extraction = js_parser.extract_file(path, root=temp_dir)
        units = _by_qualname(extraction.units)

        assert extraction.record.exports == {"publicName": "impl", "default": "Service"}
        assert set(units) == {"impl", "Service", "Service.run", "Service.helper"}
        assert units["Service.run"].calls == [f"{path}::Service.helper"]
        assert units["Service.run"].returns_value
        assert not units["Service.helper"].returns_value

    def test_table_collects_imports(self, js_parser: JSParser, write_source, temp_dir: Path):
        write_source("src/b.js", "export const foo = 1;\n")
        path = write_source("src/a.js", """
            import def, { foo as bar } from './b';
            import * as ns from './b';
            const { x, y: z } = require('./b');
            const lib = require('lib');
        """)
        tree = js_parser.parse_source(path.read_text(), "javascript")

        table = build_file_table(tree.root_node, str(path))

        resolved = str(temp_dir / "src" / "b.js")
        assert {k: (b.imported, b.resolved_path) for k, b in table.imports.items()} == {
            "def": ("default", resolved),
            "bar": ("foo", resolved),
            "ns": ("*", resolved),
            "x": ("x", resolved),
            "z": ("y", resolved),
            "lib": ("*", None),
        }


class TestCalls:
    """Call qualification and flags."""

    def test_call_qualification(self, js_parser: JSParser, write_source, temp_dir: Path):
        write_source("server/b.js", "export function foo() {}\nexport function baz() {}\n")
        write_source("server/c.js", "export function qux() {}\n")
        path = write_source("server/a.js", """
            import { foo as bar } from './b';
            import * as ns from './c';
            const lodash = require('lodash');
            const { baz } = require('./b');

            function main() {
              bar();
              ns.qux();
              lodash.map([], (x) => x);
              baz();
              unknownGlobal();
              local();
              main();
            }

            function local() {}
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)
        main = units["main"]

        b, c = temp_dir / "server" / "b.js", temp_dir / "server" / "c.js"
        assert main.calls == [f"{b}::foo", f"{c}::qux", f"{b}::baz", f"{path}::local"]
        assert main.external_calls == ["lodash::map", "unknownGlobal"]

    def test_constructor_calls(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/make.js", """
            class Thing {}
            function make() { return new Thing(); }
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert units["make"].calls == [f"{path}::Thing"]

    def test_class_records_calls_outside_methods_only(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/repo.js", """
            class Repo {
              static table = tableName();
              constructor() { this.db = connect(); }
            }
            function connect() {}
            function tableName() {}
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert units["Repo"].calls == [f"{path}::tableName"]
        assert units["Repo.constructor"].calls == [f"{path}::connect"]

    def test_api_and_db_flags(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/flags.js", """
            async function remote() {
              const res = await fetch('/api');
              return res.json();
            }
            async function query() {
              return prisma.user.findMany();
            }
            function model() {
              return User.findOne({ id: 1 });
            }
            function neither() {
              return items.find(Boolean);
            }
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert units["remote"].invokes_api and not units["remote"].invokes_db_query
        assert units["query"].invokes_db_query and not units["query"].invokes_api
        assert units["model"].invokes_db_query
        assert not units["neither"].invokes_db_query
        assert units["remote"].is_async and not units["model"].is_async


class TestJsx:
    """JSX element usage."""

    def test_related_components(self, js_parser: JSParser, write_source, temp_dir: Path):
        card = write_source("client/Card.jsx", "export default function Card() { return <div />; }\n")
        path = write_source("client/Page.jsx", """
            import React from 'react';
            import Card from './Card';
            import * as Icons from './icons';

            function Badge() { return <span />; }

            export default function Page() {
              return (
                <section>
                  <Card />
                  <Badge></Badge>
                  <Icons.Star />
                  <div />
                </section>
              );
            }
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert set(units["Page"].related_components) == {f"{card}::default", f"{path}::Badge"}


class TestRoutes:
    """Router registration detection."""

    def test_route_bindings(self, js_parser: JSParser, write_source, temp_dir: Path):
        handlers = write_source("server/handlers.js", "exports.list = (req, res) => res.json([]);\n")
        path = write_source("server/routes.js", """
            const express = require('express');
            const { list } = require('./handlers');
            const router = express.Router();

            router.get('/items', list);
            router.del('/items/:id', authenticate, list);

            function register(app) {
              app.post('/items', create);
            }
            function create(req, res) { res.json({}); }
            function authenticate(req, res, next) { next(); }

            axios.get('/remote', list);
            module.exports = router;
        """)

        extraction = js_parser.extract_file(path, root=temp_dir)
        routes = {r.endpoint: r for r in extraction.record.routes}

        assert set(routes) == {"GET /items", "DELETE /items/:id", "POST /items"}
        assert routes["GET /items"].handler == f"{handlers}::list"
        assert routes["GET /items"].registered_in is None
        assert routes["POST /items"].handler == f"{path}::create"
        assert routes["POST /items"].registered_in == f"{path}::register"


class TestUnitDetails:
    """Signature, docs, resolvers, wrappers and ids."""

    def test_signature_jsdoc_and_location(self, js_parser: JSParser, sample_repo_path: Path):
        path = sample_repo_path / "server" / "controllers" / "userController.js"

        units = _by_qualname(js_parser.extract_file(path, root=sample_repo_path).units)
        unit = units["getUser"]

        assert unit.node_id == f"{path}::getUser"
        assert unit.signature == "async function getUser(req, res)"
        assert unit.jsdoc == "Fetch a single user by id."
        assert unit.parameters == ["req", "res"]
        assert unit.module_name == "server/controllers"
        assert unit.start_line == 15
        assert unit.last_modified is not None

    def test_graphql_resolvers(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/graphql/resolvers.js", """
            const resolvers = {
              Query: {
                user: (parent, args) => args.id,
                users() { return []; },
              },
              Mutation: {
                addUser: async (_, { input }) => input,
              },
            };
            module.exports = resolvers;
        """)

        units = _by_qualname(js_parser.extract_file(path, root=temp_dir).units)

        assert set(units) == {"resolvers.Query.user", "resolvers.Query.users", "resolvers.Mutation.addUser"}
        assert all(u.kind == "resolver" for u in units.values())
        assert units["resolvers.Query.user"].returns_value
        assert units["resolvers.Mutation.addUser"].parameters == ["_", "{ input }"]

    def test_wrapped_handler(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/wrapped.js", """
            const getUser = asyncHandler(async (req, res) => {
              if (!req.user) { return res.sendStatus(401); }
              res.json(req.user);
            });
        """)

        units = js_parser.extract_file(path, root=temp_dir).units

        assert [u.name for u in units] == ["getUser"]
        assert units[0].is_async
        assert units[0].complexity == 1

    def test_duplicate_names_get_line_suffix(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("server/dupe.js", """
            function twice() {}
            function twice() {}
        """)

        ids = [u.node_id for u in js_parser.extract_file(path, root=temp_dir).units]

        assert ids == [f"{path}::twice", f"{path}::twice@2"]

    def test_module_name_for(self, temp_dir: Path):
        assert module_name_for(temp_dir / "a.js", temp_dir) == "root"
        assert module_name_for(temp_dir / "src" / "lib" / "a.js", temp_dir) == "src/lib"

    def test_reextract_is_idempotent(self, js_parser: JSParser, write_source, temp_dir: Path):
        """Test extracting an unchanged file twice gives identical units and record."""
        write_source("server/db.js", "export function query() {}\n")
        path = write_source("server/routes/items.js", """
            const db = require('../db');
            const router = require('express').Router();

            function listItems(req, res, limit = 10) {
              if (!req.query) { return res.json([]); }
              for (const row of db.query()) {
                res.write(row);
              }
            }

            router.get('/items', listItems);
            module.exports = router;
        """)

        first = js_parser.extract_file(path, root=temp_dir)
        second = js_parser.extract_file(path, root=temp_dir)

        assert [u.to_dict() for u in first.units] == [u.to_dict() for u in second.units]
        assert first.record.to_dict() == second.record.to_dict()
        assert first.units


class TestFailures:
    """Files that cannot be extracted contribute no units."""

    def test_syntax_error(self, js_parser: JSParser, sample_repo_path: Path, caplog):
        path = sample_repo_path / "server" / "broken.js"

        with caplog.at_level(logging.WARNING, logger="repolens.parser"):
            extraction = js_parser.extract_file(path, root=sample_repo_path)

        assert extraction.units == []
        assert extraction.error
        assert extraction.record.parse_failed
        assert any("broken.js" in r.getMessage() for r in caplog.records)

    def test_unsupported_extension(self, js_parser: JSParser, write_source, temp_dir: Path):
        path = write_source("notes.md", "# hi\n")

        extraction = js_parser.extract_file(path, root=temp_dir)

        assert extraction.units == []
        assert "unsupported" in extraction.error
