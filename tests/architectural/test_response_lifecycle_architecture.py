"""Architectural tests for the response lifecycle service.

All tests are static/AST-based to avoid runtime side effects. They check
layering between routes, logic and models, and that the HTTP surface is
mounted and shaped as declared.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import pytest


# -----
# Helpers: File discovery and safe AST parsing
# -----

PROJECT_ROOT = Path(__file__).resolve().parents[2]
APP_DIR = PROJECT_ROOT / "survey_app"
ROUTES_DIR = APP_DIR / "routes"
LOGIC_DIR = APP_DIR / "logic"
MODELS_DIR = APP_DIR / "models"


def py_files_under(*roots: Path) -> list[Path]:
    files: list[Path] = []
    for root in roots:
        if not root.exists():
            continue
        for p in root.rglob("*.py"):
            if "__pycache__" in p.parts:
                continue
            files.append(p)
    return sorted(files)


@dataclass
class ParsedModule:
    path: Path
    tree: ast.AST


def parse_module(path: Path) -> ParsedModule:
    return ParsedModule(path=path, tree=ast.parse(path.read_text(encoding="utf-8"), filename=str(path)))


def parse_many(files: Iterable[Path]) -> list[ParsedModule]:
    return [parse_module(f) for f in files]


def imported_modules(pm: ParsedModule) -> set[str]:
    names: set[str] = set()
    for node in ast.walk(pm.tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.add(node.module)
    return names


def imported_symbols(pm: ParsedModule, module_prefix: str) -> set[str]:
    symbols: set[str] = set()
    for node in ast.walk(pm.tree):
        if isinstance(node, ast.ImportFrom) and node.module and node.module.startswith(module_prefix):
            symbols.update(alias.name for alias in node.names)
    return symbols


def _rel(pm: ParsedModule) -> str:
    return str(pm.path.relative_to(PROJECT_ROOT))


# -----
# Helpers: Route decorator inspection
# -----

HTTP_METHOD_DECORATORS = {"get", "post", "patch", "delete", "put"}


@dataclass
class RouteDef:
    method: str
    path: str
    func_name: str


def find_routes(pm: ParsedModule) -> list[RouteDef]:
    routes: list[RouteDef] = []
    for node in ast.walk(pm.tree):
        if not isinstance(node, ast.FunctionDef):
            continue
        for dec in node.decorator_list:
            if (
                isinstance(dec, ast.Call)
                and isinstance(dec.func, ast.Attribute)
                and dec.func.attr in HTTP_METHOD_DECORATORS
                and isinstance(dec.func.value, ast.Name)
                and dec.func.value.id == "router"
                and dec.args
                and isinstance(dec.args[0], ast.Constant)
            ):
                routes.append(RouteDef(dec.func.attr, dec.args[0].value, node.name))
    return routes


def include_router_prefix(pm: ParsedModule) -> Optional[str]:
    for node in ast.walk(pm.tree):
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute) and node.func.attr == "include_router":
            for kw in node.keywords:
                if kw.arg == "prefix" and isinstance(kw.value, ast.Constant):
                    return kw.value.value
    return None


# -----
# Tests
# -----


def test_logic_does_not_import_web_framework():
    offenders = [
        _rel(pm)
        for pm in parse_many(py_files_under(LOGIC_DIR))
        if any(m.split(".")[0] in {"fastapi", "starlette"} for m in imported_modules(pm))
    ]
    assert offenders == []


def test_models_do_not_import_logic():
    offenders = [
        _rel(pm)
        for pm in parse_many(py_files_under(MODELS_DIR))
        if any(m.startswith("survey_app.logic") for m in imported_modules(pm))
    ]
    assert offenders == []


def test_routes_build_no_queries():
    query_constructs = {"select", "update", "delete", "insert", "text", "func"}
    offenders = {
        _rel(pm): sorted(imported_symbols(pm, "sqlalchemy") & query_constructs)
        for pm in parse_many(py_files_under(ROUTES_DIR))
    }
    assert {k: v for k, v in offenders.items() if v} == {}


def test_routes_delegate_to_service_layer():
    pm = parse_module(ROUTES_DIR / "responses.py")
    imported = imported_modules(pm)
    assert "survey_app.logic" in imported
    assert "survey_app.logic.response_transactions" not in imported
    assert "survey_app.logic.repository_responses" not in imported


@pytest.mark.parametrize(
    "method, path",
    [
        ("post", "/surveys/{survey_id}/responses"),
        ("put", "/responses/{response_id}"),
        ("post", "/responses/{response_id}/sync"),
        ("get", "/responses/{response_id}"),
        ("get", "/responses/{response_id}/answers"),
        ("patch", "/responses/{response_id}/status"),
        ("get", "/surveys/{survey_id}/responses"),
    ],
)
def test_declared_routes_exist(method, path):
    routes = find_routes(parse_module(ROUTES_DIR / "responses.py"))
    assert (method, path) in {(r.method, r.path) for r in routes}


def test_api_router_mounted_under_versioned_prefix():
    assert include_router_prefix(parse_module(APP_DIR / "main.py")) == "/api/v1"


def test_every_logic_module_with_side_effects_has_a_module_logger():
    # Modules that write to the store or publish events must log
    required = {
        "response_state.py",
        "response_transactions.py",
        "sorted_answers.py",
        "response_service.py",
        "events.py",
        "question_tree.py",
    }
    missing = []
    for pm in parse_many(LOGIC_DIR / name for name in sorted(required)):
        assigns_logger = any(
            isinstance(node, ast.Assign)
            and any(isinstance(t, ast.Name) and t.id == "logger" for t in node.targets)
            for node in pm.tree.body
        )
        if not assigns_logger:
            missing.append(_rel(pm))
    assert missing == []
