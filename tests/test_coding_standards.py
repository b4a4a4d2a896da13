"""
Tests that enforce coding standards.

These tests verify that the codebase follows our conventions:
- 'import X as _x' / 'import X as x' instead of 'from X import Y'
  (re-exports in __init__.py, __future__ and TYPE_CHECKING imports excepted)
- no bare 'except:' clauses
- module loggers are named after their module
- `import svalinn.x.y as z` binds a module (no re-export shadows it)
"""

import ast as _ast
import functools as _functools
import importlib as _importlib
import pathlib as _pathlib
import types as _types

import pytest as _pytest

# Directories to check
SRC_DIR = _pathlib.Path(__file__).parent.parent / "src" / "svalinn"
TESTS_DIR = _pathlib.Path(__file__).parent.parent / "tests"


def _get_python_files(directory: _pathlib.Path) -> list[_pathlib.Path]:
    """Get all Python files in a directory, recursively."""
    return sorted(directory.rglob("*.py"))


def _is_type_checking_guard(node: _ast.AST) -> bool:
    if not isinstance(node, _ast.If):
        return False
    test = node.test
    if isinstance(test, _ast.Name):
        return test.id == "TYPE_CHECKING"
    return isinstance(test, _ast.Attribute) and test.attr == "TYPE_CHECKING"


def _extract_from_imports(content: str) -> list[tuple[int, str]]:
    """
    Find 'from X import Y' statements.

    Returns (line_number, module) tuples, skipping __future__ imports and
    anything under an ``if TYPE_CHECKING:`` guard.
    """
    found: list[tuple[int, str]] = []

    def visit(node: _ast.AST) -> None:
        if _is_type_checking_guard(node):
            return
        if isinstance(node, _ast.ImportFrom) and node.module != "__future__":
            found.append((node.lineno, node.module or "."))
        for child in _ast.iter_child_nodes(node):
            visit(child)

    visit(_ast.parse(content))
    return found


def _extract_bare_excepts(content: str) -> list[int]:
    return [
        node.lineno
        for node in _ast.walk(_ast.parse(content))
        if isinstance(node, _ast.ExceptHandler) and node.type is None
    ]


def _extract_logger_names(content: str) -> list[tuple[int, str]]:
    """Return (line, source) for every ``getLogger(...)`` call argument."""
    calls: list[tuple[int, str]] = []
    for node in _ast.walk(_ast.parse(content)):
        if (
            isinstance(node, _ast.Call)
            and isinstance(node.func, _ast.Attribute)
            and node.func.attr == "getLogger"
        ):
            arg = _ast.unparse(node.args[0]) if node.args else ""
            calls.append((node.lineno, arg))
    return calls


def _collect(paths: list[_pathlib.Path], check) -> list[str]:  # type: ignore[no-untyped-def]
    violations: list[str] = []
    for path in paths:
        for line, detail in check(path.read_text(encoding="utf-8")):
            violations.append(f"{path}:{line}: {detail}")
    return violations


class TestImportStyle:
    """Tests for import style compliance."""

    def test_src_no_from_imports(self) -> None:
        """Source files should not use 'from X import Y' pattern."""
        paths = [p for p in _get_python_files(SRC_DIR) if p.name != "__init__.py"]
        violations = _collect(paths, _extract_from_imports)

        if violations:
            _pytest.fail(
                "Found forbidden 'from X import Y' imports:\n"
                + "\n".join(f"  {v}" for v in violations)
                + "\n\nUse 'import X as _x' (external) or 'import X as x' (internal) instead."
            )

    def test_tests_no_from_imports(self) -> None:
        """Test files should not use 'from X import Y' pattern."""
        paths = [p for p in _get_python_files(TESTS_DIR) if p.name != "__init__.py"]
        violations = _collect(paths, _extract_from_imports)

        if violations:
            _pytest.fail(
                "Found forbidden 'from X import Y' imports:\n"
                + "\n".join(f"  {v}" for v in violations)
            )


class TestErrorHandlingStyle:
    """Tests for exception handling conventions."""

    def test_src_no_bare_except(self) -> None:
        """Source files should name the exceptions they handle."""
        violations = _collect(
            _get_python_files(SRC_DIR),
            lambda content: [(line, "bare except") for line in _extract_bare_excepts(content)],
        )

        if violations:
            _pytest.fail("Found bare 'except:' clauses:\n" + "\n".join(violations))

    def test_src_loggers_named_after_module(self) -> None:
        """Module loggers should use getLogger(__name__)."""
        violations = _collect(
            _get_python_files(SRC_DIR),
            lambda content: [
                (line, f"getLogger({arg})")
                for line, arg in _extract_logger_names(content)
                if arg not in ("__name__", "")
            ],
        )

        if violations:
            _pytest.fail("Found loggers not named after their module:\n" + "\n".join(violations))


def _extract_module_aliases(content: str) -> list[tuple[int, str]]:
    """Return (line, module) for every ``import svalinn.x.y as z`` statement."""
    return [
        (node.lineno, alias.name)
        for node in _ast.walk(_ast.parse(content))
        if isinstance(node, _ast.Import)
        for alias in node.names
        if alias.asname and alias.name.startswith("svalinn.")
    ]


def _resolve_like_import_as(dotted: str) -> object:
    """Resolve a dotted name the way ``import a.b.c as x`` binds ``x``."""
    _importlib.import_module(dotted)
    parts = dotted.split(".")
    return _functools.reduce(getattr, parts[1:], _importlib.import_module(parts[0]))


class TestModuleAliases:
    """``import svalinn.x.y as z`` must bind a module, not a re-exported name."""

    def test_aliases_bind_modules(self) -> None:
        violations = []
        paths = _get_python_files(SRC_DIR) + _get_python_files(TESTS_DIR)
        for path in paths:
            for line, dotted in _extract_module_aliases(path.read_text(encoding="utf-8")):
                bound = _resolve_like_import_as(dotted)
                if not isinstance(bound, _types.ModuleType):
                    violations.append(f"{path}:{line}: {dotted} is {type(bound).__name__}")

        if violations:
            _pytest.fail(
                "Package attributes shadow submodules:\n" + "\n".join(violations)
            )

    def test_core_executor_is_a_module(self) -> None:
        import svalinn.core.executor as executor

        assert isinstance(executor, _types.ModuleType)
        assert callable(executor.merge)


class TestImportExtraction:
    """Tests for the checkers themselves."""

    def test_detects_from_import(self) -> None:
        """Should detect basic from imports."""
        imports = _extract_from_imports("from pathlib import Path\n")
        assert imports == [(1, "pathlib")]

    def test_allows_future_imports(self) -> None:
        """Should allow __future__ imports."""
        assert _extract_from_imports("from __future__ import annotations\n") == []

    def test_ignores_type_checking_block(self) -> None:
        """Should ignore imports inside TYPE_CHECKING blocks."""
        content = """
import typing as _typing

if _typing.TYPE_CHECKING:
    from some_module import SomeType

def foo():
    pass
"""
        assert _extract_from_imports(content) == []

    def test_detects_import_after_type_checking(self) -> None:
        """Should still detect imports after TYPE_CHECKING block ends."""
        content = """
import typing as _typing

if _typing.TYPE_CHECKING:
    from allowed import Type

from forbidden import Other
"""
        assert _extract_from_imports(content) == [(7, "forbidden")]

    def test_detects_nested_from_import(self) -> None:
        """Function-local from imports are caught too."""
        content = """
def foo():
    from os import path
    return path
"""
        assert _extract_from_imports(content) == [(3, "os")]

    def test_detects_bare_except(self) -> None:
        content = """
try:
    pass
except:
    pass
"""
        assert _extract_bare_excepts(content) == [4]

    def test_named_except_is_fine(self) -> None:
        content = """
try:
    pass
except ValueError:
    pass
"""
        assert _extract_bare_excepts(content) == []
