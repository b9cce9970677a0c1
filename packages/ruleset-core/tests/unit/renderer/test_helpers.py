"""Unit tests for built-in helpers and helper module loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ruleset_core.renderer.helpers import (
    BUILTIN_HELPERS,
    if_provider_helper,
    is_path_specifier,
    json_helper,
    load_helper_modules,
    resolve_helper_path,
)
from ruleset_core.schemas import DiagnosticLevel

HELPER_MODULE = '''
helpers = {"shout": lambda this, value: str(value).upper() + "!"}


def whisper(this, value):
    return str(value).lower()


def _private(this):
    return "hidden"
'''


def _options() -> dict[str, Any]:
    return {"fn": lambda this: "matched", "inverse": lambda this: "other"}


class TestBuiltinHelpers:
    """Tests for the built-in helpers."""

    def test_registry_contents(self) -> None:
        """The built-in helper names are stable."""
        assert set(BUILTIN_HELPERS) == {"uppercase", "lowercase", "json", "if-provider"}

    def test_case_helpers_ignore_non_strings(self) -> None:
        """Case helpers pass non-strings through."""
        assert BUILTIN_HELPERS["uppercase"](None, "abc") == "ABC"
        assert BUILTIN_HELPERS["lowercase"](None, 3) == 3

    def test_json_helper(self) -> None:
        """json renders indented JSON."""
        assert json_helper(None, {"a": 1}) == '{\n  "a": 1\n}'

    def test_if_provider_matches_comma_separated_ids(self) -> None:
        """if-provider renders fn when the context provider is listed."""
        context = {"provider": {"id": "cursor"}}
        assert if_provider_helper(context, _options(), "windsurf, cursor") == "matched"
        assert if_provider_helper(context, _options(), "windsurf") == "other"

    def test_if_provider_without_inverse(self) -> None:
        """A missing inverse renders nothing."""
        assert if_provider_helper({}, {"fn": lambda this: "x"}, "cursor") == ""


class TestHelperSpecifiers:
    """Tests for specifier classification."""

    def test_path_specifiers(self) -> None:
        """Relative, absolute, home and .py specifiers are paths."""
        assert is_path_specifier("./helpers.py")
        assert is_path_specifier("/abs/helpers")
        assert is_path_specifier("helpers.py")
        assert not is_path_specifier("team.helpers")

    def test_resolve_helper_path(self, tmp_path: Path) -> None:
        """Path specifiers resolve against cwd; module names do not resolve."""
        assert resolve_helper_path("./h.py", tmp_path) == (tmp_path / "h.py").resolve()
        assert resolve_helper_path("team.helpers", tmp_path) is None


class TestLoadHelperModules:
    """Tests for load_helper_modules."""

    def test_loads_declared_and_public_functions(self, tmp_path: Path) -> None:
        """A module contributes its helpers mapping and public functions."""
        (tmp_path / "helpers.py").write_text(HELPER_MODULE, encoding="utf-8")

        result = load_helper_modules(["./helpers.py"], tmp_path)

        assert result.diagnostics == []
        assert set(result.helpers) == {"shout", "whisper"}
        assert result.helpers["shout"](None, "hey") == "HEY!"

    def test_missing_module_is_error(self, tmp_path: Path) -> None:
        """Unloadable modules become error diagnostics."""
        result = load_helper_modules(["./missing.py", "ruleset_no_such_helpers"], tmp_path)

        assert result.helpers == {}
        assert len(result.diagnostics) == 2
        assert all(diagnostic.level == DiagnosticLevel.ERROR for diagnostic in result.diagnostics)
        assert result.diagnostics[0].message.startswith('Failed to load Handlebars helper module "./missing.py"')

    def test_module_without_helpers_warns(self, tmp_path: Path) -> None:
        """A module exporting nothing produces a warning."""
        (tmp_path / "empty.py").write_text("VALUE = 1\n", encoding="utf-8")

        result = load_helper_modules(["./empty.py"], tmp_path)

        assert result.diagnostics[0].level == DiagnosticLevel.WARNING
        assert result.diagnostics[0].tags == ("renderer", "handlebars", "helpers")
