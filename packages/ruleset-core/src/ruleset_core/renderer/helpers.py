"""Handlebars helper loading.

Built-in helpers ship with the renderer. Additional helpers come from
modules named in handlebars directives: path-like entries load from files
relative to the run's working directory, bare names import through the
regular module system. A module contributes the callables in its
``helpers`` mapping plus the public functions it defines.

Helpers follow the engine's calling convention: the current context is the
first argument; block helpers receive ``options`` second, with ``fn`` and
``inverse`` renderers.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import inspect
import json
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

import structlog

from ruleset_core.schemas.diagnostics import RulesetDiagnostic

logger = structlog.get_logger(__name__)

HelperFunction = Callable[..., Any]

_HELPER_TAGS = ("renderer", "handlebars", "helpers")


def _lookup(this: Any, key: str) -> Any:
    getter = getattr(this, "get", None)
    if callable(getter):
        return getter(key)
    return None


def uppercase_helper(this: Any, value: Any = None) -> Any:
    return value.upper() if isinstance(value, str) else value


def lowercase_helper(this: Any, value: Any = None) -> Any:
    return value.lower() if isinstance(value, str) else value


def json_helper(this: Any, value: Any = None) -> str:
    return json.dumps(value, indent=2, default=str)


def if_provider_helper(this: Any, options: Any, ids: str = "") -> Any:
    """Render the block when the context's provider id is in a comma-separated list."""
    provider_ids = [entry.strip() for entry in str(ids).split(",") if entry.strip()]
    provider = _lookup(this, "provider")
    current_id = provider.get("id") if isinstance(provider, Mapping) else None

    if current_id and current_id in provider_ids:
        return options["fn"](this)
    inverse = options.get("inverse") if isinstance(options, Mapping) else None
    return inverse(this) if inverse is not None else ""


BUILTIN_HELPERS: dict[str, HelperFunction] = {
    "uppercase": uppercase_helper,
    "lowercase": lowercase_helper,
    "json": json_helper,
    "if-provider": if_provider_helper,
}


@dataclass
class HelperLoadResult:
    """Helpers loaded from one or more modules plus load diagnostics."""

    helpers: dict[str, HelperFunction] = field(default_factory=dict)
    diagnostics: list[RulesetDiagnostic] = field(default_factory=list)


def is_path_specifier(specifier: str) -> bool:
    return specifier.startswith((".", "/", "~")) or specifier.endswith(".py")


def resolve_helper_path(specifier: str, cwd: str | Path) -> Path | None:
    """Return the absolute file path for a path-like specifier, else None."""
    if not is_path_specifier(specifier):
        return None
    return (Path(cwd) / Path(specifier).expanduser()).resolve()


def _load_module(specifier: str, cwd: str | Path) -> ModuleType:
    path = resolve_helper_path(specifier, cwd)
    if path is None:
        return importlib.import_module(specifier)

    if not path.is_file():
        raise FileNotFoundError(f"No helper module at {path}")
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    spec = importlib.util.spec_from_file_location(f"ruleset_helpers_{digest}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load helper module from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def exported_helpers(module: ModuleType) -> dict[str, HelperFunction]:
    """Collect helpers from a module's ``helpers`` mapping and public functions."""
    helpers: dict[str, HelperFunction] = {}
    declared = getattr(module, "helpers", None)
    if isinstance(declared, Mapping):
        helpers.update(
            {str(name): value for name, value in declared.items() if callable(value)}
        )

    for name, value in vars(module).items():
        if name.startswith("_") or name in helpers:
            continue
        if inspect.isfunction(value) and value.__module__ == module.__name__:
            helpers[name] = value
    return helpers


def load_helper_modules(specifiers: Iterable[str], cwd: str | Path) -> HelperLoadResult:
    """Load helper modules, converting failures into diagnostics.

    Args:
        specifiers: Module paths or importable module names.
        cwd: Directory relative paths resolve against.

    Returns:
        HelperLoadResult. A module that fails to load contributes an error
        diagnostic; a module with no helpers contributes a warning.
    """
    result = HelperLoadResult()
    for specifier in specifiers:
        try:
            module = _load_module(specifier, cwd)
        except Exception as exc:
            logger.warning("helper_module_load_failed", module=specifier, error=str(exc))
            result.diagnostics.append(
                RulesetDiagnostic.error(
                    f'Failed to load Handlebars helper module "{specifier}": {exc}',
                    tags=_HELPER_TAGS,
                )
            )
            continue

        helpers = exported_helpers(module)
        if not helpers:
            result.diagnostics.append(
                RulesetDiagnostic.warning(
                    f'Handlebars helper module "{specifier}" does not export any helpers.',
                    tags=_HELPER_TAGS,
                )
            )
            continue
        result.helpers.update(helpers)
    return result
