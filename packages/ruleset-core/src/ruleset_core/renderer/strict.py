"""Strict variable lookup for Handlebars templates.

The template engine renders missing values as empty strings. Strict mode
walks the template's mustache tags before rendering and raises for any
path that does not resolve against the root context. Expressions inside
blocks that change the context (``each``, ``with`` and section blocks)
are not checked.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Mapping, Sequence
from typing import Any

ENGINE_HELPERS = frozenset({"if", "unless", "each", "with", "log", "lookup"})
_SCOPING_HELPERS = frozenset({"each", "with"})
_LITERALS = frozenset({"true", "false", "null", "undefined"})

_COMMENT = re.compile(r"\{\{!--.*?--\}\}|\{\{![^}]*\}\}", re.DOTALL)
_TAG = re.compile(r"\{\{(\{)?(.*?)\}\}(?(1)\})", re.DOTALL)
_TOKEN = re.compile(r"\"[^\"]*\"|'[^']*'|\S+")
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")


class StrictModeError(Exception):
    """Raised when a template references an undefined value."""


def _missing(path: str, segment: str) -> StrictModeError:
    return StrictModeError(f'"{segment}" not defined in "{path}"')


def resolve_path(context: Any, path: str) -> Any:
    """Resolve a dotted or slashed path against the context.

    Raises:
        StrictModeError: If a segment is missing.
    """
    current = context
    for segment in re.split(r"[./]", path):
        if not segment:
            continue
        if isinstance(current, Mapping):
            if segment not in current:
                raise _missing(path, segment)
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, str):
            if segment == "length":
                current = len(current)
            elif segment.isdigit() and int(segment) < len(current):
                current = current[int(segment)]
            else:
                raise _missing(path, segment)
        else:
            raise _missing(path, segment)
    return current


def _is_checkable(token: str) -> bool:
    if token[0] in "\"'(" or "(" in token or ")" in token:
        return False
    if token in _LITERALS or _NUMBER.match(token):
        return False
    return not (token.startswith("@") or token.startswith("..") or token in {"this", "."})


def _lookup_token(token: str) -> str | None:
    if "=" in token and not token.startswith("="):
        token = token.split("=", 1)[1]
    if not token or not _is_checkable(token):
        return None
    for prefix in ("this.", "this/", "./"):
        if token.startswith(prefix):
            return token[len(prefix) :]
    return token


def check_strict(template: str, context: Mapping[str, Any], helpers: Collection[str]) -> None:
    """Raise StrictModeError for the first unresolved root-scope lookup.

    Args:
        template: Template body.
        context: Root template context.
        helpers: Names of registered helpers.
    """
    known_helpers = set(helpers) | ENGINE_HELPERS
    scopes: list[bool] = []
    source = _COMMENT.sub("", template)

    for match in _TAG.finditer(source):
        if match.start() > 0 and source[match.start() - 1] == "\\":
            continue
        body = match.group(2).strip().strip("~").strip()
        if not body or body[0] in "!>":
            continue

        if body[0] == "/":
            if scopes:
                scopes.pop()
            continue

        block = body[0] in "#^"
        if block or body[0] == "&":
            body = body[1:].strip()
        tokens = _TOKEN.findall(body)
        if not tokens or tokens[0] == "else":
            continue

        name, params = tokens[0], tokens[1:]
        scoped = any(scopes)
        if block:
            is_helper = name in known_helpers
            scopes.append(name in _SCOPING_HELPERS or not is_helper)
            if scoped:
                continue
            lookups = params if is_helper else [name]
        elif scoped:
            continue
        elif name in known_helpers:
            lookups = params
        elif params:
            continue
        else:
            lookups = [name]

        for token in lookups:
            path = _lookup_token(token)
            if path:
                resolve_path(context, path)
