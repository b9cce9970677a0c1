"""Handlebars engine wrapper built on pybars."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pybars import Compiler

from ruleset_core.renderer.helpers import BUILTIN_HELPERS, HelperFunction
from ruleset_core.renderer.strict import check_strict

_ESCAPED_MUSTACHE = re.compile(r"(?<![\\{])\{\{(?![{!#/>^&~]|else\b)(.*?)\}\}", re.DOTALL)


def disable_escaping(template: str) -> str:
    """Rewrite double-stash expressions as triple-stash so output is not HTML-escaped."""
    return _ESCAPED_MUSTACHE.sub(r"{{{\1}}}", template)


class HandlebarsEngine:
    """Compiles and renders one template with helpers and partials.

    Args:
        helpers: Helpers registered on top of the built-ins.
        partials: Partial templates keyed by name.
        strict: Raise for undefined root-scope lookups in the template and
            every partial.
        no_escape: Disable HTML escaping of expression output.

    Example:
        >>> engine = HandlebarsEngine(strict=False)
        >>> engine.render("Hi {{uppercase name}}", {"name": "ada"})
        'Hi ADA'
    """

    def __init__(
        self,
        helpers: Mapping[str, HelperFunction] | None = None,
        partials: Mapping[str, str] | None = None,
        *,
        strict: bool = True,
        no_escape: bool = False,
    ) -> None:
        self.helpers: dict[str, HelperFunction] = {**BUILTIN_HELPERS, **(helpers or {})}
        self.partials = dict(partials or {})
        self.strict = strict
        self.no_escape = no_escape

    def _prepare(self, template: str) -> str:
        return disable_escaping(template) if self.no_escape else template

    def render(self, template: str, context: Mapping[str, Any]) -> str:
        """Render a template.

        Raises:
            StrictModeError: In strict mode, for undefined lookups.
            Exception: Any compile or render error raised by the engine.
        """
        source = self._prepare(template)
        partial_sources = {name: self._prepare(partial) for name, partial in self.partials.items()}
        if self.strict:
            check_strict(source, context, self.helpers)
            for partial_source in partial_sources.values():
                check_strict(partial_source, context, self.helpers)

        compiler = Compiler()
        partials = {name: compiler.compile(partial) for name, partial in partial_sources.items()}
        compiled = compiler.compile(source)
        return str(compiled(dict(context), helpers=self.helpers, partials=partials))
