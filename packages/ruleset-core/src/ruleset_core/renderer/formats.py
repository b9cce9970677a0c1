"""Output format registry.

Maps a format id to a handler ``(artifact, options) -> Result``. The handler
returns the complete formatted artifact. ``markdown`` and ``xml`` are
built in; callers may register global formats or pass one-off handlers
through RenderOptions.formats.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ruleset_core.renderer.xml import xml_format_handler
from ruleset_core.schemas.compilation import CompileArtifact, Result
from ruleset_core.schemas.diagnostics import RulesetDiagnostic

logger = structlog.get_logger(__name__)

FORMAT_MARKDOWN = "markdown"
FORMAT_XML = "xml"

FormatHandler = Callable[[CompileArtifact, Any], Result]


@dataclass(frozen=True)
class FormatDescriptor:
    """A registered output format."""

    id: str
    handler: FormatHandler
    description: str | None = None


def markdown_format_handler(artifact: CompileArtifact, options: Any = None) -> Result:
    return Result.success(artifact)


BUILTIN_FORMATS: tuple[FormatDescriptor, ...] = (
    FormatDescriptor(FORMAT_MARKDOWN, markdown_format_handler, "Default markdown passthrough"),
    FormatDescriptor(FORMAT_XML, xml_format_handler, "XML section emitter"),
)


class FormatRegistry:
    """Mutable registry of output formats seeded with the built-ins."""

    def __init__(self, builtins: Iterable[FormatDescriptor] = BUILTIN_FORMATS) -> None:
        self._builtins = {descriptor.id: descriptor for descriptor in builtins}
        self._formats = dict(self._builtins)

    def register(self, descriptor: FormatDescriptor) -> None:
        self._formats[descriptor.id] = descriptor
        logger.debug("format_registered", format=descriptor.id)

    def unregister(self, format_id: str) -> bool:
        """Remove a format. Built-in formats are restored instead of removed.

        Returns:
            True if the format was registered.
        """
        if format_id not in self._formats:
            return False
        if format_id in self._builtins:
            self._formats[format_id] = self._builtins[format_id]
        else:
            del self._formats[format_id]
        return True

    def get(self, format_id: str) -> FormatDescriptor | None:
        return self._formats.get(format_id)

    def ids(self) -> list[str]:
        return list(self._formats)

    def reset(self) -> None:
        self._formats = dict(self._builtins)


_registry = FormatRegistry()


def register_format(descriptor: FormatDescriptor) -> None:
    _registry.register(descriptor)


def unregister_format(format_id: str) -> bool:
    return _registry.unregister(format_id)


def list_formats() -> list[str]:
    return _registry.ids()


def reset_formats() -> None:
    """Restore the registry to the built-in formats."""
    _registry.reset()


def _format_error(message: str, format_id: str, hint: str | None = None) -> RulesetDiagnostic:
    return RulesetDiagnostic.error(message, hint=hint, tags=("renderer", "format", format_id))


def resolve_format_handler(
    format_id: str, overrides: Iterable[FormatDescriptor] = ()
) -> FormatHandler | None:
    """Find a handler, preferring per-call overrides over the global registry."""
    for descriptor in overrides:
        if descriptor.id == format_id:
            return descriptor.handler
    descriptor = _registry.get(format_id)
    return descriptor.handler if descriptor else None


def apply_output_format(
    artifact: CompileArtifact,
    format_id: str,
    options: Any = None,
    overrides: Iterable[FormatDescriptor] = (),
) -> Result:
    """Run the output-format stage.

    Unknown formats and failing handlers produce a failure result carrying
    the artifact's diagnostics plus one format error; nothing is raised.
    """
    handler = resolve_format_handler(format_id, overrides)
    if handler is None:
        if format_id == FORMAT_MARKDOWN:
            return Result.success(artifact)
        return Result.failure(
            [
                *artifact.diagnostics,
                _format_error(f'Renderer format "{format_id}" is not registered.', format_id),
            ]
        )

    try:
        result = handler(artifact, options)
    except Exception as exc:
        logger.warning("format_handler_failed", format=format_id, error=str(exc))
        return Result.failure(
            [*artifact.diagnostics, _format_error(str(exc) or repr(exc), format_id)]
        )

    if not result.ok:
        failure = result.diagnostics or (
            _format_error(f'Renderer format "{format_id}" failed.', format_id),
        )
        return Result.failure([*artifact.diagnostics, *failure])
    return result
