"""Default frontmatter parser.

Splits YAML frontmatter from the Markdown body, loads it with PyYAML and
builds the structural summary (sections, partial imports, variables) the
rest of the pipeline consumes.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
import yaml

from ruleset_core.capabilities import SDK_VERSION_TAG
from ruleset_core.schemas.diagnostics import DiagnosticLocation, RulesetDiagnostic
from ruleset_core.schemas.documents import (
    AstSection,
    DocumentMetadata,
    RulesetAst,
    RulesetDocument,
    RulesetSource,
)

logger = structlog.get_logger(__name__)

DEFAULT_FRONTMATTER_MAX_DEPTH = 10

_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_PARTIAL = re.compile(r"\{\{\s*>\s*([^\s}]+)[^}]*\}\}")
_VARIABLE = re.compile(r"(?<!\\)\{\{\{?\s*([A-Za-z_@][\w.@/-]*)\s*\}?\}\}")


@dataclass(frozen=True)
class ParserOptions:
    """Options for the default parser.

    Attributes:
        version: Version tag recorded in document metadata.
        front_matter: Set False to treat the whole file as body.
        max_frontmatter_depth: Maximum nesting depth of frontmatter values.
    """

    version: str | None = None
    front_matter: bool = True
    max_frontmatter_depth: int = DEFAULT_FRONTMATTER_MAX_DEPTH


@dataclass(frozen=True)
class ParserOutput:
    """Parsed document plus the diagnostics produced while parsing."""

    document: RulesetDocument
    diagnostics: tuple[RulesetDiagnostic, ...]


RulesetParser = Callable[[RulesetSource, ParserOptions], ParserOutput]


def find_frontmatter_bounds(lines: list[str]) -> tuple[int, int] | None:
    """Locate the opening and closing ``---`` lines.

    Returns:
        (start, end) line indexes, end is -1 when the block is unclosed,
        or None when the file has no frontmatter.
    """
    if not lines or lines[0].strip() != "---":
        return None
    for index in range(1, len(lines)):
        if lines[index].strip() == "---":
            return 0, index
    return 0, -1


def _friendly_yaml_error(exc: yaml.YAMLError) -> str:
    message = str(exc).lower()
    friendly = "Invalid YAML syntax in frontmatter. "
    if "found unexpected end of stream" in message or "while scanning a quoted scalar" in message:
        return friendly + "Make sure all strings are properly quoted and closed."
    if "mapping values are not allowed" in message or "bad indentation" in message:
        return friendly + "Check that your indentation is consistent (use spaces)."
    if "found character" in message:
        return friendly + "Check for special characters that need escaping or quotes."
    return friendly + f"Details: {exc}"


def exceeds_depth(value: Any, max_depth: int, depth: int = 0) -> bool:
    """Return True when a nested value is deeper than max_depth."""
    if depth > max_depth:
        return True
    if isinstance(value, dict):
        return any(exceeds_depth(item, max_depth, depth + 1) for item in value.values())
    if isinstance(value, list):
        return any(exceeds_depth(item, max_depth, depth + 1) for item in value)
    return False


def _error(message: str, line: int = 1) -> RulesetDiagnostic:
    return RulesetDiagnostic.error(
        message, location=DiagnosticLocation(line=line), tags=("parser", "frontmatter")
    )


def parse_frontmatter(
    contents: str, options: ParserOptions | None = None
) -> tuple[dict[str, Any], str, list[RulesetDiagnostic]]:
    """Split and load frontmatter.

    Returns:
        (frontmatter, body, diagnostics). Frontmatter is empty on error.
    """
    options = options or ParserOptions()
    lines = contents.split("\n")
    bounds = find_frontmatter_bounds(lines) if options.front_matter else None
    if bounds is None:
        return {}, contents, []

    start, end = bounds
    if end == -1:
        return {}, "", [_error("Unclosed frontmatter block - missing closing ---", start + 1)]

    body = "\n".join(lines[end + 1 :])
    raw = "\n".join(lines[start + 1 : end])
    try:
        loaded = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        return {}, body, [_error(_friendly_yaml_error(exc), start + 1)]

    if loaded is None:
        return {}, body, []
    if not isinstance(loaded, dict):
        return {}, body, [_error("Frontmatter must be a YAML mapping.", start + 1)]
    if exceeds_depth(loaded, options.max_frontmatter_depth):
        return (
            {},
            body,
            [
                _error(
                    f"Frontmatter nesting depth exceeds maximum of "
                    f"{options.max_frontmatter_depth} levels",
                    start + 1,
                )
            ],
        )
    return loaded, body, []


def build_ast(body: str) -> RulesetAst:
    """Summarise a Markdown body into sections, partial imports and variables."""
    sections: list[AstSection] = []
    title: str | None = None
    level = 0
    buffer: list[str] = []
    in_fence = False

    def flush() -> None:
        content = "\n".join(buffer).strip("\n")
        if title is not None or content.strip():
            sections.append(AstSection(title=title, level=level, content=content))

    for line in body.split("\n"):
        stripped = line.lstrip()
        if stripped.startswith("```") or stripped.startswith("~~~"):
            in_fence = not in_fence
        match = None if in_fence else _HEADING.match(line)
        if match:
            flush()
            title, level, buffer = match.group(2), len(match.group(1)), []
        else:
            buffer.append(line)
    flush()

    imports = dict.fromkeys(match.strip("'\"") for match in _PARTIAL.findall(body))
    variables = dict.fromkeys(
        name
        for name in _VARIABLE.findall(body)
        if name not in {"else", "this"} and not name.startswith("@")
    )
    return RulesetAst(
        sections=tuple(sections),
        imports=tuple(name for name in imports if name),
        variables=tuple(variables),
    )


def parse_source(source: RulesetSource, options: ParserOptions | None = None) -> ParserOutput:
    """Parse a source into a RulesetDocument.

    Args:
        source: Source to parse.
        options: Parser options.

    Returns:
        ParserOutput with the document and its parse diagnostics.

    Example:
        >>> output = parse_source(RulesetSource(id="a", contents="---\\nrule: {}\\n---\\n# A"))
        >>> output.document.front_matter
        {'rule': {}}
    """
    options = options or ParserOptions()
    front_matter, body, diagnostics = parse_frontmatter(source.contents, options)
    metadata = DocumentMetadata(
        front_matter=front_matter,
        version=options.version or SDK_VERSION_TAG,
        hash=hashlib.sha256(source.contents.encode("utf-8")).hexdigest(),
    )
    document = RulesetDocument(
        source=source,
        metadata=metadata,
        ast=build_ast(body),
        diagnostics=tuple(diagnostics),
    )
    if diagnostics:
        logger.debug("source_parse_diagnostics", source_id=source.id, count=len(diagnostics))
    return ParserOutput(document=document, diagnostics=tuple(diagnostics))
