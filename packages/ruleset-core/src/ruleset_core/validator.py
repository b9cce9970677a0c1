"""Default document validator.

Checks frontmatter presence and shape, rule metadata, body structure,
legacy section markers and stray Handlebars braces. Validation never
raises for bad input; every finding is a diagnostic.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ruleset_core.parser import find_frontmatter_bounds
from ruleset_core.schemas.diagnostics import DiagnosticLocation, RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetDocument
from ruleset_core.schemas.project_config import RuleConfig

_CLOSING_SECTION = re.compile(r"\{\{\s*/\s*([a-zA-Z0-9_-]+)\b")
_OPENING_TAG = re.compile(r"\{\{\s*([a-zA-Z0-9_-]+)")
_SEMVER = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")
_BLOCK_HELPERS = {"if", "unless", "each", "with", "if-provider"}

MISSING_FRONTMATTER = (
    "Missing YAML frontmatter. Add a `rule` block with at least a semver `version`."
)


@dataclass(frozen=True)
class ValidationOptions:
    """Options for the default validator.

    Attributes:
        strict: Report missing metadata as errors instead of warnings.
    """

    strict: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Validated document plus the diagnostics produced."""

    document: RulesetDocument
    diagnostics: tuple[RulesetDiagnostic, ...]


RulesetValidator = Callable[[RulesetDocument, ValidationOptions], ValidationResult]


def _diagnostic(level: str, message: str, line: int = 1, column: int = 1) -> RulesetDiagnostic:
    factory = RulesetDiagnostic.error if level == "error" else RulesetDiagnostic.warning
    return factory(
        message,
        location=DiagnosticLocation(line=line, column=column),
        tags=("validator",),
    )


def _body_lines(contents: str) -> tuple[list[str], int]:
    lines = contents.split("\n")
    bounds = find_frontmatter_bounds(lines)
    if bounds is None:
        return lines, 1
    if bounds[1] == -1:
        return [], len(lines) + 1
    return lines[bounds[1] + 1 :], bounds[1] + 2


def _format_location(location: Sequence[Any]) -> str:
    if not location:
        return "frontmatter"
    parts = []
    for index, segment in enumerate(location):
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        else:
            parts.append(segment if index == 0 else f".{segment}")
    return "".join(parts)


def _validate_rule(rule: Any, options: ValidationOptions) -> list[RulesetDiagnostic]:
    severity = "error" if options.strict else "warning"
    if rule is None:
        return [
            _diagnostic(
                severity,
                'Missing required rule metadata block. Add `rule: { version: "0.4.0" }`.',
            )
        ]
    if not isinstance(rule, dict):
        return [_diagnostic("error", "Frontmatter schema violation at rule: expected a mapping")]

    diagnostics = []
    try:
        RuleConfig.model_validate(rule)
    except ValidationError as exc:
        for issue in exc.errors():
            path = _format_location(("rule", *issue["loc"]))
            diagnostics.append(
                _diagnostic("error", f"Frontmatter schema violation at {path}: {issue['msg']}")
            )

    version = rule.get("version")
    if not version:
        diagnostics.append(
            _diagnostic(
                severity,
                "Missing required `rule.version`. Provide a semver-compatible version string.",
            )
        )
    elif not _SEMVER.match(str(version)):
        diagnostics.append(
            _diagnostic(
                "error",
                f'Invalid semantic version in rule.version: "{version}". '
                "Use a valid semver identifier (e.g., 0.4.0).",
            )
        )
    return diagnostics


def _find_handlebars_expression(lines: list[str], offset: int) -> tuple[int, int] | None:
    in_fence = False
    for index, line in enumerate(lines):
        stripped = line.lstrip()
        if stripped.startswith("```") or stripped.startswith("~~~"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        position = line.find("{{")
        while position != -1:
            if position > 0 and line[position - 1] == "\\":
                position = line.find("{{", position + 2)
                continue
            return offset + index, position + 1
    return None


def _detect_legacy_markers(lines: list[str], offset: int) -> list[RulesetDiagnostic]:
    closings = {
        name
        for line in lines
        for name in _CLOSING_SECTION.findall(line)
        if name not in _BLOCK_HELPERS
    }
    if not closings:
        return []

    diagnostics = []
    for index, line in enumerate(lines):
        for match in re.finditer(r"\{\{", line):
            tag = _OPENING_TAG.match(line, match.start())
            if tag and tag.group(1) in closings:
                diagnostics.append(
                    _diagnostic(
                        "error",
                        f"Legacy section markers ({{{{{tag.group(1)}}}}}) are no longer supported. "
                        "Replace with Markdown headings or partials.",
                        offset + index,
                        match.start() + 1,
                    )
                )
    return diagnostics


def _validate_body(contents: str) -> list[RulesetDiagnostic]:
    lines, offset = _body_lines(contents)
    for index, line in enumerate(lines):
        if line.strip():
            diagnostics = []
            if not line.strip().startswith("# "):
                diagnostics.append(
                    _diagnostic(
                        "warning",
                        "The first content line should be an H1 heading (e.g., `# Project Rules`).",
                        offset + index,
                    )
                )
            return diagnostics + _detect_legacy_markers(lines, offset)
    return [
        _diagnostic(
            "error",
            "No Markdown content found after frontmatter. Add an H1 heading and body content.",
            offset,
        )
    ]


def _validate_handlebars_usage(
    document: RulesetDocument, front_matter: dict[str, Any]
) -> list[RulesetDiagnostic]:
    rule = front_matter.get("rule")
    if document.source.template or (isinstance(rule, dict) and rule.get("template") is True):
        return []

    lines, offset = _body_lines(document.source.contents)
    location = _find_handlebars_expression(lines, offset)
    if location is None:
        return []
    return [
        _diagnostic(
            "warning",
            "Handlebars-style braces detected but `rule.template` is not enabled. "
            "Set `rule.template: true` or escape the braces (e.g., `\\{{`).",
            *location,
        )
    ]


def validate_document(
    document: RulesetDocument, options: ValidationOptions | None = None
) -> ValidationResult:
    """Validate a parsed document.

    Args:
        document: Document produced by the parser.
        options: Validation options.

    Returns:
        ValidationResult. The document is returned unchanged; callers append
        the diagnostics.
    """
    options = options or ValidationOptions()
    front_matter = document.front_matter
    diagnostics: list[RulesetDiagnostic] = []

    if not front_matter:
        diagnostics.append(_diagnostic("error" if options.strict else "warning", MISSING_FRONTMATTER))
    else:
        diagnostics.extend(_validate_rule(front_matter.get("rule"), options))
        if "description" not in front_matter and not (
            isinstance(front_matter.get("rule"), dict) and "description" in front_matter["rule"]
        ):
            diagnostics.append(
                _diagnostic(
                    "warning",
                    "Consider adding a `description` field for downstream tooling readability.",
                )
            )

    diagnostics.extend(_validate_body(document.source.contents))
    diagnostics.extend(_validate_handlebars_usage(document, front_matter))
    return ValidationResult(document=document, diagnostics=tuple(diagnostics))


def run_validators(
    document: RulesetDocument,
    validators: Sequence[RulesetValidator],
    options: ValidationOptions | None = None,
) -> ValidationResult:
    """Run validators in order, threading the document through each."""
    options = options or ValidationOptions()
    diagnostics: list[RulesetDiagnostic] = []
    for validator in validators:
        result = validator(document, options)
        document = result.document
        diagnostics.extend(result.diagnostics)
    return ValidationResult(document=document, diagnostics=tuple(diagnostics))
