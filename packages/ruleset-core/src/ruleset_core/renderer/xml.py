"""Markdown to XML section conversion.

Headings ``##`` through ``######`` start named sections; anything before the
first heading is the unnamed preamble. Each section becomes one child element
of the root whose content is wrapped in CDATA.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field

from ruleset_core.schemas.compilation import CompileArtifact, Result
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.project_config import XmlOptions

DEFAULT_XML_ROOT = "ruleset"
DEFAULT_SECTION_PREFIX = "section"
PREAMBLE_TAG = "preamble"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

_HEADLINE = re.compile(r"^(#{2,6})\s+(.+?)\s*$")
_TAG_START = re.compile(r"^[a-z_]")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SECTION_TAGS = ("renderer", "xml", "section-name")


@dataclass
class _ParsedSection:
    raw_name: str | None
    lines: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class XmlSection:
    tag: str
    content: str
    raw_name: str | None = None


def to_snake_case(value: str) -> str:
    """Lowercase, strip diacritics and collapse non-alphanumerics to underscores.

    Example:
        >>> to_snake_case("Café Rules!")
        'cafe_rules'
    """
    decomposed = unicodedata.normalize("NFKD", value.lower())
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _NON_ALNUM.sub("_", stripped).strip("_")


def ensure_valid_tag(candidate: str, fallback: str) -> tuple[str, bool]:
    """Return (tag, adjusted). Invalid candidates are prefixed with the fallback."""
    if not candidate:
        return fallback, True
    if not _TAG_START.match(candidate):
        return f"{fallback}_{candidate}", True
    return candidate, False


def trim_lines(lines: list[str]) -> list[str]:
    """Drop leading and trailing blank lines."""
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def wrap_in_cdata(value: str) -> str:
    """Wrap text in CDATA, splitting literal ``]]>`` into adjacent CDATA runs."""
    if not value:
        return "<![CDATA[]]>"
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _parse_sections(markdown: str) -> list[_ParsedSection]:
    lines = markdown.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    sections: list[_ParsedSection] = []
    current: _ParsedSection | None = None

    for line in lines:
        match = _HEADLINE.match(line)
        if match:
            if current is not None:
                sections.append(current)
            current = _ParsedSection(raw_name=match.group(2).strip())
            continue
        if current is None:
            current = _ParsedSection(raw_name=None)
        current.lines.append(line)

    if current is not None:
        sections.append(current)
    return sections


def _normalize_sections(
    parsed: list[_ParsedSection],
) -> tuple[list[XmlSection], list[RulesetDiagnostic]]:
    sections: list[XmlSection] = []
    diagnostics: list[RulesetDiagnostic] = []
    usage: dict[str, int] = {}

    for section in parsed:
        content = "\n".join(trim_lines(section.lines))
        if section.raw_name is None and not content:
            continue

        fallback = f"{DEFAULT_SECTION_PREFIX}_{len(sections) + 1}"
        desired = PREAMBLE_TAG if section.raw_name is None else to_snake_case(section.raw_name)
        base_tag, adjusted = ensure_valid_tag(desired, fallback)

        count = usage.get(base_tag, 0) + 1
        usage[base_tag] = count
        tag = base_tag if count == 1 else f"{base_tag}_{count}"

        if section.raw_name is not None:
            if adjusted:
                diagnostics.append(
                    RulesetDiagnostic.info(
                        f'Section heading "{section.raw_name}" normalised to <{tag}> for XML output.',
                        tags=_SECTION_TAGS,
                    )
                )
            if count > 1:
                diagnostics.append(
                    RulesetDiagnostic.warning(
                        f'Duplicate section tag detected for heading "{section.raw_name}". '
                        f"Using <{tag}>.",
                        tags=_SECTION_TAGS,
                    )
                )
        sections.append(XmlSection(tag=tag, content=content, raw_name=section.raw_name))

    if not sections:
        body = "\n".join("\n".join(section.lines) for section in parsed).strip()
        sections.append(XmlSection(tag="body", content=body))
    return sections, diagnostics


def convert_markdown_to_xml(
    markdown: str, options: XmlOptions | None = None
) -> tuple[str, list[RulesetDiagnostic]]:
    """Convert Markdown into an XML document of sections.

    Args:
        markdown: Rendered Markdown.
        options: Root tag, declaration and indentation options.

    Returns:
        (xml, diagnostics).
    """
    options = options or XmlOptions()
    sections, diagnostics = _normalize_sections(_parse_sections(markdown))

    requested_root = options.root_tag or DEFAULT_XML_ROOT
    root_tag, adjusted = ensure_valid_tag(to_snake_case(requested_root), DEFAULT_XML_ROOT)
    if adjusted or root_tag != requested_root:
        diagnostics.append(
            RulesetDiagnostic.info(
                f"XML root tag normalised to <{root_tag}>.",
                tags=("renderer", "xml", "root-tag"),
            )
        )

    indent = options.indentation
    lines = [XML_DECLARATION] if options.include_declaration else []
    lines.append(f"<{root_tag}>")
    for section in sections:
        lines.append(f"{indent}<{section.tag}>")
        if section.content:
            lines.append(f"{indent}{indent}{wrap_in_cdata(section.content)}")
        lines.append(f"{indent}</{section.tag}>")
    lines.append(f"</{root_tag}>")
    return "\n".join(lines), diagnostics


def xml_format_handler(artifact: CompileArtifact, options: object | None = None) -> Result:
    """Format handler emitting XML sections."""
    xml_options = getattr(options, "xml", None)
    xml, diagnostics = convert_markdown_to_xml(artifact.contents, xml_options)
    return Result.success(
        artifact.model_copy(
            update={"contents": xml, "diagnostics": (*artifact.diagnostics, *diagnostics)}
        )
    )
