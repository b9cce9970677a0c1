"""Handlebars directive aggregation and output-format resolution.

Directives are read from four places, lowest precedence first:
project ``rule.handlebars``, frontmatter ``rule.handlebars``, project
``providers[id].handlebars`` and frontmatter ``[providerId].handlebars``.
Negotiation and the renderer both consume the same ordered list.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from ruleset_core.schemas.documents import RulesetDocument
from ruleset_core.schemas.project_config import HandlebarsConfig, ProjectConfig, XmlOptions

DEFAULT_FORMAT = "markdown"


@dataclass(frozen=True)
class HandlebarsDirectiveState:
    """A normalised handlebars directive.

    Attributes:
        enabled: Explicit enabled flag. None when the directive does not say.
        force: Template even when the target lacks render:handlebars.
        strict: Strict variable lookup override.
        no_escape: HTML escaping override.
        helpers: Helper module specifiers.
        partials: Inline partial templates keyed by name.
        origin: Where the directive was read from.
    """

    enabled: bool | None = None
    force: bool | None = None
    strict: bool | None = None
    no_escape: bool | None = None
    helpers: tuple[str, ...] = ()
    partials: Mapping[str, str] = field(default_factory=dict)
    origin: str = ""

    @property
    def disabled(self) -> bool:
        return self.enabled is False


def normalize_directive(value: Any, origin: str = "") -> HandlebarsDirectiveState | None:
    """Normalise a bool, mapping or HandlebarsConfig into a directive state.

    Returns None for anything that is not a directive.
    """
    if isinstance(value, bool):
        return HandlebarsDirectiveState(enabled=value, origin=origin)
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if not isinstance(value, Mapping):
        return None

    try:
        config = HandlebarsConfig.model_validate(dict(value))
    except ValidationError:
        # Malformed directives are reported by the validator; only the toggle survives.
        return HandlebarsDirectiveState(enabled=value.get("enabled") is not False, origin=origin)
    return HandlebarsDirectiveState(
        enabled=True if config.enabled is None else config.enabled,
        force=config.force,
        strict=config.strict,
        no_escape=config.no_escape,
        helpers=tuple(helper for helper in config.helpers if helper),
        partials=dict(config.partials),
        origin=origin,
    )


def _section(mapping: Any, key: str) -> Mapping[str, Any]:
    if isinstance(mapping, Mapping):
        value = mapping.get(key)
        if isinstance(value, Mapping):
            return value
    return {}


def collect_handlebars_directives(
    front_matter: Mapping[str, Any] | None,
    project_config: ProjectConfig | None,
    provider_id: str,
) -> list[HandlebarsDirectiveState]:
    """Return the directives that apply to a provider, lowest precedence first."""
    front_matter = front_matter or {}
    candidates: list[tuple[Any, str]] = []

    if project_config is not None and project_config.rule is not None:
        candidates.append((project_config.rule.handlebars, "rule.handlebars"))
    candidates.append((_section(front_matter, "rule").get("handlebars"), "frontmatter.rule.handlebars"))

    provider_config = project_config.provider(provider_id) if project_config else None
    if provider_config is not None:
        candidates.append((provider_config.handlebars, f"providers.{provider_id}.handlebars"))
    candidates.append(
        (_section(front_matter, provider_id).get("handlebars"), f"frontmatter.{provider_id}.handlebars")
    )

    directives = []
    for value, origin in candidates:
        directive = normalize_directive(value, origin)
        if directive is not None:
            directives.append(directive)
    return directives


def template_requested(document: RulesetDocument, project_config: ProjectConfig | None) -> bool:
    """Whether the source, its frontmatter or the project rule asks for templating."""
    if document.source.template:
        return True
    if _section(document.front_matter, "rule").get("template") is True:
        return True
    return bool(project_config and project_config.rule and project_config.rule.template)


def apply_document_overrides(
    document: RulesetDocument, project_config: ProjectConfig | None
) -> RulesetDocument:
    """Mark the frontmatter as templated when the source or project rule asks for it."""
    if not (document.source.template or (project_config and project_config.rule and project_config.rule.template)):
        return document

    front_matter = dict(document.front_matter)
    rule = dict(_section(front_matter, "rule"))
    if rule.get("template") is True:
        return document
    rule["template"] = True
    front_matter["rule"] = rule
    metadata = document.metadata.model_copy(update={"front_matter": front_matter})
    return document.model_copy(update={"metadata": metadata})


def resolve_output_format(
    front_matter: Mapping[str, Any] | None,
    project_config: ProjectConfig | None,
    provider_id: str,
) -> str:
    """Resolve a provider's output format. Frontmatter overrides the project config."""
    override = _section(front_matter, provider_id).get("format")
    if isinstance(override, str) and override.strip():
        return override.strip()

    provider_config = project_config.provider(provider_id) if project_config else None
    if provider_config is not None and provider_config.format:
        return provider_config.format
    return DEFAULT_FORMAT


def resolve_xml_options(
    front_matter: Mapping[str, Any] | None,
    project_config: ProjectConfig | None,
    provider_id: str,
) -> XmlOptions | None:
    """Resolve XML options. Frontmatter overrides the project config."""
    override = _section(front_matter, provider_id).get("xml")
    if isinstance(override, Mapping):
        return XmlOptions.model_validate(dict(override))

    provider_config = project_config.provider(provider_id) if project_config else None
    return provider_config.xml if provider_config is not None else None
