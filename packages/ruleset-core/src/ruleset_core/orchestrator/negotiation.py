"""Capability negotiation.

Derives the capabilities a (document, target) pair requires and checks them
against what the provider declares.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ruleset_core.capabilities import (
    OUTPUT_SECTIONS,
    RENDER_HANDLEBARS,
    RENDER_HANDLEBARS_HELPERS,
    RENDER_HANDLEBARS_PARTIALS,
    RENDER_MARKDOWN,
    get_capability,
    normalize_capability_ids,
)
from ruleset_core.directives import (
    collect_handlebars_directives,
    resolve_output_format,
    template_requested,
)
from ruleset_core.schemas.compilation import CompileTarget
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetDocument
from ruleset_core.schemas.project_config import ProjectConfig


@dataclass(frozen=True)
class NegotiationResult:
    """Outcome of checking required capabilities against a provider."""

    required: tuple[str, ...]
    missing: tuple[str, ...] = ()
    diagnostic: RulesetDiagnostic | None = None

    @property
    def satisfied(self) -> bool:
        return not self.missing


def derive_required_capabilities(
    document: RulesetDocument,
    target: CompileTarget,
    project_config: ProjectConfig | None = None,
) -> tuple[str, ...]:
    """Derive the ordered, deduplicated capability set a target requires.

    Starts from the target's explicit capabilities, then adds
    ``render:handlebars`` (or ``render:markdown``), the helper and partial
    capabilities, and ``output:sections`` for XML output.

    Args:
        document: Transformed document.
        target: Target being compiled.
        project_config: Project configuration, if any.

    Returns:
        Tuple of capability ids.

    Example:
        >>> derive_required_capabilities(document, CompileTarget(provider_id="x", output_path="x.md"))
        ('render:markdown',)
    """
    required = list(target.capabilities or ())
    directives = collect_handlebars_directives(
        document.front_matter, project_config, target.provider_id
    )

    enabled: bool | None = None
    for directive in directives:
        if directive.enabled is not None:
            enabled = directive.enabled
    requires_handlebars = template_requested(document, project_config) or enabled is True

    if requires_handlebars:
        required.append(RENDER_HANDLEBARS)
    elif not any(capability.startswith("render:") for capability in required):
        required.append(RENDER_MARKDOWN)

    active = [directive for directive in directives if not directive.disabled]
    if any(directive.helpers for directive in active):
        required.append(RENDER_HANDLEBARS_HELPERS)
    if any(directive.partials for directive in active):
        required.append(RENDER_HANDLEBARS_PARTIALS)

    if resolve_output_format(document.front_matter, project_config, target.provider_id) == "xml":
        required.append(OUTPUT_SECTIONS)

    return normalize_capability_ids(required)


def build_missing_capability_diagnostic(provider_id: str, missing: Iterable[str]) -> RulesetDiagnostic:
    """Error diagnostic listing missing capabilities, with registry detail for known ids."""
    missing = tuple(missing)
    details = []
    for capability_id in missing:
        descriptor = get_capability(capability_id)
        details.append(f"{capability_id} ({descriptor.description})" if descriptor else capability_id)
    return RulesetDiagnostic.error(
        f'Provider "{provider_id}" is missing required capabilities. Missing: {", ".join(missing)}.',
        hint=f"Details: {'; '.join(details)}",
        tags=("provider", provider_id, "capability"),
    )


def negotiate_capabilities(
    provider_id: str,
    required: Iterable[str],
    declared: Iterable[str],
) -> NegotiationResult:
    """Compare required capabilities with the provider's declared set."""
    required = tuple(required)
    declared_set = set(declared)
    missing = tuple(capability for capability in required if capability not in declared_set)
    if not missing:
        return NegotiationResult(required=required)
    return NegotiationResult(
        required=required,
        missing=missing,
        diagnostic=build_missing_capability_diagnostic(provider_id, missing),
    )


def should_fail_missing_capabilities(
    provider_id: str, project_config: ProjectConfig | None
) -> tuple[bool, str | None]:
    """Resolve the hard-fail policy for a provider.

    The provider-level ``failOnMissingCapabilities`` wins over the build-level
    flag.

    Returns:
        (fail, config_path). config_path names the setting that decided.
    """
    if project_config is None:
        return False, None
    provider_config = project_config.provider(provider_id)
    if provider_config is not None and provider_config.fail_on_missing_capabilities is not None:
        return (
            provider_config.fail_on_missing_capabilities,
            f"providers.{provider_id}.failOnMissingCapabilities",
        )
    if project_config.build.fail_on_missing_capabilities is not None:
        return project_config.build.fail_on_missing_capabilities, "build.failOnMissingCapabilities"
    return False, None
