"""Capability registry.

Capabilities are plain string ids. The registry only supplies
human-readable detail for known ids; negotiation works on raw ids, so
provider-defined custom capabilities stay representable.
"""

from __future__ import annotations

from collections.abc import Iterable

from ruleset_core.schemas.capabilities import CapabilityDescriptor, ProviderCapability

SDK_VERSION_TAG = "0.4.0-next.0"

RENDER_MARKDOWN = "render:markdown"
RENDER_HANDLEBARS = "render:handlebars"
RENDER_HANDLEBARS_HELPERS = "render:handlebars:helpers"
RENDER_HANDLEBARS_PARTIALS = "render:handlebars:partials"
SANDBOX_BUN_SUBPROCESS = "sandbox:bun-subprocess"
SANDBOX_IN_PROCESS = "sandbox:in-process"
OUTPUT_FILESYSTEM = "output:filesystem"
OUTPUT_SECTIONS = "output:sections"
DIAGNOSTICS_STRUCTURED = "diagnostics:structured"
TELEMETRY_EVENTS = "telemetry:events"
WATCH_INCREMENTAL = "watch:incremental"


def define_capability(
    capability_id: str,
    description: str,
    *,
    introduced_in: str = SDK_VERSION_TAG,
    deprecated_in: str | None = None,
    experimental: bool | None = None,
    requires: Iterable[str] = (),
) -> CapabilityDescriptor:
    """Create a capability descriptor.

    Example:
        >>> define_capability("output:json", "Emits JSON documents").id
        'output:json'
    """
    return CapabilityDescriptor(
        id=capability_id,
        description=description,
        introduced_in=introduced_in,
        deprecated_in=deprecated_in,
        experimental=experimental,
        requires=tuple(requires),
    )


BUILTIN_CAPABILITIES: tuple[CapabilityDescriptor, ...] = (
    define_capability(RENDER_MARKDOWN, "Provider can emit Markdown artifacts."),
    define_capability(RENDER_HANDLEBARS, "Provider understands Handlebars-rendered content."),
    define_capability(
        RENDER_HANDLEBARS_HELPERS,
        "Provider accepts documents rendered with custom Handlebars helpers.",
        experimental=True,
        requires=(RENDER_HANDLEBARS,),
    ),
    define_capability(
        RENDER_HANDLEBARS_PARTIALS,
        "Provider accepts documents rendered with Handlebars partials.",
        requires=(RENDER_HANDLEBARS,),
    ),
    define_capability(SANDBOX_BUN_SUBPROCESS, "Provider runs in a subprocess sandbox."),
    define_capability(SANDBOX_IN_PROCESS, "Provider runs inside the compiler process."),
    define_capability(OUTPUT_FILESYSTEM, "Provider writes artifacts to the filesystem."),
    define_capability(OUTPUT_SECTIONS, "Provider accepts section-structured output such as XML."),
    define_capability(DIAGNOSTICS_STRUCTURED, "Provider returns structured diagnostics."),
    define_capability(TELEMETRY_EVENTS, "Provider emits telemetry events."),
    define_capability(WATCH_INCREMENTAL, "Provider supports incremental watch compilation."),
)


class CapabilityRegistry:
    """Lookup table of capability descriptors keyed by id."""

    def __init__(self, descriptors: Iterable[CapabilityDescriptor] = BUILTIN_CAPABILITIES) -> None:
        self._descriptors = {descriptor.id: descriptor for descriptor in descriptors}

    def get(self, capability_id: str) -> CapabilityDescriptor | None:
        return self._descriptors.get(capability_id)

    def is_known(self, capability_id: str) -> bool:
        return capability_id in self._descriptors

    def resolve_known(self, capability_ids: Iterable[str]) -> list[CapabilityDescriptor]:
        """Resolve ids to descriptors, silently dropping unknown ids."""
        return [
            self._descriptors[capability_id]
            for capability_id in capability_ids
            if capability_id in self._descriptors
        ]

    def descriptors(self) -> list[CapabilityDescriptor]:
        return list(self._descriptors.values())


_registry = CapabilityRegistry()


def get_capability(capability_id: str) -> CapabilityDescriptor | None:
    return _registry.get(capability_id)


def is_known_capability(capability_id: str) -> bool:
    return _registry.is_known(capability_id)


def resolve_known_capabilities(capability_ids: Iterable[str]) -> list[CapabilityDescriptor]:
    return _registry.resolve_known(capability_ids)


def provider_capability(capability_id: str, *, optional: bool | None = None) -> ProviderCapability:
    """Build a provider capability from an id.

    Known ids copy the registry descriptor. Unknown ids become custom
    experimental capabilities.
    """
    descriptor = _registry.get(capability_id)
    if descriptor is None:
        return ProviderCapability(
            id=capability_id,
            description=f"Custom capability {capability_id}",
            introduced_in=SDK_VERSION_TAG,
            experimental=True,
            optional=optional,
        )
    return ProviderCapability(**descriptor.model_dump(), optional=optional)


def normalize_capability_ids(capability_ids: Iterable[str] | None) -> tuple[str, ...]:
    """Deduplicate capability ids preserving order, dropping blanks."""
    seen: dict[str, None] = {}
    for capability_id in capability_ids or ():
        if isinstance(capability_id, str) and capability_id.strip():
            seen.setdefault(capability_id, None)
    return tuple(seen)
