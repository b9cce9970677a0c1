"""Capability descriptor models."""

from __future__ import annotations

from pydantic import Field

from ruleset_core.schemas.base import RulesetModel


class CapabilityDescriptor(RulesetModel):
    """Versioned description of an optional compiler feature.

    Attributes:
        id: Capability id (e.g. "render:handlebars"). Custom ids are allowed.
        description: Human-readable description used in diagnostics.
        introduced_in: SDK version that introduced the capability.
        deprecated_in: SDK version that deprecated it, if any.
        experimental: Whether the capability is still experimental.
        requires: Capability ids this capability depends on.
    """

    id: str = Field(..., min_length=1)
    description: str
    introduced_in: str
    deprecated_in: str | None = None
    experimental: bool | None = None
    requires: tuple[str, ...] = ()


class ProviderCapability(CapabilityDescriptor):
    """A capability as declared by a provider handshake."""

    optional: bool | None = None
