"""Unit tests for the capability registry."""

from __future__ import annotations

from ruleset_core.capabilities import (
    BUILTIN_CAPABILITIES,
    RENDER_HANDLEBARS,
    RENDER_HANDLEBARS_HELPERS,
    RENDER_MARKDOWN,
    SDK_VERSION_TAG,
    CapabilityRegistry,
    define_capability,
    get_capability,
    is_known_capability,
    normalize_capability_ids,
    provider_capability,
    resolve_known_capabilities,
)


class TestBuiltinCapabilities:
    """Tests for the built-in descriptor table."""

    def test_all_builtins_introduced_in_sdk_tag(self) -> None:
        """Every built-in capability should be introduced in the SDK version tag."""
        assert len(BUILTIN_CAPABILITIES) == 11
        assert {descriptor.introduced_in for descriptor in BUILTIN_CAPABILITIES} == {SDK_VERSION_TAG}

    def test_helpers_capability_requires_handlebars(self) -> None:
        """render:handlebars:helpers should be experimental and require render:handlebars."""
        descriptor = get_capability(RENDER_HANDLEBARS_HELPERS)
        assert descriptor is not None
        assert descriptor.experimental is True
        assert descriptor.requires == (RENDER_HANDLEBARS,)


class TestRegistryLookups:
    """Tests for get, is_known and resolve_known."""

    def test_unknown_id_is_not_known(self) -> None:
        """Unknown ids should return None and report unknown."""
        assert get_capability("output:json") is None
        assert not is_known_capability("output:json")
        assert is_known_capability(RENDER_MARKDOWN)

    def test_resolve_known_drops_unknown_ids(self) -> None:
        """resolve_known should silently drop unknown ids and keep order."""
        resolved = resolve_known_capabilities(["custom:thing", RENDER_HANDLEBARS, RENDER_MARKDOWN])
        assert [descriptor.id for descriptor in resolved] == [RENDER_HANDLEBARS, RENDER_MARKDOWN]

    def test_custom_registry(self) -> None:
        """A registry built from custom descriptors should only know those."""
        registry = CapabilityRegistry([define_capability("output:json", "Emits JSON")])
        assert registry.is_known("output:json")
        assert not registry.is_known(RENDER_MARKDOWN)
        assert [descriptor.id for descriptor in registry.descriptors()] == ["output:json"]


class TestProviderCapability:
    """Tests for provider_capability and normalize_capability_ids."""

    def test_known_id_copies_descriptor(self) -> None:
        """A known id should copy the registry description."""
        capability = provider_capability(RENDER_MARKDOWN, optional=True)
        assert capability.description == get_capability(RENDER_MARKDOWN).description  # type: ignore[union-attr]
        assert capability.optional is True

    def test_unknown_id_becomes_experimental(self) -> None:
        """An unknown id should become a custom experimental capability."""
        capability = provider_capability("vendor:magic")
        assert capability.id == "vendor:magic"
        assert capability.experimental is True

    def test_normalize_deduplicates_and_drops_blanks(self) -> None:
        """normalize_capability_ids should keep first occurrences only."""
        assert normalize_capability_ids(["a", "b", "a", "", "  ", "c"]) == ("a", "b", "c")
        assert normalize_capability_ids(None) == ()
