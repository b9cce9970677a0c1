"""Unit tests for capability negotiation."""

from __future__ import annotations

from ruleset_core.capabilities import (
    OUTPUT_SECTIONS,
    RENDER_HANDLEBARS,
    RENDER_HANDLEBARS_HELPERS,
    RENDER_HANDLEBARS_PARTIALS,
    RENDER_MARKDOWN,
)
from ruleset_core.orchestrator import (
    build_missing_capability_diagnostic,
    derive_required_capabilities,
    negotiate_capabilities,
    should_fail_missing_capabilities,
)
from ruleset_core.parser import parse_source
from ruleset_core.schemas import CompileTarget, ProjectConfig, RulesetDocument, RulesetSource

TARGET = CompileTarget(provider_id="cursor", output_path="out.md")


def _document(front_matter: str = "", template: bool | None = None) -> RulesetDocument:
    contents = f"---\n{front_matter}\n---\n# Rules\n" if front_matter else "# Rules\n"
    return parse_source(RulesetSource(id="doc", contents=contents, template=template)).document


class TestDeriveRequiredCapabilities:
    """Tests for derive_required_capabilities."""

    def test_plain_document_requires_markdown(self) -> None:
        assert derive_required_capabilities(_document(), TARGET) == (RENDER_MARKDOWN,)

    def test_explicit_render_capability_suppresses_markdown(self) -> None:
        """An explicit render:* capability on the target replaces the markdown default."""
        target = TARGET.model_copy(update={"capabilities": ("render:custom", "output:filesystem")})
        assert derive_required_capabilities(_document(), target) == ("render:custom", "output:filesystem")

    def test_template_request_requires_handlebars(self) -> None:
        """Sources or frontmatter that request templating need render:handlebars."""
        assert derive_required_capabilities(_document(template=True), TARGET) == (RENDER_HANDLEBARS,)
        assert derive_required_capabilities(_document("rule:\n  template: true"), TARGET) == (
            RENDER_HANDLEBARS,
        )

    def test_last_directive_decides_enabled(self) -> None:
        """The highest-precedence directive with an explicit enabled value wins."""
        document = _document("rule:\n  handlebars: true\ncursor:\n  handlebars: false")
        assert derive_required_capabilities(document, TARGET) == (RENDER_MARKDOWN,)

        config = ProjectConfig.model_validate({"rule": {"handlebars": False}})
        enabled = _document("cursor:\n  handlebars: true")
        assert derive_required_capabilities(enabled, TARGET, config) == (RENDER_HANDLEBARS,)

    def test_helpers_partials_and_sections(self) -> None:
        """Helper modules, inline partials and xml output add capabilities."""
        document = _document(
            "cursor:\n  format: xml\n  handlebars:\n    helpers: ./h.py\n    partials:\n      a: A"
        )

        assert derive_required_capabilities(document, TARGET) == (
            RENDER_HANDLEBARS,
            RENDER_HANDLEBARS_HELPERS,
            RENDER_HANDLEBARS_PARTIALS,
            OUTPUT_SECTIONS,
        )

    def test_disabled_directive_contributes_nothing(self) -> None:
        """Helpers on a disabled directive are ignored."""
        document = _document("cursor:\n  handlebars:\n    enabled: false\n    helpers: ./h.py")
        assert derive_required_capabilities(document, TARGET) == (RENDER_MARKDOWN,)

    def test_project_format_adds_sections(self) -> None:
        config = ProjectConfig.model_validate({"providers": {"cursor": {"format": "xml"}}})
        assert OUTPUT_SECTIONS in derive_required_capabilities(_document(), TARGET, config)


class TestNegotiateCapabilities:
    """Tests for negotiate_capabilities and the missing-capability diagnostic."""

    def test_satisfied(self) -> None:
        result = negotiate_capabilities("cursor", [RENDER_MARKDOWN], [RENDER_MARKDOWN, RENDER_HANDLEBARS])
        assert result.satisfied
        assert result.diagnostic is None

    def test_missing_lists_ids_in_required_order(self) -> None:
        """Missing ids keep the required order and get one diagnostic."""
        result = negotiate_capabilities(
            "cursor", [RENDER_HANDLEBARS, "vendor:magic", RENDER_MARKDOWN], [RENDER_MARKDOWN]
        )

        assert not result.satisfied
        assert result.missing == (RENDER_HANDLEBARS, "vendor:magic")
        assert result.diagnostic is not None
        assert result.diagnostic.message == (
            'Provider "cursor" is missing required capabilities. '
            "Missing: render:handlebars, vendor:magic."
        )
        assert result.diagnostic.tags == ("provider", "cursor", "capability")

    def test_diagnostic_hint_describes_known_ids(self) -> None:
        """Known ids are described, unknown ids are listed bare."""
        diagnostic = build_missing_capability_diagnostic("cursor", [RENDER_HANDLEBARS, "vendor:magic"])
        assert diagnostic.hint is not None
        assert diagnostic.hint.startswith("Details: render:handlebars (")
        assert diagnostic.hint.endswith("; vendor:magic")


class TestHardFailPolicy:
    """Tests for should_fail_missing_capabilities."""

    def test_defaults_to_skip(self) -> None:
        assert should_fail_missing_capabilities("cursor", None) == (False, None)
        assert should_fail_missing_capabilities("cursor", ProjectConfig()) == (False, None)

    def test_provider_setting_wins(self) -> None:
        """Provider-level policy beats the build-level flag."""
        config = ProjectConfig.model_validate(
            {
                "build": {"failOnMissingCapabilities": True},
                "providers": {"cursor": {"failOnMissingCapabilities": False}},
            }
        )

        assert should_fail_missing_capabilities("cursor", config) == (
            False,
            "providers.cursor.failOnMissingCapabilities",
        )
        assert should_fail_missing_capabilities("windsurf", config) == (
            True,
            "build.failOnMissingCapabilities",
        )
