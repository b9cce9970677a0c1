"""Unit tests for the Markdown to XML section emitter."""

from __future__ import annotations

from ruleset_core.renderer import RenderOptions
from ruleset_core.renderer.xml import (
    XML_DECLARATION,
    convert_markdown_to_xml,
    ensure_valid_tag,
    to_snake_case,
    wrap_in_cdata,
    xml_format_handler,
)
from ruleset_core.schemas import CompileArtifact, CompileTarget, DiagnosticLevel, XmlOptions


class TestTagNormalisation:
    """Tests for to_snake_case and ensure_valid_tag."""

    def test_snake_case_strips_diacritics(self) -> None:
        """Headings should normalise to ASCII snake case."""
        assert to_snake_case("Café Rules!") == "cafe_rules"
        assert to_snake_case("  Multi   Word--Title ") == "multi_word_title"

    def test_invalid_tags_get_fallback_prefix(self) -> None:
        """Tags must start with a letter or underscore."""
        assert ensure_valid_tag("2fa", "section_1") == ("section_1_2fa", True)
        assert ensure_valid_tag("", "section_1") == ("section_1", True)
        assert ensure_valid_tag("ok", "section_1") == ("ok", False)


class TestCdata:
    """Tests for wrap_in_cdata."""

    def test_empty_value(self) -> None:
        assert wrap_in_cdata("") == "<![CDATA[]]>"

    def test_splits_terminator(self) -> None:
        """A literal ]]> is split across adjacent CDATA sections."""
        assert wrap_in_cdata("a]]>b") == "<![CDATA[a]]]]><![CDATA[>b]]>"


class TestConvertMarkdownToXml:
    """Tests for convert_markdown_to_xml."""

    def test_duplicate_headings_get_suffixes(self) -> None:
        """Repeated headings produce numbered tags and a warning."""
        xml, diagnostics = convert_markdown_to_xml("## A\nfoo\n\n## A\nbar\n")

        assert "<a>" in xml
        assert "<a_2>" in xml
        assert "<![CDATA[foo]]>" in xml
        assert "<![CDATA[bar]]>" in xml
        assert len(diagnostics) == 1
        assert diagnostics[0].level == DiagnosticLevel.WARNING
        assert diagnostics[0].message == 'Duplicate section tag detected for heading "A". Using <a_2>.'

    def test_preamble_and_layout(self) -> None:
        """Content before the first heading becomes <preamble>."""
        xml, diagnostics = convert_markdown_to_xml("# Title\nIntro\n\n## Usage\nRun it\n")

        assert diagnostics == []
        assert xml == "\n".join(
            [
                XML_DECLARATION,
                "<ruleset>",
                "  <preamble>",
                "    <![CDATA[# Title\nIntro]]>",
                "  </preamble>",
                "  <usage>",
                "    <![CDATA[Run it]]>",
                "  </usage>",
                "</ruleset>",
            ]
        )

    def test_options_control_root_and_declaration(self) -> None:
        """Root tag, declaration and indentation follow XmlOptions."""
        xml, diagnostics = convert_markdown_to_xml(
            "## Rules\ntext",
            XmlOptions(root_tag="Team Rules", include_declaration=False, indentation="\t"),
        )

        assert xml.startswith("<team_rules>\n\t<rules>")
        assert xml.endswith("</team_rules>")
        assert [diagnostic.tags for diagnostic in diagnostics] == [("renderer", "xml", "root-tag")]

    def test_heading_needing_fallback_is_reported(self) -> None:
        """Headings that cannot be tags directly get an info diagnostic."""
        xml, diagnostics = convert_markdown_to_xml("## 10 Rules\ntext")

        assert "<section_1_10_rules>" in xml
        assert diagnostics[0].level == DiagnosticLevel.INFO

    def test_empty_document_has_body_section(self) -> None:
        """A document without sections still produces a body element."""
        xml, _ = convert_markdown_to_xml("")
        assert "<body>" in xml


class TestXmlFormatHandler:
    """Tests for the xml format handler."""

    def test_reads_xml_options_and_keeps_diagnostics(self) -> None:
        """The handler should use options.xml and append its diagnostics."""
        target = CompileTarget(provider_id="cursor", output_path="out.xml")
        artifact = CompileArtifact(target=target, contents="## A\nx\n## A\ny")

        result = xml_format_handler(artifact, RenderOptions(xml=XmlOptions(root_tag="rules")))

        assert result.ok
        assert result.value.contents.startswith(XML_DECLARATION + "\n<rules>")
        assert len(result.value.diagnostics) == 1
