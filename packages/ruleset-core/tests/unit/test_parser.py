"""Unit tests for the default frontmatter parser."""

from __future__ import annotations

from ruleset_core.capabilities import SDK_VERSION_TAG
from ruleset_core.parser import (
    ParserOptions,
    build_ast,
    find_frontmatter_bounds,
    parse_frontmatter,
    parse_source,
)
from ruleset_core.schemas import RulesetSource


class TestFrontmatterBounds:
    """Tests for find_frontmatter_bounds."""

    def test_no_frontmatter(self) -> None:
        """Files not starting with --- have no bounds."""
        assert find_frontmatter_bounds(["# Title"]) is None
        assert find_frontmatter_bounds([]) is None

    def test_closed_and_unclosed(self) -> None:
        """Closed blocks report the closing line, unclosed ones report -1."""
        assert find_frontmatter_bounds(["---", "a: 1", "---", "body"]) == (0, 2)
        assert find_frontmatter_bounds(["---", "a: 1"]) == (0, -1)


class TestParseFrontmatter:
    """Tests for parse_frontmatter."""

    def test_loads_mapping_and_body(self) -> None:
        """A valid block should load as a dict and return the body."""
        front_matter, body, diagnostics = parse_frontmatter("---\nrule:\n  version: 1.0.0\n---\n# A\n")
        assert front_matter == {"rule": {"version": "1.0.0"}}
        assert body == "# A\n"
        assert diagnostics == []

    def test_unclosed_block_is_error(self) -> None:
        """An unclosed block should produce a parser error."""
        front_matter, _, diagnostics = parse_frontmatter("---\nrule: {}\n# A")
        assert front_matter == {}
        assert len(diagnostics) == 1
        assert "Unclosed frontmatter" in diagnostics[0].message
        assert diagnostics[0].tags == ("parser", "frontmatter")

    def test_invalid_yaml_is_error(self) -> None:
        """Invalid YAML should produce a friendly error."""
        _, body, diagnostics = parse_frontmatter('---\ndescription: "unterminated\n---\n# A')
        assert body == "# A"
        assert diagnostics[0].message.startswith("Invalid YAML syntax in frontmatter.")

    def test_non_mapping_is_error(self) -> None:
        """A YAML list is not valid frontmatter."""
        _, _, diagnostics = parse_frontmatter("---\n- a\n- b\n---\n# A")
        assert diagnostics[0].message == "Frontmatter must be a YAML mapping."

    def test_depth_limit(self) -> None:
        """Frontmatter deeper than the configured limit should be rejected."""
        contents = "---\na:\n  b:\n    c: 1\n---\n# A"
        _, _, diagnostics = parse_frontmatter(contents, ParserOptions(max_frontmatter_depth=1))
        assert "nesting depth exceeds maximum of 1" in diagnostics[0].message

    def test_disabled_frontmatter_keeps_contents(self) -> None:
        """With front_matter=False the whole file is body."""
        contents = "---\na: 1\n---\n# A"
        front_matter, body, _ = parse_frontmatter(contents, ParserOptions(front_matter=False))
        assert front_matter == {}
        assert body == contents


class TestBuildAst:
    """Tests for build_ast."""

    def test_sections_imports_and_variables(self) -> None:
        """Headings, partial imports and variables should be summarised."""
        body = "# Title\nintro {{project.name}}\n\n## Usage\n{{> footer}}\n{{#if this}}x{{else}}y{{/if}}\n"

        ast = build_ast(body)

        assert [(section.title, section.level) for section in ast.sections] == [
            ("Title", 1),
            ("Usage", 2),
        ]
        assert ast.imports == ("footer",)
        assert "project.name" in ast.variables
        assert "else" not in ast.variables

    def test_headings_inside_fences_are_ignored(self) -> None:
        """Lines inside fenced code blocks are not headings."""
        ast = build_ast("# A\n```\n# not a heading\n```\n")
        assert [section.title for section in ast.sections] == ["A"]


class TestParseSource:
    """Tests for parse_source."""

    def test_builds_document(self, sample_source: RulesetSource) -> None:
        """parse_source should fill metadata, ast and diagnostics."""
        output = parse_source(sample_source)

        document = output.document
        assert output.diagnostics == ()
        assert document.front_matter["description"] == "Coding standards"
        assert document.metadata.version == SDK_VERSION_TAG
        assert document.metadata.hash is not None and len(document.metadata.hash) == 64
        assert document.ast.sections[0].title == "Coding Standards"

    def test_diagnostics_attached_to_document(self) -> None:
        """Parse diagnostics should also be attached to the document."""
        output = parse_source(RulesetSource(id="broken", contents="---\nrule: {}\n"))
        assert output.document.diagnostics == output.diagnostics
        assert output.diagnostics[0].is_error
