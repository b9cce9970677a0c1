"""Unit tests for document transforms and partial dependency discovery."""

from __future__ import annotations

from ruleset_core.schemas import RulesetDependency, RulesetDocument, RulesetSource
from ruleset_core.transform import (
    collect_partial_dependencies,
    compose_transforms,
    merge_dependencies,
    run_transforms,
)


def _document(contents: str) -> RulesetDocument:
    return RulesetDocument(source=RulesetSource(id="doc", contents=contents))


class TestCollectPartialDependencies:
    """Tests for collect_partial_dependencies."""

    def test_deduplicates_in_order(self) -> None:
        """Repeated partial references are reported once, in order."""
        dependencies = collect_partial_dependencies("{{> header}}\n{{>footer ctx}}\n{{> header}}\n{{> 'quoted'}}")
        assert [dependency.identifier for dependency in dependencies] == ["header", "footer", "quoted"]
        assert {dependency.kind for dependency in dependencies} == {"partial"}

    def test_no_partials(self) -> None:
        """Plain content has no partial dependencies."""
        assert collect_partial_dependencies("# Title {{name}}") == []


class TestRunTransforms:
    """Tests for run_transforms."""

    def test_applies_transforms_in_order(self) -> None:
        """Transforms run left to right before dependency discovery."""

        def append_footer(document: RulesetDocument) -> RulesetDocument:
            source = document.source.model_copy(update={"contents": document.source.contents + "\n{{> footer}}"})
            return document.model_copy(update={"source": source})

        result = run_transforms(_document("# Title"), append_footer)

        assert result.document.source.contents.endswith("{{> footer}}")
        assert [dependency.identifier for dependency in result.document.dependencies] == ["footer"]

    def test_existing_dependencies_win(self) -> None:
        """A pre-resolved dependency is not replaced by the derived one."""
        resolved = RulesetDependency(kind="partial", identifier="header", resolved_path="/p/header.md")
        document = _document("{{> header}}").with_dependencies([resolved])

        result = run_transforms(document)

        assert result.document.dependencies == (resolved,)

    def test_document_without_partials_is_unchanged(self) -> None:
        """Without transforms or partials the same document is returned."""
        document = _document("# Title")
        assert run_transforms(document).document is document


class TestComposition:
    """Tests for compose_transforms and merge_dependencies."""

    def test_compose_without_transforms_is_identity(self) -> None:
        """An empty composition returns its input."""
        document = _document("# Title")
        assert compose_transforms()(document) is document

    def test_merge_keys_by_kind_and_identifier(self) -> None:
        """Entries with the same kind and identifier collapse to the first."""
        first = RulesetDependency(kind="partial", identifier="a")
        duplicate = RulesetDependency(kind="partial", identifier="a", resolved_path="/x")
        other = RulesetDependency(kind="partial", identifier="b")
        assert merge_dependencies([first], [duplicate, other]) == (first, other)
