"""Source and document models.

A RulesetSource is caller-supplied and read-only. A RulesetDocument is
produced by the parser and replaced (never edited) by later stages.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import Field

from ruleset_core.schemas.base import RulesetModel
from ruleset_core.schemas.diagnostics import RulesetDiagnostic

SourceFormat = Literal["rule", "ruleset"]
DependencyKind = Literal["partial", "import", "template", "asset"]


class RulesetSource(RulesetModel):
    """One input Markdown document with optional YAML frontmatter.

    Attributes:
        id: Stable identifier for the source.
        path: Filesystem path, when the source was read from disk.
        contents: Raw file contents including frontmatter.
        format: Whether the document is a single rule or a ruleset.
        template: Force Handlebars templating for this source.
    """

    id: str = Field(..., min_length=1)
    path: str | None = None
    contents: str
    format: SourceFormat = "rule"
    template: bool | None = None


class RulesetDependency(RulesetModel):
    """An external file a document's rendering depends on."""

    kind: DependencyKind
    identifier: str
    resolved_path: str | None = None


class AstSection(RulesetModel):
    """A heading-delimited body section."""

    title: str | None = None
    level: int = Field(default=0, ge=0, le=6)
    content: str = ""


class RulesetAst(RulesetModel):
    """Structural summary of a document body."""

    sections: tuple[AstSection, ...] = ()
    imports: tuple[str, ...] = ()
    variables: tuple[str, ...] = ()
    markers: tuple[str, ...] = ()


class DocumentMetadata(RulesetModel):
    """Parsed frontmatter and derived metadata."""

    front_matter: dict[str, Any] = Field(default_factory=dict)
    version: str | None = None
    hash: str | None = None


class RulesetDocument(RulesetModel):
    """A parsed source document.

    Attributes:
        source: The source the document was parsed from.
        metadata: Frontmatter and derived metadata.
        ast: Structural summary of the body.
        diagnostics: Diagnostics accumulated by parse, validate and transform.
        dependencies: External files the document depends on.
    """

    source: RulesetSource
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    ast: RulesetAst = Field(default_factory=RulesetAst)
    diagnostics: tuple[RulesetDiagnostic, ...] = ()
    dependencies: tuple[RulesetDependency, ...] = ()

    @property
    def front_matter(self) -> dict[str, Any]:
        return self.metadata.front_matter

    def with_diagnostics(self, diagnostics: Iterable[RulesetDiagnostic]) -> RulesetDocument:
        """Return a copy with additional diagnostics appended."""
        extra = tuple(diagnostics)
        if not extra:
            return self
        return self.model_copy(update={"diagnostics": (*self.diagnostics, *extra)})

    def with_dependencies(self, dependencies: Iterable[RulesetDependency]) -> RulesetDocument:
        """Return a copy whose dependency list is replaced."""
        return self.model_copy(update={"dependencies": tuple(dependencies)})
