"""Document transforms.

A transform maps a document to a new document. After the configured
transforms run, partial references (``{{> name}}``) found in the source are
attached as ``partial`` dependencies so the renderer and the cache can
resolve and track them.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetDependency, RulesetDocument

RulesetTransform = Callable[[RulesetDocument], RulesetDocument]

PARTIAL_SYNTAX = re.compile(r"\{\{\s*>\s*([^\s}]+)[^}]*\}\}")


@dataclass(frozen=True)
class TransformResult:
    document: RulesetDocument
    diagnostics: tuple[RulesetDiagnostic, ...] = ()


def identity_transform(document: RulesetDocument) -> RulesetDocument:
    return document


def compose_transforms(*transforms: RulesetTransform) -> RulesetTransform:
    """Compose transforms left to right."""
    if not transforms:
        return identity_transform

    def composed(document: RulesetDocument) -> RulesetDocument:
        for transform in transforms:
            document = transform(document)
        return document

    return composed


def collect_partial_dependencies(contents: str) -> list[RulesetDependency]:
    """Find ``{{> name}}`` references, deduplicated in order of appearance."""
    found: dict[str, RulesetDependency] = {}
    for match in PARTIAL_SYNTAX.finditer(contents):
        identifier = match.group(1).strip().strip("'\"")
        if identifier and identifier not in found:
            found[identifier] = RulesetDependency(kind="partial", identifier=identifier)
    return list(found.values())


def merge_dependencies(
    existing: Iterable[RulesetDependency], derived: Iterable[RulesetDependency]
) -> tuple[RulesetDependency, ...]:
    """Merge dependency lists keyed by (kind, identifier). Existing entries win."""
    merged: dict[tuple[str, str], RulesetDependency] = {}
    for dependency in (*existing, *derived):
        merged.setdefault((dependency.kind, dependency.identifier), dependency)
    return tuple(merged.values())


def run_transforms(document: RulesetDocument, *transforms: RulesetTransform) -> TransformResult:
    """Apply transforms and attach derived partial dependencies.

    Args:
        document: Validated document.
        *transforms: Transforms applied in order.

    Returns:
        TransformResult with the enriched document.
    """
    transformed = compose_transforms(*transforms)(document)
    derived = collect_partial_dependencies(transformed.source.contents)
    if derived:
        transformed = transformed.with_dependencies(
            merge_dependencies(transformed.dependencies, derived)
        )
    return TransformResult(document=transformed)
