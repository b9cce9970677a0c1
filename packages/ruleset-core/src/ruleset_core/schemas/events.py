"""Compilation event models.

Events form a tagged union on ``kind``. ``pipeline:start`` is always the
first event of a run and ``pipeline:end`` the last; events for a source
and its targets are strictly ordered.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import Field

from ruleset_core.schemas.base import RulesetModel
from ruleset_core.schemas.compilation import (
    CompilationInput,
    CompilationOutput,
    CompileArtifact,
    CompileTarget,
)
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetDocument, RulesetSource


class SkipReason(str, Enum):
    """Why a target produced no artifacts."""

    MISSING_CAPABILITY = "missing-capability"
    RENDER_ERROR = "render-error"
    PROVIDER_ERROR = "provider-error"
    INCOMPATIBLE_PROVIDER = "incompatible-provider"


def _now() -> datetime:
    return datetime.now(UTC)


class _Event(RulesetModel):
    timestamp: datetime = Field(default_factory=_now)


class PipelineStartEvent(_Event):
    kind: Literal["pipeline:start"] = "pipeline:start"
    input: CompilationInput


class SourceStartEvent(_Event):
    kind: Literal["source:start"] = "source:start"
    source: RulesetSource


class SourceParsedEvent(_Event):
    kind: Literal["source:parsed"] = "source:parsed"
    source: RulesetSource
    document: RulesetDocument


class SourceValidatedEvent(_Event):
    kind: Literal["source:validated"] = "source:validated"
    source: RulesetSource
    document: RulesetDocument
    diagnostics: tuple[RulesetDiagnostic, ...] = ()


class SourceTransformedEvent(_Event):
    kind: Literal["source:transformed"] = "source:transformed"
    source: RulesetSource
    document: RulesetDocument


class TargetStartEvent(_Event):
    kind: Literal["target:start"] = "target:start"
    source: RulesetSource
    target: CompileTarget


class TargetCapabilitiesEvent(_Event):
    kind: Literal["target:capabilities"] = "target:capabilities"
    source: RulesetSource
    target: CompileTarget
    required: tuple[str, ...] = ()


class TargetCachedEvent(_Event):
    kind: Literal["target:cached"] = "target:cached"
    source: RulesetSource
    target: CompileTarget
    artifacts: tuple[CompileArtifact, ...] = ()


class TargetRenderedEvent(_Event):
    kind: Literal["target:rendered"] = "target:rendered"
    source: RulesetSource
    target: CompileTarget
    ok: bool
    artifact: CompileArtifact | None = None
    diagnostics: tuple[RulesetDiagnostic, ...] = ()


class TargetCompiledEvent(_Event):
    kind: Literal["target:compiled"] = "target:compiled"
    source: RulesetSource
    target: CompileTarget
    ok: bool
    artifacts: tuple[CompileArtifact, ...] = ()
    diagnostics: tuple[RulesetDiagnostic, ...] = ()


class TargetSkippedEvent(_Event):
    kind: Literal["target:skipped"] = "target:skipped"
    source: RulesetSource
    target: CompileTarget
    reason: SkipReason
    diagnostics: tuple[RulesetDiagnostic, ...] = ()
    missing_capabilities: tuple[str, ...] = ()


class ArtifactEmittedEvent(_Event):
    kind: Literal["artifact:emitted"] = "artifact:emitted"
    source: RulesetSource
    target: CompileTarget
    artifact: CompileArtifact


class PipelineEndEvent(_Event):
    kind: Literal["pipeline:end"] = "pipeline:end"
    output: CompilationOutput


CompilationEvent = Annotated[
    PipelineStartEvent
    | SourceStartEvent
    | SourceParsedEvent
    | SourceValidatedEvent
    | SourceTransformedEvent
    | TargetStartEvent
    | TargetCapabilitiesEvent
    | TargetCachedEvent
    | TargetRenderedEvent
    | TargetCompiledEvent
    | TargetSkippedEvent
    | ArtifactEmittedEvent
    | PipelineEndEvent,
    Field(discriminator="kind"),
]
