"""Compilation input, target, artifact and output models."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ruleset_core.schemas.base import RulesetModel
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetSource
from ruleset_core.schemas.project_config import ProjectConfig

ValueT = TypeVar("ValueT")


class CompileTarget(RulesetModel):
    """A (provider, output path) pair a source is compiled against.

    Attributes:
        provider_id: Provider that compiles the target.
        output_path: Where the artifact should be written by the file writer.
        capabilities: Capabilities the target explicitly requires.
    """

    provider_id: str = Field(..., min_length=1)
    output_path: str
    capabilities: tuple[str, ...] | None = None


class CompileArtifact(RulesetModel):
    """Compiled output for one (source, target) pair."""

    target: CompileTarget
    contents: str
    diagnostics: tuple[RulesetDiagnostic, ...] = ()


class RuntimeContext(RulesetModel):
    """Per-run environment.

    Attributes:
        version: Version of the compiler producing the run.
        cwd: Working directory; relative paths resolve against it.
        cache_dir: Directory holding the compilation cache. None disables caching.
        env: Flattened environment variables exposed to templates and providers.
    """

    version: str
    cwd: str
    cache_dir: str | None = None
    env: dict[str, str] = Field(default_factory=dict)


class CompilationInput(RulesetModel):
    """Everything the orchestrator needs for one run."""

    context: RuntimeContext
    sources: tuple[RulesetSource, ...] = ()
    targets: tuple[CompileTarget, ...] = ()
    project_config: ProjectConfig | None = None
    project_config_path: str | None = None


class SourceSummary(RulesetModel):
    """Resolved dependency paths for one source, used by the watch driver."""

    source_id: str
    source_path: str | None = None
    dependencies: tuple[str, ...] = ()


class CompilationOutput(RulesetModel):
    """Result of a compilation run."""

    artifacts: tuple[CompileArtifact, ...] = ()
    diagnostics: tuple[RulesetDiagnostic, ...] = ()
    source_summaries: tuple[SourceSummary, ...] = ()


class Result(BaseModel, Generic[ValueT]):
    """Success-or-failure value returned by renderers, formats and providers.

    Example:
        >>> Result.success("done").ok
        True
        >>> Result.failure([]).value is None
        True
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ok: bool
    value: ValueT | None = None
    diagnostics: tuple[RulesetDiagnostic, ...] = ()

    @classmethod
    def success(
        cls, value: Any, diagnostics: Iterable[RulesetDiagnostic] = ()
    ) -> Result[Any]:
        return cls(ok=True, value=value, diagnostics=tuple(diagnostics))

    @classmethod
    def failure(cls, diagnostics: Iterable[RulesetDiagnostic]) -> Result[Any]:
        return cls(ok=False, diagnostics=tuple(diagnostics))
