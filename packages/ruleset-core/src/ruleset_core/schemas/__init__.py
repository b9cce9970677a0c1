"""Schema definitions for ruleset-core.

Data model:
- RulesetSource, RulesetDocument, RulesetDependency: inputs and parsed documents
- CompileTarget, CompileArtifact: units of compilation and output
- RuntimeContext, CompilationInput, CompilationOutput: run envelope
- ProviderHandshake, ProviderCompileInput: provider contract
- ProjectConfig: consumed project configuration
- CompilationEvent: tagged union of pipeline events
"""

from __future__ import annotations

from ruleset_core.schemas.base import RulesetModel
from ruleset_core.schemas.capabilities import CapabilityDescriptor, ProviderCapability
from ruleset_core.schemas.compilation import (
    CompilationInput,
    CompilationOutput,
    CompileArtifact,
    CompileTarget,
    Result,
    RuntimeContext,
    SourceSummary,
)
from ruleset_core.schemas.diagnostics import (
    DiagnosticLevel,
    DiagnosticLocation,
    RulesetDiagnostic,
    has_errors,
)
from ruleset_core.schemas.documents import (
    AstSection,
    DependencyKind,
    DocumentMetadata,
    RulesetAst,
    RulesetDependency,
    RulesetDocument,
    RulesetSource,
    SourceFormat,
)
from ruleset_core.schemas.events import (
    ArtifactEmittedEvent,
    CompilationEvent,
    PipelineEndEvent,
    PipelineStartEvent,
    SkipReason,
    SourceParsedEvent,
    SourceStartEvent,
    SourceTransformedEvent,
    SourceValidatedEvent,
    TargetCachedEvent,
    TargetCapabilitiesEvent,
    TargetCompiledEvent,
    TargetRenderedEvent,
    TargetSkippedEvent,
    TargetStartEvent,
)
from ruleset_core.schemas.project_config import (
    BuildConfig,
    HandlebarsConfig,
    HandlebarsDirective,
    PathsConfig,
    ProjectConfig,
    ProviderConfig,
    RuleConfig,
    XmlOptions,
)
from ruleset_core.schemas.providers import (
    ProviderCompileInput,
    ProviderHandshake,
    ProviderSandbox,
    SandboxMode,
)

__all__: list[str] = [
    "RulesetModel",
    # Capabilities
    "CapabilityDescriptor",
    "ProviderCapability",
    # Diagnostics
    "DiagnosticLevel",
    "DiagnosticLocation",
    "RulesetDiagnostic",
    "has_errors",
    # Documents
    "AstSection",
    "DependencyKind",
    "DocumentMetadata",
    "RulesetAst",
    "RulesetDependency",
    "RulesetDocument",
    "RulesetSource",
    "SourceFormat",
    # Compilation
    "CompilationInput",
    "CompilationOutput",
    "CompileArtifact",
    "CompileTarget",
    "Result",
    "RuntimeContext",
    "SourceSummary",
    # Project config
    "BuildConfig",
    "HandlebarsConfig",
    "HandlebarsDirective",
    "PathsConfig",
    "ProjectConfig",
    "ProviderConfig",
    "RuleConfig",
    "XmlOptions",
    # Providers
    "ProviderCompileInput",
    "ProviderHandshake",
    "ProviderSandbox",
    "SandboxMode",
    # Events
    "ArtifactEmittedEvent",
    "CompilationEvent",
    "PipelineEndEvent",
    "PipelineStartEvent",
    "SkipReason",
    "SourceParsedEvent",
    "SourceStartEvent",
    "SourceTransformedEvent",
    "SourceValidatedEvent",
    "TargetCachedEvent",
    "TargetCapabilitiesEvent",
    "TargetCompiledEvent",
    "TargetRenderedEvent",
    "TargetSkippedEvent",
    "TargetStartEvent",
]
