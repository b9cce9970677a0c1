"""ruleset-core: compilation orchestrator for ruleset documents.

This package provides:
- Orchestrator: streaming parse, validate, transform, render and compile pipeline
- Capability registry and negotiation between documents and providers
- Renderer: Handlebars templating plus markdown and XML output formats
- Provider execution in-process or in a JSON-over-stdio subprocess sandbox
- CompilationCache: on-disk cache keyed by content hash and dependencies
- RulesetWatcher: debounced incremental recompilation
"""

from __future__ import annotations

__version__ = "0.4.0"

# Capability registry
from ruleset_core.capabilities import (
    BUILTIN_CAPABILITIES,
    SDK_VERSION_TAG,
    CapabilityRegistry,
    define_capability,
    get_capability,
    is_known_capability,
    provider_capability,
    resolve_known_capabilities,
)

# Runtime context
from ruleset_core.config import build_runtime_context

# Error types
from ruleset_core.errors import (
    CapabilityUnsupportedError,
    ErrorCode,
    ProviderExecutionError,
    RulesetError,
    WatcherError,
)

# Observability
from ruleset_core.observability import configure_logging, configure_logging_from_env

# Orchestrator
from ruleset_core.orchestrator import (
    Orchestrator,
    OrchestratorOptions,
    RulesetWatcher,
    WatchRunResult,
    compile_rulesets,
    compile_rulesets_stream,
    dry_run,
    load_cache,
    stream_in_background,
    watch_rulesets,
)

# Collaborators
from ruleset_core.parser import ParserOptions, parse_source

# Providers
from ruleset_core.providers import (
    PROVIDER_SDK_VERSION,
    Provider,
    create_passthrough_provider,
    define_provider,
    evaluate_provider_compatibility,
    execute_provider,
)

# Renderer
from ruleset_core.renderer import (
    HandlebarsOptions,
    Renderer,
    RenderOptions,
    list_formats,
    register_format,
    render_document,
    reset_formats,
    unregister_format,
)

# Schema models
from ruleset_core.schemas import (
    CompilationEvent,
    CompilationInput,
    CompilationOutput,
    CompileArtifact,
    CompileTarget,
    ProjectConfig,
    ProviderHandshake,
    Result,
    RulesetDiagnostic,
    RulesetDocument,
    RulesetSource,
    RuntimeContext,
)
from ruleset_core.transform import run_transforms
from ruleset_core.validator import ValidationOptions, validate_document

__all__ = [
    "__version__",
    # Orchestrator
    "Orchestrator",
    "OrchestratorOptions",
    "compile_rulesets",
    "compile_rulesets_stream",
    "dry_run",
    "load_cache",
    "stream_in_background",
    # Watch
    "RulesetWatcher",
    "WatchRunResult",
    "watch_rulesets",
    # Capabilities
    "BUILTIN_CAPABILITIES",
    "SDK_VERSION_TAG",
    "CapabilityRegistry",
    "define_capability",
    "get_capability",
    "is_known_capability",
    "provider_capability",
    "resolve_known_capabilities",
    # Providers
    "PROVIDER_SDK_VERSION",
    "Provider",
    "create_passthrough_provider",
    "define_provider",
    "evaluate_provider_compatibility",
    "execute_provider",
    # Renderer
    "HandlebarsOptions",
    "Renderer",
    "RenderOptions",
    "list_formats",
    "register_format",
    "render_document",
    "reset_formats",
    "unregister_format",
    # Collaborators
    "ParserOptions",
    "ValidationOptions",
    "parse_source",
    "run_transforms",
    "validate_document",
    # Runtime
    "build_runtime_context",
    "configure_logging",
    "configure_logging_from_env",
    # Errors
    "CapabilityUnsupportedError",
    "ErrorCode",
    "ProviderExecutionError",
    "RulesetError",
    "WatcherError",
    # Schemas
    "CompilationEvent",
    "CompilationInput",
    "CompilationOutput",
    "CompileArtifact",
    "CompileTarget",
    "ProjectConfig",
    "ProviderHandshake",
    "Result",
    "RulesetDiagnostic",
    "RulesetDocument",
    "RulesetSource",
    "RuntimeContext",
]
