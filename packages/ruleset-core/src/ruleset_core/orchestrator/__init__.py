"""Compilation orchestrator.

This module exports:
- Orchestrator, compile_rulesets, compile_rulesets_stream: the pipeline
- stream_in_background: pipeline events through a threaded channel
- load_cache, CompilationCache: the on-disk compilation cache
- derive_required_capabilities: capability negotiation
- RulesetWatcher, watch_rulesets: incremental watch driver
"""

from __future__ import annotations

from ruleset_core.orchestrator.cache import (
    CACHE_FILENAME,
    CACHE_VERSION,
    CachedSourceEntry,
    CachedTargetEntry,
    CacheFile,
    CompilationCache,
    compute_source_hash,
    load_cache,
    source_key,
    target_key,
)
from ruleset_core.orchestrator.channel import stream_in_background
from ruleset_core.orchestrator.negotiation import (
    NegotiationResult,
    build_missing_capability_diagnostic,
    derive_required_capabilities,
    negotiate_capabilities,
    should_fail_missing_capabilities,
)
from ruleset_core.orchestrator.pipeline import (
    DRY_RUN_MESSAGE,
    Orchestrator,
    OrchestratorOptions,
    compile_rulesets,
    compile_rulesets_stream,
    diagnostics_from_exception,
    dry_run,
)
from ruleset_core.orchestrator.watch import (
    DEFAULT_DEBOUNCE_MS,
    RulesetWatcher,
    WatcherState,
    WatchRunResult,
    watch_directories,
    watch_rulesets,
)

__all__: list[str] = [
    # Pipeline
    "DRY_RUN_MESSAGE",
    "Orchestrator",
    "OrchestratorOptions",
    "compile_rulesets",
    "compile_rulesets_stream",
    "diagnostics_from_exception",
    "dry_run",
    "stream_in_background",
    # Cache
    "CACHE_FILENAME",
    "CACHE_VERSION",
    "CacheFile",
    "CachedSourceEntry",
    "CachedTargetEntry",
    "CompilationCache",
    "compute_source_hash",
    "load_cache",
    "source_key",
    "target_key",
    # Negotiation
    "NegotiationResult",
    "build_missing_capability_diagnostic",
    "derive_required_capabilities",
    "negotiate_capabilities",
    "should_fail_missing_capabilities",
    # Watch
    "DEFAULT_DEBOUNCE_MS",
    "RulesetWatcher",
    "WatchRunResult",
    "WatcherState",
    "watch_directories",
    "watch_rulesets",
]
