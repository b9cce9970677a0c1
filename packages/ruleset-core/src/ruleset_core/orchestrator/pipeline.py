"""Compilation pipeline orchestrator.

Drives every source through parse, validate and transform, then every
target through capability negotiation, cache lookup, rendering and provider
execution. Progress is reported as an ordered stream of CompilationEvent
values ending with ``pipeline:end``.

Per-target failures (missing capability, render error, provider error,
incompatible provider) skip only that target. A hard-fail capability policy
raises CapabilityUnsupportedError and aborts the run; parser and validator
exceptions propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import structlog

from ruleset_core.directives import apply_document_overrides
from ruleset_core.errors import CapabilityUnsupportedError, RulesetError
from ruleset_core.observability import finish_span, start_span
from ruleset_core.orchestrator.cache import (
    CachedSourceEntry,
    CachedTargetEntry,
    CompilationCache,
    compute_source_hash,
    load_cache,
    source_key,
    target_key,
)
from ruleset_core.orchestrator.negotiation import (
    derive_required_capabilities,
    negotiate_capabilities,
    should_fail_missing_capabilities,
)
from ruleset_core.parser import ParserOptions, ParserOutput, parse_source
from ruleset_core.providers.base import Provider, create_placeholder_provider
from ruleset_core.providers.compatibility import evaluate_provider_compatibility
from ruleset_core.providers.executor import execute_provider
from ruleset_core.renderer import RenderOptions, Renderer, resolve_document_dependencies
from ruleset_core.schemas.compilation import (
    CompilationInput,
    CompilationOutput,
    CompileArtifact,
    CompileTarget,
    Result,
    SourceSummary,
)
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetDocument, RulesetSource
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
from ruleset_core.schemas.providers import ProviderCompileInput
from ruleset_core.transform import RulesetTransform, run_transforms
from ruleset_core.validator import ValidationOptions, ValidationResult, validate_document

logger = structlog.get_logger(__name__)

DRY_RUN_MESSAGE = "Dry run - compilation not executed"

ParserFunction = Callable[[RulesetSource, ParserOptions], ParserOutput | RulesetDocument]
ValidatorFunction = Callable[[RulesetDocument, ValidationOptions], ValidationResult]
RenderFunction = Callable[[RulesetDocument, CompileTarget, RenderOptions], Result]
EventCallback = Callable[[Any], None]


@dataclass(frozen=True)
class OrchestratorOptions:
    """Options for one orchestrator run.

    Attributes:
        providers: Providers available to the run, as a sequence or keyed by id.
        invalidate_paths: Changed files whose dependants must miss the cache.
        on_event: Callback invoked with every event before it is yielded.
        parser: Parser collaborator. Defaults to parse_source.
        validator: Validator collaborator. Defaults to validate_document.
        transforms: Document transforms applied in order.
        renderer: Renderer collaborator. Defaults to Renderer().
        render_options: Base render options; runtime, project config and
            provider are filled in per target.
        parser_options: Options handed to the parser.
        validation_options: Options handed to the validator.
        sdk_version: SDK version providers are checked against.
        provider_timeout: Timeout in seconds for subprocess providers.
    """

    providers: Sequence[Provider] | Mapping[str, Provider] = ()
    invalidate_paths: Iterable[str] = ()
    on_event: EventCallback | None = None
    parser: ParserFunction | None = None
    validator: ValidatorFunction | None = None
    transforms: tuple[RulesetTransform, ...] = ()
    renderer: RenderFunction | None = None
    render_options: RenderOptions | None = None
    parser_options: ParserOptions = field(default_factory=ParserOptions)
    validation_options: ValidationOptions = field(default_factory=ValidationOptions)
    sdk_version: str | None = None
    provider_timeout: float | None = None


def diagnostics_from_exception(exc: BaseException, *tags: str) -> tuple[RulesetDiagnostic, ...]:
    """Convert an exception into error diagnostics carrying the given tags."""
    if isinstance(exc, RulesetError):
        return exc.to_diagnostics(*tags)
    return (
        RulesetDiagnostic.error(
            str(exc) or type(exc).__name__,
            hint=type(exc).__name__,
            tags=tags,
        ),
    )


def _normalize_path(path: str, cwd: str) -> str:
    return str((Path(cwd) / path).resolve())


def _provider_map(providers: Sequence[Provider] | Mapping[str, Provider]) -> dict[str, Provider]:
    if isinstance(providers, Mapping):
        return dict(providers)
    return {provider.provider_id: provider for provider in providers}


@dataclass
class _RunState:
    """Mutable state for one run. Discarded at run end."""

    compilation_input: CompilationInput
    options: OrchestratorOptions
    providers: dict[str, Provider]
    incompatible: dict[str, tuple[RulesetDiagnostic, ...]]
    cache: CompilationCache
    invalidated: frozenset[str]
    render_options: RenderOptions
    declared: dict[str, frozenset[str]] = field(default_factory=dict)
    artifacts: list[CompileArtifact] = field(default_factory=list)
    diagnostics: list[RulesetDiagnostic] = field(default_factory=list)
    summaries: list[SourceSummary] = field(default_factory=list)

    def provider(self, provider_id: str) -> Provider:
        provider = self.providers.get(provider_id)
        if provider is None:
            provider = create_placeholder_provider(provider_id)
            self.providers[provider_id] = provider
        return provider

    def declared_capabilities(self, provider: Provider) -> frozenset[str]:
        declared = self.declared.get(provider.provider_id)
        if declared is None:
            declared = frozenset(provider.capability_ids)
            self.declared[provider.provider_id] = declared
        return declared


class Orchestrator:
    """Compilation pipeline.

    Example:
        >>> orchestrator = Orchestrator()
        >>> for event in orchestrator.stream(compilation_input, options):
        ...     print(event.kind)
        pipeline:start
        ...
        pipeline:end
    """

    def __init__(self, renderer: RenderFunction | None = None) -> None:
        self._renderer = renderer or Renderer()

    def stream(
        self,
        compilation_input: CompilationInput,
        options: OrchestratorOptions | None = None,
    ) -> Iterator[CompilationEvent]:
        """Run the pipeline, yielding events in order.

        Args:
            compilation_input: Sources, targets, config and runtime context.
            options: Run options.

        Yields:
            CompilationEvent values, ``pipeline:start`` first and
            ``pipeline:end`` last.

        Raises:
            CapabilityUnsupportedError: If a hard-fail capability policy trips.
        """
        options = options or OrchestratorOptions()
        log = logger.bind(
            sources=len(compilation_input.sources),
            targets=len(compilation_input.targets),
        )
        span = start_span(
            "ruleset.compile",
            attributes={
                "ruleset.sources": len(compilation_input.sources),
                "ruleset.targets": len(compilation_input.targets),
                "ruleset.cwd": compilation_input.context.cwd,
            },
        )
        log.info("pipeline_started")
        try:
            output = yield from self._run(compilation_input, options)
        except GeneratorExit:
            finish_span(span)
            raise
        except Exception as exc:
            log.warning("pipeline_aborted", error=str(exc), error_type=type(exc).__name__)
            finish_span(span, exc)
            raise
        finish_span(span)
        log.info(
            "pipeline_finished",
            artifacts=len(output.artifacts),
            diagnostics=len(output.diagnostics),
        )

    def compile(
        self,
        compilation_input: CompilationInput,
        options: OrchestratorOptions | None = None,
    ) -> CompilationOutput:
        """Run the pipeline to completion and return its output."""
        output = CompilationOutput()
        for event in self.stream(compilation_input, options):
            if isinstance(event, PipelineEndEvent):
                output = event.output
        return output

    def _emit(self, state: _RunState, event: Any) -> Any:
        if state.options.on_event is not None:
            state.options.on_event(event)
        return event

    def _prepare(self, compilation_input: CompilationInput, options: OrchestratorOptions) -> _RunState:
        context = compilation_input.context
        project_config = compilation_input.project_config
        providers = _provider_map(options.providers)

        incompatible: dict[str, tuple[RulesetDiagnostic, ...]] = {}
        for provider_id, provider in providers.items():
            diagnostics = evaluate_provider_compatibility(provider.handshake, options.sdk_version)
            if diagnostics:
                logger.info("provider_incompatible", provider_id=provider_id)
                incompatible[provider_id] = tuple(diagnostics)

        cache_enabled = not (project_config is not None and project_config.build.cache is False)
        render_options = replace(
            options.render_options or RenderOptions(),
            project_config=project_config,
            runtime=context,
        )
        return _RunState(
            compilation_input=compilation_input,
            options=options,
            providers=providers,
            incompatible=incompatible,
            cache=load_cache(context.cache_dir, enabled=cache_enabled),
            invalidated=frozenset(_normalize_path(path, context.cwd) for path in options.invalidate_paths),
            render_options=render_options,
        )

    def _run(
        self, compilation_input: CompilationInput, options: OrchestratorOptions
    ) -> Iterator[CompilationEvent]:
        state = self._prepare(compilation_input, options)
        yield self._emit(state, PipelineStartEvent(input=compilation_input))

        for diagnostics in state.incompatible.values():
            state.diagnostics.extend(diagnostics)

        for source in compilation_input.sources:
            yield from self._process_source(state, source)

        state.cache.flush()
        output = CompilationOutput(
            artifacts=tuple(state.artifacts),
            diagnostics=tuple(state.diagnostics),
            source_summaries=tuple(state.summaries),
        )
        yield self._emit(state, PipelineEndEvent(output=output))
        return output

    def _parse(self, state: _RunState, source: RulesetSource) -> RulesetDocument:
        parser = state.options.parser or parse_source
        parsed = parser(source, state.options.parser_options)
        return parsed.document if isinstance(parsed, ParserOutput) else parsed

    def _process_source(self, state: _RunState, source: RulesetSource) -> Iterator[CompilationEvent]:
        compilation_input = state.compilation_input
        context = compilation_input.context
        project_config = compilation_input.project_config
        log = logger.bind(source_id=source.id)

        yield self._emit(state, SourceStartEvent(source=source))

        document = self._parse(state, source)
        source_diagnostics: list[RulesetDiagnostic] = list(document.diagnostics)
        state.diagnostics.extend(document.diagnostics)
        yield self._emit(state, SourceParsedEvent(source=source, document=document))

        validator = state.options.validator or validate_document
        validation = validator(document, state.options.validation_options)
        document = validation.document.with_diagnostics(validation.diagnostics)
        source_diagnostics.extend(validation.diagnostics)
        state.diagnostics.extend(validation.diagnostics)
        yield self._emit(
            state,
            SourceValidatedEvent(source=source, document=document, diagnostics=validation.diagnostics),
        )

        transformed = run_transforms(
            apply_document_overrides(document, project_config), *state.options.transforms
        )
        document = transformed.document.with_diagnostics(transformed.diagnostics)
        source_diagnostics.extend(transformed.diagnostics)
        state.diagnostics.extend(transformed.diagnostics)
        document = resolve_document_dependencies(
            document,
            state.render_options,
            provider_ids=[target.provider_id for target in compilation_input.targets],
        )
        yield self._emit(state, SourceTransformedEvent(source=source, document=document))

        dependencies = tuple(
            sorted(
                {
                    _normalize_path(dependency.resolved_path, context.cwd)
                    for dependency in document.dependencies
                    if dependency.resolved_path
                }
            )
        )
        key = source_key(source)
        source_hash = compute_source_hash(source, compilation_input.project_config_path)
        entry = state.cache.valid_entry(key, source_hash, state.invalidated)
        if entry is None:
            log.debug("cache_miss", key=key)

        cached_targets: dict[str, CachedTargetEntry] = {}
        for target in compilation_input.targets:
            yield from self._process_target(
                state, source, document, target, entry, cached_targets, source_diagnostics
            )

        state.cache.put(
            key,
            CachedSourceEntry(
                hash=source_hash,
                diagnostics=tuple(source_diagnostics),
                targets=cached_targets,
                dependencies=dependencies,
            ),
        )
        state.summaries.append(
            SourceSummary(
                source_id=source.id,
                source_path=_normalize_path(source.path, context.cwd) if source.path else None,
                dependencies=dependencies,
            )
        )

    def _skip(
        self,
        state: _RunState,
        source: RulesetSource,
        target: CompileTarget,
        reason: SkipReason,
        diagnostics: Iterable[RulesetDiagnostic],
        missing: Iterable[str] = (),
    ) -> Any:
        logger.info(
            "target_skipped",
            source_id=source.id,
            provider_id=target.provider_id,
            reason=reason.value,
        )
        return self._emit(
            state,
            TargetSkippedEvent(
                source=source,
                target=target,
                reason=reason,
                diagnostics=tuple(diagnostics),
                missing_capabilities=tuple(missing),
            ),
        )

    def _render(
        self,
        state: _RunState,
        document: RulesetDocument,
        target: CompileTarget,
        provider: Provider,
    ) -> Result:
        render_options = replace(state.render_options, provider=provider.handshake)
        renderer = state.options.renderer or self._renderer
        try:
            return renderer(document, target, render_options)
        except Exception as exc:
            logger.warning("renderer_raised", provider_id=target.provider_id, error=str(exc))
            return Result.failure(diagnostics_from_exception(exc, "renderer", target.provider_id))

    def _process_target(
        self,
        state: _RunState,
        source: RulesetSource,
        document: RulesetDocument,
        target: CompileTarget,
        entry: CachedSourceEntry | None,
        cached_targets: dict[str, CachedTargetEntry],
        source_diagnostics: list[RulesetDiagnostic],
    ) -> Iterator[CompilationEvent]:
        compilation_input = state.compilation_input
        project_config = compilation_input.project_config
        provider_id = target.provider_id

        def record(diagnostics: Iterable[RulesetDiagnostic]) -> None:
            diagnostics = tuple(diagnostics)
            source_diagnostics.extend(diagnostics)
            state.diagnostics.extend(diagnostics)

        yield self._emit(state, TargetStartEvent(source=source, target=target))

        if provider_id in state.incompatible:
            yield self._skip(
                state, source, target, SkipReason.INCOMPATIBLE_PROVIDER, state.incompatible[provider_id]
            )
            return

        provider = state.provider(provider_id)
        required = derive_required_capabilities(document, target, project_config)
        negotiated = target.model_copy(update={"capabilities": required})
        yield self._emit(
            state,
            TargetCapabilitiesEvent(source=source, target=negotiated, required=required),
        )

        negotiation = negotiate_capabilities(
            provider_id, required, state.declared_capabilities(provider)
        )
        if not negotiation.satisfied and negotiation.diagnostic is not None:
            fail, config_path = should_fail_missing_capabilities(provider_id, project_config)
            if fail:
                raise CapabilityUnsupportedError(
                    provider_id,
                    negotiation.missing,
                    negotiation.diagnostic,
                    config_path or "build.failOnMissingCapabilities",
                )
            record([negotiation.diagnostic])
            yield self._skip(
                state,
                source,
                negotiated,
                SkipReason.MISSING_CAPABILITY,
                [negotiation.diagnostic],
                negotiation.missing,
            )
            return

        cache_key = target_key(provider_id, target.output_path)
        cached = state.cache.lookup(entry, provider_id, target.output_path, required)
        if cached is not None and entry is not None:
            cached_targets[cache_key] = entry.targets[cache_key]
            yield self._emit(
                state, TargetCachedEvent(source=source, target=negotiated, artifacts=cached)
            )
            for artifact in cached:
                state.artifacts.append(artifact)
                yield self._emit(
                    state, ArtifactEmittedEvent(source=source, target=negotiated, artifact=artifact)
                )
            return

        rendered = self._render(state, document, negotiated, provider)
        record(rendered.diagnostics)
        if rendered.ok and isinstance(rendered.value, CompileArtifact):
            record(rendered.value.diagnostics)
        yield self._emit(
            state,
            TargetRenderedEvent(
                source=source,
                target=negotiated,
                ok=rendered.ok,
                artifact=rendered.value if rendered.ok else None,
                diagnostics=rendered.diagnostics,
            ),
        )
        if not rendered.ok or rendered.value is None:
            yield self._skip(state, source, negotiated, SkipReason.RENDER_ERROR, rendered.diagnostics)
            return

        compile_input = ProviderCompileInput(
            document=document,
            context=compilation_input.context,
            target=negotiated,
            project_config=project_config,
            project_config_path=compilation_input.project_config_path,
            rendered=rendered.value,
        )
        compiled = execute_provider(provider, compile_input, timeout=state.options.provider_timeout)
        artifacts: tuple[CompileArtifact, ...] = tuple(compiled.value or ()) if compiled.ok else ()
        record(compiled.diagnostics)
        yield self._emit(
            state,
            TargetCompiledEvent(
                source=source,
                target=negotiated,
                ok=compiled.ok,
                artifacts=artifacts,
                diagnostics=compiled.diagnostics,
            ),
        )
        if not compiled.ok:
            yield self._skip(state, source, negotiated, SkipReason.PROVIDER_ERROR, compiled.diagnostics)
            return

        cached_targets[cache_key] = CachedTargetEntry(
            artifacts=artifacts,
            output_path=target.output_path,
            capabilities=required,
        )
        for artifact in artifacts:
            state.artifacts.append(artifact)
            yield self._emit(state, ArtifactEmittedEvent(source=source, target=negotiated, artifact=artifact))


def compile_rulesets(
    compilation_input: CompilationInput,
    options: OrchestratorOptions | None = None,
) -> CompilationOutput:
    """Compile every source against every target.

    Example:
        >>> output = compile_rulesets(compilation_input, OrchestratorOptions(providers=[cursor]))
        >>> [artifact.target.output_path for artifact in output.artifacts]
        ['.cursor/rules/a.mdc']
    """
    return Orchestrator().compile(compilation_input, options)


def compile_rulesets_stream(
    compilation_input: CompilationInput,
    options: OrchestratorOptions | None = None,
) -> Iterator[CompilationEvent]:
    """Streaming variant of compile_rulesets."""
    return Orchestrator().stream(compilation_input, options)


def dry_run(compilation_input: CompilationInput) -> CompilationOutput:
    """Return an output describing a run that was not executed."""
    logger.info("pipeline_dry_run", sources=len(compilation_input.sources))
    return CompilationOutput(
        diagnostics=(RulesetDiagnostic.info(DRY_RUN_MESSAGE, tags=("orchestrator", "dry-run")),),
    )
