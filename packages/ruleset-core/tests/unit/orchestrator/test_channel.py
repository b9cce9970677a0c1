"""Unit tests for the threaded event channel."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from ruleset_core.capabilities import RENDER_MARKDOWN
from ruleset_core.errors import CapabilityUnsupportedError
from ruleset_core.orchestrator import OrchestratorOptions, compile_rulesets_stream, stream_in_background
from ruleset_core.providers import Provider
from ruleset_core.schemas import (
    CompilationInput,
    CompileTarget,
    ProjectConfig,
    RulesetSource,
    RuntimeContext,
)

ProviderFactory = Callable[..., Provider]


@pytest.fixture
def compilation_input(
    runtime_context: RuntimeContext, sample_source: RulesetSource, cursor_target: CompileTarget
) -> CompilationInput:
    second = sample_source.model_copy(update={"id": "second", "path": None})
    return CompilationInput(
        context=runtime_context.model_copy(update={"cache_dir": None}),
        sources=(sample_source, second),
        targets=(cursor_target,),
    )


class TestStreamInBackground:
    """Tests for stream_in_background."""

    @pytest.mark.parametrize("max_events", [1, 64])
    def test_matches_synchronous_stream(
        self,
        compilation_input: CompilationInput,
        provider_factory: ProviderFactory,
        max_events: int,
    ) -> None:
        """The threaded stream yields the same events in the same order."""
        options = OrchestratorOptions(providers=[provider_factory()])

        expected = [event.kind for event in compile_rulesets_stream(compilation_input, options)]
        actual = [
            event.kind
            for event in stream_in_background(compilation_input, options, max_events=max_events)
        ]

        assert actual == expected
        assert actual[-1] == "pipeline:end"

    def test_pipeline_error_is_reraised(
        self,
        compilation_input: CompilationInput,
        provider_factory: ProviderFactory,
    ) -> None:
        """A hard-fail capability error reaches the consumer."""
        failing = compilation_input.model_copy(
            update={
                "project_config": ProjectConfig.model_validate({"build": {"failOnMissingCapabilities": True}})
            }
        )
        options = OrchestratorOptions(providers=[provider_factory(capabilities=("render:custom",))])

        with pytest.raises(CapabilityUnsupportedError):
            list(stream_in_background(failing, options))

    def test_consumer_can_stop_early(
        self,
        compilation_input: CompilationInput,
        provider_factory: ProviderFactory,
    ) -> None:
        """Closing the iterator cancels the worker."""
        options = OrchestratorOptions(providers=[provider_factory(capabilities=(RENDER_MARKDOWN,))])
        events = stream_in_background(compilation_input, options, max_events=1)

        assert next(events).kind == "pipeline:start"
        events.close()
