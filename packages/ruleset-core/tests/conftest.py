"""Shared pytest fixtures for ruleset-core tests.

This module provides common fixtures used across unit and integration
tests: sample sources, targets, runtime contexts and providers.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog

from ruleset_core.capabilities import RENDER_HANDLEBARS, RENDER_MARKDOWN
from ruleset_core.providers import PROVIDER_SDK_VERSION, Provider, define_provider
from ruleset_core.renderer import reset_formats
from ruleset_core.schemas import (
    CompileArtifact,
    CompileTarget,
    ProviderCompileInput,
    ProviderHandshake,
    Result,
    RulesetSource,
    RuntimeContext,
)

SAMPLE_RULE = """---
description: Coding standards
rule:
  version: 1.0.0
---
# Coding Standards

Use type hints everywhere.
"""


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture.

    This fixture ensures structlog outputs to stdout so that capsys
    can capture the output in tests.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture(autouse=True)
def restore_format_registry() -> Iterator[None]:
    """Reset the global output-format registry after each test."""
    yield
    reset_formats()


@pytest.fixture
def sample_source(tmp_path: Path) -> RulesetSource:
    """A valid rule source backed by a file under tmp_path."""
    path = tmp_path / ".ruleset" / "rules" / "standards.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SAMPLE_RULE, encoding="utf-8")
    return RulesetSource(id="standards", path=str(path), contents=SAMPLE_RULE)


@pytest.fixture
def runtime_context(tmp_path: Path) -> RuntimeContext:
    """Runtime context rooted at tmp_path with a cache directory."""
    return RuntimeContext(
        version="0.4.0",
        cwd=str(tmp_path),
        cache_dir=str(tmp_path / ".ruleset" / "cache"),
        env={"TEAM": "platform"},
    )


@pytest.fixture
def cursor_target() -> CompileTarget:
    """Target for the sample cursor provider."""
    return CompileTarget(provider_id="cursor", output_path=".cursor/rules/standards.mdc")


def make_provider(
    provider_id: str = "cursor",
    capabilities: tuple[str, ...] = (RENDER_MARKDOWN, RENDER_HANDLEBARS),
    sdk_version: str = PROVIDER_SDK_VERSION,
    calls: list[ProviderCompileInput] | None = None,
) -> Provider:
    """Build an in-process provider that records its inputs and echoes the rendered contents."""

    def compile_fn(compile_input: ProviderCompileInput) -> Result:
        if calls is not None:
            calls.append(compile_input)
        rendered = compile_input.rendered
        return Result.success(
            CompileArtifact(
                target=compile_input.target,
                contents=rendered.contents if rendered else "",
            )
        )

    return define_provider(
        ProviderHandshake(
            provider_id=provider_id,
            version="1.0.0",
            sdk_version=sdk_version,
            capabilities=capabilities,
        ),
        compile_fn,
    )


@pytest.fixture
def provider_factory() -> Callable[..., Provider]:
    """Factory for recording in-process providers (see make_provider)."""
    return make_provider
