"""Integration tests for end-to-end compilation flows.

Covers:
- Partial dependencies and cache invalidation across runs
- XML output format selected through project configuration
- Subprocess providers driven through the full pipeline
- Watch mode recompiling after a file edit
"""

from __future__ import annotations

import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from ruleset_core import (
    OrchestratorOptions,
    RulesetWatcher,
    WatchRunResult,
    build_runtime_context,
    compile_rulesets,
    compile_rulesets_stream,
    create_passthrough_provider,
    define_provider,
)
from ruleset_core.capabilities import OUTPUT_SECTIONS, RENDER_HANDLEBARS, RENDER_MARKDOWN
from ruleset_core.renderer.xml import XML_DECLARATION
from ruleset_core.schemas import (
    CompilationInput,
    CompilationOutput,
    CompileTarget,
    ProjectConfig,
    ProviderCompileInput,
    RulesetSource,
)

pytestmark = pytest.mark.integration

TEAM_RULE = """---
description: Team conventions
rule:
  version: 1.0.0
  template: true
---
# Team Conventions

Intro: {{> header}}
"""

PLAIN_RULE = """---
description: Review checklist
rule:
  version: 1.0.0
---
# Review Checklist

## Before Merging

Run the full test suite.
"""

UPPERCASE_PROVIDER = textwrap.dedent(
    """
    import json
    import sys

    payload = json.load(sys.stdin)
    rendered = payload["input"]["rendered"]
    json.dump({"ok": True, "artifacts": [{"contents": rendered["contents"].upper()}]}, sys.stdout)
    """
)


def _write(path: Path, contents: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")
    return path


def _load(path: Path, source_id: str) -> RulesetSource:
    return RulesetSource(id=source_id, path=str(path), contents=path.read_text(encoding="utf-8"))


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project directory with one templated rule and a shared partial."""
    _write(tmp_path / ".ruleset" / "partials" / "header.md", "Shared header")
    _write(tmp_path / ".ruleset" / "rules" / "team.md", TEAM_RULE)
    return tmp_path


class TestPartialInvalidation:
    """Editing a partial recompiles every source that includes it."""

    def test_partial_edit_recompiles_dependants(
        self,
        project: Path,
        provider_factory: Callable[..., object],
    ) -> None:
        """Only an invalidated dependency forces the provider to run again."""
        calls: list[ProviderCompileInput] = []
        provider = provider_factory(capabilities=(RENDER_MARKDOWN, RENDER_HANDLEBARS), calls=calls)
        partial = project / ".ruleset" / "partials" / "header.md"
        compilation_input = CompilationInput(
            context=build_runtime_context(project, env={}),
            sources=(_load(project / ".ruleset" / "rules" / "team.md", "team"),),
            targets=(CompileTarget(provider_id="cursor", output_path=".cursor/rules/team.mdc"),),
        )

        first = compile_rulesets(compilation_input, OrchestratorOptions(providers=[provider]))
        assert "Intro: Shared header" in first.artifacts[0].contents
        assert first.source_summaries[0].dependencies == (str(partial.resolve()),)
        assert len(calls) == 1

        partial.write_text("Updated header", encoding="utf-8")
        events = list(
            compile_rulesets_stream(
                compilation_input,
                OrchestratorOptions(providers=[provider], invalidate_paths=[str(partial)]),
            )
        )
        assert len(calls) == 2
        assert "target:cached" not in [event.kind for event in events]
        assert "Intro: Updated header" in events[-1].output.artifacts[0].contents

        third = list(compile_rulesets_stream(compilation_input, OrchestratorOptions(providers=[provider])))
        assert len(calls) == 2
        assert "target:cached" in [event.kind for event in third]


class TestOutputFormats:
    """Project configuration selects the output format per provider."""

    def test_xml_format_from_project_config(self, tmp_path: Path) -> None:
        """An xml provider needs output:sections and receives XML sections."""
        source = _load(_write(tmp_path / "rules" / "review.md", PLAIN_RULE), "review")
        config = ProjectConfig.model_validate({"providers": {"claude": {"format": "xml"}}})
        provider = create_passthrough_provider(
            "claude", capabilities=(RENDER_MARKDOWN, OUTPUT_SECTIONS)
        )

        output = compile_rulesets(
            CompilationInput(
                context=build_runtime_context(tmp_path, env={}, cache_dir=".ruleset/cache"),
                sources=(source,),
                targets=(CompileTarget(provider_id="claude", output_path="CLAUDE.md"),),
                project_config=config,
            ),
            OrchestratorOptions(providers=[provider]),
        )

        contents = output.artifacts[0].contents
        assert contents.startswith(XML_DECLARATION)
        assert "<before_merging>" in contents
        assert output.artifacts[0].target.capabilities == (RENDER_MARKDOWN, OUTPUT_SECTIONS)

    def test_xml_without_sections_capability_is_skipped(self, tmp_path: Path) -> None:
        source = _load(_write(tmp_path / "rules" / "review.md", PLAIN_RULE), "review")
        config = ProjectConfig.model_validate({"providers": {"claude": {"format": "xml"}}})

        output = compile_rulesets(
            CompilationInput(
                context=build_runtime_context(tmp_path, env={}),
                sources=(source,),
                targets=(CompileTarget(provider_id="claude", output_path="CLAUDE.md"),),
                project_config=config,
            ),
            OrchestratorOptions(providers=[create_passthrough_provider("claude")]),
        )

        assert output.artifacts == ()
        assert OUTPUT_SECTIONS in output.diagnostics[-1].message


class TestSubprocessProvider:
    """A sandboxed provider runs as a child process inside the pipeline."""

    def test_pipeline_with_subprocess_provider(self, tmp_path: Path) -> None:
        script = _write(tmp_path / "providers" / "upper.py", UPPERCASE_PROVIDER)
        source = _load(_write(tmp_path / "rules" / "review.md", PLAIN_RULE), "review")
        provider = define_provider(
            {
                "provider_id": "shouty",
                "version": "1.0.0",
                "sdk_version": "0.4.0",
                "capabilities": [RENDER_MARKDOWN],
                "sandbox": {"mode": "bun-subprocess", "command": sys.executable, "entry": str(script)},
            }
        )

        output = compile_rulesets(
            CompilationInput(
                context=build_runtime_context(tmp_path, env={}),
                sources=(source,),
                targets=(CompileTarget(provider_id="shouty", output_path="SHOUTY.md"),),
            ),
            OrchestratorOptions(providers=[provider], provider_timeout=30),
        )

        assert [artifact.target.output_path for artifact in output.artifacts] == ["SHOUTY.md"]
        assert "# REVIEW CHECKLIST" in output.artifacts[0].contents


class TestWatchMode:
    """Watch mode recompiles after a real file edit."""

    def test_file_edit_triggers_incremental_run(self, project: Path) -> None:
        rule = project / ".ruleset" / "rules" / "team.md"
        provider = create_passthrough_provider("cursor")
        phases: list[tuple[str, tuple[str, ...]]] = []

        def executor(phase: str, changed: tuple[str, ...]) -> WatchRunResult:
            phases.append((phase, changed))
            output: CompilationOutput = compile_rulesets(
                CompilationInput(
                    context=build_runtime_context(project, env={}),
                    sources=(_load(rule, "team"),),
                    targets=(CompileTarget(provider_id="cursor", output_path="team.mdc"),),
                ),
                OrchestratorOptions(providers=[provider], invalidate_paths=changed),
            )
            return WatchRunResult(output=output)

        with RulesetWatcher(executor, debounce_ms=100, cwd=str(project)) as watcher:
            initial = watcher.next_output(timeout=10)
            assert initial is not None
            assert rule.parent.resolve() in watcher.watched_directories

            rule.write_text(TEAM_RULE.replace("Intro:", "Welcome:"), encoding="utf-8")
            incremental = watcher.next_output(timeout=10)

        assert incremental is not None
        assert "Welcome: Shared header" in incremental.artifacts[0].contents
        assert phases[1][0] == "incremental"
        assert str(rule.resolve()) in phases[1][1]
