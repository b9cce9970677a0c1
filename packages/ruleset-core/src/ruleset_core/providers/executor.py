"""Provider execution.

Runs a provider's compile step either in-process or in a child process
speaking a single-object JSON protocol over stdin/stdout:

    stdin:  {"handshake": {...}, "input": {"document": ..., "context": ...,
             "target": ..., "projectConfig": ..., "projectConfigPath": ...,
             "rendered": ...}}
    stdout: {"ok": true, "artifact": {...}}
            {"ok": true, "artifacts": [{...}, ...]}
            {"ok": false, "error": "..."} or {"ok": false, "diagnostics": [...]}

Execution never raises; every failure comes back as a failed Result with
diagnostics tagged ("provider", <id>, ...).
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from ruleset_core.capabilities import normalize_capability_ids
from ruleset_core.errors import RulesetError
from ruleset_core.providers.base import Provider
from ruleset_core.schemas.compilation import CompileArtifact, CompileTarget, Result
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.providers import ProviderCompileInput

logger = structlog.get_logger(__name__)


def _sandbox_error(provider_id: str, message: str, hint: str | None = None) -> Result:
    return Result.failure(
        [RulesetDiagnostic.error(message, hint=hint or None, tags=("provider", provider_id, "sandbox"))]
    )


def build_subprocess_payload(provider: Provider, compile_input: ProviderCompileInput) -> dict[str, Any]:
    """Build the JSON object written to a sandboxed provider's stdin."""
    document = compile_input.document
    context = compile_input.context
    payload_input: dict[str, Any] = {
        "document": {
            "source": document.source.to_wire(),
            "metadata": document.metadata.to_wire(),
            "ast": document.ast.to_wire(),
            "diagnostics": [diagnostic.to_wire() for diagnostic in document.diagnostics],
        },
        "context": {
            "cwd": context.cwd,
            "cacheDir": context.cache_dir,
            "env": dict(context.env),
        },
        "target": compile_input.target.to_wire(),
        "projectConfig": compile_input.project_config.to_wire() if compile_input.project_config else None,
        "projectConfigPath": compile_input.project_config_path,
        "rendered": compile_input.rendered.to_wire() if compile_input.rendered else None,
    }
    return {"handshake": provider.handshake.to_wire(), "input": payload_input}


def _merge_target(default_target: CompileTarget, raw: Any) -> CompileTarget:
    merged = default_target.to_wire()
    if isinstance(raw, CompileTarget):
        raw = raw.to_wire()
    if isinstance(raw, Mapping):
        merged.update({to_camel(key): value for key, value in raw.items() if value is not None})
    if not merged.get("outputPath"):
        merged["outputPath"] = default_target.output_path
    capabilities = merged.get("capabilities")
    merged["capabilities"] = list(
        normalize_capability_ids(capabilities if capabilities else default_target.capabilities)
    )
    return CompileTarget.model_validate(merged)


def _coerce_artifact(value: Any, default_target: CompileTarget) -> CompileArtifact:
    if isinstance(value, CompileArtifact):
        return value.model_copy(update={"target": _merge_target(default_target, value.target)})
    if not isinstance(value, Mapping):
        raise TypeError(f"Expected an artifact object, got {type(value).__name__}")
    data = dict(value)
    data["target"] = _merge_target(default_target, data.get("target"))
    data.setdefault("contents", "")
    return CompileArtifact.model_validate(data)


def normalize_provider_artifacts(value: Any, default_target: CompileTarget) -> tuple[CompileArtifact, ...]:
    """Normalise a provider result value into a tuple of artifacts.

    Each artifact's target is merged over ``default_target``: omitted fields
    fall back to the orchestrator's target and capability lists are
    deduplicated.

    Args:
        value: A CompileArtifact, an artifact mapping, or a sequence of either.
        default_target: Target negotiated by the orchestrator.

    Returns:
        Tuple of artifacts, empty when value is None.
    """
    if value is None:
        return ()
    if isinstance(value, (CompileArtifact, Mapping)):
        return (_coerce_artifact(value, default_target),)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return tuple(_coerce_artifact(item, default_target) for item in value)
    raise TypeError(f"Unsupported provider result value: {type(value).__name__}")


def _execute_in_process(provider: Provider, compile_input: ProviderCompileInput) -> Result:
    provider_id = provider.provider_id
    try:
        result = provider.compile(compile_input)
        if not isinstance(result, Result):
            raise TypeError(f"compile() returned {type(result).__name__}, expected Result")
        if not result.ok:
            return Result.failure(result.diagnostics)
        artifacts = normalize_provider_artifacts(result.value, compile_input.target)
    except RulesetError as exc:
        return Result.failure(exc.to_diagnostics("provider", provider_id))
    except (TypeError, ValidationError) as exc:
        return Result.failure(
            [
                RulesetDiagnostic.error(
                    f'Provider "{provider_id}" returned an invalid result.',
                    hint=str(exc),
                    tags=("provider", provider_id),
                )
            ]
        )
    except Exception as exc:
        logger.warning("provider_compile_raised", provider_id=provider_id, error=str(exc))
        return Result.failure(
            [
                RulesetDiagnostic.error(
                    f'Provider "{provider_id}" failed: {exc}',
                    hint=type(exc).__name__,
                    tags=("provider", provider_id),
                )
            ]
        )
    return Result.success(artifacts, result.diagnostics)


def _parse_subprocess_response(
    provider_id: str, response: Any, stdout: str, default_target: CompileTarget
) -> Result:
    if not isinstance(response, Mapping):
        return _sandbox_error(provider_id, "Provider subprocess returned an invalid payload.", stdout)

    if response.get("ok") is True:
        if isinstance(response.get("artifacts"), list):
            value: Any = response["artifacts"]
        elif response.get("artifact") is not None:
            value = response["artifact"]
        else:
            return _sandbox_error(provider_id, "Provider subprocess returned an invalid payload.", stdout)
        artifacts = normalize_provider_artifacts(value, default_target)
        diagnostics = [RulesetDiagnostic.model_validate(item) for item in response.get("diagnostics") or ()]
        return Result.success(artifacts, diagnostics)

    if response.get("diagnostics"):
        return Result.failure(
            RulesetDiagnostic.model_validate(item) for item in response["diagnostics"]
        )
    if response.get("error"):
        return _sandbox_error(provider_id, str(response["error"]))
    return _sandbox_error(provider_id, "Provider subprocess returned an invalid payload.", stdout)


def _execute_subprocess(
    provider: Provider,
    compile_input: ProviderCompileInput,
    timeout: float | None,
) -> Result:
    provider_id = provider.provider_id
    sandbox = provider.handshake.sandbox
    log = logger.bind(provider_id=provider_id)

    if not sandbox.entry and not sandbox.args:
        return _sandbox_error(
            provider_id,
            f'Provider "{provider_id}" declared bun-subprocess sandbox but did not provide an entry script.',
        )

    command = [sandbox.command or sys.executable, *(sandbox.args or (sandbox.entry,))]
    env = {**os.environ, **sandbox.env}
    payload = json.dumps(build_subprocess_payload(provider, compile_input))
    log.debug("provider_subprocess_started", command=command)

    try:
        completed = subprocess.run(
            command,
            input=payload,
            capture_output=True,
            text=True,
            env=env,
            cwd=compile_input.context.cwd,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return _sandbox_error(
            provider_id,
            f'Provider subprocess for "{provider_id}" timed out after {timeout}s.',
        )
    except OSError as exc:
        log.warning("provider_subprocess_launch_failed", error=str(exc))
        return _sandbox_error(provider_id, f'Failed to launch provider subprocess for "{provider_id}"', str(exc))

    if completed.returncode != 0:
        log.info("provider_subprocess_failed", returncode=completed.returncode)
        return _sandbox_error(
            provider_id,
            f'Provider subprocess for "{provider_id}" exited with code {completed.returncode}.',
            completed.stderr.strip(),
        )

    stdout = completed.stdout.strip()
    try:
        response = json.loads(stdout)
        return _parse_subprocess_response(provider_id, response, stdout, compile_input.target)
    except (ValueError, TypeError) as exc:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors.
        return _sandbox_error(
            provider_id,
            f'Failed to parse provider subprocess output for "{provider_id}"',
            str(exc),
        )


def execute_provider(
    provider: Provider,
    compile_input: ProviderCompileInput,
    *,
    timeout: float | None = None,
) -> Result:
    """Run a provider's compile step for one target.

    Args:
        provider: Provider to execute.
        compile_input: Input for the compile step.
        timeout: Subprocess timeout in seconds. Ignored for in-process providers.

    Returns:
        Result whose value is a tuple of CompileArtifact on success.

    Example:
        >>> result = execute_provider(provider, compile_input)
        >>> [artifact.contents for artifact in result.value]
        ['# Rules']
    """
    if provider.handshake.sandbox.mode == "bun-subprocess":
        return _execute_subprocess(provider, compile_input, timeout)
    return _execute_in_process(provider, compile_input)
