"""Provider handshake and compile-input models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator

from ruleset_core.schemas.base import RulesetModel
from ruleset_core.schemas.capabilities import ProviderCapability
from ruleset_core.schemas.compilation import CompileArtifact, CompileTarget, RuntimeContext
from ruleset_core.schemas.documents import RulesetDocument
from ruleset_core.schemas.project_config import ProjectConfig

SandboxMode = Literal["in-process", "bun-subprocess"]


class ProviderSandbox(RulesetModel):
    """Execution isolation for a provider's compile step.

    Attributes:
        mode: "in-process" calls the provider directly; "bun-subprocess" runs
            it as a child process speaking the stdin/stdout JSON protocol.
        entry: Script the child process runs. Used as the default argument.
        command: Executable to spawn. Defaults to the current interpreter.
        args: Arguments for the command. Defaults to [entry].
        env: Extra environment variables merged over the parent environment.
    """

    mode: SandboxMode = "in-process"
    entry: str | None = None
    command: str | None = None
    args: tuple[str, ...] | None = None
    env: dict[str, str] = Field(default_factory=dict)


class ProviderHandshake(RulesetModel):
    """What a provider declares about itself.

    Capabilities may be given as plain ids; known ids resolve to the
    registry descriptors and unknown ids become experimental custom ones.
    """

    provider_id: str = Field(..., min_length=1)
    version: str
    sdk_version: str
    capabilities: tuple[ProviderCapability, ...] = ()
    sandbox: ProviderSandbox = Field(default_factory=ProviderSandbox)

    @field_validator("capabilities", mode="before")
    @classmethod
    def _resolve_capability_ids(cls, value: Any) -> Any:
        from ruleset_core.capabilities import provider_capability

        if isinstance(value, (list, tuple)):
            return tuple(provider_capability(item) if isinstance(item, str) else item for item in value)
        return value

    @property
    def capability_ids(self) -> tuple[str, ...]:
        return tuple(capability.id for capability in self.capabilities)


class ProviderCompileInput(RulesetModel):
    """Input handed to a provider's compile step.

    Attributes:
        document: The transformed document.
        context: Runtime context of the run.
        target: Target with the negotiated capability set.
        project_config: Project configuration, if any.
        project_config_path: Path the project config was loaded from.
        rendered: Renderer output for this target.
    """

    document: RulesetDocument
    context: RuntimeContext
    target: CompileTarget
    project_config: ProjectConfig | None = None
    project_config_path: str | None = None
    rendered: CompileArtifact | None = None
