"""Provider base classes.

A provider turns a rendered document into provider-specific artifacts.
Every provider carries a ProviderHandshake declaring its capabilities and
sandbox mode. In-process providers implement ``compile``; subprocess
providers are executed by the provider executor from their handshake alone.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from ruleset_core.capabilities import (
    RENDER_HANDLEBARS,
    RENDER_MARKDOWN,
    SDK_VERSION_TAG,
)
from ruleset_core.errors import ProviderExecutionError
from ruleset_core.schemas.compilation import CompileArtifact, Result
from ruleset_core.schemas.providers import ProviderCompileInput, ProviderHandshake

PROVIDER_SDK_VERSION = SDK_VERSION_TAG

CompileFunction = Callable[[ProviderCompileInput], Result]


class Provider(ABC):
    """Abstract base class for providers.

    Subclasses implement ``compile`` returning a Result whose value is a
    CompileArtifact or a list of them.

    Attributes:
        handshake: What the provider declares about itself.
    """

    def __init__(self, handshake: ProviderHandshake) -> None:
        self.handshake = handshake

    @property
    def provider_id(self) -> str:
        return self.handshake.provider_id

    @property
    def capability_ids(self) -> tuple[str, ...]:
        return self.handshake.capability_ids

    @abstractmethod
    def compile(self, compile_input: ProviderCompileInput) -> Result:
        """Compile one target.

        Args:
            compile_input: Document, context, target and rendered artifact.

        Returns:
            Result with one artifact or a list of artifacts.
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider_id={self.provider_id!r})"


class FunctionProvider(Provider):
    """Provider backed by a plain compile function."""

    def __init__(self, handshake: ProviderHandshake, compile_fn: CompileFunction) -> None:
        super().__init__(handshake)
        self._compile_fn = compile_fn

    def compile(self, compile_input: ProviderCompileInput) -> Result:
        return self._compile_fn(compile_input)


class PassthroughProvider(Provider):
    """Provider that returns the rendered contents unchanged."""

    def compile(self, compile_input: ProviderCompileInput) -> Result:
        rendered = compile_input.rendered
        contents = rendered.contents if rendered else compile_input.document.source.contents
        return Result.success(
            CompileArtifact(
                target=compile_input.target,
                contents=contents,
                diagnostics=rendered.diagnostics if rendered else (),
            )
        )


class SubprocessProvider(Provider):
    """Provider that only runs inside the subprocess sandbox."""

    def compile(self, compile_input: ProviderCompileInput) -> Result:
        raise ProviderExecutionError(
            self.provider_id,
            f'Provider "{self.provider_id}" runs in a subprocess sandbox and must be '
            "executed through the provider executor.",
        )


def define_provider(
    handshake: ProviderHandshake | dict,
    compile_fn: CompileFunction | None = None,
) -> Provider:
    """Create a provider from a handshake and optional compile function.

    Subprocess handshakes need no compile function.

    Example:
        >>> provider = define_provider(
        ...     {"provider_id": "cursor", "version": "1.0.0",
        ...      "sdk_version": PROVIDER_SDK_VERSION, "capabilities": ["render:markdown"]},
        ...     lambda compile_input: Result.success(compile_input.rendered),
        ... )
        >>> provider.provider_id
        'cursor'
    """
    if not isinstance(handshake, ProviderHandshake):
        handshake = ProviderHandshake.model_validate(handshake)
    if compile_fn is not None:
        return FunctionProvider(handshake, compile_fn)
    if handshake.sandbox.mode == "bun-subprocess":
        return SubprocessProvider(handshake)
    return PassthroughProvider(handshake)


def create_passthrough_provider(
    provider_id: str,
    *,
    capabilities: Iterable[str] = (RENDER_MARKDOWN, RENDER_HANDLEBARS),
    version: str = "0.0.0",
) -> Provider:
    """Create a passthrough provider declaring the given capabilities."""
    return PassthroughProvider(
        ProviderHandshake(
            provider_id=provider_id,
            version=version,
            sdk_version=PROVIDER_SDK_VERSION,
            capabilities=tuple(capabilities),
        )
    )


def create_placeholder_provider(provider_id: str) -> Provider:
    """Stand-in for an unregistered provider id. Declares no capabilities."""
    return create_passthrough_provider(provider_id, capabilities=())
