"""Providers and provider execution.

This module exports:
- Provider, FunctionProvider, PassthroughProvider: provider implementations
- define_provider, create_passthrough_provider: provider factories
- execute_provider: in-process or subprocess execution
- evaluate_provider_compatibility: SDK major version check
"""

from __future__ import annotations

from ruleset_core.providers.base import (
    PROVIDER_SDK_VERSION,
    FunctionProvider,
    PassthroughProvider,
    Provider,
    SubprocessProvider,
    create_passthrough_provider,
    create_placeholder_provider,
    define_provider,
)
from ruleset_core.providers.compatibility import (
    evaluate_provider_compatibility,
    is_provider_compatible,
    parse_semver_major,
)
from ruleset_core.providers.executor import (
    build_subprocess_payload,
    execute_provider,
    normalize_provider_artifacts,
)

__all__: list[str] = [
    # Providers
    "PROVIDER_SDK_VERSION",
    "FunctionProvider",
    "PassthroughProvider",
    "Provider",
    "SubprocessProvider",
    "create_passthrough_provider",
    "create_placeholder_provider",
    "define_provider",
    # Compatibility
    "evaluate_provider_compatibility",
    "is_provider_compatible",
    "parse_semver_major",
    # Execution
    "build_subprocess_payload",
    "execute_provider",
    "normalize_provider_artifacts",
]
