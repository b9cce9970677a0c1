"""Provider SDK compatibility checks."""

from __future__ import annotations

import re

from ruleset_core.providers.base import PROVIDER_SDK_VERSION
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.providers import ProviderHandshake

_SEMVER_MAJOR = re.compile(r"^v?(\d+)(?:\.\d+){0,2}(?:[-+].*)?$")


def parse_semver_major(version: str | None) -> int | None:
    """Return the major component of a semver string, or None if invalid.

    Example:
        >>> parse_semver_major("0.4.0-next.0")
        0
    """
    if not version:
        return None
    match = _SEMVER_MAJOR.match(version.strip())
    return int(match.group(1)) if match else None


def _sdk_diagnostic(provider_id: str, message: str, hint: str) -> RulesetDiagnostic:
    return RulesetDiagnostic.error(message, hint=hint, tags=("provider", provider_id, "sdk"))


def evaluate_provider_compatibility(
    handshake: ProviderHandshake, sdk_version: str | None = None
) -> list[RulesetDiagnostic]:
    """Compare the provider's SDK major version with the orchestrator's.

    Args:
        handshake: Provider handshake.
        sdk_version: Orchestrator SDK version. Defaults to PROVIDER_SDK_VERSION.

    Returns:
        Empty list when compatible, else error diagnostics tagged
        ("provider", <id>, "sdk").
    """
    expected_version = sdk_version or PROVIDER_SDK_VERSION
    expected = parse_semver_major(expected_version)
    provider_id = handshake.provider_id

    if expected is None:
        return [
            _sdk_diagnostic(
                provider_id,
                f"Invalid orchestrator SDK version: {expected_version}",
                f"orchestratorSdkVersion={expected_version}",
            )
        ]

    actual = parse_semver_major(handshake.sdk_version)
    if actual is None:
        return [
            _sdk_diagnostic(
                provider_id,
                f"Provider reports an invalid SDK version: {handshake.sdk_version}",
                f"providerSdkVersion={handshake.sdk_version}",
            )
        ]

    if actual != expected:
        return [
            _sdk_diagnostic(
                provider_id,
                f"Provider targets SDK major {actual}, expected {expected}.",
                f"expectedSdkVersion={expected_version}, providerSdkVersion={handshake.sdk_version}",
            )
        ]
    return []


def is_provider_compatible(handshake: ProviderHandshake, sdk_version: str | None = None) -> bool:
    return not evaluate_provider_compatibility(handshake, sdk_version)
