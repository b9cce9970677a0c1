"""Unit tests for provider SDK compatibility checks."""

from __future__ import annotations

import pytest

from ruleset_core.providers import (
    PROVIDER_SDK_VERSION,
    evaluate_provider_compatibility,
    is_provider_compatible,
    parse_semver_major,
)
from ruleset_core.schemas import ProviderHandshake


def _handshake(sdk_version: str) -> ProviderHandshake:
    return ProviderHandshake(provider_id="cursor", version="1.0.0", sdk_version=sdk_version)


class TestParseSemverMajor:
    """Tests for parse_semver_major."""

    @pytest.mark.parametrize(
        ("version", "expected"),
        [
            ("0.4.0-next.0", 0),
            ("v2.1.3", 2),
            ("3", 3),
            ("1.2.3+build.5", 1),
            ("latest", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parses_major(self, version: str | None, expected: int | None) -> None:
        """Majors are read from loose semver strings."""
        assert parse_semver_major(version) == expected


class TestEvaluateProviderCompatibility:
    """Tests for evaluate_provider_compatibility."""

    def test_same_major_is_compatible(self) -> None:
        """Providers built against the current SDK major pass."""
        assert evaluate_provider_compatibility(_handshake(PROVIDER_SDK_VERSION)) == []
        assert is_provider_compatible(_handshake("0.9.1"))

    def test_major_mismatch(self) -> None:
        """A different major produces one tagged error."""
        diagnostics = evaluate_provider_compatibility(_handshake("1.0.0"))

        assert len(diagnostics) == 1
        assert diagnostics[0].message == "Provider targets SDK major 1, expected 0."
        assert diagnostics[0].tags == ("provider", "cursor", "sdk")
        assert not is_provider_compatible(_handshake("1.0.0"))

    def test_invalid_provider_version(self) -> None:
        diagnostics = evaluate_provider_compatibility(_handshake("banana"))
        assert diagnostics[0].message == "Provider reports an invalid SDK version: banana"

    def test_invalid_orchestrator_version(self) -> None:
        diagnostics = evaluate_provider_compatibility(_handshake("0.4.0"), sdk_version="next")
        assert diagnostics[0].message == "Invalid orchestrator SDK version: next"

    def test_explicit_orchestrator_version(self) -> None:
        """The orchestrator version can be overridden."""
        assert is_provider_compatible(_handshake("2.0.0"), sdk_version="2.3.0")
