"""Custom exception hierarchy for ruleset-core.

This module defines the exception classes used throughout the compiler:
- RulesetError: Base exception carrying a machine-readable ErrorCode
- CapabilityUnsupportedError: Raised when a hard-fail capability policy trips
- ProviderExecutionError: Raised by providers that cannot produce artifacts
- WatcherError: Raised when the watch driver cannot start or is misused

User-facing messages are safe to display. Technical details are logged
internally via structlog and never attached to diagnostics.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from ruleset_core.schemas.diagnostics import RulesetDiagnostic

logger = structlog.get_logger(__name__)


class ErrorCode(str, Enum):
    """Machine-readable error codes surfaced to callers."""

    PROJECT_CONFIG_NOT_FOUND = "PROJECT_CONFIG_NOT_FOUND"
    PROJECT_CONFIG_INVALID = "PROJECT_CONFIG_INVALID"
    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    SOURCE_UNREADABLE = "SOURCE_UNREADABLE"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_CAPABILITY_UNSUPPORTED = "PROVIDER_CAPABILITY_UNSUPPORTED"
    RENDERER_UNAVAILABLE = "RENDERER_UNAVAILABLE"
    TRANSFORM_FAILED = "TRANSFORM_FAILED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RulesetError(Exception):
    """Base exception for ruleset-core.

    All ruleset exceptions inherit from this class. User-facing messages
    are safe to display; technical details are logged internally.

    Args:
        user_message: Safe message to display to the user.
        code: Machine-readable error code.
        hint: Optional remediation hint shown alongside the message.
        diagnostics: Structured diagnostics describing the failure.
        internal_details: Optional technical details for logging. This is
            logged internally but NEVER exposed to the user.

    Example:
        >>> raise RulesetError(
        ...     "Provider failed",
        ...     code=ErrorCode.PROVIDER_UNAVAILABLE,
        ...     internal_details="spawn ENOENT /usr/local/bin/provider",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        hint: str | None = None,
        diagnostics: Sequence[RulesetDiagnostic] = (),
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.code = code
        self.hint = hint
        self.diagnostics = tuple(diagnostics)

        if internal_details:
            logger.debug(
                "ruleset_error",
                error_type=self.__class__.__name__,
                code=code.value,
                user_message=user_message,
                internal_details=internal_details,
            )

    def to_diagnostics(self, *tags: str) -> tuple[RulesetDiagnostic, ...]:
        """Convert the error into diagnostics.

        Attached diagnostics win; otherwise a single error diagnostic is
        built from the user message, tagged with the error code.

        Args:
            *tags: Leading tags for the generated diagnostic.

        Returns:
            Tuple of diagnostics describing this error.
        """
        if self.diagnostics:
            return self.diagnostics

        from ruleset_core.schemas.diagnostics import RulesetDiagnostic

        return (
            RulesetDiagnostic.error(
                self.user_message,
                hint=self.hint,
                tags=(*tags, self.code.value),
            ),
        )


class CapabilityUnsupportedError(RulesetError):
    """Raised when a provider lacks required capabilities under a hard-fail policy.

    Attributes:
        provider_id: Provider that failed negotiation.
        missing: Capability ids the provider does not declare.
        diagnostic: The missing-capability diagnostic.
        config_path: Project config path that enabled the hard-fail policy.
    """

    def __init__(
        self,
        provider_id: str,
        missing: Sequence[str],
        diagnostic: RulesetDiagnostic,
        config_path: str,
    ) -> None:
        self.provider_id = provider_id
        self.missing = tuple(missing)
        self.diagnostic = diagnostic
        self.config_path = config_path
        super().__init__(
            diagnostic.message,
            code=ErrorCode.PROVIDER_CAPABILITY_UNSUPPORTED,
            hint=f"Disable '{config_path}' to skip unsupported targets instead.",
            diagnostics=(diagnostic,),
        )


class ProviderExecutionError(RulesetError):
    """Raised by a provider's compile step when it cannot produce artifacts.

    Attributes:
        provider_id: Provider that raised the error.
    """

    def __init__(
        self,
        provider_id: str,
        message: str,
        *,
        hint: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        self.provider_id = provider_id
        super().__init__(
            message,
            code=ErrorCode.PROVIDER_UNAVAILABLE,
            hint=hint,
            internal_details=internal_details,
        )


class WatcherError(RulesetError):
    """Raised when the watch driver cannot operate.

    Example:
        >>> raise WatcherError("Watcher is already running")
    """

    pass
