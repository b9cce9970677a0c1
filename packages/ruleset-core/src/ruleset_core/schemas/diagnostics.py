"""Diagnostic models shared by every compilation stage.

Diagnostics are non-fatal: they are attached to documents and artifacts and
always surfaced to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum

from pydantic import Field

from ruleset_core.schemas.base import RulesetModel


class DiagnosticLevel(str, Enum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class DiagnosticLocation(RulesetModel):
    """Position inside a source document (1-based line and column)."""

    line: int = Field(..., ge=1)
    column: int = Field(default=1, ge=1)
    offset: int | None = Field(default=None, ge=0)


class RulesetDiagnostic(RulesetModel):
    """A structured message produced during compilation.

    Attributes:
        level: Severity of the diagnostic.
        message: Human-readable message.
        hint: Optional remediation hint or supporting detail.
        location: Optional source position.
        tags: Free-form classification tags (e.g. ("provider", "cursor", "sandbox")).
    """

    level: DiagnosticLevel
    message: str
    hint: str | None = None
    location: DiagnosticLocation | None = None
    tags: tuple[str, ...] = ()

    @classmethod
    def error(
        cls,
        message: str,
        *,
        hint: str | None = None,
        location: DiagnosticLocation | None = None,
        tags: Sequence[str] = (),
    ) -> RulesetDiagnostic:
        return cls(
            level=DiagnosticLevel.ERROR,
            message=message,
            hint=hint,
            location=location,
            tags=tuple(tags),
        )

    @classmethod
    def warning(
        cls,
        message: str,
        *,
        hint: str | None = None,
        location: DiagnosticLocation | None = None,
        tags: Sequence[str] = (),
    ) -> RulesetDiagnostic:
        return cls(
            level=DiagnosticLevel.WARNING,
            message=message,
            hint=hint,
            location=location,
            tags=tuple(tags),
        )

    @classmethod
    def info(
        cls,
        message: str,
        *,
        hint: str | None = None,
        location: DiagnosticLocation | None = None,
        tags: Sequence[str] = (),
    ) -> RulesetDiagnostic:
        return cls(
            level=DiagnosticLevel.INFO,
            message=message,
            hint=hint,
            location=location,
            tags=tuple(tags),
        )

    @property
    def is_error(self) -> bool:
        return self.level == DiagnosticLevel.ERROR


def has_errors(diagnostics: Iterable[RulesetDiagnostic]) -> bool:
    """Return True if any diagnostic is an error."""
    return any(diagnostic.is_error for diagnostic in diagnostics)
