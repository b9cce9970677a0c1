"""Project configuration models.

The project config is loaded by a collaborator (YAML, TOML or JSON) and
handed to the orchestrator as a mapping or a ProjectConfig instance. Only
the keys the compiler consumes are modelled; anything else is preserved
as extra fields and passed through to templates and providers.
"""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, Field, field_validator

from ruleset_core.schemas.base import RulesetModel

_OPEN_CONFIG = ConfigDict(extra="allow")


class HandlebarsConfig(RulesetModel):
    """Mapping form of a handlebars directive.

    A directive may also be a plain boolean, which only toggles ``enabled``.
    A mapping directive is enabled unless it sets ``enabled: false``.
    """

    model_config = _OPEN_CONFIG

    enabled: bool | None = None
    force: bool | None = None
    strict: bool | None = None
    no_escape: bool | None = None
    helpers: tuple[str, ...] = ()
    partials: dict[str, str] = Field(default_factory=dict)

    @field_validator("helpers", mode="before")
    @classmethod
    def _coerce_helpers(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value


HandlebarsDirective = bool | HandlebarsConfig


class XmlOptions(RulesetModel):
    """Options for the XML output format.

    Attributes:
        root_tag: Root element name, normalised like section tags.
        include_declaration: Emit the XML declaration line.
        indentation: Indentation unit for child elements.
    """

    model_config = _OPEN_CONFIG

    root_tag: str | None = None
    include_declaration: bool = True
    indentation: str = "  "


class RuleConfig(RulesetModel):
    """Project-wide rule defaults."""

    model_config = _OPEN_CONFIG

    version: str | None = None
    template: bool | None = None
    globs: tuple[str, ...] | None = None
    name: str | None = None
    description: str | None = None
    handlebars: HandlebarsDirective | None = None

    @field_validator("globs", mode="before")
    @classmethod
    def _coerce_globs(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value


class ProviderConfig(RulesetModel):
    """Per-provider settings.

    Attributes:
        enabled: Whether the provider is enabled for the project.
        output_path: Default output path for the provider's artifacts.
        format: Output format id (``markdown``, ``xml`` or a custom format).
        priority: Ordering hint for providers that merge outputs.
        handlebars: Provider-scoped handlebars directive.
        fail_on_missing_capabilities: Abort the run instead of skipping targets.
        xml: Options for the XML output format.
        config: Provider-specific settings passed through untouched.
    """

    model_config = _OPEN_CONFIG

    enabled: bool | None = None
    output_path: str | None = None
    format: str | None = None
    priority: int | None = None
    handlebars: HandlebarsDirective | None = None
    fail_on_missing_capabilities: bool | None = None
    xml: XmlOptions | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class PathsConfig(RulesetModel):
    """Filesystem locations relative to the project root."""

    model_config = _OPEN_CONFIG

    partials: tuple[str, ...] = ()
    templates: tuple[str, ...] = ()
    cache: str | None = None

    @field_validator("partials", "templates", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value


class BuildConfig(RulesetModel):
    """Build behaviour toggles."""

    model_config = _OPEN_CONFIG

    cache: bool | None = None
    fail_on_missing_capabilities: bool | None = None


class ProjectConfig(RulesetModel):
    """Root project configuration consumed by the orchestrator.

    Example:
        >>> config = ProjectConfig.model_validate(
        ...     {"providers": {"cursor": {"format": "xml"}}}
        ... )
        >>> config.provider("cursor").format
        'xml'
    """

    model_config = _OPEN_CONFIG

    rule: RuleConfig | None = None
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("providers", mode="before")
    @classmethod
    def _coerce_provider_flags(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: {"enabled": entry} if isinstance(entry, bool) else entry
                for key, entry in value.items()
            }
        return value

    def provider(self, provider_id: str) -> ProviderConfig | None:
        """Return the config for a provider, if any."""
        return self.providers.get(provider_id)
