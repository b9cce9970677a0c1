"""Document renderer.

Turns a document into the final text for one target: optional Handlebars
templating of the body (frontmatter is reattached verbatim) followed by the
output-format stage, which always runs. Rendering never raises; failures
come back as a failed Result with diagnostics.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from ruleset_core.capabilities import RENDER_HANDLEBARS
from ruleset_core.directives import (
    collect_handlebars_directives,
    resolve_output_format,
    resolve_xml_options,
)
from ruleset_core.renderer.context import build_template_context
from ruleset_core.renderer.formats import FormatDescriptor, apply_output_format
from ruleset_core.renderer.handlebars import HandlebarsEngine
from ruleset_core.renderer.helpers import HelperFunction, load_helper_modules, resolve_helper_path
from ruleset_core.renderer.partials import find_partial_file, partial_search_directories
from ruleset_core.schemas.compilation import CompileArtifact, CompileTarget, Result, RuntimeContext
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetDependency, RulesetDocument
from ruleset_core.schemas.project_config import ProjectConfig, XmlOptions
from ruleset_core.schemas.providers import ProviderHandshake

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HandlebarsOptions:
    """Caller-level Handlebars settings, applied over the document directives.

    Attributes:
        enabled: Explicit toggle. False disables templating outright.
        force: Template even when the target lacks render:handlebars.
        strict: Strict variable lookup (default True).
        no_escape: Disable HTML escaping (default False).
        helpers: Helper functions keyed by name.
        helper_modules: Additional helper modules to load.
        partials: Inline partial templates keyed by name.
        partial_dirs: Extra partial search directories.
        context: Extra template context entries.
        label: Name used in render error messages. Defaults to the provider id.
    """

    enabled: bool | None = None
    force: bool | None = None
    strict: bool | None = None
    no_escape: bool | None = None
    helpers: Mapping[str, HelperFunction] = field(default_factory=dict)
    helper_modules: tuple[str, ...] = ()
    partials: Mapping[str, str] = field(default_factory=dict)
    partial_dirs: tuple[str, ...] = ()
    context: Mapping[str, Any] = field(default_factory=dict)
    label: str | None = None


@dataclass(frozen=True)
class RenderOptions:
    """Options for one render call.

    Attributes:
        format: Output format id. Resolved from the document and project
            config when omitted.
        xml: XML format options. Resolved like format when omitted.
        formats: One-off format handlers that take precedence over the registry.
        handlebars: Caller-level Handlebars settings.
        project_config: Project configuration.
        runtime: Runtime context of the run.
        provider: Handshake of the provider being rendered for.
    """

    format: str | None = None
    xml: XmlOptions | None = None
    formats: tuple[FormatDescriptor, ...] = ()
    handlebars: HandlebarsOptions | None = None
    project_config: ProjectConfig | None = None
    runtime: RuntimeContext | None = None
    provider: ProviderHandshake | None = None


@dataclass(frozen=True)
class HandlebarsSettings:
    """Handlebars settings aggregated from every directive source."""

    enabled: bool | None = None
    force: bool = False
    strict: bool = True
    no_escape: bool = False
    helper_modules: tuple[str, ...] = ()
    helpers: Mapping[str, HelperFunction] = field(default_factory=dict)
    partials: Mapping[str, str] = field(default_factory=dict)


def split_frontmatter(contents: str) -> tuple[str | None, str]:
    """Split contents into (header, body). The header keeps both ``---`` lines."""
    lines = contents.split("\n")
    if not lines or lines[0].strip() != "---":
        return None, contents
    for index in range(1, len(lines)):
        if lines[index].strip() == "---":
            return "\n".join(lines[: index + 1]), "\n".join(lines[index + 1 :])
    return None, contents


def has_handlebars_capability(target: CompileTarget) -> bool:
    return any(capability.startswith(RENDER_HANDLEBARS) for capability in target.capabilities or ())


def aggregate_handlebars_settings(
    document: RulesetDocument,
    target: CompileTarget,
    options: RenderOptions,
) -> HandlebarsSettings:
    """Merge directives and caller options.

    ``enabled`` and ``force`` are OR'd across directives, ``strict`` and
    ``no_escape`` are last-writer-wins, helper modules and partials are
    unioned. A caller ``enabled`` value overrides the directives.
    """
    enabled: bool | None = None
    force = False
    strict: bool | None = None
    no_escape: bool | None = None
    modules: dict[str, None] = {}
    partials: dict[str, str] = {}

    directives = collect_handlebars_directives(
        document.front_matter, options.project_config, target.provider_id
    )
    for directive in directives:
        if directive.enabled is True:
            enabled = True
        elif directive.enabled is False and enabled is None:
            enabled = False
        force = force or bool(directive.force)
        if directive.strict is not None:
            strict = directive.strict
        if directive.no_escape is not None:
            no_escape = directive.no_escape
        if not directive.disabled:
            modules.update(dict.fromkeys(directive.helpers))
            partials.update(directive.partials)

    helpers: Mapping[str, HelperFunction] = {}
    caller = options.handlebars
    if caller is not None:
        if caller.enabled is not None:
            enabled = caller.enabled
        force = force or bool(caller.force)
        strict = caller.strict if caller.strict is not None else strict
        no_escape = caller.no_escape if caller.no_escape is not None else no_escape
        modules.update(dict.fromkeys(caller.helper_modules))
        partials.update(caller.partials)
        helpers = caller.helpers

    return HandlebarsSettings(
        enabled=enabled,
        force=force,
        strict=True if strict is None else strict,
        no_escape=bool(no_escape),
        helper_modules=tuple(modules),
        helpers=helpers,
        partials=partials,
    )


def should_template(target: CompileTarget, settings: HandlebarsSettings) -> bool:
    """force wins; else enabled=False wins; else capability presence decides."""
    if settings.force:
        return True
    if settings.enabled is False:
        return False
    return has_handlebars_capability(target)


def _cwd(options: RenderOptions) -> str:
    return options.runtime.cwd if options.runtime else os.getcwd()


def _partial_directories(options: RenderOptions) -> list[Path]:
    extra = options.handlebars.partial_dirs if options.handlebars else ()
    return partial_search_directories(_cwd(options), options.project_config, extra)


def resolve_document_dependencies(
    document: RulesetDocument,
    options: RenderOptions,
    provider_ids: Iterable[str] = (),
) -> RulesetDocument:
    """Attach resolved paths to partial dependencies and add helper imports.

    Args:
        document: Transformed document.
        options: Render options carrying the runtime and project config.
        provider_ids: Providers whose directives contribute helper modules.

    Returns:
        Document whose dependencies carry resolved paths where found.
    """
    cwd = _cwd(options)
    directories = _partial_directories(options)
    resolved: list[RulesetDependency] = []
    for dependency in document.dependencies:
        if dependency.kind == "partial" and dependency.resolved_path is None:
            path = find_partial_file(dependency.identifier, directories)
            if path is not None:
                dependency = dependency.model_copy(update={"resolved_path": str(path)})
        resolved.append(dependency)

    specifiers: dict[str, None] = {}
    for provider_id in provider_ids:
        for directive in collect_handlebars_directives(
            document.front_matter, options.project_config, provider_id
        ):
            if not directive.disabled:
                specifiers.update(dict.fromkeys(directive.helpers))
    if options.handlebars is not None:
        specifiers.update(dict.fromkeys(options.handlebars.helper_modules))

    known = {(dependency.kind, dependency.identifier) for dependency in resolved}
    for specifier in specifiers:
        if ("import", specifier) in known:
            continue
        path = resolve_helper_path(specifier, cwd)
        resolved.append(
            RulesetDependency(
                kind="import",
                identifier=specifier,
                resolved_path=str(path) if path is not None else None,
            )
        )
    return document.with_dependencies(resolved)


class Renderer:
    """Default renderer: Handlebars templating plus the output-format stage.

    Example:
        >>> renderer = Renderer()
        >>> result = renderer.render(document, target)
        >>> result.ok
        True
    """

    def render(
        self,
        document: RulesetDocument,
        target: CompileTarget,
        options: RenderOptions | None = None,
    ) -> Result:
        try:
            options = self._resolve_format_options(document, target, options or RenderOptions())
        except ValidationError as exc:
            logger.info("xml_options_invalid", provider_id=target.provider_id, error=str(exc))
            return Result.failure(
                [
                    RulesetDiagnostic.error(
                        f'Invalid XML options for provider "{target.provider_id}".',
                        hint=str(exc),
                        tags=("renderer", "xml", target.provider_id),
                    )
                ]
            )
        settings = aggregate_handlebars_settings(document, target, options)

        if not should_template(target, settings):
            artifact = CompileArtifact(target=target, contents=document.source.contents)
            return self._apply_format(artifact, options)
        return self._render_handlebars(document, target, options, settings)

    def __call__(
        self,
        document: RulesetDocument,
        target: CompileTarget,
        options: RenderOptions | None = None,
    ) -> Result:
        return self.render(document, target, options)

    def _resolve_format_options(
        self, document: RulesetDocument, target: CompileTarget, options: RenderOptions
    ) -> RenderOptions:
        front_matter = document.front_matter
        return replace(
            options,
            format=options.format
            or resolve_output_format(front_matter, options.project_config, target.provider_id),
            xml=options.xml
            or resolve_xml_options(front_matter, options.project_config, target.provider_id),
        )

    def _apply_format(self, artifact: CompileArtifact, options: RenderOptions) -> Result:
        return apply_output_format(artifact, options.format or "markdown", options, options.formats)

    def _collect_partials(
        self,
        document: RulesetDocument,
        settings: HandlebarsSettings,
        options: RenderOptions,
    ) -> tuple[dict[str, str], list[RulesetDiagnostic]]:
        partials = dict(settings.partials)
        diagnostics: list[RulesetDiagnostic] = []
        directories: list[Path] | None = None

        for dependency in document.dependencies:
            name = dependency.identifier
            if dependency.kind != "partial" or name in partials:
                continue
            path: Path | None = Path(dependency.resolved_path) if dependency.resolved_path else None
            if path is None or not path.is_file():
                if directories is None:
                    directories = _partial_directories(options)
                path = find_partial_file(name, directories)
            if path is None:
                diagnostics.append(
                    RulesetDiagnostic.warning(
                        f'Handlebars partial "{name}" could not be resolved.',
                        hint="Searched: " + ", ".join(str(d) for d in directories or ()),
                        tags=("renderer", "handlebars", "partials"),
                    )
                )
                partials[name] = ""
                continue
            partials[name] = path.read_text(encoding="utf-8")
        return partials, diagnostics

    def _render_handlebars(
        self,
        document: RulesetDocument,
        target: CompileTarget,
        options: RenderOptions,
        settings: HandlebarsSettings,
    ) -> Result:
        loaded = load_helper_modules(settings.helper_modules, _cwd(options))
        partials, partial_diagnostics = self._collect_partials(document, settings, options)
        diagnostics = [*loaded.diagnostics, *partial_diagnostics]

        caller = options.handlebars
        context = build_template_context(
            document,
            target,
            provider=options.provider,
            project_config=options.project_config,
            runtime=options.runtime,
            extra=caller.context if caller else None,
        )
        label = (caller.label if caller else None) or target.provider_id
        head, body = split_frontmatter(document.source.contents)

        engine = HandlebarsEngine(
            {**loaded.helpers, **settings.helpers},
            partials,
            strict=settings.strict,
            no_escape=settings.no_escape,
        )
        try:
            rendered = engine.render(body, context)
        except Exception as exc:
            logger.info("handlebars_render_failed", provider_id=target.provider_id, error=str(exc))
            diagnostics.append(
                RulesetDiagnostic.error(
                    f"Handlebars rendering failed for {label}: {exc}",
                    hint=type(exc).__name__,
                    tags=("renderer", "handlebars", target.provider_id),
                )
            )
            return Result.failure(diagnostics)

        contents = f"{head}\n{rendered}" if head else rendered
        artifact = CompileArtifact(target=target, contents=contents, diagnostics=tuple(diagnostics))
        return self._apply_format(artifact, options)


_default_renderer = Renderer()


def render_document(
    document: RulesetDocument,
    target: CompileTarget,
    options: RenderOptions | None = None,
) -> Result:
    """Render a document with the default renderer."""
    return _default_renderer.render(document, target, options)
