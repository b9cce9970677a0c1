"""Renderer for ruleset documents.

This module exports:
- Renderer, render_document: Handlebars templating plus output formats
- RenderOptions, HandlebarsOptions: per-call rendering options
- Format registry management (register_format, unregister_format, ...)
- convert_markdown_to_xml: XML section emitter
"""

from __future__ import annotations

from ruleset_core.renderer.formats import (
    FORMAT_MARKDOWN,
    FORMAT_XML,
    FormatDescriptor,
    apply_output_format,
    list_formats,
    register_format,
    reset_formats,
    unregister_format,
)
from ruleset_core.renderer.handlebars import HandlebarsEngine
from ruleset_core.renderer.helpers import BUILTIN_HELPERS, load_helper_modules
from ruleset_core.renderer.partials import (
    DEFAULT_PARTIAL_DIRECTORIES,
    PARTIAL_EXTENSIONS,
    find_partial_file,
    partial_search_directories,
)
from ruleset_core.renderer.renderer import (
    HandlebarsOptions,
    HandlebarsSettings,
    Renderer,
    RenderOptions,
    aggregate_handlebars_settings,
    render_document,
    resolve_document_dependencies,
    split_frontmatter,
)
from ruleset_core.renderer.strict import StrictModeError
from ruleset_core.renderer.xml import convert_markdown_to_xml

__all__: list[str] = [
    # Renderer
    "HandlebarsOptions",
    "HandlebarsSettings",
    "Renderer",
    "RenderOptions",
    "aggregate_handlebars_settings",
    "render_document",
    "resolve_document_dependencies",
    "split_frontmatter",
    # Formats
    "FORMAT_MARKDOWN",
    "FORMAT_XML",
    "FormatDescriptor",
    "apply_output_format",
    "convert_markdown_to_xml",
    "list_formats",
    "register_format",
    "reset_formats",
    "unregister_format",
    # Handlebars
    "BUILTIN_HELPERS",
    "DEFAULT_PARTIAL_DIRECTORIES",
    "HandlebarsEngine",
    "PARTIAL_EXTENSIONS",
    "StrictModeError",
    "find_partial_file",
    "load_helper_modules",
    "partial_search_directories",
]
