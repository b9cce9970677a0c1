"""Partial resolution.

Partials referenced as ``{{> name}}`` are looked up in the partial search
directories. Identifiers without a file extension are tried against
PARTIAL_EXTENSIONS in order; the first existing file wins.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from ruleset_core.schemas.project_config import ProjectConfig

DEFAULT_PARTIAL_DIRECTORIES = (".ruleset/partials", ".ruleset/_mixins", ".ruleset/templates")

PARTIAL_EXTENSIONS = (".rule.md", ".ruleset.md", ".md", ".mdc", ".hbs", ".handlebars", ".txt")


def partial_search_directories(
    cwd: str | Path,
    project_config: ProjectConfig | None = None,
    extra: Iterable[str] = (),
) -> list[Path]:
    """Return partial directories in search order, deduplicated.

    Defaults come first, then project ``paths.partials`` and
    ``paths.templates``, then caller-supplied directories.
    """
    root = Path(cwd)
    configured: list[str] = list(DEFAULT_PARTIAL_DIRECTORIES)
    if project_config is not None:
        configured.extend(project_config.paths.partials)
        configured.extend(project_config.paths.templates)
    configured.extend(extra)

    directories: dict[Path, None] = {}
    for entry in configured:
        directories.setdefault((root / Path(entry).expanduser()).resolve(), None)
    return list(directories)


def _candidates(identifier: str) -> list[str]:
    if identifier.endswith(PARTIAL_EXTENSIONS):
        return [identifier]
    candidates = [identifier + extension for extension in PARTIAL_EXTENSIONS]
    return [*candidates, identifier] if Path(identifier).suffix else candidates


def find_partial_file(identifier: str, directories: Iterable[Path]) -> Path | None:
    """Locate a partial file. Identifiers may not escape their directory."""
    names = _candidates(identifier)
    for directory in directories:
        base = directory.resolve()
        for name in names:
            path = (base / name).resolve()
            if not path.is_relative_to(base):
                continue
            if path.is_file():
                return path
    return None
