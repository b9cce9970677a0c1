"""Runtime context construction.

Builds the RuntimeContext for a run from the working directory and the
process environment.

Environment variables:
    RULESET_CACHE_DIR: Overrides the cache directory (default
        ``<cwd>/.ruleset/cache``). Set it to an empty string to disable caching.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from ruleset_core import __version__
from ruleset_core.schemas.compilation import RuntimeContext

CACHE_DIR_ENV = "RULESET_CACHE_DIR"
DEFAULT_CACHE_DIR = ".ruleset/cache"


def default_cache_dir(cwd: str | Path) -> str:
    return str(Path(cwd) / DEFAULT_CACHE_DIR)


def build_runtime_context(
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    cache_dir: str | Path | None = None,
    *,
    version: str = __version__,
) -> RuntimeContext:
    """Create the runtime context for a run.

    Args:
        cwd: Working directory. Defaults to os.getcwd().
        env: Environment exposed to templates and providers. Defaults to os.environ.
        cache_dir: Explicit cache directory. Wins over RULESET_CACHE_DIR.
        version: Compiler version recorded on the context.

    Returns:
        RuntimeContext with an absolute cwd.

    Example:
        >>> context = build_runtime_context("/project", env={})
        >>> context.cache_dir
        '/project/.ruleset/cache'
    """
    root = Path(cwd) if cwd is not None else Path(os.getcwd())
    root = root.expanduser().resolve()
    source_env = dict(os.environ if env is None else env)

    if cache_dir is not None:
        resolved_cache: str | None = str(root / Path(cache_dir).expanduser())
    elif CACHE_DIR_ENV in source_env:
        override = source_env[CACHE_DIR_ENV].strip()
        resolved_cache = str(root / Path(override).expanduser()) if override else None
    else:
        resolved_cache = default_cache_dir(root)

    return RuntimeContext(version=version, cwd=str(root), cache_dir=resolved_cache, env=source_env)
