"""Compilation cache.

Persists compiled artifacts per source in ``<cacheDir>/orchestrator-cache.json``.
An entry is valid when its stored hash matches the current source hash and
none of its recorded dependencies are in the run's invalidation set.

The file is read once at the start of a run and flushed once at the end.
Persistence is best-effort: a read failure or version mismatch yields an
empty cache and a write failure disables further writes for the run.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from pathlib import Path

import structlog
from pydantic import Field, ValidationError

from ruleset_core.schemas.base import RulesetModel
from ruleset_core.schemas.compilation import CompileArtifact
from ruleset_core.schemas.diagnostics import RulesetDiagnostic
from ruleset_core.schemas.documents import RulesetSource

logger = structlog.get_logger(__name__)

CACHE_FILENAME = "orchestrator-cache.json"
CACHE_VERSION = 3
ANONYMOUS_SOURCE_KEY = "<anonymous>"


class CachedTargetEntry(RulesetModel):
    """Artifacts cached for one provider and output path of a source."""

    artifacts: tuple[CompileArtifact, ...] = ()
    output_path: str | None = None
    capabilities: tuple[str, ...] = ()


class CachedSourceEntry(RulesetModel):
    """Cached compilation state for one source."""

    hash: str
    diagnostics: tuple[RulesetDiagnostic, ...] = ()
    targets: dict[str, CachedTargetEntry] = Field(default_factory=dict)
    dependencies: tuple[str, ...] = ()


class CacheFile(RulesetModel):
    """On-disk cache layout."""

    version: int = CACHE_VERSION
    sources: dict[str, CachedSourceEntry] = Field(default_factory=dict)


def source_key(source: RulesetSource) -> str:
    """Cache key for a source: its path, else its id."""
    return source.path or source.id or ANONYMOUS_SOURCE_KEY


def target_key(provider_id: str, output_path: str | None) -> str:
    """Cache key for a target within a source entry."""
    return f"{provider_id}:{output_path or ''}"


def compute_source_hash(source: RulesetSource, project_config_path: str | None = None) -> str:
    """SHA-256 over contents, path-or-id and the project config path."""
    digest = hashlib.sha256()
    digest.update(source.contents.encode("utf-8"))
    digest.update((source.path or source.id).encode("utf-8"))
    if project_config_path:
        digest.update(project_config_path.encode("utf-8"))
    return digest.hexdigest()


class CompilationCache:
    """In-memory view of the cache file for one run.

    Args:
        path: Cache file path. None keeps the cache in memory only.
        data: Loaded cache contents.
        enabled: When False, lookups always miss and nothing is stored.

    Example:
        >>> cache = load_cache("/project/.ruleset/cache")
        >>> entry = cache.get("rules/a.md")
        >>> cache.flush()
    """

    def __init__(
        self,
        path: Path | None = None,
        data: CacheFile | None = None,
        *,
        enabled: bool = True,
    ) -> None:
        self.path = path
        self.enabled = enabled
        self._sources: dict[str, CachedSourceEntry] = dict(data.sources) if data else {}
        self._dirty = False
        self._writable = path is not None

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def writable(self) -> bool:
        return self._writable

    def get(self, key: str) -> CachedSourceEntry | None:
        if not self.enabled:
            return None
        entry = self._sources.get(key)
        return entry.model_copy(deep=True) if entry is not None else None

    def put(self, key: str, entry: CachedSourceEntry) -> None:
        if not self.enabled:
            return
        self._sources[key] = entry
        self._dirty = True

    def valid_entry(
        self, key: str, source_hash: str, invalidated: Iterable[str] = ()
    ) -> CachedSourceEntry | None:
        """Return the entry for key when its hash matches and no dependency is invalidated."""
        entry = self.get(key)
        if entry is None or entry.hash != source_hash:
            return None
        if set(entry.dependencies) & set(invalidated):
            return None
        return entry

    def lookup(
        self,
        entry: CachedSourceEntry | None,
        provider_id: str,
        output_path: str,
        capabilities: Iterable[str],
    ) -> tuple[CompileArtifact, ...] | None:
        """Return deep copies of cached artifacts for a target, or None on a miss.

        A recorded output path or capability list that differs from the
        current target counts as a miss.
        """
        if entry is None:
            return None
        cached = entry.targets.get(target_key(provider_id, output_path))
        if cached is None or not cached.artifacts:
            return None
        if cached.output_path != output_path or tuple(cached.capabilities) != tuple(capabilities):
            return None
        return tuple(artifact.model_copy(deep=True) for artifact in cached.artifacts)

    def flush(self) -> bool:
        """Write the cache file if anything changed.

        Returns:
            True when the file was written.
        """
        if not (self.enabled and self._dirty and self._writable and self.path is not None):
            return False
        payload = CacheFile(version=CACHE_VERSION, sources=self._sources).to_wire()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            self._writable = False
            logger.debug("cache_flush_failed", path=str(self.path), error=str(exc))
            return False
        self._dirty = False
        logger.debug("cache_flushed", path=str(self.path), sources=len(self._sources))
        return True


def load_cache(cache_dir: str | Path | None, *, enabled: bool = True) -> CompilationCache:
    """Load the cache under cache_dir.

    Args:
        cache_dir: Cache directory. None yields a disabled cache.
        enabled: Set False to disable caching for the run.

    Returns:
        CompilationCache, empty when the file is missing, unreadable or from
        another cache version.
    """
    if cache_dir is None or not enabled:
        return CompilationCache(enabled=False)

    path = Path(cache_dir) / CACHE_FILENAME
    if not path.is_file():
        return CompilationCache(path)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("cache_read_failed", path=str(path), error=str(exc))
        return CompilationCache(path)

    if not isinstance(raw, dict) or raw.get("version") != CACHE_VERSION:
        logger.debug("cache_version_mismatch", path=str(path))
        return CompilationCache(path)

    try:
        data = CacheFile.model_validate(raw)
    except ValidationError as exc:
        logger.debug("cache_invalid", path=str(path), error=str(exc))
        return CompilationCache(path)
    return CompilationCache(path, data)
