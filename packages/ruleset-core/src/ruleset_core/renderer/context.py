"""Template context construction."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ruleset_core.schemas.compilation import CompileTarget, RuntimeContext
from ruleset_core.schemas.documents import RulesetDocument
from ruleset_core.schemas.project_config import ProjectConfig
from ruleset_core.schemas.providers import ProviderHandshake


def build_template_context(
    document: RulesetDocument,
    target: CompileTarget,
    *,
    provider: ProviderHandshake | None = None,
    project_config: ProjectConfig | None = None,
    runtime: RuntimeContext | None = None,
    extra: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the root context a template renders against.

    Keys: ``provider``, ``file``, ``project``, ``env``, ``target`` and
    ``timestamp``. Entries from ``extra`` are merged last.
    """
    front_matter = document.front_matter
    rule = front_matter.get("rule") if isinstance(front_matter.get("rule"), Mapping) else {}
    target_capabilities = list(target.capabilities or ())

    context: dict[str, Any] = {
        "provider": {
            "id": target.provider_id,
            "version": provider.version if provider else None,
            "capabilities": list(provider.capability_ids) if provider else target_capabilities,
        },
        "file": {
            "frontmatter": front_matter,
            "version": rule.get("version") or document.metadata.version,
            "globs": rule.get("globs", front_matter.get("globs")),
            "description": front_matter.get("description", rule.get("description")),
            "name": rule.get("name", front_matter.get("name")),
            "path": document.source.path,
        },
        "project": (
            project_config.model_dump(mode="json", by_alias=True, exclude_none=True)
            if project_config
            else {}
        ),
        "env": dict(runtime.env) if runtime else {},
        "target": {
            "providerId": target.provider_id,
            "outputPath": target.output_path,
            "capabilities": target_capabilities,
        },
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if extra:
        context.update(extra)
    return context
