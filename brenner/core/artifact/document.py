"""Artifact lifecycle and persisted shape."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from brenner.errors import StorageCorruptionError
from brenner.lib import fs, times
from brenner.models import ARTIFACT_STATUSES, RESEARCH_THREAD, SECTIONS, Artifact, ArtifactMetadata, Contributor

from .sections import empty_sections

logger = logging.getLogger(__name__)


def create_artifact(session_id: str, created_at: str | None = None) -> Artifact:
    """Empty draft at version 0. The first merge that changes a section makes it version 1."""
    ts = created_at or times.now_iso()
    return Artifact(
        metadata=ArtifactMetadata(session_id=session_id, created_at=ts, updated_at=ts),
        sections=empty_sections(),
    )


def compile_artifact(artifact: Artifact, compiled_at: str | None = None) -> Artifact:
    if artifact.metadata.status == "compiled":
        return artifact
    updated_at = times.latest(artifact.metadata.updated_at, compiled_at) if compiled_at else artifact.metadata.updated_at
    metadata = replace(artifact.metadata, status="compiled", updated_at=updated_at)
    return Artifact(metadata=metadata, sections=artifact.sections)


def artifact_to_dict(artifact: Artifact) -> dict[str, Any]:
    meta = artifact.metadata
    return {
        "metadata": {
            "session_id": meta.session_id,
            "created_at": meta.created_at,
            "updated_at": meta.updated_at,
            "version": meta.version,
            "status": meta.status,
            "contributors": [c.to_dict() for c in meta.contributors],
            "last_message_id": meta.last_message_id,
            "id_high_water": dict(meta.id_high_water),
        },
        "sections": {name: artifact.sections.get(name) for name in SECTIONS},
    }


def artifact_from_dict(data: dict[str, Any]) -> Artifact:
    meta = data.get("metadata")
    if not isinstance(meta, dict) or not meta.get("session_id"):
        raise ValueError("artifact metadata.session_id is required")
    status = meta.get("status", "draft")
    if status not in ARTIFACT_STATUSES:
        raise ValueError(f"unknown artifact status {status!r}")

    sections = empty_sections()
    for name, value in (data.get("sections") or {}).items():
        if name not in SECTIONS:
            logger.warning(f"Ignoring unknown artifact section {name!r}")
            continue
        if name == RESEARCH_THREAD:
            sections[name] = value if isinstance(value, dict) else None
        else:
            sections[name] = [r for r in value or [] if isinstance(r, dict)]

    created_at = meta.get("created_at") or ""
    return Artifact(
        metadata=ArtifactMetadata(
            session_id=meta["session_id"],
            created_at=created_at,
            updated_at=meta.get("updated_at") or created_at,
            version=int(meta.get("version", 0)),
            status=status,
            contributors=[
                Contributor(agent=c["agent"], contributed_at=c.get("contributed_at"))
                for c in meta.get("contributors") or []
                if isinstance(c, dict) and c.get("agent")
            ],
            last_message_id=meta.get("last_message_id"),
            id_high_water={
                name: int(n) for name, n in (meta.get("id_high_water") or {}).items() if name in SECTIONS
            },
        ),
        sections=sections,
    )


def load_artifact(path: Path) -> Artifact | None:
    data = fs.read_json(path)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise StorageCorruptionError(path, "artifact must be a JSON object")
    try:
        return artifact_from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise StorageCorruptionError(path, str(e)) from e


def save_artifact(path: Path, artifact: Artifact) -> None:
    fs.write_json_atomic(path, artifact_to_dict(artifact))
