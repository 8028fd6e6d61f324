"""Markdown rendering of an artifact, used as the body of a COMPILED message."""

from typing import Any

from brenner.core import citations
from brenner.models import SECTIONS, Artifact

from .sections import TITLES

_SKIP_FIELDS = {"id", "anchors"}


def _field_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items())
    return str(value)


def _record_lines(record: dict[str, Any]) -> list[str]:
    fields = [(k, v) for k, v in record.items() if k not in _SKIP_FIELDS and v not in (None, "", [])]
    headline = ""
    for key in ("name", "title", "statement", "claim", "observation", "description"):
        if isinstance(record.get(key), str):
            headline = record[key]
            fields = [(k, v) for k, v in fields if k != key]
            break
    lines = [f"- **{record.get('id', '?')}**" + (f": {headline}" if headline else "")]
    for key, value in fields:
        lines.append(f"  - {key}: {_field_text(value)}")
    anchors = citations.parse_anchors(record.get("anchors"))
    if anchors:
        lines.append(f"  - anchors: {', '.join(citations.format_anchor(n) for n in anchors)}")
    return lines


def _collect_anchors(artifact: Artifact) -> list[str]:
    found: set[int] = set()
    for name in SECTIONS:
        for record in artifact.records(name):
            found.update(citations.parse_anchors(record.get("anchors")))
            for value in record.values():
                if isinstance(value, str):
                    found.update(citations.extract_anchors(value))
    return [citations.format_anchor(n) for n in sorted(found)]


def render_artifact_markdown(artifact: Artifact, base_url: str | None = None) -> str:
    meta = artifact.metadata
    lines = [
        f"# Artifact: {meta.session_id}",
        "",
        f"Version: {meta.version} | Status: {meta.status} | Updated: {meta.updated_at}",
    ]
    if meta.contributors:
        lines.append(f"Contributors: {', '.join(c.agent for c in meta.contributors)}")
    lines.append("")

    for name in SECTIONS:
        lines.append(f"## {TITLES[name]}")
        records = artifact.records(name)
        if not records:
            lines.append("- _None yet._")
        for record in records:
            lines.extend(_record_lines(record))
        lines.append("")

    index = citations.build_citation_index(_collect_anchors(artifact), base_url=base_url)
    lines.extend(citations.render_references(index, base_url=base_url))
    return "\n".join(lines).rstrip() + "\n"
