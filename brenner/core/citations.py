"""Transcript anchor citations: §n references, ranges, and link building."""

import re
from dataclasses import dataclass, field, replace

from brenner.models import DeltaOperation

_DASHES = "-–—"

# Section numbers are at most nine digits; longer runs are not anchors.
_NUM = r"(\d{1,9})(?!\d)"

_RANGE = re.compile(rf"^§?\s*{_NUM}\s*[{_DASHES}]\s*§?\s*{_NUM}\s*$")
_SINGLE = re.compile(rf"§\s*{_NUM}")
_BARE = re.compile(rf"^\s*{_NUM}\s*$")
_IN_TEXT = re.compile(rf"§\s*{_NUM}(?:\s*[{_DASHES}]\s*§?\s*{_NUM})?")

# Guards against "§1-§999999999" expanding into a huge list.
MAX_RANGE_SPAN = 1000


@dataclass(frozen=True)
class Citation:
    section: int
    anchor: str
    href: str
    quote: str | None = None


@dataclass(frozen=True)
class ExternalCitation:
    id: str
    type: str
    title: str
    authors: str | None = None
    year: int | None = None
    url: str | None = None
    doi: str | None = None
    notes: str | None = None


@dataclass
class CitationIndex:
    transcript: list[Citation] = field(default_factory=list)
    external: list[ExternalCitation] = field(default_factory=list)


def format_anchor(section: int) -> str:
    return f"§{section}"


def section_href(section: int, base_url: str | None = None) -> str:
    base = base_url.rstrip("/") if isinstance(base_url, str) else ""
    return f"{base}/corpus/transcript#section-{section}"


def _span(a: int, b: int) -> range:
    start, end = (a, b) if a <= b else (b, a)
    if end - start > MAX_RANGE_SPAN:
        return range(0)
    return range(start, end + 1)


def parse_anchors(value: str | list[str] | None) -> list[int]:
    """Normalize a structured citation list into sorted, unique section numbers.

    Accepts "§42", "42", "§42-§45", "§42-45", "42–45" (any dash), in either
    order. Items that match none of these forms are ignored.
    """
    if not value:
        return []
    items = [value] if isinstance(value, str) else value

    seen: set[int] = set()
    for raw in items:
        if isinstance(raw, int) and not isinstance(raw, bool):
            if raw >= 0:
                seen.add(raw)
            continue
        if not isinstance(raw, str):
            continue
        text = raw.strip()
        if not text:
            continue

        m = _RANGE.match(text)
        if m:
            seen.update(_span(int(m.group(1)), int(m.group(2))))
            continue

        m = _SINGLE.search(text)
        if m:
            seen.add(int(m.group(1)))
            continue

        m = _BARE.match(text)
        if m:
            seen.add(int(m.group(1)))

    return sorted(seen)


def extract_anchors(text: str | None) -> list[int]:
    """Find every §-anchor (and §-range) referenced anywhere in free text."""
    if not text or not isinstance(text, str):
        return []
    seen: set[int] = set()
    for m in _IN_TEXT.finditer(text):
        start = int(m.group(1))
        if m.group(2) is not None:
            seen.update(_span(start, int(m.group(2))))
        else:
            seen.add(start)
    return sorted(seen)


def build_citations(anchors: str | list[str] | None, base_url: str | None = None) -> list[Citation]:
    return [
        Citation(section=n, anchor=format_anchor(n), href=section_href(n, base_url))
        for n in parse_anchors(anchors)
    ]


def annotate_operation(op: DeltaOperation) -> DeltaOperation:
    """Return ``op`` with the anchors cited by its rationale and payload."""
    found = set(extract_anchors(op.rationale))
    payload = op.payload if isinstance(op.payload, dict) else {}
    if isinstance(payload.get("anchors"), (list, str)):
        found.update(parse_anchors(payload["anchors"]))
    for value in payload.values():
        if isinstance(value, str):
            found.update(extract_anchors(value))
    return replace(op, anchors=sorted(found))


def format_external_citation(citation: ExternalCitation) -> str:
    parts = []
    if citation.authors:
        parts.append(citation.authors.strip())
    if isinstance(citation.year, int):
        parts.append(f"({citation.year})")
    parts.append(citation.title.strip())
    if citation.doi:
        parts.append(f"DOI: {citation.doi.strip()}")
    if citation.url:
        parts.append(citation.url.strip())
    if citation.notes:
        parts.append(f"Notes: {citation.notes.strip()}")
    return " ".join(parts)


def build_citation_index(
    anchors: list[str] | None = None,
    external: list[ExternalCitation] | None = None,
    base_url: str | None = None,
) -> CitationIndex:
    return CitationIndex(
        transcript=build_citations(anchors, base_url),
        external=sorted(external or [], key=lambda c: c.title.lower()),
    )


def render_references(
    index: CitationIndex,
    base_url: str | None = None,
    include_heading: bool = True,
    include_quotes: bool = False,
) -> list[str]:
    """Markdown lines for a References block."""
    lines = []
    if include_heading:
        lines += ["## References", ""]

    lines.append("### Transcript")
    if not index.transcript:
        lines.append("- _None yet._")
    for cite in index.transcript:
        suffix = f' "{cite.quote}"' if include_quotes and cite.quote else ""
        lines.append(f"- [{cite.anchor}]({section_href(cite.section, base_url)}){suffix}")
    lines.append("")

    lines.append("### External Sources")
    if not index.external:
        lines.append("- _None yet._")
    for cite in index.external:
        lines.append(f"- {format_external_citation(cite)}")
    return lines
