"""Resolve transcript anchors to links."""

import typer

from brenner.core import citations
from brenner.lib import config

from .errors import error_feedback
from .output import echo_if_output, output_json


@error_feedback
def cite(
    ctx: typer.Context,
    text: list[str] = typer.Argument(..., help="Anchors (§42, 42, §42-45) or free text"),
    base_url: str | None = typer.Option(None, "--base-url", help="Prefix for transcript links"),
):
    """Expand §-anchors and ranges into transcript links."""
    found = set(citations.parse_anchors(text))
    for chunk in text:
        found.update(citations.extract_anchors(chunk))

    resolved = citations.build_citations([str(n) for n in sorted(found)], base_url or config.base_url())
    if output_json([{"section": c.section, "anchor": c.anchor, "href": c.href} for c in resolved], ctx):
        return
    if not resolved:
        echo_if_output("No anchors found", ctx)
        return
    echo_if_output("\n".join(f"{c.anchor}\t{c.href}" for c in resolved), ctx)
