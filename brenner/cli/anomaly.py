"""Anomaly register commands."""

import asyncio
from typing import Annotated

import typer

from brenner.core.anomalies import AnomalyStorage, schema
from brenner.lib import config
from brenner.models import ANOMALY_SOURCE_TYPES, Anomaly, AnomalySource, ConflictsWith

from .errors import error_feedback
from .output import echo_if_output, output_json, warn

app = typer.Typer(add_completion=False, help="Record and triage anomalies.")


def _storage() -> AnomalyStorage:
    return AnomalyStorage(config.data_dir())


def _line(a: Anomaly) -> str:
    conflicts = ", ".join(a.conflicts_with.hypotheses + a.conflicts_with.assumptions) or "-"
    return f"{a.id} [{a.quarantine_status}] {a.name or a.observation[:60]} (vs {conflicts})"


def _require(storage: AnomalyStorage, anomaly_id: str) -> Anomaly:
    anomaly = asyncio.run(storage.get_anomaly_by_id(anomaly_id))
    if anomaly is None:
        raise ValueError(f"Anomaly not found: {anomaly_id}")
    return anomaly


def _transition(ctx: typer.Context, anomaly_id: str, change, verb: str) -> None:
    storage = _storage()
    updated = change(_require(storage, anomaly_id))
    asyncio.run(storage.save_anomaly(updated))
    output_json(updated.to_dict(), ctx) or echo_if_output(f"{verb} {updated.id}", ctx)


@app.command("add")
@error_feedback
def add(
    ctx: typer.Context,
    session: str = typer.Argument(..., help="Session id"),
    observation: str = typer.Argument(..., help="What was observed"),
    description: Annotated[str, typer.Option("--description", "-d", help="How it conflicts")] = "",
    hypotheses: Annotated[list[str] | None, typer.Option("--hypothesis", "-H", help="Conflicting hypothesis id")] = None,
    assumptions: Annotated[list[str] | None, typer.Option("--assumption", "-A", help="Conflicting assumption id")] = None,
    source_type: Annotated[str, typer.Option("--source", help=f"One of {', '.join(ANOMALY_SOURCE_TYPES)}")] = "discussion",
    reference: Annotated[str | None, typer.Option("--reference", help="Source reference")] = None,
    anchors: Annotated[list[str] | None, typer.Option("--anchor", help="Transcript anchor, e.g. §42")] = None,
    name: Annotated[str | None, typer.Option("--name", help="Short display name")] = None,
    identity: Annotated[str | None, typer.Option("--as", help="Recorded by")] = None,
    severity: Annotated[int | None, typer.Option("--severity", help="1 (highest) to 5")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", help="Tag")] = None,
):
    """Record a new anomaly."""
    storage = _storage()
    existing = asyncio.run(storage.load_session_anomalies(session))
    anomaly = schema.create_anomaly(
        session_id=session,
        observation=observation,
        conflicts_with=ConflictsWith(
            description=description or observation,
            hypotheses=list(hypotheses or []),
            assumptions=list(assumptions or []),
        ),
        source=AnomalySource(type=source_type, reference=reference, anchors=list(anchors or [])),
        existing_ids=[a.id for a in existing],
        name=name,
        recorded_by=identity,
        severity=severity,
        tags=tags,
    )
    asyncio.run(storage.save_anomaly(anomaly))
    output_json(anomaly.to_dict(), ctx) or echo_if_output(f"Recorded {anomaly.id}", ctx)


@app.command("list")
@error_feedback
def list_cmd(
    ctx: typer.Context,
    session: Annotated[str | None, typer.Option("--session", help="Only this session")] = None,
    status: Annotated[str | None, typer.Option("--status", help="active, resolved or deferred")] = None,
    hypothesis: Annotated[str | None, typer.Option("--hypothesis", "-H", help="Conflicting with hypothesis")] = None,
    assumption: Annotated[str | None, typer.Option("--assumption", "-A", help="Conflicting with assumption")] = None,
):
    """List anomalies."""
    storage = _storage()
    if session:
        anomalies = asyncio.run(storage.load_session_anomalies(session))
    elif hypothesis:
        anomalies = asyncio.run(storage.get_anomalies_for_hypothesis(hypothesis))
    elif assumption:
        anomalies = asyncio.run(storage.get_anomalies_for_assumption(assumption))
    elif status:
        anomalies = asyncio.run(storage.get_anomalies_by_status(status))
    else:
        anomalies = asyncio.run(storage.get_all_anomalies())

    if status:
        anomalies = [a for a in anomalies if a.quarantine_status == status]
    if hypothesis:
        anomalies = [a for a in anomalies if hypothesis in a.conflicts_with.hypotheses]
    if assumption:
        anomalies = [a for a in anomalies if assumption in a.conflicts_with.assumptions]

    if output_json([a.to_dict() for a in anomalies], ctx):
        return
    if not anomalies:
        echo_if_output("No anomalies", ctx)
        return
    echo_if_output("\n".join(_line(a) for a in anomalies), ctx)


@app.command("show")
@error_feedback
def show(ctx: typer.Context, anomaly_id: str = typer.Argument(..., help="Anomaly id")):
    """Show one anomaly."""
    anomaly = _require(_storage(), anomaly_id)
    if output_json(anomaly.to_dict(), ctx):
        return
    lines = [
        _line(anomaly),
        f"  observation: {anomaly.observation}",
        f"  conflict: {anomaly.conflicts_with.description}",
        f"  source: {anomaly.source.type}" + (f" ({anomaly.source.reference})" if anomaly.source.reference else ""),
    ]
    if anomaly.source.anchors:
        lines.append(f"  anchors: {', '.join(anomaly.source.anchors)}")
    if anomaly.resolution_plan:
        lines.append(f"  plan: {anomaly.resolution_plan}")
    if anomaly.resolved_by:
        lines.append(f"  resolved by {anomaly.resolved_by} at {anomaly.resolved_at}")
    if anomaly.spawned_hypotheses:
        lines.append(f"  spawned: {', '.join(anomaly.spawned_hypotheses)}")
    check = schema.can_spawn_hypothesis(anomaly)
    lines.append(f"  can spawn: {'yes' if check.can_spawn else 'no'} ({check.reason})")
    echo_if_output("\n".join(lines), ctx)


@app.command("resolve")
@error_feedback
def resolve(
    ctx: typer.Context,
    anomaly_id: str = typer.Argument(..., help="Anomaly id"),
    by: str = typer.Option(..., "--by", help="Hypothesis that explains it"),
    notes: Annotated[str | None, typer.Option("--notes", help="Resolution notes")] = None,
):
    """Mark an anomaly resolved by a hypothesis."""
    _transition(ctx, anomaly_id, lambda a: schema.resolve_anomaly(a, by, notes=notes), "Resolved")


@app.command("defer")
@error_feedback
def defer(
    ctx: typer.Context,
    anomaly_id: str = typer.Argument(..., help="Anomaly id"),
    reason: str = typer.Option(..., "--reason", help="Why it is parked"),
):
    """Park an anomaly until the core question is settled."""
    _transition(ctx, anomaly_id, lambda a: schema.defer_anomaly(a, reason), "Deferred")


@app.command("reactivate")
@error_feedback
def reactivate(ctx: typer.Context, anomaly_id: str = typer.Argument(..., help="Anomaly id")):
    """Return a deferred anomaly to active."""
    _transition(ctx, anomaly_id, schema.reactivate_anomaly, "Reactivated")


@app.command("link")
@error_feedback
def link(
    ctx: typer.Context,
    anomaly_id: str = typer.Argument(..., help="Anomaly id"),
    hypothesis: str = typer.Argument(..., help="Hypothesis spawned by the anomaly"),
):
    """Link a hypothesis spawned in response to an anomaly."""
    _transition(ctx, anomaly_id, lambda a: schema.link_spawned_hypothesis(a, hypothesis), "Linked")


@app.command("delete")
@error_feedback
def delete(ctx: typer.Context, anomaly_id: str = typer.Argument(..., help="Anomaly id")):
    """Delete an anomaly."""
    deleted = asyncio.run(_storage().delete_anomaly(anomaly_id))
    if not deleted:
        output_json({"deleted": False, "id": anomaly_id}, ctx) or warn(f"Anomaly not found: {anomaly_id}")
        raise typer.Exit(1)
    output_json({"deleted": True, "id": anomaly_id}, ctx) or echo_if_output(f"Deleted {anomaly_id}", ctx)


@app.command("stats")
@error_feedback
def stats(ctx: typer.Context):
    """Counts by status across all sessions."""
    s = asyncio.run(_storage().get_statistics())
    data = {
        "total": s.total,
        "by_status": s.by_status,
        "with_spawned_hypotheses": s.with_spawned_hypotheses,
        "sessions_with_anomalies": s.sessions_with_anomalies,
    }
    if output_json(data, ctx):
        return
    by_status = ", ".join(f"{k} {v}" for k, v in s.by_status.items())
    echo_if_output(
        f"{s.total} anomalies in {s.sessions_with_anomalies} sessions ({by_status}); "
        f"{s.with_spawned_hypotheses} spawned hypotheses",
        ctx,
    )


@app.command("reindex")
@error_feedback
def reindex(ctx: typer.Context):
    """Rebuild the cross-session index from the session files."""
    index = asyncio.run(_storage().rebuild_index())
    if output_json(index.to_dict(), ctx):
        return
    for w in index.warnings:
        warn(f"⚠ skipped {w.file}: {w.error}")
    echo_if_output(f"Indexed {len(index.entries)} anomalies", ctx)
