"""Artifact commands: fold a thread into its artifact, compile and publish it."""

import asyncio
from pathlib import Path

import typer

from brenner.bridge import ThreadFile
from brenner.core.anomalies import AnomalyStorage
from brenner.core.anomalies.schema import is_valid_session_id
from brenner.core.artifact import (
    anomalies_from_operations,
    artifact_to_dict,
    compile_artifact,
    create_artifact,
    ingest_thread,
    load_artifact,
    render_artifact_markdown,
    save_artifact,
)
from brenner.lib import config, paths, times
from brenner.models import Thread

from .errors import error_feedback
from .output import echo_if_output, output_json, warn


def _artifact_path(session_id: str, artifact: Path | None) -> Path:
    return artifact or paths.artifact_file(config.data_dir(), session_id)


def _session_id(thread: Thread, session: str | None) -> str:
    session_id = session or thread.thread_id
    if not session_id:
        raise ValueError("thread has no thread_id; pass --session")
    return session_id


@error_feedback
def merge(
    ctx: typer.Context,
    thread_file: Path = typer.Argument(..., help="Thread export (JSON)"),
    session: str | None = typer.Option(None, "--session", help="Session id (default: thread id)"),
    artifact: Path | None = typer.Option(None, "--artifact", help="Artifact JSON to update"),
    out: Path | None = typer.Option(None, "--out", help="Write the result here instead"),
    record_anomalies: bool = typer.Option(
        False, "--record-anomalies", help="Store accepted anomaly_register entries"
    ),
):
    """Fold new delta blocks from a thread into the session artifact."""
    thread = ThreadFile(thread_file).read_thread()
    session_id = _session_id(thread, session)
    source = _artifact_path(session_id, artifact)

    current = load_artifact(source)
    if current is None:
        first_ts = thread.messages[0].created_ts if thread.messages else None
        current = create_artifact(session_id, first_ts or times.now_iso())

    storage = AnomalyStorage(config.data_dir())
    stored = []
    if is_valid_session_id(session_id):
        stored = asyncio.run(storage.load_session_anomalies(session_id))
    result = ingest_thread(thread, current, stored)
    merged = result.merge

    recorded = []
    if record_anomalies:
        recorded = anomalies_from_operations(merged, session_id, [a.id for a in stored])
        for anomaly in recorded:
            asyncio.run(storage.save_anomaly(anomaly))

    target = out or source
    if result.artifact is not current:
        save_artifact(target, result.artifact)

    payload = {
        "artifact": str(target),
        "version": result.artifact.metadata.version,
        "applied": [{"operation": a.operation.describe(), "id": a.record_id} for a in merged.applied],
        "rejected": [
            {"operation": r.operation.describe(), "reason": r.reason, "detail": r.detail} for r in merged.rejected
        ],
        "warnings": [{"code": w.code, "message": w.message} for w in merged.warnings],
        "diagnostics": [{"message_id": d.message_id, "sender": d.sender, "error": d.error} for d in result.diagnostics],
        "anomalies": [a.id for a in recorded],
    }
    if output_json(payload, ctx):
        return

    for d in result.diagnostics:
        warn(f"⚠ message #{d.message_id} ({d.sender}): {d.error}")
    for r in merged.rejected:
        warn(f"✗ {r.operation.describe()}: {r.reason} {r.detail}".rstrip())
    for w in merged.warnings:
        warn(f"⚠ {w.message}")

    if result.artifact.metadata.version == current.metadata.version:
        echo_if_output(f"No changes (v{current.metadata.version})", ctx)
    else:
        echo_if_output(
            f"Applied {len(merged.applied)} ops → v{result.artifact.metadata.version} ({target})", ctx
        )
    for anomaly_id in payload["anomalies"]:
        echo_if_output(f"Recorded {anomaly_id}", ctx)


@error_feedback
def compile(
    ctx: typer.Context,
    thread_file: Path = typer.Argument(..., help="Thread export (JSON)"),
    identity: str = typer.Option(..., "--as", help="Sender of the compiled message"),
    session: str | None = typer.Option(None, "--session", help="Session id (default: thread id)"),
    artifact: Path | None = typer.Option(None, "--artifact", help="Artifact JSON to compile"),
    base_url: str | None = typer.Option(None, "--base-url", help="Prefix for transcript links"),
):
    """Mark the artifact compiled and post it to the thread."""
    bridge = ThreadFile(thread_file)
    thread = bridge.read_thread()
    session_id = _session_id(thread, session)
    source = _artifact_path(session_id, artifact)

    current = load_artifact(source)
    if current is None:
        raise ValueError(f"No artifact at {source}; run merge first")

    compiled = compile_artifact(current, times.now_iso())
    subject = f"COMPILED: {session_id} v{compiled.metadata.version}"
    if any(m.subject == subject for m in thread.messages):
        if compiled is not current:
            save_artifact(source, compiled)
        output_json({"message_id": None, "artifact": artifact_to_dict(compiled)}, ctx) or warn(
            f"{subject} already posted; nothing sent"
        )
        return

    body = render_artifact_markdown(compiled, base_url or config.base_url())
    recipients = sorted({m.sender for m in thread.messages if m.sender and m.sender != identity})
    message = bridge.send_message(
        thread.thread_id,
        sender=identity,
        recipients=recipients,
        subject=subject,
        body=body,
    )
    save_artifact(source, compiled)

    output_json({"message_id": message.id, "artifact": artifact_to_dict(compiled)}, ctx) or echo_if_output(
        f"Posted #{message.id}: {message.subject}", ctx
    )
