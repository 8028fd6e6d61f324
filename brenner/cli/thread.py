"""Thread inspection commands: status and delta diagnostics."""

from pathlib import Path

import typer

from brenner.bridge import ThreadFile
from brenner.core import status as thread_status
from brenner.core.delta import parse_message
from brenner.lib import config

from .errors import error_feedback
from .output import echo_if_output, output_json


@error_feedback
def status(
    ctx: typer.Context,
    thread_file: Path = typer.Argument(..., help="Thread export (JSON)"),
    summary: bool = typer.Option(False, "--summary", "-s", help="One-line summary only"),
):
    """Show session phase, role completion, and pending acks."""
    thread = ThreadFile(thread_file).read_thread()
    roster = config.roster()

    if summary:
        result = thread_status.compute_thread_status_summary(thread, roster)
        output_json(result.to_dict(), ctx) or echo_if_output(result.summary, ctx)
        return

    result = thread_status.compute_thread_status(thread, roster)
    if output_json(result.to_dict(), ctx):
        return

    lines = [f"{result.thread_id}: {result.summary}", ""]
    for role in result.role_status:
        mark = "✓" if role.has_response else "·"
        lines.append(f"  {mark} {role.display_name:<22} {', '.join(role.agents)} ({role.total_messages} msgs)")
    unassigned = [p.agent_name for p in result.participants if p.role is None]
    if unassigned:
        lines.append(f"  unassigned: {', '.join(unassigned)}")
    pending = [p for p in result.participants if p.pending_acks]
    for p in pending:
        lines.append(f"  {p.agent_name}: {p.pending_acks} pending acks")
    if result.latest_artifact:
        a = result.latest_artifact
        lines.append(f"  latest artifact: #{a.message_id} {a.subject} ({a.sender}, {a.created_at})")
    echo_if_output("\n".join(lines), ctx)


@error_feedback
def deltas(
    ctx: typer.Context,
    thread_file: Path = typer.Argument(..., help="Thread export (JSON)"),
    invalid_only: bool = typer.Option(False, "--invalid", help="Only show rejected blocks"),
):
    """List delta blocks per message, valid and rejected."""
    thread = ThreadFile(thread_file).read_thread()

    rows = []
    for message in thread.messages:
        for index, result in enumerate(parse_message(message)):
            if invalid_only and result.valid:
                continue
            rows.append(
                {
                    "message_id": message.id,
                    "sender": message.sender,
                    "index": index,
                    "valid": result.valid,
                    "operation": result.value.describe() if result.value else None,
                    "error": result.error,
                }
            )

    if output_json(rows, ctx):
        return
    if not rows:
        echo_if_output("No delta blocks", ctx)
        return
    for row in rows:
        detail = row["operation"] if row["valid"] else f"rejected: {row['error']}"
        echo_if_output(f"#{row['message_id']}.{row['index']} {row['sender']}: {detail}", ctx)
