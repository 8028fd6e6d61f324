"""Delta block parsing: fenced ```delta JSON blocks inside message bodies."""

import json
import logging
import re
from dataclasses import dataclass, replace
from typing import Any

from brenner.errors import DeltaParseError
from brenner.models import OPERATIONS, SECTIONS, DeltaOperation, Message, Thread

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^[ \t]*```[ \t]*delta[ \t]*$", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"^[ \t]*```[ \t]*$")


@dataclass(frozen=True)
class DeltaParseResult:
    """Outcome for one delta block: a valid operation or a diagnostic."""

    valid: bool
    operation: str | None = None
    value: DeltaOperation | None = None
    error: str | None = None
    raw_block: str | None = None


@dataclass(frozen=True)
class MessageDiagnostic:
    message_id: int
    sender: str
    error: str
    raw_block: str


def find_delta_blocks(body: str) -> list[tuple[str, bool]]:
    """Return (content, closed) for each ```delta fence, in document order."""
    blocks = []
    lines = body.splitlines()
    i = 0
    while i < len(lines):
        if not _FENCE_OPEN.match(lines[i]):
            i += 1
            continue
        start = i + 1
        end = start
        while end < len(lines) and not _FENCE_CLOSE.match(lines[end]):
            end += 1
        closed = end < len(lines)
        blocks.append(("\n".join(lines[start:end]), closed))
        i = end + 1
    return blocks


def _require_text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise DeltaParseError(f"missing or empty '{key}'")
    return value.strip()


def parse_delta_block(raw: str) -> DeltaOperation:
    """Validate one block's JSON into a DeltaOperation. Raises DeltaParseError."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DeltaParseError(f"invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e
    if not isinstance(data, dict):
        raise DeltaParseError("delta block must contain a JSON object")

    operation = data.get("operation")
    if not isinstance(operation, str) or operation.strip().upper() not in OPERATIONS:
        raise DeltaParseError(f"unknown operation {operation!r}; expected one of {', '.join(OPERATIONS)}")
    operation = operation.strip().upper()

    section = data.get("section")
    if section not in SECTIONS:
        raise DeltaParseError(f"unknown section {section!r}")

    target_id = data.get("target_id")
    if target_id is not None and not isinstance(target_id, str):
        raise DeltaParseError("target_id must be a string or null")
    if isinstance(target_id, str):
        target_id = target_id.strip() or None
    if operation == "ADD" and target_id is not None:
        raise DeltaParseError("ADD must not carry a target_id")
    if operation != "ADD" and target_id is None:
        raise DeltaParseError(f"{operation} requires a target_id")

    payload = data.get("payload")
    if payload is None and operation == "DELETE":
        payload = {}
    if not isinstance(payload, dict):
        raise DeltaParseError("payload must be a JSON object")
    if operation in ("ADD", "UPDATE") and not payload:
        raise DeltaParseError(f"{operation} requires a non-empty payload")

    return DeltaOperation(
        operation=operation,
        section=section,
        target_id=target_id,
        payload=payload,
        rationale=_require_text(data, "rationale"),
    )


def parse_delta_message(body: str | None) -> list[DeltaParseResult]:
    """Parse every delta block in ``body``. A bad block never affects its siblings."""
    if not body:
        return []
    results = []
    for raw, closed in find_delta_blocks(body):
        if not closed:
            results.append(DeltaParseResult(valid=False, error="unterminated delta block", raw_block=raw))
            continue
        try:
            op = parse_delta_block(raw)
        except DeltaParseError as e:
            logger.debug(f"Rejected delta block: {e}")
            results.append(DeltaParseResult(valid=False, error=str(e), raw_block=raw))
            continue
        results.append(DeltaParseResult(valid=True, operation=op.operation, value=op))
    return results


def _stamp(op: DeltaOperation, message: Message, index: int) -> DeltaOperation:
    return replace(
        op,
        source_message_id=message.id,
        source_timestamp=message.created_ts,
        source_index=index,
        author=message.sender or None,
    )


def parse_message(message: Message) -> list[DeltaParseResult]:
    """Parse a message, stamping valid operations with their source."""
    results = []
    for index, result in enumerate(parse_delta_message(message.body)):
        if result.valid:
            result = DeltaParseResult(
                valid=True, operation=result.operation, value=_stamp(result.value, message, index)
            )
        results.append(result)
    return results


def parse_thread_deltas(thread: Thread) -> tuple[list[DeltaOperation], list[MessageDiagnostic]]:
    """All valid operations in a thread plus one diagnostic per rejected block."""
    operations = []
    diagnostics = []
    for message in thread.messages:
        for result in parse_message(message):
            if result.valid:
                operations.append(result.value)
            else:
                diagnostics.append(
                    MessageDiagnostic(
                        message_id=message.id,
                        sender=message.sender,
                        error=result.error or "",
                        raw_block=result.raw_block or "",
                    )
                )
    return operations, diagnostics


def valid_operations(results: list[DeltaParseResult]) -> list[DeltaOperation]:
    return [r.value for r in results if r.valid and r.value is not None]
