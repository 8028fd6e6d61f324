"""Artifact merge: fold ordered delta operations onto a versioned artifact.

Operations are applied in (source_timestamp, source_message_id,
source_index) order regardless of the order they are passed in, so the same
set of operations always yields the same artifact. Operations that cannot be
applied are returned as ``RejectedOperation`` values; the fold continues with
the remaining operations.

The input artifact is never mutated. When nothing changes, the very same
artifact object is returned with its version and timestamps untouched.
"""

import copy
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from brenner.errors import MergeConflict
from brenner.lib import times
from brenner.models import RESEARCH_THREAD, Anomaly, Artifact, Contributor, DeltaOperation

from .sections import CONFLICT_TARGETS, conflict_targets, is_valid_id, next_id, sequence_of

logger = logging.getLogger(__name__)

TARGET_NOT_FOUND = "target_not_found"
DUPLICATE_ID = "duplicate_id"
INVALID_ID = "invalid_id"

DANGLING_CONFLICT_REFERENCE = "dangling_conflict_reference"


@dataclass(frozen=True)
class RejectedOperation:
    operation: DeltaOperation
    reason: str
    detail: str = ""


@dataclass(frozen=True)
class MergeWarning:
    code: str
    message: str
    section: str
    target_id: str
    referenced_by: tuple[str, ...] = ()


@dataclass(frozen=True)
class AppliedOperation:
    operation: DeltaOperation
    record_id: str


@dataclass
class MergeResult:
    artifact: Artifact
    rejected: list[RejectedOperation] = field(default_factory=list)
    warnings: list[MergeWarning] = field(default_factory=list)
    applied: list[AppliedOperation] = field(default_factory=list)


def operation_sort_key(op: DeltaOperation) -> tuple:
    message_id = op.source_message_id if op.source_message_id is not None else -1
    canonical = json.dumps(
        [op.operation, op.section, op.target_id, op.payload, op.rationale],
        sort_keys=True,
        default=str,
    )
    return (times.sort_key(op.source_timestamp), message_id, op.source_index, canonical)


def _payload_fields(op: DeltaOperation) -> dict[str, Any]:
    return {k: copy.deepcopy(v) for k, v in op.payload.items() if k != "id"}


def _find(records: list[dict[str, Any]], record_id: str) -> int:
    for i, record in enumerate(records):
        if record.get("id") == record_id:
            return i
    return -1


def _apply_research_thread(sections: dict[str, Any], op: DeltaOperation) -> str:
    current = sections.get(RESEARCH_THREAD)
    if op.operation == "ADD":
        if current:
            raise MergeConflict(DUPLICATE_ID, f"{RESEARCH_THREAD} already set ({current.get('id')})")
        record_id = next_id(RESEARCH_THREAD, [])
        sections[RESEARCH_THREAD] = {"id": record_id, **_payload_fields(op)}
        return record_id

    if not current or current.get("id") != op.target_id:
        raise MergeConflict(TARGET_NOT_FOUND, f"no {RESEARCH_THREAD} record {op.target_id}")
    if op.operation == "UPDATE":
        sections[RESEARCH_THREAD] = {**current, **_payload_fields(op)}
    else:
        sections[RESEARCH_THREAD] = None
    return op.target_id


def _apply_list(sections: dict[str, Any], op: DeltaOperation, high_water: dict[str, int]) -> str:
    records: list[dict[str, Any]] = sections.setdefault(op.section, [])
    existing = [r.get("id") for r in records if isinstance(r.get("id"), str)]
    issued = high_water.get(op.section, 0)

    if op.operation == "ADD":
        requested = op.payload.get("id")
        if requested is None:
            record_id = next_id(op.section, existing, issued)
        elif not isinstance(requested, str) or not is_valid_id(op.section, requested.strip()):
            raise MergeConflict(INVALID_ID, f"{requested!r} is not a {op.section} id")
        elif requested.strip() in existing:
            raise MergeConflict(DUPLICATE_ID, f"{op.section} already has {requested.strip()}")
        elif 0 < sequence_of(op.section, requested.strip()) <= issued:
            raise MergeConflict(DUPLICATE_ID, f"{requested.strip()} was already issued in {op.section}")
        else:
            record_id = requested.strip()
        records.append({"id": record_id, **_payload_fields(op)})
        high_water[op.section] = max(issued, sequence_of(op.section, record_id))
        return record_id

    index = _find(records, op.target_id)
    if index < 0:
        raise MergeConflict(TARGET_NOT_FOUND, f"{op.section} has no record {op.target_id}")
    if op.operation == "UPDATE":
        records[index] = {**records[index], **_payload_fields(op)}
    else:
        records.pop(index)
    return op.target_id


def apply_operation(sections: dict[str, Any], op: DeltaOperation, high_water: dict[str, int] | None = None) -> str:
    """Apply one operation to ``sections`` in place. Raises MergeConflict.

    ``high_water`` maps section to the highest id number issued so far and is
    advanced by every ADD.
    """
    if op.section == RESEARCH_THREAD:
        return _apply_research_thread(sections, op)
    return _apply_list(sections, op, high_water if high_water is not None else {})


def _dangling_references(
    sections: dict[str, Any], op: DeltaOperation, anomalies: list[Anomaly]
) -> list[MergeWarning]:
    kind = CONFLICT_TARGETS.get(op.section)
    if op.operation != "DELETE" or kind is None:
        return []

    referenced_by = [
        r.get("id", "?") for r in sections.get("anomaly_register") or [] if op.target_id in conflict_targets(r)
    ]
    for anomaly in anomalies:
        ids = anomaly.conflicts_with.hypotheses if kind == "hypotheses" else anomaly.conflicts_with.assumptions
        if op.target_id in ids:
            referenced_by.append(anomaly.id)
    if not referenced_by:
        return []

    message = f"{op.target_id} removed from {op.section} but still referenced by {', '.join(referenced_by)}"
    logger.warning(message)
    return [
        MergeWarning(
            code=DANGLING_CONFLICT_REFERENCE,
            message=message,
            section=op.section,
            target_id=op.target_id,
            referenced_by=tuple(referenced_by),
        )
    ]


def _contributors(existing: list[Contributor], applied: list[AppliedOperation]) -> list[Contributor]:
    contributors = [replace(c) for c in existing]
    known = {c.agent for c in contributors}
    for item in applied:
        author = item.operation.author
        if author and author not in known:
            known.add(author)
            contributors.append(Contributor(agent=author, contributed_at=item.operation.source_timestamp))
    return contributors


def merge(
    artifact: Artifact,
    operations: list[DeltaOperation],
    anomalies: list[Anomaly] | None = None,
) -> MergeResult:
    """Fold ``operations`` onto ``artifact``.

    ``anomalies`` are stored anomaly records consulted when a DELETE removes a
    hypothesis or assumption; references are reported as warnings and never
    repaired.
    """
    if not operations:
        return MergeResult(artifact=artifact)

    sections = copy.deepcopy(artifact.sections)
    high_water = dict(artifact.metadata.id_high_water)
    rejected: list[RejectedOperation] = []
    warnings: list[MergeWarning] = []
    applied: list[AppliedOperation] = []

    for op in sorted(operations, key=operation_sort_key):
        try:
            record_id = apply_operation(sections, op, high_water)
        except MergeConflict as e:
            logger.info(f"Rejected {op.describe()}: {e.reason} {e.detail}")
            rejected.append(RejectedOperation(operation=op, reason=e.reason, detail=e.detail))
            continue
        applied.append(AppliedOperation(operation=op, record_id=record_id))
        warnings.extend(_dangling_references(sections, op, anomalies or []))

    if sections == artifact.sections:
        return MergeResult(artifact=artifact, rejected=rejected, warnings=warnings, applied=applied)

    updated_at = artifact.metadata.updated_at
    for item in applied:
        if times.parse_ts(item.operation.source_timestamp) is not None:
            updated_at = times.latest(updated_at, item.operation.source_timestamp)
    updated_at = times.latest(artifact.metadata.created_at, updated_at)

    metadata = replace(
        artifact.metadata,
        version=artifact.metadata.version + 1,
        updated_at=updated_at,
        contributors=_contributors(artifact.metadata.contributors, applied),
        id_high_water=high_water,
    )
    return MergeResult(
        artifact=Artifact(metadata=metadata, sections=sections),
        rejected=rejected,
        warnings=warnings,
        applied=applied,
    )
