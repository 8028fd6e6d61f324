"""Thread ingestion: parse deltas, annotate citations, merge into the artifact."""

import logging
from dataclasses import dataclass, field, replace

from brenner.core import citations
from brenner.core.anomalies import schema
from brenner.core.delta import MessageDiagnostic, parse_thread_deltas
from brenner.errors import AnomalySequenceOverflow, AnomalyValidationError
from brenner.models import Anomaly, AnomalySource, Artifact, ConflictsWith, Thread

from .merge import MergeResult, merge
from .sections import conflict_targets

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    merge: MergeResult
    diagnostics: list[MessageDiagnostic] = field(default_factory=list)

    @property
    def artifact(self) -> Artifact:
        return self.merge.artifact


def ingest_thread(thread: Thread, artifact: Artifact, anomalies: list[Anomaly] | None = None) -> IngestResult:
    """Fold every message newer than the artifact's cursor into the artifact.

    The cursor (``metadata.last_message_id``) advances past all consumed
    messages, so ingesting the same thread twice adds nothing the second time.
    """
    cursor = artifact.metadata.last_message_id
    fresh = [m for m in thread.messages if cursor is None or m.id > cursor]
    if not fresh:
        return IngestResult(merge=MergeResult(artifact=artifact))

    operations, diagnostics = parse_thread_deltas(Thread(thread_id=thread.thread_id, messages=fresh))
    for d in diagnostics:
        logger.info(f"Ignored delta block in message {d.message_id} from {d.sender}: {d.error}")
    annotated = [citations.annotate_operation(op) for op in operations]
    result = merge(artifact, annotated, anomalies)

    merged = result.artifact
    result.artifact = Artifact(
        metadata=replace(merged.metadata, last_message_id=max(m.id for m in fresh)),
        sections=merged.sections,
    )
    return IngestResult(merge=result, diagnostics=diagnostics)


def _text(payload: dict, *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def anomalies_from_operations(
    result: MergeResult, session_id: str, existing_ids: list[str] | None = None
) -> list[Anomaly]:
    """Anomaly records for every register entry the merge accepted.

    Conflict targets are split into hypothesis and assumption ids; entries
    that still fail validation are logged and skipped.
    """
    ids = list(existing_ids or [])
    created = []
    for item in result.applied:
        op = item.operation
        if op.operation != "ADD" or op.section != "anomaly_register":
            continue
        record = next((r for r in result.artifact.records(op.section) if r.get("id") == item.record_id), op.payload)
        targets = sorted(conflict_targets(record))
        observation = _text(record, "observation", "description", "name")
        source_type = record.get("source_type")
        try:
            anomaly = schema.create_anomaly(
                session_id=session_id,
                observation=observation,
                conflicts_with=ConflictsWith(
                    description=_text(record, "conflict_description", "description", "observation"),
                    hypotheses=[t for t in targets if schema.HYPOTHESIS_REF.match(t)],
                    assumptions=[t for t in targets if schema.ASSUMPTION_REF.match(t)],
                ),
                source=AnomalySource(
                    type=source_type if source_type in schema.ANOMALY_SOURCE_TYPES else "discussion",
                    reference=f"{item.record_id} (msg {op.source_message_id})",
                    anchors=[citations.format_anchor(n) for n in op.anchors],
                ),
                existing_ids=ids,
                name=_text(record, "name") or None,
                recorded_by=op.author,
                now=op.source_timestamp or None,
            )
        except (AnomalyValidationError, AnomalySequenceOverflow) as e:
            logger.warning(f"Skipping register entry {item.record_id}: {e}")
            continue
        ids.append(anomaly.id)
        created.append(anomaly)
    return created
