"""Shared data models and types."""

from dataclasses import dataclass, field
from typing import Any

OPERATIONS = ("ADD", "UPDATE", "DELETE")

RESEARCH_THREAD = "research_thread"
SECTIONS = (
    RESEARCH_THREAD,
    "hypothesis_slate",
    "predictions_table",
    "discriminative_tests",
    "assumption_ledger",
    "anomaly_register",
    "adversarial_critique",
)

ARTIFACT_STATUSES = ("draft", "compiled")
QUARANTINE_STATUSES = ("active", "resolved", "deferred")
ANOMALY_SOURCE_TYPES = ("experiment", "literature", "discussion", "calculation")


@dataclass(frozen=True)
class Message:
    """A thread message as delivered by the messaging collaborator."""

    id: int
    sender: str
    subject: str
    body: str = ""
    to: list[str] = field(default_factory=list)
    created_ts: str = ""
    importance: str = "normal"
    ack_required: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=int(data["id"]),
            sender=data.get("from") or data.get("sender") or "",
            subject=data.get("subject") or "",
            body=data.get("body_md") or data.get("body") or "",
            to=list(data.get("to") or []),
            created_ts=data.get("created_ts") or "",
            importance=data.get("importance") or "normal",
            ack_required=bool(data.get("ack_required", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.sender,
            "to": list(self.to),
            "subject": self.subject,
            "body": self.body,
            "created_ts": self.created_ts,
            "importance": self.importance,
            "ack_required": self.ack_required,
        }


@dataclass(frozen=True)
class Thread:
    """The ordered message log of one collaborative session."""

    thread_id: str
    messages: list[Message] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Thread":
        return cls(
            thread_id=str(data.get("thread_id") or ""),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {"thread_id": self.thread_id, "messages": [m.to_dict() for m in self.messages]}


@dataclass(frozen=True)
class DeltaOperation:
    """A structured edit extracted from a message body. Merge input only."""

    operation: str
    section: str
    payload: dict[str, Any]
    rationale: str
    target_id: str | None = None
    source_message_id: int | None = None
    source_timestamp: str | None = None
    source_index: int = 0
    author: str | None = None
    anchors: list[int] = field(default_factory=list)

    def describe(self) -> str:
        target = f" {self.target_id}" if self.target_id else ""
        source = f" (msg {self.source_message_id})" if self.source_message_id is not None else ""
        return f"{self.operation} {self.section}{target}{source}"


@dataclass
class Contributor:
    agent: str
    contributed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"agent": self.agent, "contributed_at": self.contributed_at}


@dataclass
class ArtifactMetadata:
    session_id: str
    created_at: str
    updated_at: str
    version: int = 0
    status: str = "draft"
    contributors: list[Contributor] = field(default_factory=list)
    # Highest thread message id already folded in; None before the first ingest.
    last_message_id: int | None = None
    # Highest numbered id ever allocated per section; freed ids are not reused.
    id_high_water: dict[str, int] = field(default_factory=dict)


@dataclass
class Artifact:
    """Versioned research document for one session.

    ``sections`` maps every name in SECTIONS to its records: ``research_thread``
    holds a single record (or None), every other section an ordered list.
    """

    metadata: ArtifactMetadata
    sections: dict[str, Any]

    def records(self, section: str) -> list[dict[str, Any]]:
        value = self.sections.get(section)
        if section == RESEARCH_THREAD:
            return [value] if value else []
        return list(value or [])


@dataclass
class AnomalySource:
    type: str
    reference: str | None = None
    anchors: list[str] = field(default_factory=list)
    citation: str | None = None


@dataclass
class ConflictsWith:
    description: str
    hypotheses: list[str] = field(default_factory=list)
    assumptions: list[str] = field(default_factory=list)


@dataclass
class Anomaly:
    """An observation that conflicts with existing hypotheses or assumptions."""

    id: str
    observation: str
    source: AnomalySource
    conflicts_with: ConflictsWith
    session_id: str
    created_at: str
    updated_at: str
    quarantine_status: str = "active"
    spawned_hypotheses: list[str] = field(default_factory=list)
    name: str | None = None
    resolution_plan: str | None = None
    resolved_by: str | None = None
    resolved_at: str | None = None
    recorded_by: str | None = None
    severity: int | None = None
    tags: list[str] = field(default_factory=list)
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "observation": self.observation,
            "source": _drop_none(
                {
                    "type": self.source.type,
                    "reference": self.source.reference,
                    "anchors": list(self.source.anchors) or None,
                    "citation": self.source.citation,
                }
            ),
            "conflictsWith": {
                "hypotheses": list(self.conflicts_with.hypotheses),
                "assumptions": list(self.conflicts_with.assumptions),
                "description": self.conflicts_with.description,
            },
            "quarantineStatus": self.quarantine_status,
            "spawnedHypotheses": list(self.spawned_hypotheses),
            "sessionId": self.session_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "name": self.name,
            "resolutionPlan": self.resolution_plan,
            "resolvedBy": self.resolved_by,
            "resolvedAt": self.resolved_at,
            "recordedBy": self.recorded_by,
            "severity": self.severity,
            "tags": list(self.tags) or None,
            "notes": self.notes,
        }
        return _drop_none(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Anomaly":
        source = data.get("source") or {}
        conflicts = data.get("conflictsWith") or {}
        return cls(
            id=data["id"],
            observation=data["observation"],
            source=AnomalySource(
                type=source["type"],
                reference=source.get("reference"),
                anchors=list(source.get("anchors") or []),
                citation=source.get("citation"),
            ),
            conflicts_with=ConflictsWith(
                description=conflicts.get("description", ""),
                hypotheses=list(conflicts.get("hypotheses") or []),
                assumptions=list(conflicts.get("assumptions") or []),
            ),
            session_id=data["sessionId"],
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            quarantine_status=data.get("quarantineStatus", "active"),
            spawned_hypotheses=list(data.get("spawnedHypotheses") or []),
            name=data.get("name"),
            resolution_plan=data.get("resolutionPlan"),
            resolved_by=data.get("resolvedBy"),
            resolved_at=data.get("resolvedAt"),
            recorded_by=data.get("recordedBy"),
            severity=data.get("severity"),
            tags=list(data.get("tags") or []),
            notes=data.get("notes"),
        )


@dataclass
class AnomalyIndexEntry:
    """Lightweight projection of one anomaly for cross-session queries."""

    id: str
    session_id: str
    quarantine_status: str
    conflicts_with_hypotheses: list[str] = field(default_factory=list)
    conflicts_with_assumptions: list[str] = field(default_factory=list)
    spawned_hypotheses: list[str] = field(default_factory=list)
    name: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_anomaly(cls, anomaly: Anomaly) -> "AnomalyIndexEntry":
        return cls(
            id=anomaly.id,
            session_id=anomaly.session_id,
            quarantine_status=anomaly.quarantine_status,
            conflicts_with_hypotheses=list(anomaly.conflicts_with.hypotheses),
            conflicts_with_assumptions=list(anomaly.conflicts_with.assumptions),
            spawned_hypotheses=list(anomaly.spawned_hypotheses),
            name=anomaly.name,
            created_at=anomaly.created_at,
            updated_at=anomaly.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "quarantineStatus": self.quarantine_status,
            "conflictsWithHypotheses": list(self.conflicts_with_hypotheses),
            "conflictsWithAssumptions": list(self.conflicts_with_assumptions),
            "spawnedHypotheses": list(self.spawned_hypotheses),
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnomalyIndexEntry":
        return cls(
            id=data["id"],
            session_id=data["sessionId"],
            quarantine_status=data["quarantineStatus"],
            conflicts_with_hypotheses=list(data.get("conflictsWithHypotheses") or []),
            conflicts_with_assumptions=list(data.get("conflictsWithAssumptions") or []),
            spawned_hypotheses=list(data.get("spawnedHypotheses") or []),
            name=data.get("name"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class IndexWarning:
    """A session file the index rebuild had to skip."""

    file: str
    error: str


@dataclass
class AnomalyIndex:
    version: int
    updated_at: str
    entries: list[AnomalyIndexEntry] = field(default_factory=list)
    warnings: list[IndexWarning] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "updatedAt": self.updated_at,
            "entries": [e.to_dict() for e in self.entries],
            "warnings": [{"file": w.file, "error": w.error} for w in self.warnings],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnomalyIndex":
        return cls(
            version=int(data["version"]),
            updated_at=data["updatedAt"],
            entries=[AnomalyIndexEntry.from_dict(e) for e in data["entries"]],
            warnings=[IndexWarning(file=w["file"], error=w["error"]) for w in data.get("warnings") or []],
        )


@dataclass
class AnomalyStatistics:
    total: int
    by_status: dict[str, int]
    with_spawned_hypotheses: int
    sessions_with_anomalies: int


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}
