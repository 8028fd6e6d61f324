"""Anomaly ids, validation, and quarantine status transitions.

Transitions return a new Anomaly and never modify their argument. Each takes
an explicit ``now`` so callers replaying history get reproducible timestamps.
"""

import re
from dataclasses import dataclass, replace

from brenner.errors import AnomalySequenceOverflow, AnomalyTransitionError, AnomalyValidationError
from brenner.lib import times
from brenner.models import ANOMALY_SOURCE_TYPES, QUARANTINE_STATUSES, Anomaly, AnomalySource, ConflictsWith

ANOMALY_ID = re.compile(r"^X-[A-Za-z0-9][\w-]*-\d{3}$")
HYPOTHESIS_REF = re.compile(r"^H-[A-Za-z0-9][\w-]*-\d{3}$|^H\d+$")
ASSUMPTION_REF = re.compile(r"^A-[A-Za-z0-9][\w-]*-\d{3}$|^A\d+$")
ANCHOR = re.compile(r"^§\d+(-\d+)?$")
SESSION_ID = re.compile(r"^[A-Za-z0-9][\w-]*$")

MAX_SEQUENCE = 999
MAX_NOTES = 2000
MAX_NAME = 100


@dataclass(frozen=True)
class SpawnCheck:
    can_spawn: bool
    reason: str


def is_valid_anomaly_id(value: str) -> bool:
    return isinstance(value, str) and bool(ANOMALY_ID.match(value))


def is_valid_session_id(value: str) -> bool:
    return isinstance(value, str) and bool(SESSION_ID.match(value))


def session_of(anomaly_id: str) -> str | None:
    """Session id embedded in ``X-<session>-<seq>``, None for malformed ids."""
    if not is_valid_anomaly_id(anomaly_id):
        return None
    return anomaly_id[2:-4]


def generate_anomaly_id(session_id: str, existing_ids: list[str]) -> str:
    prefix = f"X-{session_id}-"
    sequences = [int(i[-3:]) for i in existing_ids if i.startswith(prefix) and i[-3:].isdigit()]
    seq = max(sequences, default=0) + 1
    if seq > MAX_SEQUENCE:
        raise AnomalySequenceOverflow(
            f"Anomaly sequence overflow for session {session_id!r}: "
            f"maximum {MAX_SEQUENCE} anomalies per session exceeded"
        )
    return f"{prefix}{seq:03d}"


def validate_anomaly(anomaly: Anomaly) -> Anomaly:
    """Return ``anomaly`` unchanged or raise AnomalyValidationError."""
    errors = []
    if not is_valid_anomaly_id(anomaly.id):
        errors.append(f"invalid anomaly id {anomaly.id!r} (expected X-<session>-<seq>)")
    if not is_valid_session_id(anomaly.session_id):
        errors.append(f"invalid session id {anomaly.session_id!r}")
    elif session_of(anomaly.id) not in (None, anomaly.session_id):
        errors.append(f"id {anomaly.id} does not belong to session {anomaly.session_id}")
    if not anomaly.observation or not anomaly.observation.strip():
        errors.append("observation is required")
    if anomaly.source.type not in ANOMALY_SOURCE_TYPES:
        errors.append(f"unknown source type {anomaly.source.type!r}")
    errors += [f"invalid anchor {a!r}" for a in anomaly.source.anchors if not ANCHOR.match(a)]
    if not anomaly.conflicts_with.description or not anomaly.conflicts_with.description.strip():
        errors.append("conflict description is required")
    errors += [f"invalid hypothesis id {h!r}" for h in anomaly.conflicts_with.hypotheses if not HYPOTHESIS_REF.match(h)]
    errors += [f"invalid assumption id {a!r}" for a in anomaly.conflicts_with.assumptions if not ASSUMPTION_REF.match(a)]
    errors += [f"invalid spawned hypothesis id {h!r}" for h in anomaly.spawned_hypotheses if not HYPOTHESIS_REF.match(h)]
    if anomaly.quarantine_status not in QUARANTINE_STATUSES:
        errors.append(f"unknown quarantine status {anomaly.quarantine_status!r}")
    if anomaly.resolved_by is not None and not HYPOTHESIS_REF.match(anomaly.resolved_by):
        errors.append(f"invalid resolving hypothesis id {anomaly.resolved_by!r}")
    if anomaly.severity is not None and (
        isinstance(anomaly.severity, bool) or not isinstance(anomaly.severity, int) or not 1 <= anomaly.severity <= 5
    ):
        errors.append("severity must be an integer from 1 to 5")
    if anomaly.name is not None and not 1 <= len(anomaly.name.strip()) <= MAX_NAME:
        errors.append(f"name must be 1-{MAX_NAME} characters")
    if anomaly.notes is not None and len(anomaly.notes) > MAX_NOTES:
        errors.append("notes too long")

    if errors:
        raise AnomalyValidationError("; ".join(errors))
    return anomaly


def create_anomaly(
    session_id: str,
    observation: str,
    conflicts_with: ConflictsWith,
    source: AnomalySource | None = None,
    anomaly_id: str | None = None,
    existing_ids: list[str] | None = None,
    name: str | None = None,
    recorded_by: str | None = None,
    resolution_plan: str | None = None,
    severity: int | None = None,
    tags: list[str] | None = None,
    now: str | None = None,
) -> Anomaly:
    ts = now or times.now_iso()
    anomaly = Anomaly(
        id=anomaly_id or generate_anomaly_id(session_id, existing_ids or []),
        observation=observation.strip() if isinstance(observation, str) else observation,
        source=source or AnomalySource(type="discussion"),
        conflicts_with=conflicts_with,
        session_id=session_id,
        created_at=ts,
        updated_at=ts,
        name=name,
        recorded_by=recorded_by,
        resolution_plan=resolution_plan,
        severity=severity,
        tags=list(tags or []),
    )
    return validate_anomaly(anomaly)


def resolve_anomaly(anomaly: Anomaly, resolved_by: str, notes: str | None = None, now: str | None = None) -> Anomaly:
    if anomaly.quarantine_status == "resolved":
        raise AnomalyTransitionError(f"Anomaly {anomaly.id} is already resolved")
    if not HYPOTHESIS_REF.match(resolved_by or ""):
        raise AnomalyValidationError(f"invalid resolving hypothesis id {resolved_by!r}")
    ts = now or times.now_iso()
    return replace(
        anomaly,
        quarantine_status="resolved",
        resolved_by=resolved_by,
        resolved_at=ts,
        notes=notes if notes is not None else anomaly.notes,
        updated_at=ts,
    )


def defer_anomaly(anomaly: Anomaly, reason: str, now: str | None = None) -> Anomaly:
    if anomaly.quarantine_status == "resolved":
        raise AnomalyTransitionError(f"Cannot defer resolved anomaly {anomaly.id}")
    if not reason or not reason.strip():
        raise AnomalyValidationError("a deferral reason is required")
    ts = now or times.now_iso()
    return replace(anomaly, quarantine_status="deferred", resolution_plan=reason.strip(), updated_at=ts)


def reactivate_anomaly(anomaly: Anomaly, now: str | None = None) -> Anomaly:
    if anomaly.quarantine_status != "deferred":
        raise AnomalyTransitionError(
            f"Cannot reactivate anomaly {anomaly.id}: status is {anomaly.quarantine_status}, expected deferred"
        )
    return replace(anomaly, quarantine_status="active", updated_at=now or times.now_iso())


def link_spawned_hypothesis(anomaly: Anomaly, hypothesis_id: str, now: str | None = None) -> Anomaly:
    if hypothesis_id in anomaly.spawned_hypotheses:
        return anomaly
    if not HYPOTHESIS_REF.match(hypothesis_id or ""):
        raise AnomalyValidationError(f"invalid hypothesis id {hypothesis_id!r}")
    return replace(
        anomaly,
        spawned_hypotheses=[*anomaly.spawned_hypotheses, hypothesis_id],
        updated_at=now or times.now_iso(),
    )


def can_spawn_hypothesis(anomaly: Anomaly) -> SpawnCheck:
    if anomaly.spawned_hypotheses:
        return SpawnCheck(True, f"Already spawned {len(anomaly.spawned_hypotheses)} hypothesis(es)")
    if anomaly.quarantine_status == "resolved":
        return SpawnCheck(False, "Anomaly is resolved; no need to spawn new hypotheses")
    if anomaly.quarantine_status == "deferred":
        return SpawnCheck(False, "Deferred; reactivate before spawning hypotheses")
    if anomaly.conflicts_with.hypotheses:
        return SpawnCheck(True, "Active anomaly challenging hypotheses; can spawn a third alternative")
    return SpawnCheck(False, "Anomaly does not have sufficient conflict context for spawning")
