"""Session status: a pure fold of a thread's messages.

Nothing here reads the clock or caches results; the same thread always
projects to an equal ThreadStatus.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from brenner.lib import times
from brenner.models import Message, Thread

from .roles import ROLES, get_agent_role

KICKOFF = "kickoff"
DELTA = "delta"
ARTIFACT = "artifact"
ACK = "ack"
OTHER = "other"

RESPONSE_TYPES = (DELTA, ARTIFACT, OTHER)
PHASES = ("kickoff", "gathering", "compiling", "complete")


def classify_message(message: Message) -> str:
    subject = (message.subject or "").upper()
    if subject.startswith("KICKOFF:"):
        return KICKOFF
    if "DELTA[" in subject or subject.startswith("DELTA:"):
        return DELTA
    if "ARTIFACT" in subject or "COMPILED" in subject:
        return ARTIFACT
    if "ACK" in subject or "acknowledg" in subject.lower():
        return ACK
    return OTHER


def is_response(message: Message) -> bool:
    return classify_message(message) in RESPONSE_TYPES


@dataclass(frozen=True)
class ParticipantStatus:
    agent_name: str
    role: str | None
    has_responded: bool
    message_count: int
    pending_acks: int
    last_response_at: str | None
    acknowledged_kickoff: bool


@dataclass(frozen=True)
class RoleStatus:
    role: str
    display_name: str
    agents: list[str]
    has_response: bool
    total_messages: int
    all_acknowledged: bool


@dataclass(frozen=True)
class LatestArtifact:
    message_id: int
    thread_id: str
    subject: str
    sender: str
    created_at: str


@dataclass(frozen=True)
class ThreadStatus:
    thread_id: str
    total_messages: int
    total_pending_acks: int
    participants: list[ParticipantStatus]
    role_status: list[RoleStatus]
    latest_artifact: LatestArtifact | None
    all_roles_responded: bool
    is_complete: bool
    phase: str
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ThreadStatusSummary:
    thread_id: str
    phase: str
    responded_role_count: int
    total_role_count: int
    pending_acks: int
    has_artifact: bool
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _most_recent(messages: list[Message]) -> Message | None:
    """Latest by parsed timestamp, later message id on ties."""
    if not messages:
        return None
    return max(messages, key=lambda m: (times.sort_key(m.created_ts), m.id))


def _addressed_to(message: Message, agent_name: str) -> bool:
    name = agent_name.lower()
    return any(isinstance(r, str) and r.lower() == name for r in message.to)


def _participants(messages: list[Message], roster: dict[str, str] | None) -> list[ParticipantStatus]:
    senders = list(dict.fromkeys(m.sender for m in messages if m.sender))
    kickoffs = [m for m in messages if classify_message(m) == KICKOFF]

    statuses = []
    for name in senders:
        own = [m for m in messages if m.sender == name]
        responses = [m for m in own if is_response(m)]
        latest = _most_recent(responses)
        role = get_agent_role(name, roster)
        statuses.append(
            ParticipantStatus(
                agent_name=name,
                role=role.role if role else None,
                has_responded=bool(responses),
                message_count=len(own),
                pending_acks=sum(1 for m in own if m.ack_required),
                last_response_at=latest.created_ts if latest else None,
                acknowledged_kickoff=bool(responses) and any(_addressed_to(k, name) for k in kickoffs),
            )
        )
    return statuses


def _roles(participants: list[ParticipantStatus]) -> list[RoleStatus]:
    statuses = []
    for key, config in ROLES.items():
        members = [p for p in participants if p.role == key]
        if not members:
            continue
        statuses.append(
            RoleStatus(
                role=key,
                display_name=config.display_name,
                agents=[p.agent_name for p in members],
                has_response=any(p.has_responded for p in members),
                total_messages=sum(p.message_count for p in members),
                all_acknowledged=all(p.acknowledged_kickoff for p in members),
            )
        )
    return statuses


def _phase(kinds: set[str], all_roles_responded: bool) -> str:
    if KICKOFF not in kinds:
        return "kickoff"
    if ARTIFACT in kinds:
        return "complete"
    if all_roles_responded and DELTA in kinds:
        return "compiling"
    return "gathering"


def _summary(responded: int, total: int, pending_acks: int, phase: str, latest: LatestArtifact | None) -> str:
    parts = [f"{responded}/{total} roles responded"]
    if pending_acks > 0:
        parts.append(f"{pending_acks} pending acks")
    parts.append(f"Phase: {phase}")
    if latest:
        parts.append(f"Latest artifact: {latest.subject[:30]}...")
    return " | ".join(parts)


def compute_thread_status(thread: Thread, roster: dict[str, str] | None = None) -> ThreadStatus:
    """Project a thread into its current status.

    ``roster`` maps agent names to role keys on top of the built-in defaults.
    Every role in the registry must have a responding participant before the
    session can reach the compiling phase.
    """
    messages = list(thread.messages)
    participants = _participants(messages, roster)
    role_status = _roles(participants)

    responded = {r.role for r in role_status if r.has_response}
    all_roles_responded = all(role in responded for role in ROLES)

    artifact = _most_recent([m for m in messages if classify_message(m) == ARTIFACT])
    latest = (
        LatestArtifact(
            message_id=artifact.id,
            thread_id=thread.thread_id,
            subject=artifact.subject,
            sender=artifact.sender or "unknown",
            created_at=artifact.created_ts,
        )
        if artifact
        else None
    )

    total_pending = sum(p.pending_acks for p in participants)
    phase = _phase({classify_message(m) for m in messages}, all_roles_responded)

    return ThreadStatus(
        thread_id=thread.thread_id,
        total_messages=len(messages),
        total_pending_acks=total_pending,
        participants=participants,
        role_status=role_status,
        latest_artifact=latest,
        all_roles_responded=all_roles_responded,
        is_complete=phase == "complete" and total_pending == 0,
        phase=phase,
        summary=_summary(len(responded), len(ROLES), total_pending, phase, latest),
    )


def compute_thread_status_summary(thread: Thread, roster: dict[str, str] | None = None) -> ThreadStatusSummary:
    status = compute_thread_status(thread, roster)
    return ThreadStatusSummary(
        thread_id=status.thread_id,
        phase=status.phase,
        responded_role_count=sum(1 for r in status.role_status if r.has_response),
        total_role_count=len(ROLES),
        pending_acks=status.total_pending_acks,
        has_artifact=status.latest_artifact is not None,
        summary=status.summary,
    )


def is_waiting_for_role(thread: Thread, role: str, roster: dict[str, str] | None = None) -> bool:
    """True while no participant assigned to ``role`` has responded."""
    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}; expected one of {', '.join(ROLES)}")
    status = compute_thread_status(thread, roster)
    return not any(r.role == role and r.has_response for r in status.role_status)


def get_pending_agents(thread: Thread, roster: dict[str, str] | None = None) -> list[str]:
    status = compute_thread_status(thread, roster)
    return [p.agent_name for p in status.participants if not p.has_responded]


def get_agents_with_pending_acks(thread: Thread, roster: dict[str, str] | None = None) -> list[str]:
    status = compute_thread_status(thread, roster)
    return [p.agent_name for p in status.participants if p.pending_acks > 0]
