import copy
import itertools

import pytest

from brenner.core.artifact import create_artifact, merge
from brenner.core.artifact.merge import DANGLING_CONFLICT_REFERENCE, DUPLICATE_ID, INVALID_ID, TARGET_NOT_FOUND
from brenner.models import Anomaly, AnomalySource, ConflictsWith, DeltaOperation

CREATED = "2025-12-30T09:00:00Z"


def op(operation, section, payload=None, target_id=None, msg=1, ts=None, index=0, author="HypothesisAgent"):
    return DeltaOperation(
        operation=operation,
        section=section,
        payload=payload if payload is not None else {},
        rationale="because",
        target_id=target_id,
        source_message_id=msg,
        source_timestamp=ts or f"2025-12-30T10:{msg:02d}:00Z",
        source_index=index,
        author=author,
    )


@pytest.fixture
def base():
    return create_artifact("RS20251230", CREATED)


@pytest.fixture
def seeded(base):
    ops = [
        op("ADD", "hypothesis_slate", {"name": "Lineage"}, msg=1),
        op("ADD", "hypothesis_slate", {"name": "Signal"}, msg=2),
        op("ADD", "assumption_ledger", {"name": "Cells autonomous"}, msg=3),
    ]
    return merge(base, ops).artifact


def test_add_allocates_sequential_ids(seeded):
    assert [r["id"] for r in seeded.sections["hypothesis_slate"]] == ["H1", "H2"]
    assert seeded.sections["assumption_ledger"][0]["id"] == "A1"
    assert seeded.metadata.version == 1


def test_add_next_id_after_gap(seeded):
    result = merge(seeded, [op("DELETE", "hypothesis_slate", target_id="H1", msg=4), op("ADD", "hypothesis_slate", {"name": "x"}, msg=5)])
    assert [r["id"] for r in result.artifact.sections["hypothesis_slate"]] == ["H2", "H3"]


def test_add_honors_caller_id(base):
    result = merge(base, [op("ADD", "hypothesis_slate", {"id": "H7", "name": "x"})])
    assert result.artifact.sections["hypothesis_slate"][0]["id"] == "H7"


def test_add_duplicate_id_rejected(seeded):
    result = merge(seeded, [op("ADD", "hypothesis_slate", {"id": "H1", "name": "dup"}, msg=9)])

    assert [r.reason for r in result.rejected] == [DUPLICATE_ID]
    assert result.artifact is seeded


def test_add_invalid_id_rejected(base):
    result = merge(
        base,
        [
            op("ADD", "hypothesis_slate", {"id": 5, "name": "x"}, index=0),
            op("ADD", "hypothesis_slate", {"id": "P3", "name": "x"}, index=1),
            op("ADD", "hypothesis_slate", {"id": "X-foo", "name": "x"}, index=2),
            op("ADD", "hypothesis_slate", {"id": "H" + "1" * 20, "name": "x"}, index=3),
        ],
    )
    assert [r.reason for r in result.rejected] == [INVALID_ID] * 4
    assert result.artifact is base


def test_add_accepts_qualified_id(base):
    result = merge(base, [op("ADD", "hypothesis_slate", {"id": "H-RS20251230-001", "name": "x"})])
    assert result.artifact.sections["hypothesis_slate"][0]["id"] == "H-RS20251230-001"


def test_deleted_highest_id_is_not_reissued(seeded):
    result = merge(
        seeded,
        [
            op("DELETE", "hypothesis_slate", target_id="H2", msg=4),
            op("ADD", "hypothesis_slate", {"name": "brand new"}, msg=5),
            op("ADD", "hypothesis_slate", {"id": "H2", "name": "reclaim"}, msg=6),
        ],
    )
    assert [r["id"] for r in result.artifact.sections["hypothesis_slate"]] == ["H1", "H3"]
    assert [r.reason for r in result.rejected] == [DUPLICATE_ID]
    assert result.artifact.metadata.id_high_water["hypothesis_slate"] == 3

    late = merge(result.artifact, [op("UPDATE", "hypothesis_slate", {"status": "refuted"}, target_id="H2", msg=7)])
    assert [r.reason for r in late.rejected] == [TARGET_NOT_FOUND]
    assert late.artifact is result.artifact


def test_research_thread_singleton(base):
    first = merge(base, [op("ADD", "research_thread", {"question": "How is fate set?"})])
    assert first.artifact.sections["research_thread"]["id"] == "RT"

    second = merge(first.artifact, [op("ADD", "research_thread", {"question": "again"}, msg=2)])
    assert second.rejected[0].reason == DUPLICATE_ID

    updated = merge(first.artifact, [op("UPDATE", "research_thread", {"question": "Sharper"}, target_id="RT", msg=3)])
    assert updated.artifact.sections["research_thread"] == {"id": "RT", "question": "Sharper"}


def test_update_shallow_merges_and_keeps_id_and_position(seeded):
    result = merge(seeded, [op("UPDATE", "hypothesis_slate", {"id": "H99", "status": "weakened"}, target_id="H1", msg=4)])
    records = result.artifact.sections["hypothesis_slate"]

    assert records[0] == {"id": "H1", "name": "Lineage", "status": "weakened"}
    assert records[1]["id"] == "H2"


def test_update_missing_target_rejected(seeded):
    bad = op("UPDATE", "hypothesis_slate", {"status": "x"}, target_id="H42", msg=4)
    result = merge(seeded, [bad])

    assert result.artifact is seeded
    assert result.artifact.sections["hypothesis_slate"] == seeded.sections["hypothesis_slate"]
    assert len(result.rejected) == 1
    assert result.rejected[0].operation == bad
    assert result.rejected[0].reason == TARGET_NOT_FOUND


def test_delete_missing_target_rejected(seeded):
    result = merge(seeded, [op("DELETE", "predictions_table", target_id="P1", msg=4)])
    assert result.rejected[0].reason == TARGET_NOT_FOUND


def test_rejection_does_not_stop_fold(seeded):
    result = merge(
        seeded,
        [
            op("UPDATE", "hypothesis_slate", {"x": 1}, target_id="H42", msg=4),
            op("ADD", "predictions_table", {"claim": "p"}, msg=5),
        ],
    )
    assert len(result.rejected) == 1
    assert result.artifact.sections["predictions_table"][0]["id"] == "P1"
    assert result.artifact.metadata.version == seeded.metadata.version + 1


def test_empty_remerge_is_identity(seeded):
    again = merge(seeded, [])
    assert again.artifact is seeded
    assert again.artifact.metadata.version == seeded.metadata.version
    assert again.artifact.metadata.updated_at == seeded.metadata.updated_at


def test_input_never_mutated(seeded):
    snapshot = copy.deepcopy(seeded)
    merge(seeded, [op("UPDATE", "hypothesis_slate", {"name": "changed"}, target_id="H1", msg=4), op("DELETE", "hypothesis_slate", target_id="H2", msg=5)])
    assert seeded == snapshot


def test_version_increments_once_per_call(base):
    result = merge(base, [op("ADD", "hypothesis_slate", {"n": i}, msg=i) for i in range(1, 6)])
    assert result.artifact.metadata.version == 1


def test_updated_at_is_max_accepted_timestamp(base):
    result = merge(
        base,
        [
            op("ADD", "hypothesis_slate", {"n": 1}, msg=1, ts="2025-12-30T11:00:00Z"),
            op("ADD", "hypothesis_slate", {"n": 2}, msg=2, ts="2025-12-30T12:30:00Z"),
            op("UPDATE", "hypothesis_slate", {"n": 3}, target_id="H9", msg=3, ts="2025-12-31T00:00:00Z"),
        ],
    )
    assert result.artifact.metadata.updated_at == "2025-12-30T12:30:00Z"


def test_updated_at_never_before_created(base):
    result = merge(base, [op("ADD", "hypothesis_slate", {"n": 1}, ts="2025-01-01T00:00:00Z")])
    assert result.artifact.metadata.updated_at == CREATED


def test_order_independence(base):
    ops = [
        op("ADD", "hypothesis_slate", {"name": "a"}, msg=1),
        op("ADD", "hypothesis_slate", {"name": "b"}, msg=2),
        op("UPDATE", "hypothesis_slate", {"name": "a2"}, target_id="H1", msg=3),
        op("DELETE", "hypothesis_slate", target_id="H2", msg=4),
        op("ADD", "predictions_table", {"claim": "c"}, msg=4, index=1),
    ]
    outcomes = [merge(base, list(p)).artifact for p in itertools.permutations(ops)]
    assert all(a == outcomes[0] for a in outcomes)
    assert outcomes[0].sections["hypothesis_slate"] == [{"id": "H1", "name": "a2"}]


def test_timestamp_ties_broken_by_message_id(base):
    same = "2025-12-30T10:00:00Z"
    result = merge(
        base,
        [
            op("UPDATE", "hypothesis_slate", {"name": "later"}, target_id="H1", msg=2, ts=same),
            op("ADD", "hypothesis_slate", {"name": "first"}, msg=1, ts=same),
        ],
    )
    assert not result.rejected
    assert result.artifact.sections["hypothesis_slate"][0]["name"] == "later"


def test_contributors_deduplicated(base):
    result = merge(
        base,
        [
            op("ADD", "hypothesis_slate", {"n": 1}, msg=1, author="HypothesisAgent"),
            op("ADD", "hypothesis_slate", {"n": 2}, msg=2, author="HypothesisAgent"),
            op("ADD", "adversarial_critique", {"n": 3}, msg=3, author="Critic"),
        ],
    )
    assert [c.agent for c in result.artifact.metadata.contributors] == ["HypothesisAgent", "Critic"]


def test_delete_referenced_hypothesis_warns_without_cascade(seeded):
    with_anomaly = merge(seeded, [op("ADD", "anomaly_register", {"observation": "odd", "conflicts_with": ["H1", "A1"]}, msg=4)]).artifact
    result = merge(with_anomaly, [op("DELETE", "hypothesis_slate", target_id="H1", msg=5)])

    assert not result.rejected
    assert [w.code for w in result.warnings] == [DANGLING_CONFLICT_REFERENCE]
    assert result.warnings[0].referenced_by == ("X1",)
    assert result.artifact.sections["anomaly_register"][0]["conflicts_with"] == ["H1", "A1"]


def test_delete_referenced_by_stored_anomaly_warns(seeded):
    stored = Anomaly(
        id="X-RS20251230-001",
        observation="odd",
        source=AnomalySource(type="experiment"),
        conflicts_with=ConflictsWith(description="contradicts A1", assumptions=["A1"]),
        session_id="RS20251230",
        created_at=CREATED,
        updated_at=CREATED,
    )
    result = merge(seeded, [op("DELETE", "assumption_ledger", target_id="A1", msg=4)], anomalies=[stored])

    assert result.warnings[0].target_id == "A1"
    assert result.warnings[0].referenced_by == ("X-RS20251230-001",)


def test_delete_unreferenced_no_warning(seeded):
    result = merge(seeded, [op("DELETE", "hypothesis_slate", target_id="H2", msg=4)])
    assert result.warnings == []
