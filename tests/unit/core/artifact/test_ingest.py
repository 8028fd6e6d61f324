from brenner.core.artifact import anomalies_from_operations, create_artifact, ingest_thread
from brenner.models import Thread
from tests.conftest import delta_block, make_message


def test_ingest_full_thread(full_thread):
    result = ingest_thread(full_thread, create_artifact("RS20251230", "2025-12-30T10:00:00Z"))
    artifact = result.artifact

    assert result.diagnostics == []
    assert artifact.metadata.version == 1
    assert artifact.metadata.last_message_id == 4
    assert artifact.sections["hypothesis_slate"][0]["id"] == "H1"
    assert artifact.sections["discriminative_tests"][0]["id"] == "T1"
    assert artifact.sections["adversarial_critique"][0]["id"] == "C1"
    assert [c.agent for c in artifact.metadata.contributors] == ["HypothesisAgent", "TestDesigner", "Critic"]
    assert result.merge.applied[0].operation.anchors == [42, 58]


def test_ingest_twice_adds_nothing(full_thread):
    first = ingest_thread(full_thread, create_artifact("RS20251230", "2025-12-30T10:00:00Z")).artifact
    second = ingest_thread(full_thread, first)

    assert second.artifact is first
    assert second.merge.applied == []


def test_ingest_only_new_messages(full_thread):
    first = ingest_thread(full_thread, create_artifact("RS20251230", "2025-12-30T10:00:00Z")).artifact
    grown = Thread(
        thread_id=full_thread.thread_id,
        messages=[
            *full_thread.messages,
            make_message(5, "Critic", "DELTA: update", body=delta_block("UPDATE", "hypothesis_slate", {"status": "doubtful"}, target_id="H1")),
            make_message(6, "Critic", "DELTA: broken", body="```delta\nnope\n```"),
        ],
    )
    result = ingest_thread(grown, first)

    assert result.artifact.metadata.version == 2
    assert result.artifact.metadata.last_message_id == 6
    assert result.artifact.sections["hypothesis_slate"][0]["status"] == "doubtful"
    assert len(result.artifact.sections["hypothesis_slate"]) == 1
    assert [d.message_id for d in result.diagnostics] == [6]


def test_register_entries_become_anomalies():
    thread = Thread(
        thread_id="RS20251230",
        messages=[
            make_message(
                1,
                "Critic",
                "DELTA: anomaly",
                body=delta_block(
                    "ADD",
                    "anomaly_register",
                    {"name": "Asymmetry", "observation": "Division is asymmetric", "conflicts_with": ["H1", "A2", "P1"]},
                    rationale="See §103",
                ),
            )
        ],
    )
    result = ingest_thread(thread, create_artifact("RS20251230", "2025-12-30T10:00:00Z"))
    [anomaly] = anomalies_from_operations(result.merge, "RS20251230", ["X-RS20251230-001"])

    assert anomaly.id == "X-RS20251230-002"
    assert anomaly.conflicts_with.hypotheses == ["H1"]
    assert anomaly.conflicts_with.assumptions == ["A2"]
    assert anomaly.source.anchors == ["§103"]
    assert anomaly.recorded_by == "Critic"
    assert anomaly.created_at == "2025-12-30T10:01:00Z"


def test_overlong_anchor_does_not_abort_ingest(kickoff):
    thread = Thread(
        thread_id="RS20251230",
        messages=[
            kickoff,
            make_message(
                2,
                "HypothesisAgent",
                "DELTA: H1",
                body=delta_block("ADD", "hypothesis_slate", {"name": "Lineage"}, rationale="see §" + "1" * 5000),
            ),
        ],
    )
    result = ingest_thread(thread, create_artifact("RS20251230", "2025-12-30T10:00:00Z"))

    assert result.artifact.sections["hypothesis_slate"][0]["id"] == "H1"
    assert result.merge.applied[0].operation.anchors == []
