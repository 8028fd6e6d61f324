import pytest

from brenner.lib import config
from brenner.models import Message, Thread


@pytest.fixture
def brenner_home(monkeypatch, tmp_path):
    """Isolated ~/.brenner and data dir per test.

    Provides:
    - BRENNER_HOME pointing at a temp dir (config lookups never touch the real home)
    - a workspace dir used as data_dir for .research/
    - a fresh config cache before and after the test
    """
    home = tmp_path / "home"
    workspace = tmp_path / "workspace"
    home.mkdir()
    workspace.mkdir()
    monkeypatch.setenv("BRENNER_HOME", str(home))
    (home / "config.yaml").write_text(f"data_dir: {workspace}\nlogging_level: WARNING\n")
    config.clear_cache()

    yield workspace

    config.clear_cache()


def make_message(
    id: int,
    sender: str,
    subject: str,
    body: str = "",
    to: list[str] | None = None,
    ts: str | None = None,
    ack_required: bool = False,
) -> Message:
    return Message(
        id=id,
        sender=sender,
        subject=subject,
        body=body,
        to=to or [],
        created_ts=ts or f"2025-12-30T10:{id:02d}:00Z",
        ack_required=ack_required,
    )


def delta_block(
    operation: str,
    section: str,
    payload: dict | None = None,
    target_id: str | None = None,
    rationale: str = "Grounded in §42",
) -> str:
    import json

    data = {
        "operation": operation,
        "section": section,
        "target_id": target_id,
        "payload": payload if payload is not None else {},
        "rationale": rationale,
    }
    return f"```delta\n{json.dumps(data, ensure_ascii=False)}\n```"


ROSTER_AGENTS = {
    "HypothesisAgent": "hypothesis_generator",
    "TestDesigner": "test_designer",
    "Critic": "adversarial_critic",
}


@pytest.fixture
def kickoff() -> Message:
    return make_message(
        1,
        "Operator",
        "KICKOFF: RS20251230 cell fate",
        body="Begin.",
        to=list(ROSTER_AGENTS),
    )


@pytest.fixture
def full_thread(kickoff) -> Thread:
    """Kickoff plus one delta from every role."""
    return Thread(
        thread_id="RS20251230",
        messages=[
            kickoff,
            make_message(
                2,
                "HypothesisAgent",
                "DELTA[hypothesis_generator]: H1",
                body=delta_block("ADD", "hypothesis_slate", {"name": "Lineage", "claim": "Fate is lineage-bound §58"}),
            ),
            make_message(
                3,
                "TestDesigner",
                "DELTA[test_designer]: T1",
                body=delta_block("ADD", "discriminative_tests", {"name": "Ablation", "procedure": "Ablate AB"}),
            ),
            make_message(
                4,
                "Critic",
                "DELTA[adversarial_critic]: C1",
                body=delta_block("ADD", "adversarial_critique", {"name": "Both wrong?", "attack": "§103"}),
            ),
        ],
    )
