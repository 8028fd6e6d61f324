from brenner.core.roles import build_roster, get_agent_role


def test_default_roster_case_insensitive():
    assert get_agent_role("critic").role == "adversarial_critic"
    assert get_agent_role("HypothesisAgent").display_name == "Hypothesis Generator"


def test_unknown_agent_has_no_role():
    assert get_agent_role("Operator") is None
    assert get_agent_role("") is None


def test_overrides_merge_and_ignore_unknown_roles():
    roster = build_roster({"Skeptic": "adversarial_critic", "Oracle": "prophet"})
    assert roster["skeptic"] == "adversarial_critic"
    assert "oracle" not in roster
    assert roster["critic"] == "adversarial_critic"
