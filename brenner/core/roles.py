"""Role registry: which agent plays which part in a session."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RoleConfig:
    role: str
    display_name: str
    description: str


ROLES = {
    "hypothesis_generator": RoleConfig(
        "hypothesis_generator", "Hypothesis Generator", "Proposes and sharpens competing hypotheses"
    ),
    "test_designer": RoleConfig(
        "test_designer", "Test Designer", "Designs discriminative tests and predictions"
    ),
    "adversarial_critic": RoleConfig(
        "adversarial_critic", "Adversarial Critic", "Attacks framings, assumptions, and anomalies"
    ),
}

DEFAULT_ROSTER = {
    "HypothesisAgent": "hypothesis_generator",
    "TestDesigner": "test_designer",
    "Critic": "adversarial_critic",
}


def build_roster(overrides: dict[str, str] | None = None) -> dict[str, str]:
    """Default roster merged with ``overrides``; entries naming unknown roles are dropped."""
    roster = {name.lower(): role for name, role in DEFAULT_ROSTER.items()}
    for name, role in (overrides or {}).items():
        if isinstance(name, str) and role in ROLES:
            roster[name.lower()] = role
    return roster


def get_agent_role(agent_name: str, roster: dict[str, str] | None = None) -> RoleConfig | None:
    if not agent_name:
        return None
    mapping = build_roster(roster)
    role = mapping.get(agent_name.lower())
    return ROLES.get(role) if role else None
