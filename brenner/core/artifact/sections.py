"""Per-section record identity rules."""

import re
from typing import Any

from brenner.models import RESEARCH_THREAD, SECTIONS

ID_PREFIXES = {
    RESEARCH_THREAD: "RT",
    "hypothesis_slate": "H",
    "predictions_table": "P",
    "discriminative_tests": "T",
    "assumption_ledger": "A",
    "anomaly_register": "X",
    "adversarial_critique": "C",
}

TITLES = {
    RESEARCH_THREAD: "Research Thread",
    "hypothesis_slate": "Hypothesis Slate",
    "predictions_table": "Predictions Table",
    "discriminative_tests": "Discriminative Tests",
    "assumption_ledger": "Assumption Ledger",
    "anomaly_register": "Anomaly Register",
    "adversarial_critique": "Adversarial Critique",
}

# Sections whose records anomalies may declare conflicts with.
CONFLICT_TARGETS = {"hypothesis_slate": "hypotheses", "assumption_ledger": "assumptions"}

# Ids take the section prefix, either numbered (H3) or qualified (H-RS20251230-001).
_ID_FORMS = {
    section: re.compile(rf"^{prefix}(?:(\d{{1,9}})|-[A-Za-z0-9][\w-]*)$")
    for section, prefix in ID_PREFIXES.items()
    if section != RESEARCH_THREAD
}


def empty_sections() -> dict[str, Any]:
    return {name: (None if name == RESEARCH_THREAD else []) for name in SECTIONS}


def is_valid_id(section: str, record_id: str) -> bool:
    if section == RESEARCH_THREAD:
        return record_id == ID_PREFIXES[RESEARCH_THREAD]
    return bool(_ID_FORMS[section].match(record_id))


def sequence_of(section: str, record_id: str) -> int:
    """Number of a numbered id like ``H3``; 0 for anything else."""
    form = _ID_FORMS.get(section)
    m = form.match(record_id) if form else None
    return int(m.group(1)) if m and m.group(1) else 0


def next_id(section: str, existing_ids: list[str], high_water: int = 0) -> str:
    """Allocate ``<prefix><n>`` past both the ids in use and ``high_water``.

    ``high_water`` is the highest number the section ever handed out, so an id
    freed by a DELETE is never reused.
    """
    prefix = ID_PREFIXES[section]
    if section == RESEARCH_THREAD:
        return prefix
    highest = max([high_water, *(sequence_of(section, i) for i in existing_ids)])
    return f"{prefix}{highest + 1}"


def conflict_targets(record: dict[str, Any]) -> set[str]:
    """Ids an anomaly record claims to conflict with.

    Accepts the register's list form (``conflicts_with: ["H1", "A2"]``) and
    the structured form (``{"hypotheses": [...], "assumptions": [...]}``).
    """
    value = record.get("conflicts_with", record.get("conflictsWith"))
    if isinstance(value, str):
        return {value}
    if isinstance(value, list):
        return {v for v in value if isinstance(v, str)}
    if isinstance(value, dict):
        ids = set()
        for key in ("hypotheses", "assumptions"):
            ids.update(v for v in value.get(key) or [] if isinstance(v, str))
        return ids
    return set()
