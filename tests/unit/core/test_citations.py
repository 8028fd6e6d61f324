from brenner.core import citations
from brenner.core.citations import Citation, ExternalCitation
from brenner.models import DeltaOperation


def test_range_expansion():
    assert citations.parse_anchors(["§127-§129"]) == [127, 128, 129]


def test_reversed_range_normalized():
    assert citations.parse_anchors(["§129-127"]) == [127, 128, 129]


def test_dash_variants_and_bare_numbers():
    assert citations.parse_anchors(["§10–12", "§20—21", "30-31", "42", "§58"]) == [10, 11, 12, 20, 21, 30, 31, 42, 58]


def test_sorted_and_deduplicated():
    assert citations.parse_anchors(["§5", "§3", "§4-5", "3"]) == [3, 4, 5]


def test_malformed_or_empty_input():
    assert citations.parse_anchors(None) == []
    assert citations.parse_anchors([]) == []
    assert citations.parse_anchors(["", "see above", None, {"x": 1}]) == []
    assert citations.extract_anchors("") == []
    assert citations.extract_anchors(None) == []


def test_single_string_accepted():
    assert citations.parse_anchors("§7") == [7]


def test_huge_range_ignored():
    assert citations.parse_anchors(["§1-§999999"]) == []


def test_overlong_digit_runs_are_not_anchors():
    assert citations.parse_anchors(["§" + "9" * 5000, "1" * 5000]) == []
    assert citations.parse_anchors(["§3-" + "2" * 5000]) == [3]
    assert citations.extract_anchors("see §" + "1" * 5000 + " and §12") == [12]


def test_extract_from_free_text():
    text = "As Brenner says in §103 and again §42–44, exclusion matters (cf. §147)."
    assert citations.extract_anchors(text) == [42, 43, 44, 103, 147]


def test_build_citations_relative():
    assert citations.build_citations(["§42"]) == [
        Citation(section=42, anchor="§42", href="/corpus/transcript#section-42")
    ]


def test_build_citations_strips_trailing_slash():
    [cite] = citations.build_citations(["§1"], base_url="https://example.org/")
    assert cite.href == "https://example.org/corpus/transcript#section-1"


def test_annotate_operation_collects_rationale_and_payload():
    op = DeltaOperation(
        operation="ADD",
        section="hypothesis_slate",
        payload={"claim": "Per §58", "anchors": ["§60-61"]},
        rationale="Echoes §42",
    )
    annotated = citations.annotate_operation(op)

    assert annotated.anchors == [42, 58, 60, 61]
    assert op.anchors == []


def test_render_references():
    index = citations.build_citation_index(
        ["§2"],
        external=[ExternalCitation(id="e1", type="paper", title="Lineage", authors="Sulston", year=1983)],
    )
    lines = citations.render_references(index)

    assert lines[0] == "## References"
    assert "- [§2](/corpus/transcript#section-2)" in lines
    assert "- Sulston (1983) Lineage" in lines


def test_render_references_empty():
    lines = citations.render_references(citations.CitationIndex(), include_heading=False)
    assert lines.count("- _None yet._") == 2
