"""Tests for the structural parser and the final syntax check"""

from voicecanvas.dsl.grammar import escape_label, extract_diagram_text, unwrap_fenced_block
from voicecanvas.dsl.parser import parse_structure
from voicecanvas.dsl.syntax import check_syntax


def test_nodes_edges_and_implicit_endpoints():
    parsed = parse_structure('flowchart LR\n  a["A"] --> b\n  b -.->|maybe| c(("C"))')

    assert parsed.direction == "LR"
    assert parsed.node_ids() == ["a", "c", "b"]
    assert parsed.node_ids(include_implicit=False) == ["a", "c"]
    assert parsed.get_node("b").implicit

    first, second = parsed.edges
    assert (first.source, first.target, first.dashed) == ("a", "b", False)
    assert (second.source, second.target, second.label, second.dashed) == ("b", "c", "maybe", True)


def test_ampersand_expands_both_sides():
    parsed = parse_structure('flowchart TD\n  a["A"] & b["B"] --> c["C"] & d["D"]')
    assert [e.key for e in parsed.edges] == ["a_c", "a_d", "b_c", "b_d"]


def test_groups_comments_and_duplicates():
    text = "\n".join([
        "flowchart TD",
        "%% the storefront",
        '  subgraph g1["Group"]',
        '    a["A"]',
        "  end",
        '  a["A again"]',
        "  lonely",
    ])
    parsed = parse_structure(text)

    assert [(g.id, g.label) for g in parsed.groups] == [("g1", "Group")]
    assert [n.id for n in parsed.nodes] == ["a", "a", "lonely"]
    assert not parsed.get_node("lonely").implicit


def test_escaped_quotes_round_trip():
    label = escape_label('Say "hi"')
    parsed = parse_structure(f'flowchart TD\n  a["{label}"]')
    assert parsed.get_node("a").label == 'Say "hi"'


def test_fence_helpers():
    fenced = "```mermaid\nflowchart TD\n  a\n```"
    assert unwrap_fenced_block(fenced) == "flowchart TD\n  a"
    assert unwrap_fenced_block("Sure!\n" + fenced) is None
    assert extract_diagram_text("Sure!\n" + fenced + "\nEnjoy") == "flowchart TD\n  a"
    assert extract_diagram_text("  flowchart TD\n  a  ") == "flowchart TD\n  a"


# -------------------------
# Syntax check
# -------------------------

def test_valid_text_passes_syntax():
    text = 'flowchart TD\n  subgraph g1["G"]\n    direction LR\n    a["A"]\n  end\n  a --> b["B"] & c'
    result = check_syntax(text)
    assert result.ok, result.format_feedback()


def test_syntax_rejects_unsupported_link():
    result = check_syntax('flowchart TD\n  a["A"] --- b["B"]')
    assert not result.ok
    assert "unexpected text" in result.format_feedback()


def test_syntax_rejects_keyword_ids():
    result = check_syntax('flowchart TD\n  end --> a["A"]')
    assert not result.ok
    assert "keyword" in result.format_feedback()


def test_syntax_rejects_structure_problems():
    bad = [
        "",
        "graph TD\n  a",
        "flowchart TD extra\n  a",
        "flowchart TD",
        'flowchart TD\n  subgraph g1["G"]\n  a["A"]',
        'flowchart TD\n  a["A"]\n  direction LR',
        'flowchart TD\n  ```\n  a["A"]',
        'flowchart TD\n  a["A"] -->',
        'flowchart TD\n  1a["A"]',
    ]
    for text in bad:
        assert not check_syntax(text).ok, text


def test_syntax_errors_carry_line_numbers():
    result = check_syntax('flowchart TD\n  a["A"]\n  a --- b')
    assert result.errors[0].line == 3
    assert result.to_dict()["errors"][0]["line"] == 3
