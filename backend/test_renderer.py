"""Tests for DiagramSpec validation and rendering to flowchart text"""

import pytest

from voicecanvas.compiler.render_mermaid import render_edge, render_node, render_spec
from voicecanvas.dsl.parser import parse_structure
from voicecanvas.dsl.syntax import check_syntax
from voicecanvas.ir.diagram import validate_spec
from voicecanvas.ir.errors import SchemaViolation
from voicecanvas.validation.diagram_linter import lint_diagram


def _checkout_spec():
    return validate_spec({
        "direction": "LR",
        "nodes": [
            {"id": "cart", "label": "Cart", "shape": "rectangle", "groupId": "shop"},
            {"id": "pay", "label": "Pay now?", "shape": "diamond", "groupId": "shop"},
            {"id": "done", "label": "Done", "shape": "circle"},
        ],
        "groups": [{"id": "shop", "label": "Storefront"}],
        "edges": [
            {"from": "cart", "to": "pay"},
            {"from": "pay", "to": "done", "label": "yes", "dashed": True},
        ],
    })


def test_start_node_and_edge():
    spec = validate_spec({
        "direction": "TD",
        "nodes": [
            {"id": "start", "label": "Begin", "shape": "circle"},
            {"id": "a", "label": "Do thing", "shape": "rectangle"},
        ],
        "edges": [{"from": "start", "to": "a"}],
    })

    assert render_spec(spec).splitlines() == [
        "flowchart TD",
        '  start(("Begin"))',
        '  a["Do thing"]',
        "  start --> a",
    ]


def test_render_is_deterministic():
    spec = _checkout_spec()
    assert render_spec(spec) == render_spec(spec)


def test_groups_and_edges_layout():
    lines = render_spec(_checkout_spec()).splitlines()

    assert lines == [
        "flowchart LR",
        '  done(("Done"))',
        '  subgraph shop["Storefront"]',
        '    cart["Cart"]',
        '    pay{"Pay now?"}',
        "  end",
        "  cart --> pay",
        "  pay -.->|yes| done",
    ]


def test_empty_group_is_still_emitted():
    spec = validate_spec({
        "nodes": [{"id": "a", "label": "A"}],
        "groups": [{"id": "later", "label": "Later"}],
    })
    lines = render_spec(spec).splitlines()

    assert '  subgraph later["Later"]' in lines
    assert lines[lines.index('  subgraph later["Later"]') + 1] == "  end"


def test_unknown_group_id_renders_top_level():
    spec = validate_spec({"nodes": [{"id": "a", "label": "A", "groupId": "nowhere"}]})
    assert render_spec(spec).splitlines()[1] == '  a["A"]'


def test_ellipse_is_drawn_as_circle():
    spec = validate_spec({"nodes": [{"id": "user", "label": "User", "shape": "ellipse"}]})
    assert '  user(("User"))' in render_spec(spec).splitlines()


def test_quotes_in_labels_are_escaped():
    assert render_node("n", 'Say "hi"') == 'n["Say #quot;hi#quot;"]'


def test_edge_label_pipe_is_replaced():
    assert render_edge("a", "b", "read|write") == "a -->|read/write| b"
    assert render_edge("a", "b", dashed=True) == "a -.-> b"


def test_rendered_text_passes_lint_and_syntax():
    text = render_spec(_checkout_spec())

    assert lint_diagram(text, direction_default="LR").ok
    assert check_syntax(text).ok


def test_rendered_text_parses_back_to_spec_structure():
    spec = _checkout_spec()
    parsed = parse_structure(render_spec(spec))

    assert sorted(parsed.node_ids(include_implicit=False)) == sorted(n.id for n in spec.nodes)
    assert [(e.source, e.target) for e in parsed.edges] == [(e.source, e.target) for e in spec.edges]
    assert parsed.groups[0].id == "shop"
    assert parsed.get_node("pay").shape == "decision"


# -------------------------
# Schema
# -------------------------

def test_duplicate_node_ids_are_rejected():
    with pytest.raises(SchemaViolation) as exc:
        validate_spec({"nodes": [{"id": "a", "label": "A"}, {"id": "a", "label": "B"}]})
    assert any("duplicate node id 'a'" in e for e in exc.value.errors)


def test_edge_to_unknown_node_is_rejected():
    with pytest.raises(SchemaViolation) as exc:
        validate_spec({
            "nodes": [{"id": "a", "label": "A"}],
            "edges": [{"from": "a", "to": "ghost"}],
        })
    assert any("ghost" in e for e in exc.value.errors)


def test_edge_to_canvas_node_is_accepted():
    spec = validate_spec(
        {"nodes": [{"id": "a", "label": "A"}], "edges": [{"from": "a", "to": "db"}]},
        canvas_node_ids=["db"],
    )
    assert render_spec(spec).splitlines()[-1] == "  a --> db"


def test_field_limits_are_enforced():
    bad_payloads = [
        {"nodes": []},
        {"nodes": [{"id": "1a", "label": "A"}]},
        {"nodes": [{"id": "a", "label": ""}]},
        {"nodes": [{"id": "a", "label": "x" * 81}]},
        {"nodes": [{"id": "a", "label": "A", "shape": "hexagon"}]},
        {"direction": "TB", "nodes": [{"id": "a", "label": "A"}]},
    ]
    for payload in bad_payloads:
        with pytest.raises(SchemaViolation):
            validate_spec(payload)


def test_to_dict_uses_wire_names():
    data = _checkout_spec().to_dict()
    assert data["edges"][0] == {"from": "cart", "to": "pay", "dashed": False}
    assert data["nodes"][0]["groupId"] == "shop"


def test_pipe_in_labels_is_encoded():
    spec = validate_spec({
        "nodes": [{"id": "a", "label": "Yes|No", "groupId": "g"}],
        "groups": [{"id": "g", "label": "In|Out"}],
    })
    text = render_spec(spec)

    assert '    a["Yes#124;No"]' in text.splitlines()
    assert '  subgraph g["In#124;Out"]' in text.splitlines()
    assert lint_diagram(text).ok
    assert check_syntax(text).ok
    assert parse_structure(text).declared_nodes[0].label == "Yes|No"
