"""Tests for diffing diagram text against the canvas and merging the result"""

from voicecanvas.compiler.merge import (
    NodeUpdate,
    compute_diff,
    detect_removal_intent,
    render_merged,
)
from voicecanvas.compiler.types import CanvasSnapshot


def _snapshot():
    return CanvasSnapshot.from_dict({
        "nodes": [
            {"id": "n1", "label": "One"},
            {"id": "n2", "label": "Two"},
        ],
        "edges": [{"id": "arrow1", "source": "n1", "target": "n2"}],
    })


def test_add_and_remove_by_id():
    diff = compute_diff(_snapshot(), 'flowchart TD\n  n2["Two"]\n  n3["Three"]')

    assert [n.id for n in diff.nodes_to_add] == ["n3"]
    assert diff.nodes_to_remove == ["n1"]
    assert diff.nodes_to_update == []
    assert diff.edges_to_remove == ["arrow1"]


def test_relabel_is_an_update():
    diff = compute_diff(_snapshot(), 'flowchart TD\n  n1["One"] --> n2["Second"]')

    assert diff.nodes_to_update == [NodeUpdate(id="n2", old_label="Two", new_label="Second")]
    assert diff.nodes_to_add == []
    assert diff.nodes_to_remove == []
    assert diff.edges_to_add == [] and diff.edges_to_remove == []


def test_endpoint_references_keep_nodes():
    diff = compute_diff(_snapshot(), 'flowchart TD\n  n1 --> n2\n  n2 --> n3["Three"]')

    assert diff.nodes_to_remove == []
    assert diff.nodes_to_update == []
    assert [n.id for n in diff.nodes_to_add] == ["n3"]
    assert [(e.source, e.target) for e in diff.edges_to_add] == [("n2", "n3")]


def test_identical_text_gives_empty_diff():
    diff = compute_diff(_snapshot(), 'flowchart TD\n  n1["One"] --> n2["Two"]')
    assert diff.is_empty


def test_render_merged_document():
    snapshot = _snapshot()
    diff = compute_diff(snapshot, 'flowchart TD\n  n1["One"]\n  n2["Deux"]\n  n3["Three"]\n  n2 --> n3')

    assert render_merged(snapshot, diff).splitlines() == [
        "flowchart TD",
        '  n1["One"]',
        '  n2["Deux"]',
        '  n3["Three"]',
        "  n2 --> n3",
    ]


def test_merged_document_drops_edges_of_removed_nodes():
    snapshot = _snapshot()
    diff = compute_diff(snapshot, 'flowchart LR\n  n2["Two"]')

    assert render_merged(snapshot, diff, direction="LR").splitlines() == [
        "flowchart LR",
        '  n2["Two"]',
    ]


def test_diff_to_dict():
    data = compute_diff(_snapshot(), 'flowchart TD\n  n2["Deux"] -.-> n3["Three"]').to_dict()

    assert data["nodesToAdd"] == ["n3"]
    assert data["nodesToRemove"] == ["n1"]
    assert data["edgesToAdd"] == [{"source": "n2", "target": "n3", "label": None}]
    assert data["edgesToRemove"] == ["arrow1"]
    assert data["nodesToUpdate"] == [{"id": "n2", "oldLabel": "Two", "newLabel": "Deux"}]


def test_removal_intent():
    assert detect_removal_intent("please remove the cache")
    assert detect_removal_intent("Get rid of the queue")
    assert not detect_removal_intent("add a cache between the api and the database")
    assert not detect_removal_intent("")


def test_parallel_canvas_edges_are_diffed_separately():
    snapshot = CanvasSnapshot.from_dict({
        "nodes": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
        "edges": [
            {"id": "a_b", "source": "a", "target": "b", "label": "read"},
            {"id": "a_b_2", "source": "a", "target": "b", "label": "write"},
        ],
    })

    assert compute_diff(snapshot, 'flowchart TD\n  a["A"] --> b["B"]').edges_to_remove == ["a_b_2"]
    assert compute_diff(snapshot, 'flowchart TD\n  a["A"]\n  b["B"]').edges_to_remove == ["a_b", "a_b_2"]
    assert compute_diff(snapshot, 'flowchart TD\n  a["A"] --> b["B"]\n  a --> b').is_empty
