import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from voicecanvas.compiler.render_mermaid import render_edge, render_node
from voicecanvas.compiler.types import CanvasSnapshot
from voicecanvas.dsl.grammar import DIAGRAM_KIND
from voicecanvas.dsl.parser import ParsedEdge, ParsedNode, parse_structure

REMOVAL_KEYWORDS = (
    "remove",
    "delete",
    "drop",
    "erase",
    "get rid of",
    "take out",
    "take away",
    "without",
    "clear",
)


@dataclass
class NodeUpdate:
    id: str
    old_label: str
    new_label: str

    def to_dict(self) -> dict:
        return {"id": self.id, "oldLabel": self.old_label, "newLabel": self.new_label}


@dataclass
class DiagramDiff:
    nodes_to_add: List[ParsedNode] = field(default_factory=list)
    nodes_to_remove: List[str] = field(default_factory=list)
    edges_to_add: List[ParsedEdge] = field(default_factory=list)
    edges_to_remove: List[str] = field(default_factory=list)
    nodes_to_update: List[NodeUpdate] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.nodes_to_add
            or self.nodes_to_remove
            or self.edges_to_add
            or self.edges_to_remove
            or self.nodes_to_update
        )

    def to_dict(self) -> dict:
        return {
            "nodesToAdd": [n.id for n in self.nodes_to_add],
            "nodesToRemove": list(self.nodes_to_remove),
            "edgesToAdd": [
                {"source": e.source, "target": e.target, "label": e.label}
                for e in self.edges_to_add
            ],
            "edgesToRemove": list(self.edges_to_remove),
            "nodesToUpdate": [u.to_dict() for u in self.nodes_to_update],
        }


def compute_diff(snapshot: CanvasSnapshot, text: str) -> DiagramDiff:
    """
    Compare the live canvas against new diagram text by id.

    A node present on both sides with a different label is a relabel,
    never an add plus a remove. Nodes the new text only references as
    edge endpoints still count as present.
    """
    parsed = parse_structure(text)
    diff = DiagramDiff()

    new_nodes: Dict[str, ParsedNode] = {}
    for node in parsed.nodes:
        new_nodes.setdefault(node.id, node)

    existing = {n.id: n for n in snapshot.nodes}

    for node_id, node in new_nodes.items():
        if node_id not in existing:
            diff.nodes_to_add.append(node)
        elif node.label is not None and node.label != existing[node_id].label:
            diff.nodes_to_update.append(NodeUpdate(
                id=node_id,
                old_label=existing[node_id].label,
                new_label=node.label,
            ))

    for node_id in existing:
        if node_id not in new_nodes:
            diff.nodes_to_remove.append(node_id)

    # Edges match by endpoint pair; parallel edges pair off one to one
    unmatched: Dict[Tuple[str, str], List[int]] = defaultdict(list)
    for index, edge in enumerate(snapshot.edges):
        unmatched[(edge.source, edge.target)].append(index)

    for edge in parsed.edges:
        candidates = unmatched[(edge.source, edge.target)]
        if candidates:
            candidates.pop(0)
        else:
            diff.edges_to_add.append(edge)

    leftover = {index for indices in unmatched.values() for index in indices}
    diff.edges_to_remove = [e.key for i, e in enumerate(snapshot.edges) if i in leftover]

    return diff


def render_merged(snapshot: CanvasSnapshot, diff: DiagramDiff, direction: str = "TD") -> str:
    """Rebuild one document from the surviving canvas plus the diff's additions."""
    removed_nodes = set(diff.nodes_to_remove)
    removed_edges = set(diff.edges_to_remove)
    relabels = {u.id: u.new_label for u in diff.nodes_to_update}

    lines = [f"{DIAGRAM_KIND} {direction}"]

    for node in snapshot.nodes:
        if node.id in removed_nodes:
            continue
        lines.append("  " + render_node(node.id, relabels.get(node.id, node.label) or node.id, node.shape))

    for node in diff.nodes_to_add:
        lines.append("  " + render_node(node.id, node.label or node.id, node.shape))

    for edge in snapshot.edges:
        if edge.key in removed_edges or edge.source in removed_nodes or edge.target in removed_nodes:
            continue
        lines.append("  " + render_edge(edge.source, edge.target, edge.label))

    for edge in diff.edges_to_add:
        lines.append("  " + render_edge(edge.source, edge.target, edge.label, edge.dashed))

    return "\n".join(lines)


def detect_removal_intent(transcript: str) -> bool:
    """True when the request reads like removing something from the canvas."""
    lowered = (transcript or "").lower()
    return any(re.search(rf"\b{re.escape(k)}\b", lowered) for k in REMOVAL_KEYWORDS)
