# backend/voicecanvas/compiler/render_mermaid.py

from collections import defaultdict
from typing import Dict, List, Optional

from voicecanvas.dsl.grammar import (
    ARROW_DASHED,
    ARROW_SOLID,
    DIAGRAM_KIND,
    SHAPE_BRACKETS,
    escape_label,
)
from voicecanvas.ir.diagram import MAX_GROUP_LABEL, DiagramSpec, SpecEdge, SpecNode

# Spec shapes -> grammar shapes; ellipse is always drawn as a circle
SPEC_SHAPES = {
    "rectangle": "rectangle",
    "diamond": "decision",
    "circle": "circle",
    "ellipse": "circle",
}


def render_node(node_id: str, label: str, shape: str = "rectangle") -> str:
    open_, close = SHAPE_BRACKETS.get(shape, SHAPE_BRACKETS["rectangle"])
    return f'{node_id}{open_}"{escape_label(label)}"{close}'


def render_edge(source: str, target: str, label: Optional[str] = None, dashed: bool = False) -> str:
    arrow = ARROW_DASHED if dashed else ARROW_SOLID
    text = escape_label((label or "").replace("|", "/"))
    if text:
        return f"{source} {arrow}|{text}| {target}"
    return f"{source} {arrow} {target}"


def _spec_node_line(node: SpecNode) -> str:
    return render_node(node.id, node.label, SPEC_SHAPES.get(node.shape, "rectangle"))


def _spec_edge_line(edge: SpecEdge) -> str:
    return render_edge(edge.source, edge.target, edge.label, edge.dashed)


def render_spec(spec: DiagramSpec) -> str:
    lines = [f"{DIAGRAM_KIND} {spec.direction or 'TD'}"]

    group_ids = {group.id for group in spec.groups}
    members: Dict[str, List[SpecNode]] = defaultdict(list)

    # -------------------------
    # Top-level nodes
    # -------------------------
    for node in spec.nodes:
        if node.group_id and node.group_id in group_ids:
            members[node.group_id].append(node)
        else:
            lines.append(f"  {_spec_node_line(node)}")

    # -------------------------
    # Groups (empty ones too)
    # -------------------------
    for group in spec.groups:
        title = escape_label(group.label[:MAX_GROUP_LABEL])
        lines.append(f'  subgraph {group.id}["{title}"]')
        for node in members.get(group.id, []):
            lines.append(f"    {_spec_node_line(node)}")
        lines.append("  end")

    # -------------------------
    # Edges
    # -------------------------
    for edge in spec.edges:
        lines.append(f"  {_spec_edge_line(edge)}")

    return "\n".join(lines)
