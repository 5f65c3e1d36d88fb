"""
Read-only projections of the live canvas.

``extract_canvas_context`` builds the index-addressed view handed to the
generator; no element id ever appears in it. ``build_snapshot`` builds the
semantic-id view used for id validation and diffing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from voicecanvas.canvas.classifier import looks_like_group_frame
from voicecanvas.compiler.types import CanvasSnapshot, SnapshotEdge, SnapshotNode

SHAPE_TYPES = ("rectangle", "diamond", "ellipse")

# Canvas element type -> grammar shape used when re-rendering the canvas
ELEMENT_SHAPES = {
    "rectangle": "rectangle",
    "diamond": "decision",
    "ellipse": "circle",
}


@dataclass
class ContextNode:
    index: int
    type: str
    label: str
    position: Dict[str, float]
    size: Dict[str, float]

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "type": self.type,
            "label": self.label,
            "position": self.position,
            "size": self.size,
        }


@dataclass
class ContextEdge:
    source_index: int
    target_index: int
    label: str = ""

    def to_dict(self) -> dict:
        return {"sourceIndex": self.source_index, "targetIndex": self.target_index, "label": self.label}


@dataclass
class ContextGroup:
    label: str
    node_indices: List[int]

    def to_dict(self) -> dict:
        return {"label": self.label, "nodeIndices": self.node_indices}


@dataclass
class CanvasContext:
    nodes: List[ContextNode] = field(default_factory=list)
    edges: List[ContextEdge] = field(default_factory=list)
    groups: List[ContextGroup] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "groups": [g.to_dict() for g in self.groups],
        }


def active_elements(elements: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop deleted elements and free-floating text."""
    active = []
    for element in elements or []:
        if element.get("isDeleted"):
            continue
        if element.get("type") == "text" and not element.get("containerId"):
            continue
        active.append(element)
    return active


def bound_text_by_container(elements: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    texts: Dict[str, str] = {}
    for element in elements:
        if element.get("type") == "text" and element.get("containerId"):
            texts.setdefault(element["containerId"], element.get("text") or "")
    return texts


def _binding_id(binding: Optional[Dict[str, Any]]) -> Optional[str]:
    return (binding or {}).get("elementId")


def _contains(outer: Dict[str, Any], inner: Dict[str, Any]) -> bool:
    ox, oy = outer.get("x", 0), outer.get("y", 0)
    ix, iy = inner.get("x", 0), inner.get("y", 0)
    return (
        ix >= ox
        and iy >= oy
        and ix + (inner.get("width") or 0) <= ox + (outer.get("width") or 0)
        and iy + (inner.get("height") or 0) <= oy + (outer.get("height") or 0)
    )


def extract_canvas_context(elements: Iterable[Dict[str, Any]]) -> CanvasContext:
    active = active_elements(elements)
    texts = bound_text_by_container(active)

    frames = [
        el for el in active
        if looks_like_group_frame(el, texts.get(el.get("id"), ""))
    ]
    frame_ids = {el.get("id") for el in frames}

    shapes = [
        el for el in active
        if el.get("type") in SHAPE_TYPES and el.get("id") not in frame_ids
    ]
    index_by_id = {el.get("id"): index for index, el in enumerate(shapes)}

    context = CanvasContext()
    for index, shape in enumerate(shapes):
        context.nodes.append(ContextNode(
            index=index,
            type=shape.get("type"),
            label=texts.get(shape.get("id")) or f"{shape.get('type')}_node",
            position={"x": shape.get("x", 0), "y": shape.get("y", 0)},
            size={"width": shape.get("width") or 0, "height": shape.get("height") or 0},
        ))

    for arrow in active:
        if arrow.get("type") != "arrow":
            continue
        source = index_by_id.get(_binding_id(arrow.get("startBinding")))
        target = index_by_id.get(_binding_id(arrow.get("endBinding")))
        if source is None or target is None:
            continue
        context.edges.append(ContextEdge(
            source_index=source,
            target_index=target,
            label=texts.get(arrow.get("id"), ""),
        ))

    for number, frame in enumerate(frames, start=1):
        members = [
            index_by_id[shape.get("id")]
            for shape in shapes
            if shape.get("type") == "rectangle" and _contains(frame, shape)
        ]
        if members:
            context.groups.append(ContextGroup(
                label=texts.get(frame.get("id")) or f"Subgraph {number}",
                node_indices=members,
            ))

    return context


def build_snapshot(elements: Iterable[Dict[str, Any]]) -> CanvasSnapshot:
    """Semantic-id view of the canvas: shapes become nodes, bound arrows edges.

    Rectangles that enclose other shapes are group frames, not nodes.
    """
    active = active_elements(elements)
    texts = bound_text_by_container(active)

    shapes = [el for el in active if el.get("type") in SHAPE_TYPES]

    snapshot = CanvasSnapshot()
    node_ids = set()
    for element in shapes:
        # Subgraph frames enclose other shapes
        if element.get("type") == "rectangle" and any(
            other is not element and _contains(element, other) for other in shapes
        ):
            continue
        node_ids.add(element.get("id"))
        snapshot.nodes.append(SnapshotNode(
            id=element.get("id"),
            label=texts.get(element.get("id"), ""),
            shape=ELEMENT_SHAPES[element.get("type")],
        ))

    for element in active:
        if element.get("type") != "arrow":
            continue
        source = _binding_id(element.get("startBinding"))
        target = _binding_id(element.get("endBinding"))
        if source in node_ids and target in node_ids:
            snapshot.edges.append(SnapshotEdge(
                source=source,
                target=target,
                label=texts.get(element.get("id"), ""),
                id=element.get("id"),
            ))

    return snapshot
