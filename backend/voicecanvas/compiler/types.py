from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SnapshotNode:
    id: str
    label: str = ""
    shape: str = "rectangle"  # grammar shape name


@dataclass
class SnapshotEdge:
    source: str
    target: str
    label: str = ""
    id: Optional[str] = None

    @property
    def key(self) -> str:
        return self.id or f"{self.source}_{self.target}"


@dataclass
class CanvasSnapshot:
    """Semantic-id-addressed structure of the live canvas."""
    nodes: List[SnapshotNode] = field(default_factory=list)
    edges: List[SnapshotEdge] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def edge_ids(self) -> List[str]:
        return [e.key for e in self.edges]

    def label_to_id(self) -> Dict[str, str]:
        return {n.label: n.id for n in self.nodes if n.label}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanvasSnapshot":
        return cls(
            nodes=[
                SnapshotNode(
                    id=n["id"],
                    label=n.get("label") or "",
                    shape=n.get("shape") or "rectangle",
                )
                for n in data.get("nodes", [])
            ],
            edges=[
                SnapshotEdge(
                    source=e["source"],
                    target=e["target"],
                    label=e.get("label") or "",
                    id=e.get("id"),
                )
                for e in data.get("edges", [])
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [{"id": n.id, "label": n.label, "shape": n.shape} for n in self.nodes],
            "edges": [
                {"id": e.key, "source": e.source, "target": e.target, "label": e.label}
                for e in self.edges
            ],
        }
