from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from voicecanvas.canvas.context import CanvasContext
from voicecanvas.canvas.store import ApplyMode


@dataclass
class GenerationRequest:
    # Raw input (authoritative)
    transcript: str
    recent_context: str = ""

    # Live canvas, read-only for the duration of the request
    current_diagram_text: str = ""
    canvas_context: Optional[CanvasContext] = None
    canvas_node_ids: FrozenSet[str] = frozenset()
    canvas_edge_ids: FrozenSet[str] = frozenset()
    label_to_id: Dict[str, str] = field(default_factory=dict)

    apply_mode: ApplyMode = ApplyMode.REPLACE

    @property
    def replaces_canvas(self) -> bool:
        return self.apply_mode is ApplyMode.REPLACE

    @property
    def used_node_ids(self) -> FrozenSet[str]:
        """Ids the new diagram must not collide with; none when replacing."""
        return frozenset() if self.replaces_canvas else self.canvas_node_ids

    @property
    def used_edge_ids(self) -> FrozenSet[str]:
        return frozenset() if self.replaces_canvas else self.canvas_edge_ids


@dataclass
class StageFailure:
    stage: str
    feedback: str
    violations: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"stage": self.stage, "feedback": self.feedback, "violations": self.violations}


@dataclass
class GenerationResult:
    status: str  # accepted | failed
    diagram_text: Optional[str] = None
    warnings: List[dict] = field(default_factory=list)
    attempts: int = 0
    failure: Optional[StageFailure] = None

    @property
    def accepted(self) -> bool:
        return self.status == "accepted"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "diagram_text": self.diagram_text,
            "warnings": self.warnings,
            "attempts": self.attempts,
            "failure": self.failure.to_dict() if self.failure else None,
        }
