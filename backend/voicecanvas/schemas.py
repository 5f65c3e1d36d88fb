from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RenderRequest(BaseModel):
    spec: Dict[str, Any]
    canvas_node_ids: List[str] = []


class RenderResponse(BaseModel):
    diagram_text: str


class LintRequest(BaseModel):
    diagram_text: str
    disallowed_features: Optional[List[str]] = None
    max_nodes: Optional[int] = Field(default=None, ge=1)
    max_edges: Optional[int] = Field(default=None, ge=1)
    direction_default: str = "TD"


class ValidateIdsRequest(BaseModel):
    diagram_text: str
    used_node_ids: List[str] = []
    used_edge_ids: List[str] = []
    label_to_id: Dict[str, str] = {}
    reserved_ids: List[str] = []
    synthesize_edge_ids: bool = False


class SyntaxRequest(BaseModel):
    diagram_text: str


class DiffRequest(BaseModel):
    snapshot: Dict[str, Any]
    diagram_text: str
    direction: str = "TD"
