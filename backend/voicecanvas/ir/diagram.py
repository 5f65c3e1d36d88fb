from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, model_validator

from voicecanvas.dsl.grammar import ID_PATTERN
from voicecanvas.ir.errors import SchemaViolation

MAX_NODES = 60
MAX_EDGES = 200
MAX_GROUPS = 20
MAX_NODE_LABEL = 80
MAX_GROUP_LABEL = 60
MAX_EDGE_LABEL = 40


class SpecNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(pattern=ID_PATTERN.pattern)
    label: str = Field(min_length=1, max_length=MAX_NODE_LABEL)
    shape: Literal["rectangle", "ellipse", "diamond", "circle"] = "rectangle"
    group_id: Optional[str] = Field(default=None, alias="groupId")


class SpecGroup(BaseModel):
    id: str = Field(pattern=ID_PATTERN.pattern)
    label: str = Field(min_length=1, max_length=MAX_GROUP_LABEL)


class SpecEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    label: Optional[str] = Field(default=None, max_length=MAX_EDGE_LABEL)
    dashed: bool = False


class DiagramSpec(BaseModel):
    """
    Structured diagram proposed by the generator, before rendering.

    Edge endpoints are checked against the spec's own nodes plus any
    live-canvas ids supplied as ``canvas_node_ids`` in the validation
    context.
    """
    direction: Literal["TD", "LR", "BT", "RL"] = "TD"
    nodes: List[SpecNode] = Field(min_length=1, max_length=MAX_NODES)
    groups: List[SpecGroup] = Field(default_factory=list, max_length=MAX_GROUPS)
    edges: List[SpecEdge] = Field(default_factory=list, max_length=MAX_EDGES)

    @model_validator(mode="after")
    def check_references(self, info: ValidationInfo) -> "DiagramSpec":
        problems: List[str] = []

        seen = set()
        for node in self.nodes:
            if node.id in seen:
                problems.append(f"duplicate node id '{node.id}'")
            seen.add(node.id)

        group_ids = [g.id for g in self.groups]
        if len(set(group_ids)) != len(group_ids):
            problems.append("duplicate group ids")

        canvas_ids = set((info.context or {}).get("canvas_node_ids", ()))
        known = seen | canvas_ids
        for edge in self.edges:
            if edge.source not in known:
                problems.append(f"edge source '{edge.source}' is not a known node")
            if edge.target not in known:
                problems.append(f"edge target '{edge.target}' is not a known node")

        if problems:
            raise ValueError("; ".join(problems))
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def validate_spec(payload: Dict[str, Any], canvas_node_ids: Iterable[str] = ()) -> DiagramSpec:
    """Validate a raw spec payload or raise SchemaViolation listing every problem."""
    try:
        return DiagramSpec.model_validate(
            payload,
            context={"canvas_node_ids": set(canvas_node_ids)},
        )
    except ValidationError as exc:
        errors = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"])
            message = error["msg"]
            errors.append(f"{location}: {message}" if location else message)
        raise SchemaViolation(errors) from exc
