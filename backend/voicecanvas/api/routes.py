from fastapi import APIRouter, HTTPException

from voicecanvas.compiler.merge import compute_diff, render_merged
from voicecanvas.compiler.render_mermaid import render_spec
from voicecanvas.compiler.types import CanvasSnapshot
from voicecanvas.dsl.syntax import check_syntax
from voicecanvas.ir.diagram import validate_spec
from voicecanvas.ir.errors import SchemaViolation
from voicecanvas.observability.logging import get_logger
from voicecanvas.schemas import (
    DiffRequest,
    LintRequest,
    RenderRequest,
    RenderResponse,
    SyntaxRequest,
    ValidateIdsRequest,
)
from voicecanvas.validation.diagram_linter import lint_diagram
from voicecanvas.validation.id_validator import validate_ids

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/render", response_model=RenderResponse)
def render(req: RenderRequest):
    try:
        spec = validate_spec(req.spec, canvas_node_ids=req.canvas_node_ids)
    except SchemaViolation as e:
        raise HTTPException(status_code=422, detail=e.errors)
    return RenderResponse(diagram_text=render_spec(spec))


@router.post("/lint")
def lint(req: LintRequest):
    limits = {}
    if req.max_nodes is not None:
        limits["max_nodes"] = req.max_nodes
    if req.max_edges is not None:
        limits["max_edges"] = req.max_edges

    result = lint_diagram(
        req.diagram_text,
        disallowed_features=req.disallowed_features,
        limits=limits,
        direction_default=req.direction_default,
    )
    return result.to_dict()


@router.post("/validate-ids")
def validate_diagram_ids(req: ValidateIdsRequest):
    result = validate_ids(
        req.diagram_text,
        used_node_ids=req.used_node_ids,
        used_edge_ids=req.used_edge_ids,
        label_to_id=req.label_to_id,
        reserved_ids=req.reserved_ids,
        synthesize_edge_ids=req.synthesize_edge_ids,
    )
    return result.to_dict()


@router.post("/syntax")
def syntax(req: SyntaxRequest):
    return check_syntax(req.diagram_text).to_dict()


@router.post("/diff")
def diff(req: DiffRequest):
    try:
        snapshot = CanvasSnapshot.from_dict(req.snapshot)
    except (KeyError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid snapshot: {e}")

    result = compute_diff(snapshot, req.diagram_text)
    logger.debug("Diff computed: %s", result.to_dict())
    return {
        "diff": result.to_dict(),
        "merged_text": render_merged(snapshot, result, direction=req.direction),
    }
