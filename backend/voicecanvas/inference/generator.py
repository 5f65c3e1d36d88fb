from typing import Dict, List

from voicecanvas.compiler.render_mermaid import render_spec
from voicecanvas.dsl.grammar import extract_diagram_text
from voicecanvas.inference.base import DiagramGenerator, LLMClient
from voicecanvas.inference.prompt import (
    SPEC_SYSTEM_PROMPT,
    build_generation_messages,
    build_revision_messages,
)
from voicecanvas.ir.diagram import validate_spec
from voicecanvas.ir.errors import SchemaViolation
from voicecanvas.observability.logging import get_logger
from voicecanvas.utils.json_extract import extract_json

logger = get_logger(__name__)


class TextDiagramGenerator(DiagramGenerator):
    """Asks the model for diagram text directly."""

    def __init__(self, client: LLMClient):
        self.client = client

    async def generate(self, request) -> str:
        reply = await self.client.complete(build_generation_messages(request), newer_transcript=True)
        return extract_diagram_text(reply)

    async def revise(self, request, candidate: str, feedback: str) -> str:
        reply = await self.client.complete(build_revision_messages(request, candidate, feedback))
        return extract_diagram_text(reply)


class SpecDiagramGenerator(DiagramGenerator):
    """
    Asks the model for a DiagramSpec and renders it to text.

    A spec that fails schema validation is sent back once with the
    schema errors; a second failure raises SchemaViolation.
    """

    MAX_SCHEMA_RETRIES = 1

    def __init__(self, client: LLMClient):
        self.client = client

    async def generate(self, request) -> str:
        messages = build_generation_messages(request, SPEC_SYSTEM_PROMPT)
        return await self._plan(request, messages, newer_transcript=True)

    async def revise(self, request, candidate: str, feedback: str) -> str:
        messages = build_revision_messages(request, candidate, feedback, SPEC_SYSTEM_PROMPT)
        return await self._plan(request, messages, newer_transcript=False)

    async def _plan(self, request, messages: List[Dict], newer_transcript: bool) -> str:
        violation = None
        for attempt in range(self.MAX_SCHEMA_RETRIES + 1):
            reply = await self.client.complete(messages, newer_transcript=newer_transcript and attempt == 0)
            try:
                spec = validate_spec(extract_json(reply), canvas_node_ids=request.used_node_ids)
                return render_spec(spec)
            except SchemaViolation as exc:
                violation = exc
                logger.warning("Spec rejected (attempt %d): %s", attempt + 1, exc)
                messages = messages + [
                    {"role": "assistant", "content": reply},
                    {"role": "user", "content": "Schema errors: " + "; ".join(exc.errors)},
                ]
        raise violation
