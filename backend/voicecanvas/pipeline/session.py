from dataclasses import dataclass
from typing import Dict, Optional

from voicecanvas.canvas.store import ApplyMode, CanvasStore, ShapeConverter
from voicecanvas.dsl.parser import parse_structure
from voicecanvas.inference.config import get_llm_client
from voicecanvas.inference.generator import SpecDiagramGenerator, TextDiagramGenerator
from voicecanvas.ir.errors import ConversionFailure, GenerationFailed, GenerationTimeout, SchemaViolation
from voicecanvas.observability.logging import get_logger
from voicecanvas.pipeline.context import GenerationRequest, GenerationResult
from voicecanvas.pipeline.controller import RetryOrchestrator
from voicecanvas.pipeline.scheduler import AdaptiveScheduler
from voicecanvas.pipeline.transcript import TranscriptAccumulator

logger = get_logger(__name__)


@dataclass
class TranscriptUpdate:
    transcript: str
    recent_context: str = ""


class EditingSession:
    """
    One user's live editing session.

    Transcript chunks are debounced through the scheduler; each run asks
    the orchestrator for a verified diagram and applies it to the canvas.
    A canvas with content is replaced wholesale, an empty one is appended to.
    """

    def __init__(
        self,
        store: CanvasStore,
        orchestrator: RetryOrchestrator,
        converter: ShapeConverter,
        accumulator: Optional[TranscriptAccumulator] = None,
        scheduler: Optional[AdaptiveScheduler] = None,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.converter = converter
        self.accumulator = accumulator or TranscriptAccumulator()
        self.scheduler = scheduler or AdaptiveScheduler(self.process)
        self.label_to_id: Dict[str, str] = {}
        self.last_result: Optional[GenerationResult] = None

    def on_transcript(self, chunk: str) -> None:
        self.accumulator.add_chunk(chunk)
        self.scheduler.enqueue(TranscriptUpdate(
            transcript=self.accumulator.latest(),
            recent_context=self.accumulator.recent_context(),
        ))

    def build_request(self, update: TranscriptUpdate) -> GenerationRequest:
        state = self.store.get_state()
        snapshot = self.store.snapshot()
        mode = ApplyMode.REPLACE if self.store.has_content() else ApplyMode.APPEND
        return GenerationRequest(
            transcript=update.transcript,
            recent_context=update.recent_context,
            current_diagram_text=state.diagram_text,
            canvas_context=self.store.context(),
            canvas_node_ids=frozenset(snapshot.node_ids()),
            canvas_edge_ids=frozenset(snapshot.edge_ids()),
            label_to_id=dict(self.label_to_id),
            apply_mode=mode,
        )

    async def process(self, update: TranscriptUpdate) -> Optional[GenerationResult]:
        request = self.build_request(update)
        try:
            result = await self.orchestrator.run(request)
        except (GenerationTimeout, GenerationFailed, SchemaViolation) as exc:
            logger.warning("Generation failed for '%s': %s", update.transcript[:60], exc)
            return None

        self.last_result = result
        if not result.accepted:
            logger.warning("No diagram applied: %s", result.failure.feedback)
            return result

        for warning in result.warnings:
            logger.info("Lint warning: %s", warning["message"])

        try:
            self.store.apply_diagram(result.diagram_text, self.converter, request.apply_mode)
        except ConversionFailure as exc:
            logger.warning("Canvas left unchanged: %s", exc)
            return result

        self._remember_labels(result.diagram_text)
        return result

    def _remember_labels(self, diagram_text: str) -> None:
        for node in parse_structure(diagram_text).declared_nodes:
            if node.label:
                self.label_to_id[node.label] = node.id

    async def close(self) -> None:
        await self.scheduler.aclose()
        self.accumulator.clear()


def create_session(
    converter: ShapeConverter,
    store: Optional[CanvasStore] = None,
    structured: bool = False,
) -> EditingSession:
    """Build a session backed by the configured chat completions endpoint."""
    client = get_llm_client()
    generator = SpecDiagramGenerator(client) if structured else TextDiagramGenerator(client)
    return EditingSession(store or CanvasStore(), RetryOrchestrator(generator), converter)
