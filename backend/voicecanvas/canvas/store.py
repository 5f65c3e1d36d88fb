import copy
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from voicecanvas.canvas.context import CanvasContext, build_snapshot, extract_canvas_context
from voicecanvas.canvas.remapper import Viewport, assign_semantic_ids, remap_elements
from voicecanvas.compiler.merge import DiagramDiff, compute_diff, render_merged
from voicecanvas.compiler.types import CanvasSnapshot
from voicecanvas.dsl.parser import parse_structure
from voicecanvas.ir.errors import ConversionFailure
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)

Element = Dict[str, Any]
Listener = Callable[["CanvasState"], None]
RecordSink = Callable[[List[Element], str], None]


class ApplyMode(str, Enum):
    REPLACE = "replace"  # whole canvas is swapped for the new diagram
    APPEND = "append"    # new elements are added next to existing ones


@dataclass
class ConversionResult:
    skeletons: List[Element] = field(default_factory=list)
    elements: List[Element] = field(default_factory=list)


class ShapeConverter(ABC):
    @abstractmethod
    def convert(self, diagram_text: str) -> ConversionResult:
        """Turn diagram text into a skeleton plus positioned canvas elements"""
        pass


@dataclass
class CanvasState:
    elements: List[Element] = field(default_factory=list)
    diagram_text: str = ""
    viewport: Viewport = field(default_factory=Viewport)
    last_modified: Optional[datetime] = None


class CanvasStore:
    """
    Owns the canvas element state for one editing session.

    Components receive the store by injection. Every mutation is
    synchronous and notifies subscribers once it has committed; a failed
    apply restores the previous state and notifies nobody.
    """

    def __init__(
        self,
        elements: Optional[List[Element]] = None,
        viewport: Optional[Viewport] = None,
        record_sink: Optional[RecordSink] = None,
    ):
        self._state = CanvasState(elements=list(elements or []), viewport=viewport or Viewport())
        self._listeners: List[Listener] = []
        self._record_sink = record_sink
        self._lock = threading.RLock()

    # -------------------------
    # get / set / subscribe
    # -------------------------
    def get_state(self) -> CanvasState:
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def elements(self) -> List[Element]:
        return self.get_state().elements

    def set_elements(self, elements: List[Element], diagram_text: Optional[str] = None) -> None:
        with self._lock:
            self._state.elements = copy.deepcopy(elements)
            if diagram_text is not None:
                self._state.diagram_text = diagram_text
            self._state.last_modified = datetime.now(timezone.utc)
        self._notify()

    def set_viewport(self, viewport: Viewport) -> None:
        with self._lock:
            self._state.viewport = viewport

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        state = self.get_state()
        for listener in list(self._listeners):
            listener(state)

    # -------------------------
    # Views
    # -------------------------
    def has_content(self) -> bool:
        return any(not e.get("isDeleted") for e in self._state.elements)

    def snapshot(self) -> CanvasSnapshot:
        return build_snapshot(self.elements)

    def context(self) -> CanvasContext:
        return extract_canvas_context(self.elements)

    # -------------------------
    # Applying diagrams
    # -------------------------
    def apply_diagram(
        self,
        diagram_text: str,
        converter: ShapeConverter,
        mode: ApplyMode = ApplyMode.REPLACE,
    ) -> List[Element]:
        """Convert accepted diagram text and commit it, or roll back."""
        with self._lock:
            prior = copy.deepcopy(self._state)
            try:
                if mode is ApplyMode.REPLACE:
                    self._state.elements = []

                result = converter.convert(diagram_text)
                if not result.elements:
                    raise ConversionFailure("Shape conversion produced no elements")

                new_elements = remap_elements(result.skeletons, result.elements, self._state.viewport)
                if mode is ApplyMode.APPEND:
                    new_elements = prior.elements + new_elements

                self._state.elements = new_elements
                self._state.diagram_text = diagram_text
                self._state.last_modified = datetime.now(timezone.utc)
            except Exception:
                self._state = prior
                logger.warning(
                    "Canvas apply failed; restored %d previous elements",
                    len(prior.elements),
                )
                raise

        logger.info("Applied diagram (%s): %d elements", mode.value, len(new_elements))
        self._notify()
        self._persist()
        return self.elements

    def merge_diagram(self, diagram_text: str, converter: ShapeConverter) -> DiagramDiff:
        """Incremental path: diff against the canvas and apply the merged document."""
        snapshot = self.snapshot()
        diff = compute_diff(snapshot, diagram_text)
        direction = parse_structure(diagram_text).direction or "TD"
        merged = render_merged(snapshot, diff, direction=direction)
        self.apply_diagram(merged, converter, ApplyMode.REPLACE)
        return diff

    def sync_manual_edits(self, elements: List[Element]) -> List[Element]:
        """Take user-drawn edits, giving new elements semantic ids."""
        existing = {e.get("id") for e in elements if e.get("id")}
        remapped = assign_semantic_ids(elements, existing)
        self.set_elements(remapped)
        self._persist()
        return remapped

    def _persist(self) -> None:
        if self._record_sink is None:
            return
        state = self.get_state()
        try:
            self._record_sink(state.elements, state.diagram_text)
        except Exception:
            # The record store is external; the live canvas stays authoritative
            logger.exception("Failed to persist canvas record")
