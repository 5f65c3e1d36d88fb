"""Tests for the editing session and the transcript accumulator"""

import asyncio

from voicecanvas.canvas.store import ApplyMode, CanvasStore
from voicecanvas.inference.base import DiagramGenerator
from voicecanvas.ir.errors import GenerationFailed
from voicecanvas.pipeline.controller import RetryOrchestrator
from voicecanvas.pipeline.scheduler import AdaptiveScheduler
from voicecanvas.inference.generator import SpecDiagramGenerator, TextDiagramGenerator
from voicecanvas.pipeline.session import EditingSession, TranscriptUpdate, create_session
from voicecanvas.pipeline.transcript import TranscriptAccumulator

LOGIN_FLOW = 'flowchart TD\n  login["Login"] --> home["Home"]'


class RecordingGenerator(DiagramGenerator):
    def __init__(self, reply=LOGIN_FLOW, error=None):
        self.reply = reply
        self.error = error
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.reply

    async def revise(self, request, candidate, feedback):
        return self.reply


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


# -------------------------
# Transcript accumulator
# -------------------------

def test_accumulator_keeps_recent_chunks():
    clock = FakeClock()
    accumulator = TranscriptAccumulator(max_chunks=3, max_age=30, clock=clock)
    for chunk in ("one", "two", "  ", "three", "four"):
        accumulator.add_chunk(chunk)

    assert accumulator.chunks == ["two", "three", "four"]
    assert accumulator.latest() == "four"
    assert accumulator.recent_context() == "two three"
    assert accumulator.full_text() == "two three four"


def test_accumulator_drops_old_chunks():
    clock = FakeClock()
    accumulator = TranscriptAccumulator(max_chunks=10, max_age=30, clock=clock)
    accumulator.add_chunk("old")
    clock.now = 31
    accumulator.add_chunk("new")

    assert accumulator.chunks == ["new"]
    accumulator.clear()
    assert accumulator.latest() == ""


# -------------------------
# Session
# -------------------------

def test_first_request_appends_then_replaces(converter):
    generator = RecordingGenerator()
    store = CanvasStore()
    session = EditingSession(store, RetryOrchestrator(generator), converter)

    first = asyncio.run(session.process(TranscriptUpdate("draw a login flow")))
    second = asyncio.run(session.process(TranscriptUpdate("rename home to dashboard")))

    assert first.accepted and second.accepted
    assert generator.requests[0].apply_mode is ApplyMode.APPEND
    assert generator.requests[1].apply_mode is ApplyMode.REPLACE
    assert generator.requests[1].current_diagram_text == LOGIN_FLOW
    assert generator.requests[1].canvas_node_ids == frozenset({"login", "home"})
    assert session.label_to_id == {"Login": "login", "Home": "home"}


def test_rejected_diagram_leaves_canvas_alone(converter):
    store = CanvasStore()
    session = EditingSession(store, RetryOrchestrator(RecordingGenerator(reply="nonsense"), max_attempts=2), converter)

    result = asyncio.run(session.process(TranscriptUpdate("draw something")))

    assert not result.accepted
    assert not store.has_content()
    assert converter.calls == []


def test_generator_failure_is_logged_not_raised(converter):
    generator = RecordingGenerator(error=GenerationFailed("HTTP 400"))
    session = EditingSession(CanvasStore(), RetryOrchestrator(generator), converter)

    assert asyncio.run(session.process(TranscriptUpdate("draw"))) is None


def test_conversion_failure_keeps_result(empty_converter):
    store = CanvasStore()
    session = EditingSession(store, RetryOrchestrator(RecordingGenerator()), empty_converter)

    result = asyncio.run(session.process(TranscriptUpdate("draw")))
    assert result.accepted
    assert not store.has_content()
    assert session.label_to_id == {}


def test_transcript_chunks_are_debounced(converter):
    generator = RecordingGenerator()
    store = CanvasStore()

    async def scenario():
        session = EditingSession(store, RetryOrchestrator(generator), converter)
        session.scheduler = AdaptiveScheduler(session.process, base_wait=0.02)
        session.on_transcript("draw a login page")
        session.on_transcript("that goes to the home page")
        await asyncio.sleep(0.1)
        await session.scheduler.wait_idle()
        await session.close()

    asyncio.run(scenario())

    assert len(generator.requests) == 1
    assert generator.requests[0].transcript == "that goes to the home page"
    assert generator.requests[0].recent_context == "draw a login page"
    assert store.has_content()


def test_create_session_uses_configured_client(converter):
    session = create_session(converter)
    assert isinstance(session.orchestrator.generator, TextDiagramGenerator)
    assert not session.store.has_content()

    structured = create_session(converter, structured=True)
    assert isinstance(structured.orchestrator.generator, SpecDiagramGenerator)
