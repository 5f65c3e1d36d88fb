"""Tests for the validation state machine and the retry orchestrator"""

import asyncio

import pytest

from voicecanvas.canvas.store import ApplyMode
from voicecanvas.inference.base import DiagramGenerator
from voicecanvas.ir.errors import GenerationTimeout
from voicecanvas.pipeline.context import GenerationRequest
from voicecanvas.pipeline.controller import (
    RetryOrchestrator,
    ValidationState,
    ValidationStateMachine,
)

VALID = 'flowchart TD\n  a["Start"] --> b["Finish"]'


class ScriptedGenerator(DiagramGenerator):
    """Returns canned candidates in order and records what it was asked."""

    def __init__(self, candidates):
        self.candidates = list(candidates)
        self.calls = []
        self.feedback = []

    def _next(self):
        return self.candidates.pop(0) if len(self.candidates) > 1 else self.candidates[0]

    async def generate(self, request):
        self.calls.append("generate")
        return self._next()

    async def revise(self, request, candidate, feedback):
        self.calls.append("revise")
        self.feedback.append(feedback)
        return self._next()


class TimingOutGenerator(DiagramGenerator):
    async def generate(self, request):
        raise GenerationTimeout("too slow")

    async def revise(self, request, candidate, feedback):
        raise GenerationTimeout("too slow")


def _run(generator, request=None, **kwargs):
    orchestrator = RetryOrchestrator(generator, **kwargs)
    return asyncio.run(orchestrator.run(request or GenerationRequest(transcript="draw it")))


# -------------------------
# State machine
# -------------------------

def test_state_machine_happy_path():
    machine = ValidationStateMachine(max_attempts=3)
    assert machine.record(True) is ValidationState.VALIDATING_IDS
    assert machine.record(True) is ValidationState.VALIDATING_SYNTAX
    assert machine.record(True) is ValidationState.ACCEPTED
    assert machine.done


def test_state_machine_returns_to_linting_then_fails():
    machine = ValidationStateMachine(max_attempts=2)
    machine.record(True)
    assert machine.record(False) is ValidationState.LINTING
    assert machine.needs_revision
    assert machine.attempts[ValidationState.VALIDATING_IDS] == 1

    machine.record(True)
    assert machine.record(False) is ValidationState.FAILED
    assert machine.failed_stage is ValidationState.VALIDATING_IDS

    with pytest.raises(RuntimeError):
        machine.record(True)


# -------------------------
# Orchestrator
# -------------------------

def test_valid_candidate_is_accepted_first_time():
    generator = ScriptedGenerator([VALID])
    result = _run(generator)

    assert result.accepted
    assert result.diagram_text == VALID
    assert result.attempts == 1
    assert generator.calls == ["generate"]


def test_lint_failure_is_revised():
    generator = ScriptedGenerator(["graph TD\n  a --> b", VALID])
    result = _run(generator)

    assert result.accepted
    assert result.attempts == 2
    assert generator.calls == ["generate", "revise"]
    assert "NON_FLOWCHART" in generator.feedback[0]


def test_fenced_reply_is_unwrapped():
    result = _run(ScriptedGenerator(["```mermaid\n" + VALID + "\n```"]))
    assert result.diagram_text == VALID


def test_lint_ceiling_fails_after_max_attempts():
    generator = ScriptedGenerator(["nonsense"])
    result = _run(generator, max_attempts=5)

    assert not result.accepted
    assert result.status == "failed"
    assert result.attempts == 5
    assert generator.calls == ["generate"] + ["revise"] * 4
    assert result.failure.stage == "lint"
    assert result.failure.violations[0]["code"] == "MISSING_HEADER"


def test_collision_feedback_when_appending():
    request = GenerationRequest(
        transcript="add a start step",
        canvas_node_ids=frozenset({"a"}),
        apply_mode=ApplyMode.APPEND,
    )
    generator = ScriptedGenerator([VALID, 'flowchart TD\n  a_2["Start"] --> b["Finish"]'])
    result = _run(generator, request)

    assert result.accepted
    assert generator.feedback[0].startswith("Collision avoidance required: ID_COLLISION_EXISTING")


def test_replacing_canvas_ignores_collisions():
    request = GenerationRequest(
        transcript="redraw it",
        canvas_node_ids=frozenset({"a", "b"}),
        apply_mode=ApplyMode.REPLACE,
    )
    generator = ScriptedGenerator([VALID])
    assert _run(generator, request).accepted
    assert generator.calls == ["generate"]


def test_other_id_errors_are_labelled():
    generator = ScriptedGenerator(['flowchart TD\n  a["A"] --> ghost', VALID])
    _run(generator)
    assert generator.feedback[0].startswith("Id errors: MISSING_NODE_FOR_EDGE")


def test_syntax_failure_after_lint_and_ids_pass():
    generator = ScriptedGenerator(['flowchart TD\n  a["A"] --- b["B"]', VALID])
    result = _run(generator)

    assert result.accepted
    assert "unexpected text" in generator.feedback[0]


def test_warnings_are_surfaced():
    candidate = 'flowchart TD\n  a["use `x`"] --> b["B"]'
    result = _run(ScriptedGenerator([candidate]))

    assert result.accepted
    assert [w["code"] for w in result.warnings] == ["BAD_LABEL"]
    assert result.to_dict()["warnings"][0]["severity"] == "warn"


def test_generator_errors_propagate():
    with pytest.raises(GenerationTimeout):
        _run(TimingOutGenerator())
