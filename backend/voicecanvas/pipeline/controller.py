from enum import Enum
from typing import Dict, List, Optional

from voicecanvas.config import VALIDATION_MAX_ATTEMPTS
from voicecanvas.dsl.grammar import extract_diagram_text
from voicecanvas.inference.base import DiagramGenerator
from voicecanvas.observability.logging import get_logger
from voicecanvas.pipeline.context import GenerationRequest, GenerationResult, StageFailure
from voicecanvas.pipeline.stage import IdStage, LintStage, StageOutcome, SyntaxStage, ValidationStage

logger = get_logger(__name__)


class ValidationState(str, Enum):
    LINTING = "linting"
    VALIDATING_IDS = "validating_ids"
    VALIDATING_SYNTAX = "validating_syntax"
    ACCEPTED = "accepted"
    FAILED = "failed"


STAGE_ORDER = (
    ValidationState.LINTING,
    ValidationState.VALIDATING_IDS,
    ValidationState.VALIDATING_SYNTAX,
)
TERMINAL_STATES = (ValidationState.ACCEPTED, ValidationState.FAILED)


class ValidationStateMachine:
    """
    Bounded acceptance loop for one generation request.

    A passing stage advances to the next one. A failing stage counts an
    attempt against that stage's ceiling; below the ceiling the machine
    returns to LINTING for a revised candidate, at the ceiling it FAILS.
    """

    def __init__(self, max_attempts: int = VALIDATION_MAX_ATTEMPTS):
        self.max_attempts = max_attempts
        self.state = ValidationState.LINTING
        self.attempts: Dict[ValidationState, int] = {s: 0 for s in STAGE_ORDER}
        self.failed_stage: Optional[ValidationState] = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def needs_revision(self) -> bool:
        """True after a failure that still has attempts left."""
        return self.state is ValidationState.LINTING and self.failed_stage is not None

    def record(self, passed: bool) -> ValidationState:
        if self.done:
            raise RuntimeError(f"State machine already finished in {self.state.value}")

        current = self.state
        if passed:
            index = STAGE_ORDER.index(current)
            self.failed_stage = None
            self.state = (
                STAGE_ORDER[index + 1] if index + 1 < len(STAGE_ORDER) else ValidationState.ACCEPTED
            )
            return self.state

        self.attempts[current] += 1
        self.failed_stage = current
        if self.attempts[current] >= self.max_attempts:
            self.state = ValidationState.FAILED
        else:
            self.state = ValidationState.LINTING
        return self.state


class RetryOrchestrator:
    """
    Binds the generator to lint, id and syntax validation.

    Every revision replaces the candidate wholesale; nothing is patched.
    Generator errors (timeout, cancellation, hard failures) propagate to
    the caller unchanged.
    """

    def __init__(
        self,
        generator: DiagramGenerator,
        max_attempts: int = VALIDATION_MAX_ATTEMPTS,
        stages: Optional[Dict[ValidationState, ValidationStage]] = None,
    ):
        self.generator = generator
        self.max_attempts = max_attempts
        self.stages = stages or {
            ValidationState.LINTING: LintStage(),
            ValidationState.VALIDATING_IDS: IdStage(),
            ValidationState.VALIDATING_SYNTAX: SyntaxStage(),
        }

    async def run(self, request: GenerationRequest) -> GenerationResult:
        machine = ValidationStateMachine(self.max_attempts)
        candidate = extract_diagram_text(await self.generator.generate(request))
        generator_calls = 1
        warnings: List[dict] = []
        outcome: Optional[StageOutcome] = None

        while not machine.done:
            if machine.needs_revision:
                logger.info(
                    "Revising candidate after %s failure (attempt %d/%d)",
                    machine.failed_stage.value,
                    machine.attempts[machine.failed_stage],
                    self.max_attempts,
                )
                candidate = extract_diagram_text(
                    await self.generator.revise(request, candidate, outcome.feedback)
                )
                generator_calls += 1
                warnings = []

            stage = self.stages[machine.state]
            outcome = stage.run(candidate, request)
            warnings.extend(outcome.warnings)
            machine.record(outcome.passed)

        if machine.state is ValidationState.ACCEPTED:
            logger.info("Diagram accepted after %d generator call(s)", generator_calls)
            return GenerationResult(
                status="accepted",
                diagram_text=candidate,
                warnings=warnings,
                attempts=generator_calls,
            )

        failed = self.stages[machine.failed_stage]
        logger.warning("Diagram rejected at %s stage: %s", failed.name, outcome.feedback)
        return GenerationResult(
            status="failed",
            diagram_text=candidate,
            warnings=warnings,
            attempts=generator_calls,
            failure=StageFailure(
                stage=failed.name,
                feedback=outcome.feedback,
                violations=outcome.violations,
            ),
        )
