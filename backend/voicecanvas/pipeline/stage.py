from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from voicecanvas.dsl.grammar import RESERVED_KEYWORDS
from voicecanvas.dsl.syntax import check_syntax
from voicecanvas.pipeline.context import GenerationRequest
from voicecanvas.validation.diagram_linter import DiagramLinter
from voicecanvas.validation.id_validator import IdValidator


@dataclass
class StageOutcome:
    passed: bool
    feedback: str = ""
    violations: List[dict] = field(default_factory=list)
    warnings: List[dict] = field(default_factory=list)


class ValidationStage(ABC):
    name: str

    @abstractmethod
    def run(self, candidate: str, request: GenerationRequest) -> StageOutcome:
        """
        Must:
        - judge the candidate as a whole
        - never call the generator
        """
        pass


class LintStage(ValidationStage):
    name = "lint"

    def __init__(self, linter: Optional[DiagramLinter] = None):
        self.linter = linter or DiagramLinter()

    def run(self, candidate: str, request: GenerationRequest) -> StageOutcome:
        result = self.linter.lint(candidate)
        return StageOutcome(
            passed=result.ok,
            feedback=result.format_feedback(),
            violations=[v.to_dict() for v in result.errors],
            warnings=[v.to_dict() for v in result.warnings],
        )


class IdStage(ValidationStage):
    """Id checks against the live canvas; collisions are moot when replacing it."""

    name = "ids"

    def __init__(self, reserved_ids=RESERVED_KEYWORDS):
        self.reserved_ids = reserved_ids

    def run(self, candidate: str, request: GenerationRequest) -> StageOutcome:
        validator = IdValidator(
            used_node_ids=request.used_node_ids,
            used_edge_ids=request.used_edge_ids,
            label_to_id=request.label_to_id,
            reserved_ids=self.reserved_ids,
        )
        result = validator.validate(candidate)
        if result.ok:
            return StageOutcome(passed=True)

        prefix = "Collision avoidance required" if result.needs_collision_avoidance else "Id errors"
        return StageOutcome(
            passed=False,
            feedback=f"{prefix}: {result.format_feedback()}",
            violations=[e.to_dict() for e in result.errors],
        )


class SyntaxStage(ValidationStage):
    name = "syntax"

    def run(self, candidate: str, request: GenerationRequest) -> StageOutcome:
        result = check_syntax(candidate)
        return StageOutcome(
            passed=result.ok,
            feedback=result.format_feedback(),
            violations=[e.to_dict() for e in result.errors],
        )
