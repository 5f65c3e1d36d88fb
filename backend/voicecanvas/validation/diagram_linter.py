"""
Diagram Linter - Checks generated diagram text against the safe grammar subset.

Catches issues like:
- Missing or non-flowchart headers, bad directions
- Forbidden diagram kinds and styling/interactivity directives
- Unsupported node shapes and unsafe labels
- Unbalanced subgraph blocks
- Sloppy '&' multi-target shorthand
- Oversized diagrams
- Stray code fences or trailing prose
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from voicecanvas.dsl.grammar import (
    DIAGRAM_KIND,
    DIRECTIONS,
    FENCE_MARKER,
    OTHER_DIAGRAM_KINDS,
    SHAPE_HINT,
    LineKind,
    classify_line,
    has_unescaped_pipe,
    numbered_lines,
    parse_group_open,
    parse_header,
    scan_statement,
    unwrap_fenced_block,
)
from voicecanvas.dsl.parser import parse_structure
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DISALLOWED_FEATURES = (
    "erDiagram",
    "gantt",
    "classDef",
    "class",
    "style",
    "linkStyle",
    "click",
    "accTitle",
    "accDescr",
    "sequenceDiagram",
    "stateDiagram",
    "pie",
)

MAX_LABEL_LENGTH = 60

# Quoted text, pipe labels and bracket bodies, removed before the '&' check
_LABEL_SPAN_RE = re.compile(r'"[^"\n]*"|\|[^|\n]*\||\[[^\]\n]*\]|\([^)\n]*\)|\{[^}\n]*\}')
_AMP_RE = re.compile(r"\s*&\s*")


class LintSeverity(Enum):
    ERROR = "error"  # Diagram must not be accepted
    WARN = "warn"    # Accepted, surfaced for visibility


@dataclass(frozen=True)
class LintViolation:
    """A single rule breach found in diagram text"""
    code: str
    message: str
    severity: LintSeverity = LintSeverity.ERROR
    location: Optional[str] = None
    hint: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "location": self.location,
            "hint": self.hint,
        }

    def format(self) -> str:
        text = f"{self.code}: {self.message}"
        if self.location:
            text += f" at {self.location}"
        if self.hint:
            text += f" ({self.hint})"
        return text


@dataclass
class LintResult:
    """Result of a lint pass"""
    ok: bool
    violations: List[LintViolation] = field(default_factory=list)

    @property
    def errors(self) -> List[LintViolation]:
        return [v for v in self.violations if v.severity == LintSeverity.ERROR]

    @property
    def warnings(self) -> List[LintViolation]:
        return [v for v in self.violations if v.severity == LintSeverity.WARN]

    @property
    def codes(self) -> List[str]:
        return [v.code for v in self.violations]

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "violations": [v.to_dict() for v in self.violations],
        }

    def get_summary(self) -> str:
        status = "OK" if self.ok else "REJECTED"
        return f"{status} | Errors: {len(self.errors)}, Warnings: {len(self.warnings)}"

    def format_feedback(self, include_warnings: bool = False) -> str:
        """Violation summary handed back to the generator for a revision."""
        selected = self.violations if include_warnings else self.errors
        return "; ".join(v.format() for v in selected)


class DiagramLinter:
    """
    Lints diagram text. Every check runs; results accumulate.

    Usage:
        linter = DiagramLinter()
        result = linter.lint(text)

        if not result.ok:
            feedback = result.format_feedback()
    """

    def __init__(
        self,
        disallowed_features: Optional[Iterable[str]] = None,
        limits: Optional[Dict[str, int]] = None,
        direction_default: str = "TD",
    ):
        features = DEFAULT_DISALLOWED_FEATURES if disallowed_features is None else disallowed_features
        self.disallowed_features = [f for f in features if f]
        self.limits = limits or {}
        self.direction_default = direction_default

    def lint(self, text: str) -> LintResult:
        raw = text or ""
        body = unwrap_fenced_block(raw)
        if body is None:
            body = raw

        violations: List[LintViolation] = []
        violations.extend(self._check_header(body))
        violations.extend(self._check_forbidden_features(body))
        violations.extend(self._check_shapes_and_labels(body))
        violations.extend(self._check_subgraphs(body))
        violations.extend(self._check_inline_links(body))
        violations.extend(self._check_size_caps(body))
        violations.extend(self._check_extra_text(raw))

        ok = not any(v.severity == LintSeverity.ERROR for v in violations)
        if not ok:
            logger.debug("Lint rejected diagram: %s", [v.code for v in violations])
        return LintResult(ok=ok, violations=violations)

    # -------------------------
    # 1. Header
    # -------------------------
    def _check_header(self, text: str) -> List[LintViolation]:
        expected = f"{DIAGRAM_KIND} {self.direction_default}"
        lines = [(n, l) for n, l in numbered_lines(text) if l]
        if not lines:
            return [LintViolation(
                code="MISSING_HEADER",
                message="Diagram text is empty",
                hint=f"Start with '{expected}'",
            )]

        lineno, first = lines[0]
        kind, direction, extra = parse_header(first)
        location = f"line {lineno}"

        if kind == DIAGRAM_KIND:
            if direction is None:
                return [LintViolation(
                    code="MISSING_HEADER",
                    message="Header has no direction",
                    location=location,
                    hint=f"Use '{expected}'",
                )]
            if direction not in DIRECTIONS or extra:
                return [LintViolation(
                    code="BAD_DIRECTION",
                    message=f"Header direction '{direction or ''}' is not one of {', '.join(DIRECTIONS)}",
                    location=location,
                    hint=f"Use '{expected}'",
                )]
            return []

        if kind.lower() in OTHER_DIAGRAM_KINDS:
            return [LintViolation(
                code="NON_FLOWCHART",
                message=f"Diagram kind '{kind}' is not supported",
                location=location,
                hint=f"Only flowcharts are supported; start with '{expected}'",
            )]

        return [LintViolation(
            code="MISSING_HEADER",
            message=f"First line '{first[:40]}' is not a diagram header",
            location=location,
            hint=f"Start with '{expected}'",
        )]

    # -------------------------
    # 2. Forbidden features
    # -------------------------
    def _check_forbidden_features(self, text: str) -> List[LintViolation]:
        issues = []
        for feature in self.disallowed_features:
            pattern = re.compile(rf"\b{re.escape(feature)}\b", re.IGNORECASE)
            match = pattern.search(text)
            if match:
                lineno = text.count("\n", 0, match.start()) + 1
                issues.append(LintViolation(
                    code="FORBIDDEN_FEATURE",
                    message=f"Forbidden feature '{feature}' is used",
                    location=f"line {lineno}",
                    hint=f"Remove '{feature}'; only plain flowchart nodes, edges and subgraphs are allowed",
                ))

        if re.search(r"\b(erDiagram|gantt)\b", text, re.IGNORECASE):
            issues.append(LintViolation(
                code="ER_OR_GANTT",
                message="ER diagrams and Gantt charts are not supported",
                hint="Express the content as a flowchart",
            ))
        return issues

    # -------------------------
    # 3. Shapes and labels
    # -------------------------
    def _check_shapes_and_labels(self, text: str) -> List[LintViolation]:
        issues = []
        for lineno, line in self._statement_lines(text):
            location = f"line {lineno}"
            for ref in scan_statement(line).refs:
                if ref.bad_shape:
                    issues.append(LintViolation(
                        code="BAD_SHAPE",
                        message=f"Node '{ref.id}' uses an unsupported shape",
                        location=location,
                        hint=SHAPE_HINT,
                    ))
                    continue
                if ref.raw_label is None:
                    continue

                if has_unescaped_pipe(ref.raw_label):
                    issues.append(LintViolation(
                        code="UNESCAPED_PIPE",
                        message=f"Label of node '{ref.id}' contains an unescaped '|'",
                        location=location,
                        hint="Replace '|' with '/' or escape it as #124;",
                    ))
                if "`" in ref.raw_label:
                    issues.append(LintViolation(
                        code="BAD_LABEL",
                        message=f"Label of node '{ref.id}' contains backticks",
                        severity=LintSeverity.WARN,
                        location=location,
                        hint="Remove backticks from labels",
                    ))
                if ref.label and len(ref.label) > MAX_LABEL_LENGTH:
                    issues.append(LintViolation(
                        code="BAD_LABEL",
                        message=f"Label of node '{ref.id}' is {len(ref.label)} characters long",
                        severity=LintSeverity.WARN,
                        location=location,
                        hint=f"Keep labels under {MAX_LABEL_LENGTH} characters",
                    ))
        return issues

    # -------------------------
    # 4. Subgraph balance
    # -------------------------
    def _check_subgraphs(self, text: str) -> List[LintViolation]:
        issues = []
        stack: List[int] = []

        for lineno, line in numbered_lines(text):
            kind = classify_line(line)

            if kind is LineKind.GROUP_OPEN:
                group_id, label = parse_group_open(line)
                if not group_id and not label:
                    issues.append(LintViolation(
                        code="SUBGRAPH_BLOCK",
                        message="Subgraph has no name",
                        location=f"line {lineno}",
                        hint='Name it, e.g. subgraph g1["Title"]',
                    ))
                stack.append(lineno)

            elif kind is LineKind.GROUP_CLOSE:
                if not stack:
                    issues.append(LintViolation(
                        code="SUBGRAPH_BLOCK",
                        message="'end' has no matching subgraph",
                        location=f"line {lineno}",
                        hint="Remove the extra 'end'",
                    ))
                else:
                    stack.pop()

            elif kind is LineKind.DIRECTION and stack:
                tokens = line.rstrip(";").split()
                if len(tokens) != 2 or tokens[1] not in DIRECTIONS:
                    issues.append(LintViolation(
                        code="BAD_DIRECTION",
                        message=f"Invalid direction inside subgraph: '{line}'",
                        location=f"line {lineno}",
                        hint=f"Use one of {', '.join(DIRECTIONS)}",
                    ))

        for lineno in stack:
            issues.append(LintViolation(
                code="SUBGRAPH_BLOCK",
                message="Subgraph is never closed",
                location=f"line {lineno}",
                hint="Close every subgraph with 'end'",
            ))
        return issues

    # -------------------------
    # 5. Multi-target shorthand
    # -------------------------
    def _check_inline_links(self, text: str) -> List[LintViolation]:
        issues = []
        for lineno, line in self._statement_lines(text):
            bare = _LABEL_SPAN_RE.sub("", line).rstrip(";").strip()
            if "&" not in bare:
                continue
            badly_spaced = any(m.group(0) != " & " for m in _AMP_RE.finditer(bare))
            dangling = bare.startswith("&") or bare.endswith("&")
            if badly_spaced or dangling:
                issues.append(LintViolation(
                    code="INLINE_LINK_SYNTAX",
                    message="Multi-target '&' shorthand is malformed",
                    location=f"line {lineno}",
                    hint="Write it as 'a --> b & c' with single spaces around '&'",
                ))
        return issues

    # -------------------------
    # 6. Size caps
    # -------------------------
    def _check_size_caps(self, text: str) -> List[LintViolation]:
        max_nodes = self.limits.get("max_nodes")
        max_edges = self.limits.get("max_edges")
        if max_nodes is None and max_edges is None:
            return []

        issues = []
        parsed = parse_structure(text)
        node_count = len(parsed.node_ids())
        edge_count = len(parsed.edges)

        if max_nodes is not None and node_count > max_nodes:
            issues.append(LintViolation(
                code="SIZE_CAP",
                message=f"Diagram has {node_count} nodes, limit is {max_nodes}",
                severity=LintSeverity.WARN,
                hint="Merge or drop minor nodes",
            ))
        if max_edges is not None and edge_count > max_edges:
            issues.append(LintViolation(
                code="SIZE_CAP",
                message=f"Diagram has {edge_count} edges, limit is {max_edges}",
                severity=LintSeverity.WARN,
                hint="Drop redundant connections",
            ))
        return issues

    # -------------------------
    # 7. Extra text
    # -------------------------
    def _check_extra_text(self, raw: str) -> List[LintViolation]:
        if FENCE_MARKER not in raw:
            return []
        if unwrap_fenced_block(raw) is not None:
            return []
        return [LintViolation(
            code="EXTRA_TEXT",
            message="Code fences or text outside a single ```mermaid block",
            hint="Return only the diagram text",
        )]

    def _statement_lines(self, text: str):
        header_skipped = False
        for lineno, line in numbered_lines(text):
            if not line:
                continue
            if not header_skipped:
                header_skipped = True
                continue
            if classify_line(line) is LineKind.STATEMENT:
                yield lineno, line


def lint_diagram(
    text: str,
    disallowed_features: Optional[Iterable[str]] = None,
    limits: Optional[Dict[str, int]] = None,
    direction_default: str = "TD",
) -> LintResult:
    """Convenience function to lint diagram text."""
    linter = DiagramLinter(
        disallowed_features=disallowed_features,
        limits=limits,
        direction_default=direction_default,
    )
    return linter.lint(text)


def raise_on_errors(text: str) -> None:
    """Lint diagram text and raise if any error-severity violation is found."""
    result = lint_diagram(text)
    if not result.ok:
        messages = [v.format() for v in result.errors]
        raise ValueError(
            f"Diagram lint failed with {len(result.errors)} errors:\n" + "\n".join(messages)
        )
