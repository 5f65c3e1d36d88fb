"""
Final full-syntax check run after lint and id validation pass.

Stricter than the linter: every line must parse completely under the
accepted grammar, otherwise downstream conversion is not attempted.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from voicecanvas.dsl.grammar import (
    DIAGRAM_KIND,
    DIRECTIONS,
    ID_PATTERN,
    RESERVED_KEYWORDS,
    LineKind,
    classify_line,
    first_content_line,
    numbered_lines,
    parse_group_open,
    parse_header,
    scan_statement,
)


@dataclass
class SyntaxIssue:
    message: str
    line: Optional[int] = None

    def to_dict(self) -> dict:
        return {"line": self.line, "message": self.message}


@dataclass
class SyntaxCheckResult:
    ok: bool
    errors: List[SyntaxIssue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"ok": self.ok, "errors": [e.to_dict() for e in self.errors]}

    def format_feedback(self) -> str:
        return "; ".join(
            f"line {e.line}: {e.message}" if e.line else e.message
            for e in self.errors
        )


def check_syntax(text: str) -> SyntaxCheckResult:
    errors: List[SyntaxIssue] = []

    header = first_content_line(text)
    if header is None:
        return SyntaxCheckResult(ok=False, errors=[SyntaxIssue("diagram text is empty")])

    header_line, header_text = header
    kind, direction, extra = parse_header(header_text)
    if kind != DIAGRAM_KIND or direction not in DIRECTIONS or extra:
        errors.append(SyntaxIssue(
            f"header must be '{DIAGRAM_KIND} <{'|'.join(DIRECTIONS)}>', got '{header_text}'",
            header_line,
        ))

    open_groups: List[int] = []
    statement_count = 0

    for lineno, line in numbered_lines(text):
        if lineno <= header_line:
            continue
        kind = classify_line(line)

        if kind in (LineKind.BLANK, LineKind.COMMENT):
            continue
        if kind is LineKind.FENCE:
            errors.append(SyntaxIssue("code fence inside diagram text", lineno))
        elif kind is LineKind.GROUP_OPEN:
            group_id, label = parse_group_open(line)
            if not group_id and not label:
                errors.append(SyntaxIssue("subgraph without a name", lineno))
            elif group_id and group_id in RESERVED_KEYWORDS:
                errors.append(SyntaxIssue(f"'{group_id}' is a keyword, not a subgraph id", lineno))
            open_groups.append(lineno)
        elif kind is LineKind.GROUP_CLOSE:
            if not open_groups:
                errors.append(SyntaxIssue("'end' without matching subgraph", lineno))
            else:
                open_groups.pop()
        elif kind is LineKind.DIRECTION:
            tokens = line.rstrip(";").split()
            if not open_groups:
                errors.append(SyntaxIssue("direction statement outside a subgraph", lineno))
            elif len(tokens) != 2 or tokens[1] not in DIRECTIONS:
                errors.append(SyntaxIssue(f"invalid direction '{line}'", lineno))
        else:
            statement_count += 1
            errors.extend(_check_statement(line, lineno))

    for lineno in open_groups:
        errors.append(SyntaxIssue("subgraph is never closed", lineno))

    if statement_count == 0:
        errors.append(SyntaxIssue("diagram declares no nodes"))

    return SyntaxCheckResult(ok=not errors, errors=errors)


def _check_statement(line: str, lineno: int) -> List[SyntaxIssue]:
    issues: List[SyntaxIssue] = []
    statement = scan_statement(line)

    if statement.error:
        issues.append(SyntaxIssue(statement.error, lineno))

    for ref in statement.refs:
        if ref.id in RESERVED_KEYWORDS:
            issues.append(SyntaxIssue(f"'{ref.id}' is a keyword and cannot be a node id", lineno))
        elif not ID_PATTERN.match(ref.id):
            issues.append(SyntaxIssue(f"invalid node id '{ref.id}'", lineno))

    if not statement.error:
        for index, group in enumerate(statement.groups):
            if not group:
                issues.append(SyntaxIssue(f"link {index} has no target", lineno))

    return issues
