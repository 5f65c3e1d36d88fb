"""
Diagram text grammar shared by the linter, the structural parser and the
final syntax check.

The accepted subset of flowchart text:

    flowchart TD
    a["Label"]                  node (six bracket shapes, see SHAPES)
    a -->|label| b              solid edge, optional pipe label
    a -.-> b & c                dashed edge, multi-target shorthand
    subgraph g1["Group"]        named block open
      direction LR
    end                         named block close
    %% comment
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

DIAGRAM_KIND = "flowchart"
DIRECTIONS = ("TD", "LR", "BT", "RL")

# Headers that name a diagram kind we refuse to draw
OTHER_DIAGRAM_KINDS = {
    "graph",
    "sequencediagram",
    "classdiagram",
    "statediagram",
    "statediagram-v2",
    "erdiagram",
    "gantt",
    "pie",
    "journey",
    "gitgraph",
    "mindmap",
    "timeline",
    "quadrantchart",
    "requirementdiagram",
    "c4context",
    "sankey-beta",
    "xychart-beta",
    "block-beta",
}

GROUP_OPEN = "subgraph"
GROUP_CLOSE = "end"

RESERVED_KEYWORDS = frozenset({
    "end",
    "subgraph",
    "graph",
    "flowchart",
    "direction",
    "style",
    "class",
    "classDef",
    "click",
    "linkStyle",
})

# (shape name, open bracket, close bracket); multi-char brackets first
SHAPES: Tuple[Tuple[str, str, str], ...] = (
    ("stadium", "([", "])"),
    ("subroutine", "[[", "]]"),
    ("circle", "((", "))"),
    ("rectangle", "[", "]"),
    ("rounded", "(", ")"),
    ("decision", "{", "}"),
)
SHAPE_BRACKETS = {name: (open_, close) for name, open_, close in SHAPES}
SHAPE_OPENERS = "[({>"
SHAPE_HINT = 'Use one of: [ ], ( ), ([ ]), [[ ]], (( )), { } and quote labels, e.g. a["Label"]'

QUOTE_ESCAPE = "#quot;"
PIPE_ESCAPE = "#124;"

_QUOTED_BODY = r'"[^"\n]*"'
# Unquoted bodies may not hold any bracket or start like a trapezoid
_UNQUOTED_BODY = r'(?![/\\])[^\[\](){}"\n]*'

_SHAPE_RES = [
    (
        name,
        re.compile(
            re.escape(open_)
            + r"(?P<body>" + _QUOTED_BODY + "|" + _UNQUOTED_BODY + r")"
            + re.escape(close)
        ),
    )
    for name, open_, close in SHAPES
]

# A node reference token stops at whitespace, brackets, '&', '|', ';'
# and at the start of any link ("--", "-.", "==").
NODE_TOKEN_RE = re.compile(r'(?:(?!--|-\.|==)[^\s\[\](){}<>&|";])+')

ARROW_SOLID = "-->"
ARROW_DASHED = "-.->"
LINK_RE = re.compile(
    r"(?P<arrow>-\.->|-->)(?:\s*\|(?P<label>[^|\n]*)\|)?"
)

FENCE_MARKER = "```"


class LineKind(Enum):
    BLANK = "blank"
    COMMENT = "comment"
    FENCE = "fence"
    GROUP_OPEN = "group_open"
    GROUP_CLOSE = "group_close"
    DIRECTION = "direction"
    STATEMENT = "statement"


@dataclass
class NodeRef:
    id: str
    shape: Optional[str] = None       # None for a bare reference
    label: Optional[str] = None       # label text with quotes removed
    raw_label: Optional[str] = None   # bracket body exactly as written
    bad_shape: bool = False


@dataclass
class Link:
    dashed: bool
    label: Optional[str] = None


@dataclass
class Statement:
    """One flowchart statement: node groups joined by links.

    ``groups[i]`` and ``groups[i + 1]`` are the two ends of ``links[i]``;
    each group holds more than one ref when '&' shorthand is used.
    """
    groups: List[List[NodeRef]] = field(default_factory=lambda: [[]])
    links: List[Link] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def refs(self) -> List[NodeRef]:
        return [ref for group in self.groups for ref in group]


# -------------------------
# Labels
# -------------------------

def escape_label(text: str) -> str:
    """Make label text safe for a double-quoted bracket body."""
    text = " ".join(str(text).split())
    return text.replace('"', QUOTE_ESCAPE).replace("|", PIPE_ESCAPE)


def unquote_label(body: Optional[str]) -> Optional[str]:
    if body is None:
        return None
    body = body.strip()
    if len(body) >= 2 and body.startswith('"') and body.endswith('"'):
        body = body[1:-1]
    return body.replace(QUOTE_ESCAPE, '"').replace(PIPE_ESCAPE, "|")


def has_unescaped_pipe(body: str) -> bool:
    return re.search(r"(?<!\\)\|", body) is not None


# -------------------------
# Lines
# -------------------------

def numbered_lines(text: str) -> List[Tuple[int, str]]:
    """(1-based line number, stripped line) for every line of text."""
    return [(i + 1, line.strip()) for i, line in enumerate((text or "").splitlines())]


def first_content_line(text: str) -> Optional[Tuple[int, str]]:
    for lineno, line in numbered_lines(text):
        if line:
            return lineno, line
    return None


def classify_line(line: str) -> LineKind:
    if not line:
        return LineKind.BLANK
    if line.startswith("%%"):
        return LineKind.COMMENT
    if line.startswith(FENCE_MARKER):
        return LineKind.FENCE
    tokens = line.rstrip(";").split(None, 1)
    if not tokens:
        return LineKind.BLANK
    head = tokens[0]
    if head == GROUP_OPEN:
        return LineKind.GROUP_OPEN
    if head == GROUP_CLOSE and len(tokens) == 1:
        return LineKind.GROUP_CLOSE
    if head == "direction":
        return LineKind.DIRECTION
    return LineKind.STATEMENT


def parse_header(line: str) -> Tuple[str, Optional[str], List[str]]:
    """Split a header line into (kind, direction, extra tokens)."""
    tokens = line.rstrip(";").split()
    if not tokens:
        return "", None, []
    direction = tokens[1] if len(tokens) > 1 else None
    return tokens[0], direction, tokens[2:]


def is_header_line(line: str) -> bool:
    kind = parse_header(line)[0]
    return kind == DIAGRAM_KIND or kind.lower() in OTHER_DIAGRAM_KINDS


def parse_group_open(line: str) -> Tuple[Optional[str], Optional[str]]:
    """Return (group id, group label) for a ``subgraph`` line.

    ``subgraph g1["Label"]`` gives ("g1", "Label"); ``subgraph Title``
    gives ("Title", "Title"); a free-text title with spaces has no id.
    """
    rest = line.rstrip(";")[len(GROUP_OPEN):].strip()
    if not rest:
        return None, None
    match = re.match(r"^(?P<id>[^\s\[\]]+)\s*\[(?P<body>[^\]]*)\]\s*$", rest)
    if match:
        return match.group("id"), unquote_label(match.group("body"))
    if re.match(r"^[^\s\[\]]+$", rest):
        return rest, rest
    return None, unquote_label(rest)


# -------------------------
# Statements
# -------------------------

def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _scan_node_ref(text: str, pos: int) -> Tuple[Optional[NodeRef], int, Optional[str]]:
    match = NODE_TOKEN_RE.match(text, pos)
    if not match:
        return None, pos, f"expected a node id at '{text[pos:pos + 20]}'"

    ref = NodeRef(id=match.group(0))
    pos = match.end()
    if pos >= len(text) or text[pos] not in SHAPE_OPENERS:
        return ref, pos, None

    for name, shape_re in _SHAPE_RES:
        shape_match = shape_re.match(text, pos)
        if shape_match:
            body = shape_match.group("body")
            ref.shape = name
            ref.raw_label = body
            ref.label = unquote_label(body)
            return ref, shape_match.end(), None

    ref.bad_shape = True
    ref.raw_label = text[pos:]
    return ref, len(text), f"unsupported shape '{text[pos:pos + 20]}' for node '{ref.id}'"


def scan_statement(line: str) -> Statement:
    """Tokenise a statement line into node refs and links.

    Scanning stops at the first unparseable token; whatever was read up to
    that point is kept and ``error`` describes the problem.
    """
    text = line.strip().rstrip(";").rstrip()
    statement = Statement()
    pos = 0

    while True:
        pos = _skip_ws(text, pos)
        ref, pos, error = _scan_node_ref(text, pos)
        if ref is not None:
            statement.groups[-1].append(ref)
        if error:
            statement.error = error
            return statement

        pos = _skip_ws(text, pos)
        if pos >= len(text):
            return statement

        if text[pos] == "&":
            pos += 1
            continue

        link_match = LINK_RE.match(text, pos)
        if link_match:
            label = link_match.group("label")
            statement.links.append(Link(
                dashed=link_match.group("arrow") == ARROW_DASHED,
                label=unquote_label(label) if label else None,
            ))
            statement.groups.append([])
            pos = link_match.end()
            continue

        statement.error = f"unexpected text '{text[pos:pos + 20]}'"
        return statement


# -------------------------
# Fences
# -------------------------

def unwrap_fenced_block(text: str) -> Optional[str]:
    """Body of text that is exactly one ```mermaid block, else None."""
    content = [(i, line.strip()) for i, line in enumerate((text or "").splitlines()) if line.strip()]
    if len(content) < 2:
        return None
    fences = [i for i, line in content if line.startswith(FENCE_MARKER)]
    first, last = content[0], content[-1]
    if (
        len(fences) == 2
        and fences[0] == first[0]
        and fences[1] == last[0]
        and first[1] == FENCE_MARKER + "mermaid"
        and last[1] == FENCE_MARKER
    ):
        lines = text.splitlines()
        return "\n".join(lines[first[0] + 1:last[0]])
    return None


def extract_diagram_text(text: str) -> str:
    """Pull diagram text out of a generator reply.

    Takes the first fenced block when there is one, otherwise the whole
    reply, stripped.
    """
    if not text:
        return ""
    match = re.search(r"```(?:mermaid)?[ \t]*\n(.*?)```", text, re.DOTALL | re.IGNORECASE)
    if match:
        return match.group(1).strip()
    return text.strip()
