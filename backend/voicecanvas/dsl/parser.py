from dataclasses import dataclass, field
from typing import Dict, List, Optional

from voicecanvas.dsl.grammar import (
    LineKind,
    classify_line,
    is_header_line,
    numbered_lines,
    parse_group_open,
    parse_header,
    scan_statement,
)


@dataclass
class ParsedNode:
    id: str
    label: Optional[str] = None
    shape: str = "rectangle"
    line: Optional[int] = None
    implicit: bool = False  # only ever seen as an edge endpoint


@dataclass
class ParsedEdge:
    source: str
    target: str
    label: Optional[str] = None
    dashed: bool = False
    line: Optional[int] = None

    @property
    def key(self) -> str:
        return f"{self.source}_{self.target}"


@dataclass
class ParsedGroup:
    id: Optional[str]
    label: Optional[str]
    line: int


@dataclass
class ParsedDiagram:
    direction: Optional[str] = None
    nodes: List[ParsedNode] = field(default_factory=list)
    edges: List[ParsedEdge] = field(default_factory=list)
    groups: List[ParsedGroup] = field(default_factory=list)

    @property
    def declared_nodes(self) -> List[ParsedNode]:
        return [n for n in self.nodes if not n.implicit]

    def node_ids(self, include_implicit: bool = True) -> List[str]:
        """Unique node ids in first-seen order."""
        seen: Dict[str, None] = {}
        for node in self.nodes:
            if include_implicit or not node.implicit:
                seen.setdefault(node.id, None)
        return list(seen)

    def get_node(self, node_id: str) -> Optional[ParsedNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def group_ids(self) -> List[str]:
        return [g.id for g in self.groups if g.id]


def parse_structure(text: str) -> ParsedDiagram:
    """
    Extract nodes, edges and groups from diagram text.

    Best effort: unparseable statement tails are ignored, since reporting
    them is the job of the linter and the syntax check. Duplicate
    declarations are kept so callers can detect them. Endpoints that are
    never declared become implicit rectangle nodes.
    """
    diagram = ParsedDiagram()
    header_seen = False
    referenced: Dict[str, int] = {}

    for lineno, line in numbered_lines(text):
        kind = classify_line(line)

        if kind is not LineKind.STATEMENT:
            if kind is LineKind.GROUP_OPEN:
                group_id, label = parse_group_open(line)
                diagram.groups.append(ParsedGroup(id=group_id, label=label, line=lineno))
            continue

        if not header_seen and is_header_line(line):
            header_seen = True
            diagram.direction = parse_header(line)[1]
            continue

        statement = scan_statement(line)

        for ref in statement.refs:
            if ref.shape is not None:
                diagram.nodes.append(ParsedNode(
                    id=ref.id,
                    label=ref.label,
                    shape=ref.shape,
                    line=lineno,
                ))
            elif not ref.bad_shape:
                referenced.setdefault(ref.id, lineno)

        # A lone bare id is a declaration without a label
        if not statement.links and len(statement.refs) == 1 and not statement.error:
            ref = statement.refs[0]
            if ref.shape is None:
                diagram.nodes.append(ParsedNode(id=ref.id, line=lineno))

        for index, link in enumerate(statement.links):
            sources = statement.groups[index]
            targets = statement.groups[index + 1] if index + 1 < len(statement.groups) else []
            for source in sources:
                for target in targets:
                    diagram.edges.append(ParsedEdge(
                        source=source.id,
                        target=target.id,
                        label=link.label,
                        dashed=link.dashed,
                        line=lineno,
                    ))

    declared = {n.id for n in diagram.nodes}
    for node_id, lineno in referenced.items():
        if node_id not in declared:
            diagram.nodes.append(ParsedNode(id=node_id, line=lineno, implicit=True))
            declared.add(node_id)

    return diagram
