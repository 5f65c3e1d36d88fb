"""
Id Validator & Allocator - Keeps node and edge ids stable and collision-free
across repeated edits of the same canvas.

Suggestions (renames, synthesized edge ids) are advisory; nothing here
rewrites the diagram text.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from voicecanvas.dsl.grammar import ID_PATTERN
from voicecanvas.dsl.parser import ParsedDiagram, parse_structure
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)

MAX_EDGE_ID_PROBES = 100


@dataclass
class IdError:
    code: str
    message: str
    loc: Optional[str] = None
    hint: Optional[str] = None

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "loc": self.loc, "hint": self.hint}

    def format(self) -> str:
        return f"{self.code}: {self.message}" + (f" ({self.hint})" if self.hint else "")


@dataclass
class NodeIdRename:
    from_id: str
    to_id: str

    def to_dict(self) -> dict:
        return {"from": self.from_id, "to": self.to_id}


@dataclass
class EdgeIdSuggestion:
    source: str
    target: str
    id: str

    def to_dict(self) -> dict:
        return {"source": self.source, "target": self.target, "id": self.id}


@dataclass
class IdSuggestions:
    node_id_renames: List[NodeIdRename] = field(default_factory=list)
    edge_ids: List[EdgeIdSuggestion] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.node_id_renames and not self.edge_ids

    def to_dict(self) -> dict:
        return {
            "nodeIdRenames": [r.to_dict() for r in self.node_id_renames],
            "edgeIds": [e.to_dict() for e in self.edge_ids],
        }


@dataclass
class IdValidationResult:
    ok: bool
    errors: List[IdError] = field(default_factory=list)
    suggestions: Optional[IdSuggestions] = None

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self.errors]

    @property
    def needs_collision_avoidance(self) -> bool:
        return "ID_COLLISION_EXISTING" in self.codes

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "errors": [e.to_dict() for e in self.errors],
            "suggestions": self.suggestions.to_dict() if self.suggestions else None,
        }

    def format_feedback(self) -> str:
        return "; ".join(e.format() for e in self.errors)


def generate_alternative_id(base_id: str, taken: Iterable[str]) -> str:
    """Append _2, _3, ... to base_id until it is not taken."""
    taken = set(taken)
    counter = 2
    candidate = f"{base_id}_{counter}"
    while candidate in taken:
        counter += 1
        candidate = f"{base_id}_{counter}"
    return candidate


class IdValidator:
    """
    Validates the ids declared in diagram text against the live canvas.

    Usage:
        validator = IdValidator(used_node_ids=canvas_ids)
        result = validator.validate(text)
    """

    def __init__(
        self,
        used_node_ids: Iterable[str] = (),
        used_edge_ids: Iterable[str] = (),
        label_to_id: Optional[Dict[str, str]] = None,
        reserved_ids: Optional[Iterable[str]] = None,
        id_pattern: re.Pattern = ID_PATTERN,
        synthesize_edge_ids: bool = False,
    ):
        self.used_node_ids: Set[str] = set(used_node_ids)
        self.used_edge_ids: Set[str] = set(used_edge_ids)
        self.label_to_id = dict(label_to_id or {})
        self.reserved_ids: Set[str] = set(reserved_ids or ())
        self.id_pattern = re.compile(id_pattern) if isinstance(id_pattern, str) else id_pattern
        self.synthesize_edge_ids = synthesize_edge_ids

    def validate(self, text: str) -> IdValidationResult:
        parsed = parse_structure(text)
        suggestions = IdSuggestions()

        errors: List[IdError] = []
        errors.extend(self._check_nodes(parsed, suggestions))
        errors.extend(self._check_edges(parsed))
        if self.synthesize_edge_ids:
            errors.extend(self._synthesize_edge_ids(parsed, suggestions))

        if errors:
            logger.debug("Id validation failed: %s", [e.code for e in errors])

        return IdValidationResult(
            ok=not errors,
            errors=errors,
            suggestions=None if suggestions.is_empty() else suggestions,
        )

    # -------------------------
    # Nodes
    # -------------------------
    def _check_nodes(self, parsed: ParsedDiagram, suggestions: IdSuggestions) -> List[IdError]:
        errors = []
        local_ids = set(parsed.node_ids())
        seen: Set[str] = set()

        for node in parsed.nodes:
            loc = f"line {node.line}" if node.line else None

            if not self.id_pattern.match(node.id):
                errors.append(IdError(
                    code="INVALID_ID_FORMAT",
                    message=f"Node id '{node.id}' does not match {self.id_pattern.pattern}",
                    loc=loc,
                    hint="Start with a letter; use only letters, digits and '_'",
                ))
                continue

            if node.id in seen:
                errors.append(IdError(
                    code="ID_DUPLICATE_LOCAL",
                    message=f"Node id '{node.id}' is declared more than once",
                    loc=loc,
                    hint="Declare each node once and reference it by id afterwards",
                ))
                continue
            seen.add(node.id)

            if node.implicit:
                continue

            if node.id in self.used_node_ids:
                alternative = generate_alternative_id(node.id, self.used_node_ids | local_ids)
                suggestions.node_id_renames.append(NodeIdRename(from_id=node.id, to_id=alternative))
                errors.append(IdError(
                    code="ID_COLLISION_EXISTING",
                    message=f"Node id '{node.id}' already exists on the canvas",
                    loc=loc,
                    hint=f"Use '{alternative}' instead",
                ))

            if node.id in self.reserved_ids:
                errors.append(IdError(
                    code="RESERVED_ID",
                    message=f"Node id '{node.id}' is reserved",
                    loc=loc,
                    hint="Pick a different id",
                ))

            errors.extend(self._check_label_mapping(node.id, node.label, loc))

        return errors

    def _check_label_mapping(self, node_id: str, label: Optional[str], loc: Optional[str]) -> List[IdError]:
        if not label:
            return []
        remembered = self.label_to_id.get(label)
        if not remembered or remembered == node_id:
            return []

        if remembered in self.used_node_ids:
            message = (
                f"Label '{label}' conflicts with existing mapping to '{remembered}', "
                f"which is still on the canvas"
            )
            hint = f"Reference '{remembered}' instead of declaring '{node_id}'"
        else:
            message = f"Label '{label}' was previously mapped to '{remembered}'; previous mapping suggests reusing it"
            hint = f"Use '{remembered}' for this label"

        return [IdError(code="AMBIGUOUS_LABEL_MAPPING", message=message, loc=loc, hint=hint)]

    # -------------------------
    # Edges
    # -------------------------
    def _check_edges(self, parsed: ParsedDiagram) -> List[IdError]:
        errors = []
        resolvable = (
            {n.id for n in parsed.declared_nodes}
            | set(parsed.group_ids())
            | self.used_node_ids
        )

        for edge in parsed.edges:
            loc = f"{edge.source} -> {edge.target}"
            if edge.source not in resolvable:
                errors.append(IdError(
                    code="MISSING_NODE_FOR_EDGE",
                    message=f"Edge source '{edge.source}' is not declared and not on the canvas",
                    loc=loc,
                    hint=f"Declare '{edge.source}' with a label and shape",
                ))
            if edge.target not in resolvable:
                errors.append(IdError(
                    code="MISSING_NODE_FOR_EDGE",
                    message=f"Edge target '{edge.target}' is not declared and not on the canvas",
                    loc=loc,
                    hint=f"Declare '{edge.target}' with a label and shape",
                ))
        return errors

    def _synthesize_edge_ids(self, parsed: ParsedDiagram, suggestions: IdSuggestions) -> List[IdError]:
        errors = []
        pair_counts: Counter = Counter()
        assigned: Set[str] = set()

        for edge in parsed.edges:
            base = edge.key
            pair_counts[base] += 1
            candidate = base if pair_counts[base] == 1 else f"{base}_{pair_counts[base]}"

            probe = 1
            while candidate in self.used_edge_ids or candidate in assigned:
                probe += 1
                if probe > MAX_EDGE_ID_PROBES:
                    candidate = None
                    break
                candidate = f"{base}_{probe}"

            if candidate is None:
                errors.append(IdError(
                    code="UNRESOLVABLE_ID",
                    message=f"Could not allocate an id for edge {edge.source} -> {edge.target}",
                    loc=f"{edge.source} -> {edge.target}",
                    hint="Remove duplicate connections",
                ))
                continue

            assigned.add(candidate)
            suggestions.edge_ids.append(EdgeIdSuggestion(
                source=edge.source,
                target=edge.target,
                id=candidate,
            ))
        return errors


def validate_ids(
    text: str,
    used_node_ids: Iterable[str] = (),
    used_edge_ids: Iterable[str] = (),
    label_to_id: Optional[Dict[str, str]] = None,
    reserved_ids: Optional[Iterable[str]] = None,
    id_pattern: re.Pattern = ID_PATTERN,
    synthesize_edge_ids: bool = False,
) -> IdValidationResult:
    """Convenience function to validate the ids of diagram text."""
    validator = IdValidator(
        used_node_ids=used_node_ids,
        used_edge_ids=used_edge_ids,
        label_to_id=label_to_id,
        reserved_ids=reserved_ids,
        id_pattern=id_pattern,
        synthesize_edge_ids=synthesize_edge_ids,
    )
    return validator.validate(text)
