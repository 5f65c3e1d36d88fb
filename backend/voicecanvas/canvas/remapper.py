"""
Restores semantic ids after shape conversion.

The converter turns the structural skeleton (whose ids are the diagram's
node and edge ids) into positioned canvas elements with random ids. The
mapping built here is best effort: it relies on bound text and geometry,
and is never guaranteed to be a bijection.
"""

import copy
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from voicecanvas import config
from voicecanvas.canvas.classifier import GroupContainer, classify_rectangle
from voicecanvas.dsl.grammar import ID_PATTERN
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)

Element = Dict[str, Any]
IdMapping = Dict[str, str]

NODE_TYPES = ("rectangle", "diamond", "ellipse")
RANDOM_ID_RE = re.compile(r"^[A-Za-z0-9_-]{15,}$")
SHAPE_FALLBACK_NAMES = {"rectangle": "rect", "diamond": "decision", "ellipse": "oval"}


@dataclass
class Viewport:
    x: float = 0.0
    y: float = 0.0
    width: float = config.VIEWPORT_WIDTH
    height: float = config.VIEWPORT_HEIGHT

    @property
    def center(self):
        return self.x + self.width / 2, self.y + self.height / 2


def _unique(candidate: str, used: Set[str]) -> str:
    final = candidate
    counter = 2
    while final in used:
        final = f"{candidate}_{counter}"
        counter += 1
    used.add(final)
    return final


def _bound_texts(elements: Iterable[Element]) -> Dict[str, List[Element]]:
    texts: Dict[str, List[Element]] = {}
    for element in elements:
        if element.get("type") == "text" and element.get("containerId"):
            texts.setdefault(element["containerId"], []).append(element)
    return texts


def _skeleton_label(skeleton: Element) -> Optional[str]:
    label = skeleton.get("label")
    if isinstance(label, dict):
        return label.get("text")
    return label


# -------------------------
# Mapping
# -------------------------

def create_id_mapping(skeletons: List[Element], elements: List[Element]) -> IdMapping:
    """Map converted element ids back to the skeleton's semantic ids."""
    mapping: IdMapping = {}
    original_ids = {s.get("id") for s in skeletons if s.get("id")}
    label_to_original = {}
    for skeleton in skeletons:
        label = _skeleton_label(skeleton)
        if skeleton.get("type") != "arrow" and label and skeleton.get("id"):
            label_to_original.setdefault(label, skeleton["id"])

    texts = _bound_texts(elements)
    containers: List[Element] = []
    nodes: List[Element] = []
    for element in elements:
        if element.get("type") == "rectangle":
            shape_class = classify_rectangle(element)
            if isinstance(shape_class, GroupContainer):
                containers.append(element)
            else:
                nodes.append(element)
        elif element.get("type") in NODE_TYPES:
            nodes.append(element)

    # Group frames: exact id match only
    for container in containers:
        for text in texts.get(container.get("id"), []):
            if text.get("text") in original_ids:
                mapping[container["id"]] = text["text"]
                break

    used_ids: Set[str] = set(mapping.values())
    for node in nodes:
        semantic_id = _match_node_text(texts.get(node.get("id"), []), original_ids, label_to_original)
        if semantic_id:
            mapping[node["id"]] = _unique(semantic_id, used_ids)

    used_arrow_ids: Set[str] = set()
    skeleton_arrows = [s for s in skeletons if s.get("type") == "arrow" and s.get("id")]
    for arrow in (e for e in elements if e.get("type") == "arrow"):
        start = mapping.get((arrow.get("startBinding") or {}).get("elementId"))
        end = mapping.get((arrow.get("endBinding") or {}).get("elementId"))
        if not start or not end:
            continue
        original = next(
            (
                s for s in skeleton_arrows
                if (s.get("start") or {}).get("id") == start
                and (s.get("end") or {}).get("id") == end
                and s["id"] not in used_arrow_ids
            ),
            None,
        ) or next(
            (
                s for s in skeleton_arrows
                if (s.get("start") or {}).get("id") == start
                and (s.get("end") or {}).get("id") == end
            ),
            None,
        )
        if original:
            mapping[arrow["id"]] = _unique(original["id"], used_arrow_ids)

    for element in elements:
        element_id = element.get("id")
        if not element_id or element_id in mapping:
            continue
        if element.get("type") == "text" and element.get("containerId") in mapping:
            mapping[element_id] = f"text_{mapping[element['containerId']]}"
        elif ID_PATTERN.match(element_id):
            mapping[element_id] = element_id

    logger.debug("Built id mapping for %d of %d elements", len(mapping), len(elements))
    return mapping


def _match_node_text(texts: List[Element], original_ids: Set[str], label_to_original: Dict[str, str]) -> Optional[str]:
    contents = [t.get("text") for t in texts if t.get("text")]
    for content in contents:
        if content in original_ids:
            return content
    for content in contents:
        if content in label_to_original:
            return label_to_original[content]
    for content in contents:
        if ID_PATTERN.match(content):
            return content
    return None


def apply_id_mapping(elements: List[Element], mapping: IdMapping) -> List[Element]:
    """Rewrite ids, bindings, container refs and bound-element lists."""
    remapped = []
    for element in elements:
        new = copy.deepcopy(element)
        if element.get("id") in mapping:
            new["id"] = mapping[element["id"]]

        for key in ("startBinding", "endBinding"):
            binding = new.get(key)
            if binding and binding.get("elementId") in mapping:
                binding["elementId"] = mapping[binding["elementId"]]

        for bound in new.get("boundElements") or []:
            if bound.get("id") in mapping:
                bound["id"] = mapping[bound["id"]]

        if new.get("containerId") in mapping:
            new["containerId"] = mapping[new["containerId"]]

        remapped.append(new)
    return remapped


def center_elements(elements: List[Element], viewport: Optional[Viewport] = None) -> List[Element]:
    """Translate elements so their bounding-box centre sits on the viewport centre."""
    viewport = viewport or Viewport()
    positioned = [e for e in elements if e.get("x") is not None and e.get("y") is not None]
    if not positioned:
        return elements

    min_x = min(e["x"] for e in positioned)
    min_y = min(e["y"] for e in positioned)
    max_x = max(e["x"] + (e.get("width") or 0) for e in positioned)
    max_y = max(e["y"] + (e.get("height") or 0) for e in positioned)

    target_x, target_y = viewport.center
    offset_x = target_x - (min_x + max_x) / 2
    offset_y = target_y - (min_y + max_y) / 2

    centered = []
    for element in elements:
        if element.get("x") is not None and element.get("y") is not None:
            element = {**element, "x": element["x"] + offset_x, "y": element["y"] + offset_y}
        centered.append(element)
    return centered


def remap_elements(
    skeletons: List[Element],
    elements: List[Element],
    viewport: Optional[Viewport] = None,
) -> List[Element]:
    mapping = create_id_mapping(skeletons, elements)
    return center_elements(apply_id_mapping(elements, mapping), viewport)


# -------------------------
# Manually drawn elements
# -------------------------

def semantic_id_from_text(text: str, fallback: str, used: Set[str]) -> str:
    """camelCase id from free text, unique within ``used``."""
    words = re.sub(r"[^A-Za-z0-9\s]", "", text or "").split()
    candidate = "".join(
        word.lower() if index == 0 else word[:1].upper() + word[1:].lower()
        for index, word in enumerate(words)
    )
    if not candidate:
        candidate = fallback
    elif not candidate[0].isalpha():
        candidate = "element" + candidate[:1].upper() + candidate[1:]
    return _unique(candidate, used)


def create_manual_id_mapping(elements: List[Element], existing_ids: Iterable[str]) -> IdMapping:
    """Semantic ids for user-drawn elements that still carry random ids."""
    mapping: IdMapping = {}
    used = set(existing_ids)
    texts = _bound_texts(elements)

    def needs_id(element: Element) -> bool:
        return bool(RANDOM_ID_RE.match(element.get("id") or ""))

    for shape in (e for e in elements if e.get("type") in NODE_TYPES and needs_id(e)):
        bound = texts.get(shape["id"], [])
        if bound and bound[0].get("text"):
            semantic_id = semantic_id_from_text(bound[0]["text"], "element", used)
            mapping[bound[0]["id"]] = f"text_{semantic_id}"
        else:
            semantic_id = semantic_id_from_text("", SHAPE_FALLBACK_NAMES[shape["type"]], used)
        mapping[shape["id"]] = semantic_id

    for arrow in (e for e in elements if e.get("type") == "arrow" and needs_id(e)):
        bound = texts.get(arrow["id"], [])
        if bound and bound[0].get("text"):
            semantic_id = semantic_id_from_text(bound[0]["text"] + " Arrow", "arrow", used)
            mapping[bound[0]["id"]] = f"text_{semantic_id}"
        else:
            semantic_id = semantic_id_from_text("", "arrow", used)
        mapping[arrow["id"]] = semantic_id

    for text in elements:
        if text.get("type") == "text" and not text.get("containerId") and needs_id(text):
            mapping[text["id"]] = semantic_id_from_text(text.get("text", ""), "text", used)

    return mapping


def assign_semantic_ids(elements: List[Element], existing_ids: Iterable[str]) -> List[Element]:
    mapping = create_manual_id_mapping(elements, existing_ids)
    if not mapping:
        return elements
    return apply_id_mapping(elements, mapping)
