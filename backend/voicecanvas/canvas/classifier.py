"""
Geometric classification of converted canvas rectangles.

The shape converter draws both flowchart nodes and subgraph frames as
rectangles, so frames are told apart by size and aspect ratio alone.

Known risk: a legitimately large or elongated node (a long label drawn
in a wide box) is classified as a group container. The heuristic is kept
as is; callers must treat the result as best effort.
"""

from dataclasses import dataclass
from typing import Any, Dict, Union

# A rectangle wider than this and taller than VERY_LARGE_HEIGHT is a frame
VERY_LARGE_WIDTH = 400
VERY_LARGE_HEIGHT = 300

# Or: one side above CONTAINER_MIN_SIDE and more than CONTAINER_ASPECT_RATIO
# times the other side
CONTAINER_MIN_SIDE = 80
CONTAINER_ASPECT_RATIO = 2.0

# Stricter thresholds for spotting group frames among user-drawn shapes
FRAME_SIZES = ((400, 300), (500, 200), (300, 400))
FRAME_MIN_LABEL_LENGTH = 20


@dataclass(frozen=True)
class GroupContainer:
    element: Dict[str, Any]


@dataclass(frozen=True)
class RegularNode:
    element: Dict[str, Any]


ShapeClass = Union[GroupContainer, RegularNode]


def _size(element: Dict[str, Any]):
    return abs(element.get("width") or 0), abs(element.get("height") or 0)


def is_container_geometry(width: float, height: float) -> bool:
    if width > VERY_LARGE_WIDTH and height > VERY_LARGE_HEIGHT:
        return True
    if width > CONTAINER_MIN_SIDE and width > CONTAINER_ASPECT_RATIO * height:
        return True
    if height > CONTAINER_MIN_SIDE and height > CONTAINER_ASPECT_RATIO * width:
        return True
    return False


def classify_rectangle(element: Dict[str, Any]) -> ShapeClass:
    """Tag a converted rectangle as a group container or a regular node."""
    width, height = _size(element)
    if element.get("type") == "rectangle" and is_container_geometry(width, height):
        return GroupContainer(element)
    return RegularNode(element)


def looks_like_group_frame(element: Dict[str, Any], label: str) -> bool:
    """Whether a shape on the live canvas is a group frame rather than a node.

    Only very large rectangles qualify, and only when their text reads as
    a title rather than node content.
    """
    if element.get("type") != "rectangle":
        return False
    width, height = _size(element)
    if not any(width > w and height > h for w, h in FRAME_SIZES):
        return False

    text = (label or "").strip()
    if len(text) < FRAME_MIN_LABEL_LENGTH:
        return False
    lowered = text.lower()
    return not any(word in lowered for word in ("what", "new", "change"))
