"""Shared fixtures: a deterministic stand-in for the canvas shape converter."""

import pytest

from voicecanvas.canvas.store import ConversionResult, ShapeConverter
from voicecanvas.dsl.parser import parse_structure


class SkeletonConverter(ShapeConverter):
    """Lays nodes out in a column and gives every element a random-looking id."""

    def __init__(self):
        self.calls = []

    def convert(self, diagram_text: str) -> ConversionResult:
        self.calls.append(diagram_text)
        parsed = parse_structure(diagram_text)

        skeletons = []
        elements = []
        element_ids = {}

        for index, node in enumerate(n for n in parsed.nodes if n.id not in element_ids):
            label = node.label or node.id
            shape_id = f"shape{index}XyZ0123456789"
            text_id = f"label{index}XyZ0123456789"
            element_ids[node.id] = shape_id

            skeletons.append({"id": node.id, "type": "rectangle", "label": {"text": label}})
            elements.append({
                "id": shape_id,
                "type": "rectangle",
                "x": 0,
                "y": index * 100,
                "width": 120,
                "height": 60,
                "boundElements": [{"id": text_id, "type": "text"}],
            })
            elements.append({
                "id": text_id,
                "type": "text",
                "containerId": shape_id,
                "text": label,
                "x": 10,
                "y": index * 100 + 20,
                "width": 100,
                "height": 20,
            })

        for index, edge in enumerate(parsed.edges):
            skeletons.append({
                "id": edge.key,
                "type": "arrow",
                "start": {"id": edge.source},
                "end": {"id": edge.target},
            })
            elements.append({
                "id": f"arrow{index}XyZ0123456789",
                "type": "arrow",
                "x": 60,
                "y": 60,
                "width": 0,
                "height": 40,
                "startBinding": {"elementId": element_ids.get(edge.source)},
                "endBinding": {"elementId": element_ids.get(edge.target)},
            })

        return ConversionResult(skeletons=skeletons, elements=elements)


class EmptyConverter(ShapeConverter):
    def convert(self, diagram_text: str) -> ConversionResult:
        return ConversionResult()


@pytest.fixture
def converter():
    return SkeletonConverter()


@pytest.fixture
def empty_converter():
    return EmptyConverter()
