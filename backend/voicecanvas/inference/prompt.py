import json

DIAGRAM_SYSTEM_PROMPT = """
You turn spoken requests into flowchart diagram text for a whiteboard.

Rules:
- Output ONLY the diagram inside one ```mermaid block, nothing else
- First line: flowchart TD (or LR, BT, RL when the request implies it)
- Node ids: start with a letter, then letters, digits or _ only
- Quote every label: a["Label"]
- Shapes: a["Label"] rectangle, a{"Label"} decision, a(("Label")) start/end or actor
- Edges: a --> b, a -.-> b for optional links, labels as a -->|label| b
- Group related nodes with subgraph g1["Title"] ... end
- Never use classDef, class, style, linkStyle, click or accessibility directives
- Keep labels under 60 characters, no backticks, no '|'
- Reuse the ids of nodes that already exist instead of redeclaring them
"""

SPEC_SYSTEM_PROMPT = """
You are a precise diagram planner. Convert the request to DiagramSpec JSON.

Rules:
- Output ONLY valid JSON, no markdown, no explanations
- Node ids: start with a letter, then letters, digits or _ only
- Labels: 1-80 characters for nodes, 1-60 for groups, up to 40 for edges
- shape: "rectangle" (default), "diamond" (decisions), "circle" (start/end, actors)
- Use groups only when the request clearly implies them
- Edges may reference nodes already on the canvas by id

JSON schema:
{
  "direction": "TD|LR|BT|RL",
  "nodes": [{"id": "string", "label": "string", "shape": "rectangle", "groupId": "optional"}],
  "groups": [{"id": "string", "label": "string"}],
  "edges": [{"from": "id", "to": "id", "label": "optional", "dashed": false}]
}
"""


def _request_block(request) -> str:
    parts = [f"Request: {request.transcript.strip()}"]

    if request.recent_context:
        parts.append(f"Recent conversation: {request.recent_context.strip()}")

    if request.current_diagram_text:
        parts.append("Current diagram:\n" + request.current_diagram_text.strip())

    if request.canvas_context is not None and not request.canvas_context.is_empty:
        parts.append(
            "Canvas contents (shapes addressed by index):\n"
            + json.dumps(request.canvas_context.to_dict(), indent=2)
        )

    if request.replaces_canvas:
        parts.append("Return the COMPLETE updated diagram; it replaces the whole canvas.")
    elif request.used_node_ids:
        parts.append(
            "Ids already on the canvas (do not redeclare): "
            + ", ".join(sorted(request.used_node_ids))
        )

    return "\n\n".join(parts)


def build_generation_messages(request, system_prompt: str = DIAGRAM_SYSTEM_PROMPT) -> list:
    return [
        {"role": "system", "content": system_prompt.strip()},
        {"role": "user", "content": _request_block(request)},
    ]


def build_revision_messages(request, candidate: str, feedback: str, system_prompt: str = DIAGRAM_SYSTEM_PROMPT) -> list:
    return build_generation_messages(request, system_prompt) + [
        {"role": "assistant", "content": candidate},
        {
            "role": "user",
            "content": (
                "That output was rejected. Fix every problem and return the full corrected "
                f"output.\nProblems: {feedback}"
            ),
        },
    ]
