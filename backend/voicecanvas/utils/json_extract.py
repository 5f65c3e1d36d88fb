import json
import re


def extract_json(text: str) -> dict:
    """
    Extract the first JSON object from generator output.
    Returns {} if nothing parses to an object.
    """
    if not text or not isinstance(text, str):
        return {}

    candidates = [text.strip()]

    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if fenced:
        candidates.append(fenced.group(1))

    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return {}
