import json
import re
from typing import Any, Dict, List, Optional

from recipegen.core.errors import ParseError

from .validators import clamp, safe_float

FALLBACK_CONFIDENCE = 0.7
MIN_NAME_LENGTH = 3

_LINE_NOISE_RE = re.compile(r"[-\d.]")


def _strip_fences(s: str) -> str:
    s = s.strip()
    if s.startswith("```"):
        s = s.strip("` \n")
        if s.lower().startswith("json"):
            s = s[4:].lstrip()
    return s


def extract_json_object(text: str) -> Dict[str, Any]:
    """Decode the first-``{`` to last-``}`` span of a model reply."""
    raw = _strip_fences(text or "")
    start, end = raw.find("{"), raw.rfind("}")
    if start < 0 or end <= start:
        raise ParseError("The AI response was not in the expected format", details=raw[:400])
    try:
        data = json.loads(raw[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError("The AI response was not in the expected format", details=str(exc)) from exc
    if not isinstance(data, dict):
        raise ParseError("The AI response was not a JSON object")
    return data


def _ingredient_from_json(entry: Any) -> Optional[Dict[str, Any]]:
    if isinstance(entry, str):
        name = entry.strip().lower()
        return {"name": name, "confidence": FALLBACK_CONFIDENCE} if name else None
    if isinstance(entry, dict):
        name = str(entry.get("name") or entry.get("ingredient") or "").strip().lower()
        if not name:
            return None
        raw_conf = entry.get("confidence")
        confidence = clamp(safe_float(raw_conf), 0.0, 1.0) if raw_conf is not None else FALLBACK_CONFIDENCE
        return {"name": name, "confidence": confidence}
    return None


def parse_ingredient_list(text: str) -> List[Dict[str, Any]]:
    """Turn a vision-model reply into ``[{"name", "confidence"}]``.

    A ``[...]`` span is decoded as JSON (and must decode). Without one the reply
    is treated as a plain list, one ingredient per line.
    """
    raw = text or ""
    start, end = raw.find("["), raw.rfind("]")
    if start >= 0 and end > start:
        try:
            data = json.loads(raw[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ParseError("Failed to parse ingredient recognition results", details=str(exc)) from exc
        if not isinstance(data, list):
            raise ParseError("Failed to parse ingredient recognition results")
        return [item for item in (_ingredient_from_json(entry) for entry in data) if item]

    ingredients: List[Dict[str, Any]] = []
    for line in raw.splitlines():
        if not line.strip() or "{" in line or "[" in line:
            continue
        name = _LINE_NOISE_RE.sub("", line).strip().lower()
        if len(name) >= MIN_NAME_LENGTH:
            ingredients.append({"name": name, "confidence": FALLBACK_CONFIDENCE})
    return ingredients
