import re
from typing import Any, Iterable, List, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

_FRACTION_RE = re.compile(r"^\s*(\d+)\s*/\s*(\d+)")
_MIXED_RE = re.compile(r"^\s*(\d+)\s+(\d+)\s*/\s*(\d+)")
_NUMBER_RE = re.compile(r"^\s*(\d+(?:[.,]\d+)?)")

LIKE_ESCAPE = "\\"


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def safe_float(x) -> float:
    try:
        return float(x)
    except Exception:
        return 0.0


def safe_int(x, default: int = 0) -> int:
    try:
        return int(round(float(x)))
    except Exception:
        return default


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally (use with ``escape=LIKE_ESCAPE``)."""
    return text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def parse_quantity(value: Any, default: float = 1.0) -> float:
    """Turn model output like ``2``, ``"1/2"``, ``"1 1/2"``, ``"2-3"`` or ``"200 g"`` into a float."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    text = str(value or "").strip()
    if not text:
        return default
    mixed = _MIXED_RE.match(text)
    if mixed:
        whole, num, den = (int(g) for g in mixed.groups())
        return whole + num / den if den else float(whole)
    frac = _FRACTION_RE.match(text)
    if frac:
        num, den = (int(g) for g in frac.groups())
        return num / den if den else default
    number = _NUMBER_RE.match(text)
    if number:
        parsed = float(number.group(1).replace(",", "."))
        return parsed if parsed > 0 else default
    return default


def as_string_list(value: Any) -> List[str]:
    """Accept ``"a, b"``, ``["a", "b"]`` or ``None`` and return trimmed, non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    out: List[str] = []
    for item in items:
        text = str(item).strip()
        if text and text.lower() != "none":
            out.append(text)
    return out
