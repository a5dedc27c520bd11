from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

from .validators import safe_float

DEFAULT_GOALS: Dict[str, float] = {
    "calories": 2000.0,
    "protein": 50.0,
    "carbs": 300.0,
    "fat": 65.0,
}

# Per-ingredient guess used when no nutrition API is reachable.
ESTIMATE_PER_INGREDIENT: Dict[str, float] = {
    "calories": 50.0,
    "protein": 5.0,
    "carbs": 10.0,
    "fat": 2.0,
}


@dataclass
class Macros:
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "calories": float(self.calories),
            "protein": float(self.protein),
            "carbs": float(self.carbs),
            "fat": float(self.fat),
        }


def macros_from_info(info: Optional[Mapping[str, Any]]) -> Macros:
    """Read a recipe's ``nutrition_info`` JSON; unknown or junk values count as 0."""
    info = info or {}
    return Macros(
        calories=safe_float(info.get("calories")),
        protein=safe_float(info.get("protein")),
        carbs=safe_float(info.get("carbs")),
        fat=safe_float(info.get("fat")),
    )


def scale_macros(m: Macros, factor: float) -> Macros:
    f = max(0.0, safe_float(factor))
    return Macros(
        calories=m.calories * f,
        protein=m.protein * f,
        carbs=m.carbs * f,
        fat=m.fat * f,
    )


def sum_macros(items: Iterable[Macros]) -> Macros:
    total = Macros()
    for it in items:
        total.calories += it.calories or 0.0
        total.protein += it.protein or 0.0
        total.carbs += it.carbs or 0.0
        total.fat += it.fat or 0.0
    return total


def round_macros(m: Macros, ndigits: int = 1) -> Macros:
    return Macros(
        calories=round(m.calories, ndigits),
        protein=round(m.protein, ndigits),
        carbs=round(m.carbs, ndigits),
        fat=round(m.fat, ndigits),
    )


def goals_with_defaults(goals: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Fill missing or empty goal values from DEFAULT_GOALS."""
    goals = goals or {}
    merged: Dict[str, float] = {}
    for key, default in DEFAULT_GOALS.items():
        value = goals.get(key)
        merged[key] = safe_float(value) if value not in (None, "", 0) else default
    return merged


def estimate_nutrition(ingredient_count: int) -> Dict[str, float]:
    n = max(0, int(ingredient_count))
    return {key: value * n for key, value in ESTIMATE_PER_INGREDIENT.items()}
