from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from recipegen.auth.dependencies import get_current_user
from recipegen.core.config import get_settings
from recipegen.core.database import get_session
from recipegen.core.errors import UpstreamError, ValidationFailed
from recipegen.models.meal_plans import MEAL_TYPE_ORDER, MealPlan
from recipegen.models.recipes import Recipe
from recipegen.models.users import User, UserPreferences
from recipegen.schemas import AnalyzeIngredient, AnalyzeRequest
from recipegen.utils.dates import resolve_range
from recipegen.utils.nutrition import (
    estimate_nutrition,
    goals_with_defaults,
    macros_from_info,
    round_macros,
    scale_macros,
    sum_macros,
)
from recipegen.utils.validators import safe_float

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nutrition", tags=["nutrition"])

HTTP_TIMEOUT = 10


def _planned_meals(session: Session, user_id: int, start: date, end: date):
    stmt = (
        select(MealPlan, Recipe)
        .join(Recipe, Recipe.id == MealPlan.recipe_id)
        .where(MealPlan.user_id == user_id, MealPlan.meal_date >= start, MealPlan.meal_date <= end)
    )
    return session.exec(stmt).all()


@router.get("/summary")
def nutrition_summary(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    start, end = resolve_range(start_date, end_date)
    rows = _planned_meals(session, user.id, start, end)
    # nutrition_info is per serving
    total = sum_macros(scale_macros(macros_from_info(recipe.nutrition_info), plan.servings) for plan, recipe in rows)

    prefs = session.exec(select(UserPreferences).where(UserPreferences.user_id == user.id)).first()
    return {
        "start_date": start,
        "end_date": end,
        "summary": round_macros(total).to_dict(),
        "goals": goals_with_defaults(prefs.nutritional_goals if prefs else None),
    }


@router.get("/daily")
def daily_nutrition(
    date_: Optional[date] = Query(default=None, alias="date"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if date_ is None:
        raise ValidationFailed("Date is required")

    rows = _planned_meals(session, user.id, date_, date_)
    rows = sorted(rows, key=lambda row: (MEAL_TYPE_ORDER[row[0].meal_type], row[0].id))

    meals = []
    per_meal = []
    for plan, recipe in rows:
        macros = round_macros(scale_macros(macros_from_info(recipe.nutrition_info), plan.servings))
        per_meal.append(macros)
        meals.append(
            {
                "meal_type": plan.meal_type,
                "title": recipe.title,
                "recipe_id": recipe.id,
                "servings": plan.servings,
                **macros.to_dict(),
            }
        )
    return {"date": date_, "meals": meals, "daily_total": round_macros(sum_macros(per_meal)).to_dict()}


# ----------------------------
# Ingredient analysis
# ----------------------------

def _ingredient_line(ing: AnalyzeIngredient) -> str:
    quantity = ing.quantity if ing.quantity not in (None, "") else 1
    return " ".join(str(part) for part in (quantity, ing.unit or "", ing.name) if str(part).strip())


def _edamam_analyze(ingredients: List[AnalyzeIngredient]) -> Dict[str, float]:
    settings = get_settings()
    params = {
        "app_id": settings.nutrition_api_id,
        "app_key": settings.nutrition_api_key,
        "ingr": ", ".join(_ingredient_line(ing) for ing in ingredients),
    }
    try:
        r = requests.get(settings.nutrition_api_url, params=params, timeout=HTTP_TIMEOUT)
    except requests.RequestException as e:
        raise UpstreamError("Nutrition API request failed", code="NUTRITION_API_ERROR", details=str(e))
    if r.status_code != 200:
        raise UpstreamError(f"Nutrition API failed: HTTP {r.status_code}", code="NUTRITION_API_ERROR")
    try:
        data = r.json() or {}
    except ValueError:
        raise UpstreamError("Nutrition API returned invalid JSON", code="NUTRITION_API_ERROR")

    nutrients: Dict[str, Any] = data.get("totalNutrients") or {}

    def nutrient(key: str) -> float:
        return safe_float((nutrients.get(key) or {}).get("quantity"))

    return {
        "calories": safe_float(data.get("calories")),
        "protein": nutrient("PROCNT"),
        "carbs": nutrient("CHOCDF"),
        "fat": nutrient("FAT"),
        "fiber": nutrient("FIBTG"),
        "sugar": nutrient("SUGAR"),
    }


@router.post("/analyze")
def analyze_nutrition(payload: AnalyzeRequest):
    if payload.ingredients is None:
        raise ValidationFailed("Ingredients array is required")

    settings = get_settings()
    if not (settings.nutrition_api_id and settings.nutrition_api_key):
        return {
            "nutrition": estimate_nutrition(len(payload.ingredients)),
            "note": "Estimated values (Nutrition API not configured)",
        }
    try:
        return {"nutrition": _edamam_analyze(payload.ingredients)}
    except UpstreamError as exc:
        logger.warning("Nutrition API error, using estimate: %s", exc.message)
        return {
            "nutrition": estimate_nutrition(len(payload.ingredients)),
            "note": "Estimated values (API unavailable)",
        }
