from __future__ import annotations

import logging
import random
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from recipegen.auth.dependencies import get_current_user
from recipegen.core.database import get_session
from recipegen.core.errors import NotFound, ValidationFailed
from recipegen.models.meal_plans import MEAL_TYPE_ORDER, MealPlan, MealType
from recipegen.models.recipes import Recipe
from recipegen.models.users import User
from recipegen.schemas import MealPlanCreate, MealPlanGenerateRequest, MealPlanOut, MealPlanUpdate
from recipegen.utils.dates import iter_days

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meal-plans", tags=["meal-plans"])

MAX_GENERATE_DAYS = 31
GENERATE_POOL_SIZE = 10
GENERATED_MEALS = (MealType.breakfast, MealType.lunch, MealType.dinner)
DEFAULT_SERVINGS = 4


def _out(plan: MealPlan, title: Optional[str]) -> MealPlanOut:
    return MealPlanOut(
        id=plan.id,
        recipe_id=plan.recipe_id,
        recipe_title=title,
        meal_date=plan.meal_date,
        meal_type=plan.meal_type,
        servings=plan.servings,
    )


def _own_plan_or_404(session: Session, plan_id: int, user: User) -> MealPlan:
    plan = session.get(MealPlan, plan_id)
    if plan is None or plan.user_id != user.id:
        raise NotFound("Meal plan not found")
    return plan


def _recipe_or_404(session: Session, recipe_id: int) -> Recipe:
    recipe = session.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    return recipe


@router.get("")
@router.get("/", include_in_schema=False)
def list_meal_plans(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    stmt = (
        select(MealPlan, Recipe.title)
        .join(Recipe, Recipe.id == MealPlan.recipe_id)
        .where(MealPlan.user_id == user.id)
    )
    if start_date:
        stmt = stmt.where(MealPlan.meal_date >= start_date)
    if end_date:
        stmt = stmt.where(MealPlan.meal_date <= end_date)

    rows = session.exec(stmt).all()
    rows = sorted(rows, key=lambda row: (row[0].meal_date, MEAL_TYPE_ORDER[row[0].meal_type], row[0].id))
    return {"meal_plans": [_out(plan, title) for plan, title in rows]}


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def add_meal_plan(
    payload: MealPlanCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if payload.recipe_id is None or payload.meal_date is None or payload.meal_type is None:
        raise ValidationFailed("Recipe ID, meal date, and meal type are required")
    recipe = _recipe_or_404(session, payload.recipe_id)

    plan = MealPlan(
        user_id=user.id,
        recipe_id=recipe.id,
        meal_date=payload.meal_date,
        meal_type=payload.meal_type,
        servings=payload.servings,
    )
    session.add(plan)
    session.commit()
    session.refresh(plan)
    return {"meal_plan": _out(plan, recipe.title), "message": "Meal plan saved"}


@router.put("/{plan_id}")
def update_meal_plan(
    plan_id: int,
    payload: MealPlanUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    plan = _own_plan_or_404(session, plan_id, user)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "recipe_id" in changes:
        _recipe_or_404(session, changes["recipe_id"])
    for key, value in changes.items():
        setattr(plan, key, value)
    session.add(plan)
    session.commit()
    session.refresh(plan)

    recipe = session.get(Recipe, plan.recipe_id)
    return {"meal_plan": _out(plan, recipe.title if recipe else None), "message": "Meal plan updated"}


@router.delete("/{plan_id}")
def delete_meal_plan(
    plan_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    plan = _own_plan_or_404(session, plan_id, user)
    session.delete(plan)
    session.commit()
    return {"message": "Meal plan deleted successfully"}


@router.post("/generate")
def generate_meal_plan(
    payload: MealPlanGenerateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Fill breakfast, lunch and dinner for every day in the range with random recipes."""
    if payload.end_date < payload.start_date:
        raise ValidationFailed("end_date must not be before start_date")
    days = (payload.end_date - payload.start_date).days + 1
    if days > MAX_GENERATE_DAYS:
        raise ValidationFailed(f"Date range must not exceed {MAX_GENERATE_DAYS} days")

    pool: List[Recipe] = list(
        session.exec(select(Recipe).order_by(Recipe.created_at.desc(), Recipe.id.desc()).limit(GENERATE_POOL_SIZE)).all()
    )
    titles = {r.id: r.title for r in pool}

    plans: List[MealPlan] = []
    if pool:
        for day in iter_days(payload.start_date, payload.end_date):
            for meal_type in GENERATED_MEALS:
                pick = random.choice(pool)
                plans.append(
                    MealPlan(
                        user_id=user.id,
                        recipe_id=pick.id,
                        meal_date=day,
                        meal_type=meal_type,
                        servings=DEFAULT_SERVINGS,
                    )
                )
        session.add_all(plans)
        session.commit()
        for plan in plans:
            session.refresh(plan)

    logger.info("Generated %d meal plans for user %s", len(plans), user.id)
    return {
        "message": "Meal plan generated successfully",
        "meal_plans": [_out(plan, titles.get(plan.recipe_id)) for plan in plans],
        "count": len(plans),
    }
