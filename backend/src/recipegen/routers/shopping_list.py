from __future__ import annotations

from datetime import date
from typing import Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from recipegen.auth.dependencies import get_current_user
from recipegen.core.database import get_session
from recipegen.core.errors import NotFound, ValidationFailed
from recipegen.models.meal_plans import MealPlan
from recipegen.models.recipes import Recipe, RecipeIngredient
from recipegen.models.shopping import InventoryItem, ShoppingList, ShoppingListItem
from recipegen.models.users import User
from recipegen.schemas import ItemCheckUpdate, SaveShoppingListRequest, ShoppingItemOut
from recipegen.utils.dates import resolve_range

router = APIRouter(prefix="/shopping-list", tags=["shopping-list"])


def _required_quantities(session: Session, user_id: int, start: date, end: date) -> Dict[Tuple[str, str], dict]:
    """Sum ingredient quantities over planned meals, scaled to the planned servings."""
    stmt = (
        select(RecipeIngredient, MealPlan.servings, Recipe.servings)
        .join(Recipe, Recipe.id == RecipeIngredient.recipe_id)
        .join(MealPlan, MealPlan.recipe_id == Recipe.id)
        .where(MealPlan.user_id == user_id, MealPlan.meal_date >= start, MealPlan.meal_date <= end)
    )
    totals: Dict[Tuple[str, str], dict] = {}
    for ing, planned_servings, recipe_servings in session.exec(stmt).all():
        factor = planned_servings / recipe_servings if recipe_servings else float(planned_servings)
        key = (ing.name.strip().lower(), ing.unit or "")
        entry = totals.setdefault(key, {"ingredient_name": ing.name.strip(), "unit": ing.unit, "required": 0.0})
        entry["required"] += (ing.quantity or 0.0) * factor
    return totals


@router.get("/generate")
def generate_shopping_list(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    start, end = resolve_range(start_date, end_date)
    required = _required_quantities(session, user.id, start, end)

    on_hand = {
        item.ingredient_name.lower(): item.quantity or 0.0
        for item in session.exec(select(InventoryItem).where(InventoryItem.user_id == user.id)).all()
    }

    items = []
    for (name_key, _unit), entry in required.items():
        in_inventory = on_hand.get(name_key, 0.0)
        needed = max(0.0, entry["required"] - in_inventory)
        if needed <= 0:
            continue
        items.append(
            {
                "ingredient_name": entry["ingredient_name"],
                "unit": entry["unit"],
                "required_quantity": round(entry["required"], 2),
                "in_inventory": in_inventory,
                "total_quantity": round(needed, 2),
            }
        )
    items.sort(key=lambda item: (item["ingredient_name"].lower(), item["unit"] or ""))
    return {"shopping_list": items}


@router.get("")
@router.get("/", include_in_schema=False)
def get_shopping_list(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    latest = session.exec(
        select(ShoppingList)
        .where(ShoppingList.user_id == user.id)
        .order_by(ShoppingList.created_at.desc(), ShoppingList.id.desc())
    ).first()
    if latest is None:
        return {"shopping_list": None}
    return {
        "shopping_list": {
            "id": latest.id,
            "start_date": latest.start_date,
            "end_date": latest.end_date,
            "created_at": latest.created_at,
            "items": [ShoppingItemOut.model_validate(item) for item in latest.items],
        }
    }


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def save_shopping_list(
    payload: SaveShoppingListRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if payload.items is None:
        raise ValidationFailed("Items array is required")

    shopping_list = ShoppingList(
        user_id=user.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        items=[
            ShoppingListItem(ingredient_name=item.ingredient_name.strip(), quantity=item.quantity, unit=item.unit)
            for item in payload.items
        ],
    )
    session.add(shopping_list)
    session.commit()
    session.refresh(shopping_list)
    return {"message": "Shopping list saved successfully", "id": shopping_list.id}


@router.put("/items/{item_id}")
def update_item(
    item_id: int,
    payload: ItemCheckUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    item = session.exec(
        select(ShoppingListItem)
        .join(ShoppingList, ShoppingList.id == ShoppingListItem.shopping_list_id)
        .where(ShoppingListItem.id == item_id, ShoppingList.user_id == user.id)
    ).first()
    if item is None:
        raise NotFound("Shopping list item not found")
    item.checked = payload.checked
    session.add(item)
    session.commit()
    session.refresh(item)
    return {"item": ShoppingItemOut.model_validate(item)}
