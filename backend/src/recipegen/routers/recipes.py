from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError
from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from recipegen.auth.dependencies import get_current_user, get_optional_user
from recipegen.core.database import get_session
from recipegen.core.errors import NotFound, ParseError, ValidationFailed
from recipegen.models.recipes import (
    Difficulty,
    Recipe,
    RecipeFavorite,
    RecipeIngredient,
    RecipeInstruction,
    RecipeRating,
)
from recipegen.models.users import User, UserPreferences
from recipegen.schemas import (
    FavoriteResponse,
    GeneratedRecipe,
    GenerateRecipeRequest,
    GenerateRecipeResponse,
    IngredientOut,
    InstructionOut,
    RateRequest,
    RateResponse,
    RecipeDetail,
    RecipeListResponse,
    RecipeSummary,
)
from recipegen.services.ai_gateway import AIGateway, build_recipe_prompt, get_ai_gateway
from recipegen.utils.validators import LIKE_ESCAPE, escape_like, parse_quantity, safe_float, safe_int

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["recipes"])

DEFAULT_CUISINE = "International"
DEFAULT_SERVINGS = 4


# ----------------------------
# Helpers
# ----------------------------

def _ratings_subquery():
    return (
        select(
            RecipeRating.recipe_id.label("recipe_id"),
            func.avg(RecipeRating.rating).label("avg_rating"),
            func.count(RecipeRating.id).label("rating_count"),
        )
        .group_by(RecipeRating.recipe_id)
        .subquery()
    )


def _with_ratings(avg_rating: Any, rating_count: Any) -> Dict[str, Any]:
    return {
        "avg_rating": round(float(avg_rating or 0.0), 2),
        "rating_count": int(rating_count or 0),
    }


def _summary(recipe: Recipe, avg_rating: Any = None, rating_count: Any = None) -> RecipeSummary:
    return RecipeSummary.model_validate(recipe).model_copy(update=_with_ratings(avg_rating, rating_count))


def _detail(recipe: Recipe, avg_rating: Any = None, rating_count: Any = None) -> RecipeDetail:
    return RecipeDetail.model_validate(recipe).model_copy(update=_with_ratings(avg_rating, rating_count))


def _rating_stats(session: Session, recipe_id: int) -> Tuple[float, int]:
    avg_rating, rating_count = session.exec(
        select(func.avg(RecipeRating.rating), func.count(RecipeRating.id)).where(RecipeRating.recipe_id == recipe_id)
    ).one()
    return round(float(avg_rating or 0.0), 2), int(rating_count or 0)


def _get_recipe_or_404(session: Session, recipe_id: int) -> Recipe:
    recipe = session.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    return recipe


def _difficulty(value: Optional[str]) -> Difficulty:
    try:
        return Difficulty(str(value or "").strip().lower())
    except ValueError:
        return Difficulty.medium


def _recipe_rows(
    generated: GeneratedRecipe,
    req: GenerateRecipeRequest,
) -> Tuple[Dict[str, Any], List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Column values for the recipe and its child rows, shaped from the model output."""
    nutrition = {key: safe_float(generated.nutrition.get(key)) for key in ("calories", "protein", "carbs", "fat")}
    fields = {
        "title": generated.title.strip(),
        "description": generated.description,
        "cuisine": req.cuisine or DEFAULT_CUISINE,
        "difficulty": _difficulty(generated.difficulty),
        "prep_time": max(0, safe_int(generated.prep_time)),
        "cook_time": max(0, safe_int(generated.cook_time)),
        "servings": req.servings or DEFAULT_SERVINGS,
        "dietary_tags": generated.dietary_tags,
        "nutrition_info": nutrition,
        "source": "ai",
    }
    ingredients = [
        {
            "name": ing.name,
            "quantity": parse_quantity(ing.quantity),
            "unit": (ing.unit or "").strip() or "piece",
        }
        for ing in generated.ingredients
    ]
    instructions = [
        {
            "step_number": safe_int(step.step, default=idx) or idx,
            "instruction": step.instruction.strip(),
        }
        for idx, step in enumerate(generated.instructions, start=1)
    ]
    return fields, ingredients, instructions


# ----------------------------
# Endpoints
# ----------------------------

@router.get("", response_model=RecipeListResponse)
@router.get("/", response_model=RecipeListResponse, include_in_schema=False)
def list_recipes(
    search: Optional[str] = Query(default=None),
    cuisine: Optional[str] = Query(default=None),
    dietary_preference: Optional[str] = Query(default=None),
    max_time: Optional[int] = Query(default=None, ge=0),
    difficulty: Optional[Difficulty] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
):
    ratings = _ratings_subquery()
    stmt = select(Recipe, ratings.c.avg_rating, ratings.c.rating_count).outerjoin(
        ratings, ratings.c.recipe_id == Recipe.id
    )

    if search and search.strip():
        like = f"%{escape_like(search.strip().lower())}%"
        stmt = stmt.where(
            or_(
                func.lower(Recipe.title).like(like, escape=LIKE_ESCAPE),
                func.lower(func.coalesce(Recipe.description, "")).like(like, escape=LIKE_ESCAPE),
            )
        )
    if cuisine and cuisine.strip():
        stmt = stmt.where(func.lower(Recipe.cuisine) == cuisine.strip().lower())
    if dietary_preference and dietary_preference.strip():
        # tags are stored as a JSON array of lower-case strings; match the element
        # exactly as the JSON encoder writes it (non-ASCII comes out as \uXXXX)
        element = json.dumps(dietary_preference.strip().lower())
        stmt = stmt.where(
            cast(Recipe.dietary_tags, String).like(f"%{escape_like(element)}%", escape=LIKE_ESCAPE)
        )
    if max_time is not None:
        stmt = stmt.where(Recipe.prep_time + Recipe.cook_time <= max_time)
    if difficulty is not None:
        stmt = stmt.where(Recipe.difficulty == difficulty)

    stmt = stmt.order_by(Recipe.created_at.desc(), Recipe.id.desc()).limit(limit).offset(offset)
    rows = session.exec(stmt).all()
    return RecipeListResponse(recipes=[_summary(recipe, avg, count) for recipe, avg, count in rows])


@router.get("/favorites", response_model=RecipeListResponse)
def list_favorites(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    ratings = _ratings_subquery()
    stmt = (
        select(Recipe, ratings.c.avg_rating, ratings.c.rating_count)
        .join(RecipeFavorite, RecipeFavorite.recipe_id == Recipe.id)
        .outerjoin(ratings, ratings.c.recipe_id == Recipe.id)
        .where(RecipeFavorite.user_id == user.id)
        .order_by(RecipeFavorite.created_at.desc(), RecipeFavorite.id.desc())
    )
    rows = session.exec(stmt).all()
    return RecipeListResponse(recipes=[_summary(recipe, avg, count) for recipe, avg, count in rows])


@router.get("/{recipe_id}", response_model=RecipeDetail)
def get_recipe(recipe_id: int, session: Session = Depends(get_session)):
    recipe = _get_recipe_or_404(session, recipe_id)
    avg_rating, rating_count = _rating_stats(session, recipe_id)
    return _detail(recipe, avg_rating, rating_count)


@router.post("/generate", response_model=GenerateRecipeResponse, status_code=201)
def generate_recipe(
    payload: GenerateRecipeRequest,
    session: Session = Depends(get_session),
    gateway: AIGateway = Depends(get_ai_gateway),
    user: Optional[User] = Depends(get_optional_user),
):
    """
    Ask the completion model for a recipe built around the given ingredients.

    Stored preferences of a signed-in caller fill in missing dietary preferences
    and allergies. The recipe and its child rows are saved in one transaction;
    when that fails the recipe is still returned, with a negative placeholder id
    and ``saved_to_db: false``.
    """
    if not payload.ingredients:
        raise ValidationFailed("Ingredients are required")

    dietary_preferences = payload.dietary_preferences
    allergies = payload.allergies
    if user is not None and (dietary_preferences is None or allergies is None):
        prefs = session.exec(select(UserPreferences).where(UserPreferences.user_id == user.id)).first()
        if prefs:
            if dietary_preferences is None:
                dietary_preferences = list(prefs.dietary_preferences or [])
            if allergies is None:
                allergies = list(prefs.allergies or [])

    prompt = build_recipe_prompt(
        payload.ingredients,
        dietary_preferences=dietary_preferences,
        cuisine=payload.cuisine,
        meal_type=payload.meal_type.value if payload.meal_type else None,
        servings=payload.servings,
        cooking_time=payload.cooking_time,
        allergies=allergies,
    )
    logger.info("Generating recipe for ingredients: %s", ", ".join(payload.ingredients))
    raw, _model = gateway.generate_recipe_json(prompt)

    try:
        generated = GeneratedRecipe.model_validate(raw)
    except ValidationError as exc:
        raise ParseError("Failed to parse recipe data", details=str(exc)) from exc

    fields, ingredient_rows, instruction_rows = _recipe_rows(generated, payload)

    recipe = Recipe(
        **fields,
        created_by=user.id if user is not None else None,
        ingredients=[RecipeIngredient(**row) for row in ingredient_rows],
        instructions=[RecipeInstruction(**row) for row in instruction_rows],
    )
    try:
        session.add(recipe)
        session.commit()
        session.refresh(recipe)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Could not save generated recipe to database: %s", exc)
        unsaved = RecipeDetail(
            id=-int(time.time() * 1000),
            **fields,
            ingredients=[IngredientOut(**row) for row in ingredient_rows],
            instructions=[InstructionOut(**row) for row in instruction_rows],
        )
        return GenerateRecipeResponse(recipe=unsaved, message="Recipe generated successfully", saved_to_db=False)

    logger.info("Recipe %s saved to database", recipe.id)
    return GenerateRecipeResponse(recipe=_detail(recipe), message="Recipe generated successfully", saved_to_db=True)


@router.post("/{recipe_id}/rate", response_model=RateResponse)
def rate_recipe(
    recipe_id: int,
    payload: RateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_recipe_or_404(session, recipe_id)
    rating = session.exec(
        select(RecipeRating).where(RecipeRating.recipe_id == recipe_id, RecipeRating.user_id == user.id)
    ).first()
    if rating is None:
        rating = RecipeRating(recipe_id=recipe_id, user_id=user.id, rating=payload.rating)
    else:
        rating.rating = payload.rating
    session.add(rating)
    session.commit()

    avg_rating, rating_count = _rating_stats(session, recipe_id)
    return RateResponse(message="Rating saved successfully", avg_rating=avg_rating, rating_count=rating_count)


@router.post("/{recipe_id}/favorite", response_model=FavoriteResponse)
def toggle_favorite(
    recipe_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_recipe_or_404(session, recipe_id)
    favorite = session.exec(
        select(RecipeFavorite).where(RecipeFavorite.recipe_id == recipe_id, RecipeFavorite.user_id == user.id)
    ).first()
    if favorite is not None:
        session.delete(favorite)
        session.commit()
        return FavoriteResponse(message="Removed from favorites", favorited=False)

    session.add(RecipeFavorite(recipe_id=recipe_id, user_id=user.id))
    session.commit()
    return FavoriteResponse(message="Added to favorites", favorited=True)
