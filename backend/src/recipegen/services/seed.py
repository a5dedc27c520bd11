from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from recipegen.models.recipes import Difficulty, Recipe, RecipeIngredient, RecipeInstruction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngredientSeed:
    name: str
    quantity: float
    unit: str


@dataclass(frozen=True)
class RecipeSeed:
    title: str
    description: str
    cuisine: str
    difficulty: Difficulty
    prep_time: int
    cook_time: int
    servings: int
    tags: Sequence[str]
    nutrition: Dict[str, float]
    ingredients: Sequence[IngredientSeed]
    instructions: Sequence[str] = field(default_factory=tuple)


SAMPLE_RECIPES: List[RecipeSeed] = [
    RecipeSeed(
        title="Classic Margherita Pizza",
        description="A traditional Italian pizza with fresh tomatoes, mozzarella, and basil",
        cuisine="Italian",
        difficulty=Difficulty.medium,
        prep_time=20,
        cook_time=15,
        servings=4,
        tags=("vegetarian", "italian"),
        nutrition={"calories": 250, "protein": 12, "carbs": 30, "fat": 10},
        ingredients=(
            IngredientSeed("pizza dough", 1, "package"),
            IngredientSeed("tomato sauce", 1, "cup"),
            IngredientSeed("mozzarella cheese", 2, "cups"),
            IngredientSeed("fresh basil", 10, "leaves"),
        ),
        instructions=(
            "Preheat oven to 475°F (245°C)",
            "Roll out pizza dough on a floured surface",
            "Spread tomato sauce, add cheese, and bake for 12-15 minutes",
        ),
    ),
]


def _recipe_from_seed(seed: RecipeSeed) -> Recipe:
    return Recipe(
        title=seed.title,
        description=seed.description,
        cuisine=seed.cuisine,
        difficulty=seed.difficulty,
        prep_time=seed.prep_time,
        cook_time=seed.cook_time,
        servings=seed.servings,
        dietary_tags=list(seed.tags),
        nutrition_info=dict(seed.nutrition),
        source="seed",
        ingredients=[RecipeIngredient(name=i.name, quantity=i.quantity, unit=i.unit) for i in seed.ingredients],
        instructions=[
            RecipeInstruction(step_number=n, instruction=text) for n, text in enumerate(seed.instructions, start=1)
        ],
    )


def load_sample_recipes(session: Session, only_if_empty: bool = True) -> Tuple[int, int]:
    """Insert the sample recipes; returns (inserted, skipped)."""
    if only_if_empty and session.exec(select(Recipe.id)).first() is not None:
        return 0, len(SAMPLE_RECIPES)

    inserted = skipped = 0
    for seed in SAMPLE_RECIPES:
        if session.exec(select(Recipe.id).where(Recipe.title == seed.title)).first() is not None:
            skipped += 1
            continue
        session.add(_recipe_from_seed(seed))
        inserted += 1
    session.commit()
    return inserted, skipped


def seed_sample_data(engine: Engine) -> int:
    with Session(engine) as session:
        inserted, _ = load_sample_recipes(session)
    if inserted:
        logger.info("Seeded %d sample recipe(s)", inserted)
    return inserted
