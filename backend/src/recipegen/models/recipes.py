from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel, UniqueConstraint

from recipegen.utils.dates import utc_now


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class Recipe(SQLModel, table=True):
    __tablename__ = "recipes"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(index=True)
    description: Optional[str] = None
    cuisine: Optional[str] = Field(default=None, index=True)
    difficulty: Difficulty = Field(default=Difficulty.medium, index=True)
    prep_time: int = 0
    cook_time: int = 0
    servings: int = 4
    dietary_tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # per serving: calories, protein, carbs, fat
    nutrition_info: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    source: str = Field(default="ai", index=True)
    created_by: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=utc_now, index=True)

    ingredients: List["RecipeIngredient"] = Relationship(
        back_populates="recipe",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    instructions: List["RecipeInstruction"] = Relationship(
        back_populates="recipe",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "RecipeInstruction.step_number"},
    )


class RecipeIngredient(SQLModel, table=True):
    __tablename__ = "recipe_ingredients"

    id: Optional[int] = Field(default=None, primary_key=True)
    recipe_id: int = Field(foreign_key="recipes.id", index=True)
    name: str = Field(index=True)
    quantity: float = 1.0
    unit: str = "piece"

    recipe: Recipe = Relationship(back_populates="ingredients")


class RecipeInstruction(SQLModel, table=True):
    __tablename__ = "recipe_instructions"

    id: Optional[int] = Field(default=None, primary_key=True)
    recipe_id: int = Field(foreign_key="recipes.id", index=True)
    step_number: int
    instruction: str

    recipe: Recipe = Relationship(back_populates="instructions")


class RecipeRating(SQLModel, table=True):
    __tablename__ = "recipe_ratings"
    __table_args__ = (UniqueConstraint("recipe_id", "user_id", name="uq_rating_recipe_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    recipe_id: int = Field(foreign_key="recipes.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    rating: int = Field(ge=1, le=5)
    created_at: datetime = Field(default_factory=utc_now)


class RecipeFavorite(SQLModel, table=True):
    __tablename__ = "recipe_favorites"
    __table_args__ = (UniqueConstraint("recipe_id", "user_id", name="uq_favorite_recipe_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    recipe_id: int = Field(foreign_key="recipes.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
