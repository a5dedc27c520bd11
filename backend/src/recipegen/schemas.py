from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.meal_plans import MealType
from .models.recipes import Difficulty
from .utils.validators import as_string_list


# ----------------------------
# Auth
# ----------------------------

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str


class AuthResponse(BaseModel):
    token: str
    user: UserOut


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class PreferencesIn(BaseModel):
    dietary_preferences: List[str] = []
    allergies: List[str] = []
    dietary_restrictions: List[str] = []
    nutritional_goals: Dict[str, float] = {}

    @field_validator("dietary_preferences", "allergies", "dietary_restrictions", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> List[str]:
        return as_string_list(value)

    @field_validator("nutritional_goals", mode="before")
    @classmethod
    def _goals(cls, value: Any) -> Dict[str, Any]:
        return value or {}


class MeOut(BaseModel):
    id: int
    email: str
    name: str
    created_at: datetime
    oauth_provider: Optional[str] = None
    dietary_preferences: List[str] = []
    allergies: List[str] = []
    dietary_restrictions: List[str] = []
    nutritional_goals: Dict[str, Any] = {}


# ----------------------------
# Recipes
# ----------------------------

class IngredientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    quantity: float
    unit: str


class InstructionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step_number: int
    instruction: str


class RecipeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    cuisine: Optional[str] = None
    difficulty: Difficulty
    prep_time: int = 0
    cook_time: int = 0
    servings: int = 4
    dietary_tags: List[str] = []
    nutrition_info: Dict[str, Any] = {}
    source: str = "ai"
    created_at: Optional[datetime] = None
    avg_rating: float = 0.0
    rating_count: int = 0


class RecipeDetail(RecipeSummary):
    ingredients: List[IngredientOut] = []
    instructions: List[InstructionOut] = []


class RecipeListResponse(BaseModel):
    recipes: List[RecipeSummary]


class GenerateRecipeRequest(BaseModel):
    ingredients: List[str] = []
    dietary_preferences: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    cuisine: Optional[str] = None
    meal_type: Optional[MealType] = None
    servings: Optional[int] = Field(default=None, ge=1, le=50)
    cooking_time: Optional[int] = Field(default=None, ge=1, le=24 * 60)

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredients(cls, value: Any) -> List[str]:
        return as_string_list(value)

    @field_validator("dietary_preferences", "allergies", mode="before")
    @classmethod
    def _optional_lists(cls, value: Any) -> Optional[List[str]]:
        return None if value is None else as_string_list(value)


class GeneratedIngredient(BaseModel):
    name: str
    quantity: Any = None
    unit: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str:
        return str(value or "").strip()


class GeneratedStep(BaseModel):
    step: Any = None
    instruction: str


class GeneratedRecipe(BaseModel):
    """Lenient view of the JSON object the completion model returns."""

    title: str = Field(min_length=1)
    description: Optional[str] = None
    ingredients: List[GeneratedIngredient] = []
    instructions: List[GeneratedStep] = []
    nutrition: Dict[str, Any] = {}
    difficulty: Optional[str] = None
    prep_time: Any = None
    cook_time: Any = None
    dietary_tags: List[str] = []

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredients(cls, value: Any) -> List[Any]:
        out = []
        for entry in value or []:
            if isinstance(entry, str):
                entry = {"name": entry}
            elif isinstance(entry, dict) and "name" not in entry:
                entry = {**entry, "name": entry.get("ingredient_name") or entry.get("ingredient")}
            if isinstance(entry, dict) and str(entry.get("name") or "").strip():
                out.append(entry)
        return out

    @field_validator("instructions", mode="before")
    @classmethod
    def _instructions(cls, value: Any) -> List[Any]:
        out = []
        for entry in value or []:
            if isinstance(entry, str):
                entry = {"instruction": entry}
            elif isinstance(entry, dict) and "instruction" not in entry:
                entry = {**entry, "instruction": entry.get("text") or entry.get("description") or ""}
            if isinstance(entry, dict) and str(entry.get("instruction") or "").strip():
                out.append(entry)
        return out

    @field_validator("dietary_tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> List[str]:
        return [tag.lower() for tag in as_string_list(value)]

    @field_validator("nutrition", mode="before")
    @classmethod
    def _nutrition(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}


class GenerateRecipeResponse(BaseModel):
    recipe: RecipeDetail
    message: str
    saved_to_db: bool


class RateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)


class RateResponse(BaseModel):
    message: str
    avg_rating: float
    rating_count: int


class FavoriteResponse(BaseModel):
    message: str
    favorited: bool


# ----------------------------
# Meal plans
# ----------------------------

class MealPlanCreate(BaseModel):
    recipe_id: Optional[int] = None
    meal_date: Optional[date] = None
    meal_type: Optional[MealType] = None
    servings: int = Field(default=4, ge=1, le=50)


class MealPlanUpdate(BaseModel):
    recipe_id: Optional[int] = None
    meal_date: Optional[date] = None
    meal_type: Optional[MealType] = None
    servings: Optional[int] = Field(default=None, ge=1, le=50)


class MealPlanOut(BaseModel):
    id: int
    recipe_id: int
    recipe_title: Optional[str] = None
    meal_date: date
    meal_type: MealType
    servings: int


class MealPlanGenerateRequest(BaseModel):
    start_date: date
    end_date: date


# ----------------------------
# Nutrition
# ----------------------------

class AnalyzeIngredient(BaseModel):
    name: str
    quantity: Any = 1
    unit: Optional[str] = None


class AnalyzeRequest(BaseModel):
    ingredients: Optional[List[AnalyzeIngredient]] = None


# ----------------------------
# Shopping list & inventory
# ----------------------------

class ShoppingItemIn(BaseModel):
    ingredient_name: str = Field(min_length=1)
    quantity: float = Field(default=0.0, ge=0)
    unit: Optional[str] = None


class SaveShoppingListRequest(BaseModel):
    items: Optional[List[ShoppingItemIn]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ShoppingItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ingredient_name: str
    quantity: float
    unit: Optional[str] = None
    checked: bool


class ItemCheckUpdate(BaseModel):
    checked: bool


class InventoryUpsert(BaseModel):
    ingredient_name: str = Field(min_length=1)
    quantity: float = Field(ge=0)
    unit: Optional[str] = None


class InventoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ingredient_name: str
    quantity: float
    unit: Optional[str] = None
