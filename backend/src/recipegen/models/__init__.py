from .meal_plans import MealPlan, MealType
from .recipes import Difficulty, Recipe, RecipeFavorite, RecipeIngredient, RecipeInstruction, RecipeRating
from .shopping import InventoryItem, ShoppingList, ShoppingListItem
from .users import User, UserPreferences

__all__ = [
    "Difficulty",
    "InventoryItem",
    "MealPlan",
    "MealType",
    "Recipe",
    "RecipeFavorite",
    "RecipeIngredient",
    "RecipeInstruction",
    "RecipeRating",
    "ShoppingList",
    "ShoppingListItem",
    "User",
    "UserPreferences",
]
