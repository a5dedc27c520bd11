from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from recipegen.utils.dates import utc_now


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


MEAL_TYPE_ORDER = {MealType.breakfast: 0, MealType.lunch: 1, MealType.dinner: 2, MealType.snack: 3}


class MealPlan(SQLModel, table=True):
    __tablename__ = "meal_plans"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    recipe_id: int = Field(foreign_key="recipes.id", index=True)
    meal_date: date = Field(index=True)
    meal_type: MealType = Field(index=True)
    servings: int = Field(default=4, ge=1)
    created_at: datetime = Field(default_factory=utc_now)
