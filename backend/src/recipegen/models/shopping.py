from datetime import date, datetime
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel, UniqueConstraint

from recipegen.utils.dates import utc_now


class InventoryItem(SQLModel, table=True):
    """Ingredients the user already has at home."""

    __tablename__ = "user_inventory"
    __table_args__ = (UniqueConstraint("user_id", "ingredient_name", name="uq_inventory_user_ingredient"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    ingredient_name: str = Field(index=True)  # stored lower-case
    quantity: float = Field(default=0.0, ge=0)
    unit: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)


class ShoppingList(SQLModel, table=True):
    __tablename__ = "shopping_lists"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: datetime = Field(default_factory=utc_now, index=True)

    items: List["ShoppingListItem"] = Relationship(
        back_populates="shopping_list",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "ShoppingListItem.ingredient_name"},
    )


class ShoppingListItem(SQLModel, table=True):
    __tablename__ = "shopping_list_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    shopping_list_id: int = Field(foreign_key="shopping_lists.id", index=True)
    ingredient_name: str
    quantity: float = 0.0
    unit: Optional[str] = None
    checked: bool = False

    shopping_list: ShoppingList = Relationship(back_populates="items")
