from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from recipegen.utils.dates import utc_now


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str
    password_hash: Optional[str] = None
    oauth_provider: Optional[str] = Field(default=None, description="google | github for federated accounts")
    created_at: datetime = Field(default_factory=utc_now, index=True)


class UserPreferences(SQLModel, table=True):
    __tablename__ = "user_preferences"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    dietary_preferences: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    allergies: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    dietary_restrictions: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    nutritional_goals: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now)
