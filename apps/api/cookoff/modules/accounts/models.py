from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

# Identity and recipe ownership are owned by the accounts/recipes services;
# only the columns the battle engine reads are mirrored here.


# role: member|moderator|admin
class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('member', 'moderator', 'admin')", name="check_user_role"),
        CheckConstraint("level >= 1", name="check_user_level"),
    )

    id: str = Field(primary_key=True)
    username: str = Field(unique=True, index=True)
    level: int = Field(default=1)
    role: str = Field(default="member")

    created_at: str


class Recipe(SQLModel, table=True):
    __tablename__ = "recipes"

    id: str = Field(primary_key=True)
    author_id: str = Field(foreign_key="users.id", index=True)
    title: str
    description: Optional[str] = Field(default=None)

    created_at: str
