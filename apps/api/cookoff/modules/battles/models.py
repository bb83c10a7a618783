from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

BATTLE_STATUSES = ("upcoming", "active", "closed")


# status is a cache of the derived phase; gating never reads it directly
class Battle(SQLModel, table=True):
    __tablename__ = "battles"
    __table_args__ = (
        CheckConstraint("status IN ('upcoming', 'active', 'closed')", name="check_battle_status"),
    )

    id: str = Field(primary_key=True)
    dish_name: str
    description: Optional[str] = Field(default=None)
    rules: Optional[str] = Field(default=None)
    starts_at: str = Field(index=True)
    ends_at: str = Field(index=True)
    status: str = Field(default="upcoming")
    creator_id: Optional[str] = Field(default=None, foreign_key="users.id")

    created_at: str
    updated_at: str


class BattleEntry(SQLModel, table=True):
    __tablename__ = "battle_entries"
    __table_args__ = (
        UniqueConstraint("battle_id", "recipe_id", name="uq_battle_entries_battle_recipe"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    battle_id: str = Field(foreign_key="battles.id", index=True)
    recipe_id: str = Field(foreign_key="recipes.id", index=True)

    created_at: str
