from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


# one live vote per (battle, voter); the composite key backs the upsert
class BattleVote(SQLModel, table=True):
    __tablename__ = "battle_votes"

    battle_id: str = Field(primary_key=True, foreign_key="battles.id")
    user_id: str = Field(primary_key=True, foreign_key="users.id", index=True)
    recipe_id: str = Field(foreign_key="recipes.id", index=True)
    proof_media_id: Optional[str] = Field(default=None, foreign_key="media.id")
    notes: Optional[str] = Field(default=None)

    verified: bool = Field(default=False, index=True)
    proof_verified_at: Optional[str] = Field(default=None)
    verified_by: Optional[str] = Field(default=None, foreign_key="users.id")
    review_notes: Optional[str] = Field(default=None)

    created_at: str
    updated_at: str
