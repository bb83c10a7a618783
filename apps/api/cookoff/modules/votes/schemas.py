from __future__ import annotations

from typing import Optional

from pydantic import Field

from cookoff.core.schemas import CamelModel


class VoteIn(CamelModel):
    recipe_id: str = Field(min_length=1)
    proof_media_id: Optional[str] = None
    notes: Optional[str] = None


class VoteOut(CamelModel):
    battle_id: str
    user_id: str
    recipe_id: str
    proof_media_id: Optional[str] = None
    notes: Optional[str] = None
    verified: bool
    proof_verified_at: Optional[str] = None
    verified_by: Optional[str] = None
    review_notes: Optional[str] = None
    created_at: str
    updated_at: str
