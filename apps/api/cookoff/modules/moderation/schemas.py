from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from cookoff.core.schemas import CamelModel
from cookoff.modules.votes.schemas import VoteOut


class PendingProofOut(CamelModel):
    battle_id: str
    user_id: str
    recipe_id: str
    proof_media_id: str
    notes: Optional[str] = None
    review_notes: Optional[str] = None
    voter_name: Optional[str] = None
    voter_level: Optional[int] = None
    recipe_title: Optional[str] = None
    battle_dish_name: Optional[str] = None
    video_url: str
    video_mime_type: Optional[str] = None
    video_size: Optional[int] = None
    video_duration_seconds: Optional[float] = None
    created_at: str
    hours_pending: float


class PendingListOut(CamelModel):
    count: int
    items: List[PendingProofOut]


class VerifyIn(CamelModel):
    battle_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    approved: bool
    notes: Optional[str] = None


class VerifyOut(CamelModel):
    message: str
    changed: bool
    vote: VoteOut
