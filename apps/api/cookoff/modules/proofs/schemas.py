from __future__ import annotations

from cookoff.core.schemas import CamelModel
from cookoff.modules.votes.schemas import VoteOut


class UploadOut(CamelModel):
    media_id: str
    url: str
    size: int
    auto_approved: bool
    requires_verification: bool
    vote: VoteOut
