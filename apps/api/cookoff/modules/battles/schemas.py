from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from cookoff.core.schemas import CamelModel, PageOut

BattleStatus = Literal["upcoming", "active", "closed"]


class BattleOut(CamelModel):
    id: str
    dish_name: str
    description: Optional[str] = None
    rules: Optional[str] = None
    starts_at: str
    ends_at: str
    status: BattleStatus
    stored_status: Optional[str] = None
    creator_id: Optional[str] = None
    creator_name: Optional[str] = None
    entry_count: int = 0
    total_votes: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BattlesListOut(CamelModel):
    items: List[BattleOut]
    page: PageOut


class EnterIn(CamelModel):
    recipe_id: str = Field(min_length=1)


class EntryOut(CamelModel):
    id: int
    battle_id: str
    recipe_id: str
    created_at: str
    created: bool = True


class EntryStandingOut(CamelModel):
    id: int
    battle_id: str
    recipe_id: str
    recipe_title: Optional[str] = None
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    vote_count: int = 0
    verified_vote_count: int = 0
    created_at: str


class EntriesListOut(CamelModel):
    items: List[EntryStandingOut]


# admin
class BattleCreateIn(CamelModel):
    dish_name: str = Field(min_length=1)
    description: Optional[str] = None
    rules: Optional[str] = None
    starts_at: datetime
    ends_at: datetime


class BattleStatusIn(CamelModel):
    # checked in the service so a bad value gets the allowed list back
    status: str


class BattleDeleteOut(CamelModel):
    battle_id: str
    deleted_votes: int
    deleted_entries: int


class AdminLogOut(CamelModel):
    id: int
    admin_id: str
    admin_name: Optional[str] = None
    action: str
    target_type: str
    target_id: str
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    created_at: str


class AdminLogsListOut(CamelModel):
    items: List[AdminLogOut]
    page: PageOut


class SweepOut(CamelModel):
    status: str = "ok"
    scanned_files: int
    purged_files: int
