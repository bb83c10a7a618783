from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from cookoff.core.clock import Clock, get_clock
from cookoff.core.paging import clamp_limit, clamp_offset, page_of
from cookoff.modules.accounts.auth import Principal, get_principal

from .schemas import BattleOut, BattlesListOut, EnterIn, EntriesListOut, EntryOut
from .service import enter_battle, get_battle, list_battles, list_entries

router = APIRouter(tags=["battles"])


@router.get("/battles", response_model=BattlesListOut)
def api_list_battles(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    clock: Clock = Depends(get_clock),
) -> BattlesListOut:
    lim = clamp_limit(limit)
    off = clamp_offset(offset)
    items, total = list_battles(limit=lim, offset=off, now=clock.now())
    return BattlesListOut(items=items, page=page_of(lim, off, total))


@router.get("/battles/{battle_id}", response_model=BattleOut)
def api_get_battle(battle_id: str = Path(...), clock: Clock = Depends(get_clock)):
    return get_battle(battle_id, clock.now())


@router.post("/battles/{battle_id}/enter", response_model=EntryOut, status_code=201)
def api_enter_battle(
    body: EnterIn,
    battle_id: str = Path(...),
    principal: Principal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
):
    entry, created = enter_battle(battle_id, body.recipe_id, principal.id, clock.now())
    return {**entry, "created": created}


@router.get("/battles/{battle_id}/entries", response_model=EntriesListOut)
def api_list_entries(battle_id: str = Path(...)) -> EntriesListOut:
    return EntriesListOut(items=list_entries(battle_id))
