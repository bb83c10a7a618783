from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Request

from cookoff.core.clock import Clock, get_clock
from cookoff.core.request_ctx import request_id_of
from cookoff.modules.accounts.auth import Principal, get_principal

from .schemas import VoteIn, VoteOut
from .service import cast_vote

router = APIRouter(tags=["votes"])


@router.post("/battles/{battle_id}/vote", response_model=VoteOut, status_code=201)
def api_cast_vote(
    body: VoteIn,
    request: Request,
    battle_id: str = Path(...),
    principal: Principal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
):
    return cast_vote(
        battle_id,
        principal.id,
        body.recipe_id,
        body.proof_media_id,
        body.notes,
        clock.now(),
        request_id=request_id_of(request),
    )
