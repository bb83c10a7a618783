from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from cookoff.core.clock import Clock, get_clock
from cookoff.core.request_ctx import client_ip, request_id_of
from cookoff.modules.accounts.auth import Capability, Principal, get_principal, requires

from .schemas import PendingListOut, VerifyIn, VerifyOut
from .service import decide, list_pending

router = APIRouter(prefix="/proofs", tags=["moderation"])


@router.get("/pending", response_model=PendingListOut)
def api_list_pending(
    _: Principal = Depends(requires(Capability.MODERATE_PROOFS)),
    clock: Clock = Depends(get_clock),
) -> PendingListOut:
    items = list_pending(clock.now())
    return PendingListOut(count=len(items), items=items)


@router.post("/verify", response_model=VerifyOut)
def api_verify_proof(
    body: VerifyIn,
    request: Request,
    reviewer: Principal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
) -> VerifyOut:
    # decide() runs the capability check itself
    result = decide(
        reviewer,
        body.battle_id,
        body.user_id,
        body.approved,
        body.notes,
        clock.now(),
        ip_address=client_ip(request),
        request_id=request_id_of(request),
    )
    return VerifyOut(
        message="Proof approved" if body.approved else "Proof rejected",
        changed=result["changed"],
        vote=result["vote"],
    )
