from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request

from cookoff.core.clock import Clock, get_clock
from cookoff.core.paging import clamp_limit, clamp_offset, page_of
from cookoff.core.request_ctx import client_ip, request_id_of
from cookoff.modules.accounts.auth import Capability, Principal, requires
from cookoff.modules.audit.service import list_admin_logs
from cookoff.modules.media.service import sweep_orphaned_proofs

from .schemas import (
    AdminLogsListOut,
    BattleCreateIn,
    BattleDeleteOut,
    BattleOut,
    BattlesListOut,
    BattleStatusIn,
    SweepOut,
)
from .service import create_battle, delete_battle, list_battles, set_battle_status

router = APIRouter(prefix="/admin", tags=["admin"])

_admin = requires(Capability.MANAGE_BATTLES)


@router.get("/battles", response_model=BattlesListOut)
def admin_list_battles(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    _: Principal = Depends(_admin),
    clock: Clock = Depends(get_clock),
) -> BattlesListOut:
    lim = clamp_limit(limit)
    off = clamp_offset(offset)
    items, total = list_battles(limit=lim, offset=off, now=clock.now())
    return BattlesListOut(items=items, page=page_of(lim, off, total))


@router.post("/battles", response_model=BattleOut, status_code=201)
def admin_create_battle(
    body: BattleCreateIn,
    request: Request,
    admin: Principal = Depends(_admin),
    clock: Clock = Depends(get_clock),
):
    return create_battle(
        dish_name=body.dish_name,
        description=body.description,
        rules=body.rules,
        starts_at=body.starts_at,
        ends_at=body.ends_at,
        creator_id=admin.id,
        now=clock.now(),
        ip_address=client_ip(request),
    )


@router.put("/battles/{battle_id}", response_model=BattleOut)
def admin_set_battle_status(
    body: BattleStatusIn,
    request: Request,
    battle_id: str = Path(...),
    admin: Principal = Depends(_admin),
    clock: Clock = Depends(get_clock),
):
    return set_battle_status(battle_id, body.status, admin_id=admin.id, now=clock.now(), ip_address=client_ip(request))


@router.delete("/battles/{battle_id}", response_model=BattleDeleteOut)
def admin_delete_battle(
    request: Request,
    battle_id: str = Path(...),
    admin: Principal = Depends(_admin),
    clock: Clock = Depends(get_clock),
) -> BattleDeleteOut:
    counts = delete_battle(battle_id, admin_id=admin.id, now=clock.now(), ip_address=client_ip(request))
    return BattleDeleteOut(battle_id=battle_id, **counts)


@router.get("/logs", response_model=AdminLogsListOut)
def admin_list_logs(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    _: Principal = Depends(_admin),
) -> AdminLogsListOut:
    lim = clamp_limit(limit)
    off = clamp_offset(offset)
    items, total = list_admin_logs(limit=lim, offset=off)
    return AdminLogsListOut(items=items, page=page_of(lim, off, total))


@router.post("/uploads/sweep", response_model=SweepOut)
def admin_sweep_uploads(request: Request, _: Principal = Depends(_admin)) -> SweepOut:
    return SweepOut(**sweep_orphaned_proofs(request_id=request_id_of(request)))
