"""
Battle phase derivation + periodic status reconciliation.

Gating always derives the phase from (starts_at, ends_at, now). The persisted
`battles.status` column is only a cache that reconcile() refreshes; nothing
depends on it being current.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection
from starlette.concurrency import run_in_threadpool

from cookoff.core.clock import Clock, SystemClock, parse_iso, to_iso
from cookoff.core.config import reconcile_interval_seconds
from cookoff.core.db import get_engine
from cookoff.core.observability import emit

UPCOMING = "upcoming"
ACTIVE = "active"
CLOSED = "closed"


def derive_status(battle: Mapping[str, Any], now: datetime) -> str:
    starts_at = parse_iso(battle.get("starts_at"))
    ends_at = parse_iso(battle.get("ends_at"))

    if ends_at is not None and now >= ends_at:
        return CLOSED
    if starts_at is not None and ends_at is not None and starts_at <= now < ends_at:
        return ACTIVE
    if starts_at is not None and now < starts_at:
        return UPCOMING
    # only reachable with a missing bound
    return battle.get("status") or UPCOMING


def accepts_entries(battle: Mapping[str, Any], now: datetime) -> bool:
    return derive_status(battle, now) in (UPCOMING, ACTIVE)


def accepts_votes(battle: Mapping[str, Any], now: datetime) -> bool:
    ends_at = parse_iso(battle.get("ends_at"))
    return derive_status(battle, now) == ACTIVE and ends_at is not None and ends_at > now


def update_battle_statuses(conn: Connection, now: datetime) -> int:
    """Write the derived status into every battle whose stored status is stale."""
    rows = conn.execute(text("SELECT id, starts_at, ends_at, status FROM battles")).mappings().all()
    changed = 0
    stamp = to_iso(now)
    for r in rows:
        derived = derive_status(r, now)
        if derived == r["status"]:
            continue
        # skip rows whose status changed since the read
        res = conn.execute(
            text("UPDATE battles SET status = :status, updated_at = :now WHERE id = :id AND status = :old"),
            {"status": derived, "now": stamp, "id": r["id"], "old": r["status"]},
        )
        changed += int(res.rowcount or 0)
    return changed


def reconcile(now: Optional[datetime] = None) -> int:
    """Best-effort cache refresh; errors are logged, never raised."""
    ts = now or SystemClock().now()
    try:
        with get_engine().begin() as conn:
            changed = update_battle_statuses(conn, ts)
    except Exception as e:
        emit("error", "battle.reconcile_failed", str(e), module=__name__, error_type=type(e).__name__)
        return 0
    emit("debug", "battle.reconciled", f"{changed} battle status(es) updated", module=__name__, changed=changed)
    return changed


class BattleStatusReconciler:
    """
    Runs reconcile() on start and then every `interval` seconds.
    Owned by the application lifecycle: start() on startup, stop() on shutdown.
    """

    def __init__(self, clock: Optional[Clock] = None, interval: Optional[float] = None) -> None:
        self.clock = clock or SystemClock()
        self.interval = interval if interval is not None else reconcile_interval_seconds()
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="battle-status-reconciler")
        emit("info", "battle.reconciler_started", f"battle status reconciler started (every {self.interval:g}s)", module=__name__)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        emit("info", "battle.reconciler_stopped", "battle status reconciler stopped", module=__name__)

    async def run_once(self) -> int:
        self.runs += 1
        return await run_in_threadpool(reconcile, self.clock.now())

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                # reconcile() already swallows DB errors; this covers the threadpool hop
                emit("error", "battle.reconcile_failed", str(e), module=__name__, error_type=type(e).__name__)
            await asyncio.sleep(self.interval)
