from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection

from cookoff.core.clock import ensure_utc, to_iso
from cookoff.core.db import get_engine
from cookoff.core.errors import Forbidden, InvalidArgument, InvalidState, NotFound
from cookoff.core.ids import new_ulid
from cookoff.core.observability import emit
from cookoff.modules.accounts.service import get_recipe
from cookoff.modules.audit.service import log_admin_action

from .clock import accepts_entries, derive_status
from .models import BATTLE_STATUSES

_BATTLE_LIST_SQL = """
SELECT b.*,
       u.username AS creator_name,
       (SELECT COUNT(1) FROM battle_entries e WHERE e.battle_id = b.id) AS entry_count,
       (SELECT COUNT(1) FROM battle_votes v WHERE v.battle_id = b.id) AS total_votes
FROM battles b
LEFT JOIN users u ON b.creator_id = u.id
"""


def _row_to_battle(row: Any, now: datetime) -> Dict[str, Any]:
    d = dict(row)
    d["stored_status"] = d.get("status")
    d["status"] = derive_status(d, now)
    return d


def load_battle(conn: Connection, battle_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        text("SELECT id, dish_name, starts_at, ends_at, status, creator_id FROM battles WHERE id = :id"),
        {"id": battle_id},
    ).mappings().first()
    return dict(row) if row is not None else None


def require_battle(conn: Connection, battle_id: str) -> Dict[str, Any]:
    battle = load_battle(conn, battle_id)
    if battle is None:
        raise NotFound("battle not found", details={"battle_id": battle_id})
    return battle


def entry_exists(conn: Connection, battle_id: str, recipe_id: str) -> bool:
    row = conn.execute(
        text("SELECT 1 FROM battle_entries WHERE battle_id = :battle_id AND recipe_id = :recipe_id"),
        {"battle_id": battle_id, "recipe_id": recipe_id},
    ).first()
    return row is not None


# -------------------------
# Battles
# -------------------------
def list_battles(limit: int, offset: int, now: datetime) -> Tuple[List[Dict[str, Any]], int]:
    with get_engine().connect() as conn:
        total = conn.execute(text("SELECT COUNT(1) FROM battles")).scalar_one()
        rows = conn.execute(
            text(_BATTLE_LIST_SQL + " ORDER BY b.starts_at DESC, b.created_at DESC LIMIT :limit OFFSET :offset"),
            {"limit": limit, "offset": offset},
        ).mappings().all()
    return [_row_to_battle(r, now) for r in rows], int(total)


def get_battle(battle_id: str, now: datetime) -> Dict[str, Any]:
    with get_engine().connect() as conn:
        row = conn.execute(text(_BATTLE_LIST_SQL + " WHERE b.id = :id"), {"id": battle_id}).mappings().first()
    if row is None:
        raise NotFound("battle not found", details={"battle_id": battle_id})
    return _row_to_battle(row, now)


def create_battle(
    *,
    dish_name: str,
    description: Optional[str],
    rules: Optional[str],
    starts_at: datetime,
    ends_at: datetime,
    creator_id: str,
    now: datetime,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    # naive values are taken as UTC, matching to_iso
    starts_at = ensure_utc(starts_at)
    ends_at = ensure_utc(ends_at)
    if ends_at <= starts_at:
        raise InvalidArgument("ends_at must be after starts_at")

    battle_id = new_ulid()
    stamp = to_iso(now)
    with get_engine().begin() as conn:
        conn.execute(
            text(
                "INSERT INTO battles (id, dish_name, description, rules, starts_at, ends_at, status, creator_id, created_at, updated_at) "
                "VALUES (:id, :dish_name, :description, :rules, :starts_at, :ends_at, 'upcoming', :creator_id, :now, :now)"
            ),
            {
                "id": battle_id,
                "dish_name": dish_name,
                "description": description,
                "rules": rules,
                "starts_at": to_iso(starts_at),
                "ends_at": to_iso(ends_at),
                "creator_id": creator_id,
                "now": stamp,
            },
        )
        log_admin_action(
            conn,
            admin_id=creator_id,
            action="CREATE_BATTLE",
            target_type="battle",
            target_id=battle_id,
            details={"dish_name": dish_name, "starts_at": to_iso(starts_at), "ends_at": to_iso(ends_at)},
            ip_address=ip_address,
            now=now,
        )
    return get_battle(battle_id, now)


def set_battle_status(battle_id: str, status: str, *, admin_id: str, now: datetime, ip_address: Optional[str] = None) -> Dict[str, Any]:
    """Admin override of the stored status. Gating keeps using the derived phase."""
    if status not in BATTLE_STATUSES:
        raise InvalidArgument("invalid status", details={"allowed": list(BATTLE_STATUSES)})

    with get_engine().begin() as conn:
        res = conn.execute(
            text("UPDATE battles SET status = :status, updated_at = :now WHERE id = :id"),
            {"status": status, "now": to_iso(now), "id": battle_id},
        )
        if not res.rowcount:
            raise NotFound("battle not found", details={"battle_id": battle_id})
        log_admin_action(
            conn,
            admin_id=admin_id,
            action="UPDATE_BATTLE_STATUS",
            target_type="battle",
            target_id=battle_id,
            details={"status": status},
            ip_address=ip_address,
            now=now,
        )
    return get_battle(battle_id, now)


def delete_battle(battle_id: str, *, admin_id: str, now: datetime, ip_address: Optional[str] = None) -> Dict[str, int]:
    """Removes the battle with its entries and votes in one transaction."""
    with get_engine().begin() as conn:
        require_battle(conn, battle_id)
        votes = conn.execute(text("DELETE FROM battle_votes WHERE battle_id = :id"), {"id": battle_id}).rowcount
        entries = conn.execute(text("DELETE FROM battle_entries WHERE battle_id = :id"), {"id": battle_id}).rowcount
        conn.execute(text("DELETE FROM battles WHERE id = :id"), {"id": battle_id})
        log_admin_action(
            conn,
            admin_id=admin_id,
            action="DELETE_BATTLE",
            target_type="battle",
            target_id=battle_id,
            details={"deleted_votes": votes, "deleted_entries": entries},
            ip_address=ip_address,
            now=now,
        )
    return {"deleted_votes": int(votes or 0), "deleted_entries": int(entries or 0)}


# -------------------------
# Entries
# -------------------------
def _get_entry(conn: Connection, battle_id: str, recipe_id: str) -> Dict[str, Any]:
    row = conn.execute(
        text("SELECT * FROM battle_entries WHERE battle_id = :battle_id AND recipe_id = :recipe_id"),
        {"battle_id": battle_id, "recipe_id": recipe_id},
    ).mappings().one()
    return dict(row)


def enter_battle(battle_id: str, recipe_id: str, acting_user_id: str, now: datetime) -> Tuple[Dict[str, Any], bool]:
    """
    Registers recipe_id in battle_id on behalf of its author.
    Returns (entry, created); re-entering an already entered recipe returns the
    existing row with created=False.
    """
    with get_engine().begin() as conn:
        battle = require_battle(conn, battle_id)
        recipe = get_recipe(conn, recipe_id)
        if recipe is None:
            raise NotFound("recipe not found", details={"recipe_id": recipe_id})

        if not accepts_entries(battle, now):
            raise InvalidState(
                f"battle is not accepting entries (current status: {derive_status(battle, now)})",
                details={"battle_id": battle_id, "status": derive_status(battle, now)},
            )
        if recipe["author_id"] != acting_user_id:
            raise Forbidden("only the recipe author can enter it", details={"recipe_id": recipe_id})

        # the unique (battle_id, recipe_id) constraint settles concurrent entries
        res = conn.execute(
            text(
                "INSERT INTO battle_entries (battle_id, recipe_id, created_at) "
                "VALUES (:battle_id, :recipe_id, :created_at) "
                "ON CONFLICT (battle_id, recipe_id) DO NOTHING"
            ),
            {"battle_id": battle_id, "recipe_id": recipe_id, "created_at": to_iso(now)},
        )
        created = bool(res.rowcount)
        entry = _get_entry(conn, battle_id, recipe_id)

    if created:
        emit("info", "battle.entered", f"recipe {recipe_id} entered battle {battle_id}", module=__name__,
             battle_id=battle_id, recipe_id=recipe_id, user_id=acting_user_id)
    return entry, created


def list_entries(battle_id: str) -> List[Dict[str, Any]]:
    """
    Entries with vote tallies, most votes first; ties go to the earliest entrant.
    An unknown battle yields an empty list.
    """
    with get_engine().connect() as conn:
        rows = conn.execute(
            text(
                """
                SELECT e.id, e.battle_id, e.recipe_id, e.created_at,
                       r.title AS recipe_title, r.author_id,
                       u.username AS author_name,
                       COUNT(v.user_id) AS vote_count,
                       COALESCE(SUM(CASE WHEN v.verified THEN 1 ELSE 0 END), 0) AS verified_vote_count
                FROM battle_entries e
                JOIN recipes r ON r.id = e.recipe_id
                LEFT JOIN users u ON u.id = r.author_id
                LEFT JOIN battle_votes v ON v.battle_id = e.battle_id AND v.recipe_id = e.recipe_id
                WHERE e.battle_id = :battle_id
                GROUP BY e.id, e.battle_id, e.recipe_id, e.created_at, r.title, r.author_id, u.username
                ORDER BY vote_count DESC, e.created_at ASC, e.id ASC
                """
            ),
            {"battle_id": battle_id},
        ).mappings().all()

    out: List[Dict[str, Any]] = []
    for r in rows:
        d = dict(r)
        d["vote_count"] = int(d["vote_count"] or 0)
        d["verified_vote_count"] = int(d["verified_vote_count"] or 0)
        out.append(d)
    return out
