"""
Vote ledger: one live vote per (battle, voter), always backed by the voter's own proof.

States per (battle, voter):
  no vote -> pending (verified = 0) -> verified (verified = 1)
A moderator reject puts the row back to pending with its proof kept; a
resubmission replaces the row wholesale.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from cookoff.core.clock import parse_iso, to_iso
from cookoff.core.db import get_engine
from cookoff.core.errors import Forbidden, InvalidArgument, InvalidState, NotFound
from cookoff.core.observability import emit
from cookoff.modules.accounts.service import current_level, get_recipe
from cookoff.modules.battles.clock import ACTIVE, derive_status
from cookoff.modules.battles.service import entry_exists, require_battle
from cookoff.modules.media.service import get_media
from cookoff.modules.proofs.gate import auto_approval_eligible

_UPSERT_VOTE_SQL = """
INSERT INTO battle_votes (
    battle_id, user_id, recipe_id, proof_media_id, notes,
    verified, proof_verified_at, verified_by, review_notes, created_at, updated_at
) VALUES (
    :battle_id, :user_id, :recipe_id, :proof_media_id, :notes,
    :verified, :proof_verified_at, NULL, NULL, :now, :now
)
ON CONFLICT (battle_id, user_id) DO UPDATE SET
    recipe_id = excluded.recipe_id,
    proof_media_id = excluded.proof_media_id,
    notes = excluded.notes,
    verified = excluded.verified,
    proof_verified_at = excluded.proof_verified_at,
    verified_by = NULL,
    review_notes = NULL,
    created_at = excluded.created_at,
    updated_at = excluded.updated_at
"""

_SELECT_VOTE_SQL = "SELECT * FROM battle_votes WHERE battle_id = :battle_id AND user_id = :user_id"


def _row_to_vote(row: Any) -> Dict[str, Any]:
    d = dict(row)
    d["verified"] = bool(d.get("verified"))
    return d


def get_vote(conn: Connection, battle_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        text(_SELECT_VOTE_SQL),
        {"battle_id": battle_id, "user_id": user_id},
    ).mappings().first()
    return _row_to_vote(row) if row is not None else None


def check_vote_target(conn: Connection, battle_id: str, recipe_id: str, now: datetime) -> Dict[str, Any]:
    """
    Battle phase and entry gates shared by cast_vote and the upload pre-checks.
    Returns the battle row.
    """
    battle = require_battle(conn, battle_id)

    status = derive_status(battle, now)
    if status != ACTIVE:
        raise InvalidState(
            f"Battle is not active (current status: {status})",
            details={"battle_id": battle_id, "status": status},
        )
    ends_at = parse_iso(battle.get("ends_at"))
    if ends_at is None or ends_at <= now:
        raise InvalidState("Battle has ended", details={"battle_id": battle_id})

    if not entry_exists(conn, battle_id, recipe_id):
        raise InvalidState("Recipe is not entered in this battle", details={"battle_id": battle_id, "recipe_id": recipe_id})
    return battle


def check_not_self_vote(conn: Connection, user_id: str, recipe_id: str) -> None:
    recipe = get_recipe(conn, recipe_id)
    if recipe is None:
        raise NotFound("recipe not found", details={"recipe_id": recipe_id})
    if recipe["author_id"] == user_id:
        raise Forbidden("You cannot vote for your own recipe", details={"recipe_id": recipe_id})


def cast_vote_in(
    conn: Connection,
    *,
    battle_id: str,
    user_id: str,
    recipe_id: str,
    proof_media_id: Optional[str],
    notes: Optional[str],
    now: datetime,
) -> Dict[str, Any]:
    """Transactional core of cast_vote; the caller owns the transaction."""
    check_vote_target(conn, battle_id, recipe_id, now)

    media = get_media(conn, proof_media_id) if proof_media_id else None
    if media is None or media["uploaded_by"] != user_id:
        raise InvalidArgument(
            "proof media must be uploaded by the voter",
            details={"proof_media_id": proof_media_id},
        )

    check_not_self_vote(conn, user_id, recipe_id)

    auto_approved = auto_approval_eligible(current_level(conn, user_id))
    stamp = to_iso(now)
    conn.execute(
        text(_UPSERT_VOTE_SQL),
        {
            "battle_id": battle_id,
            "user_id": user_id,
            "recipe_id": recipe_id,
            "proof_media_id": proof_media_id,
            "notes": notes,
            "verified": auto_approved,
            "proof_verified_at": stamp if auto_approved else None,
            "now": stamp,
        },
    )
    row = conn.execute(
        text(_SELECT_VOTE_SQL),
        {"battle_id": battle_id, "user_id": user_id},
    ).mappings().one()
    return _row_to_vote(row)


def cast_vote(
    battle_id: str,
    user_id: str,
    recipe_id: str,
    proof_media_id: Optional[str],
    notes: Optional[str],
    now: datetime,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    with get_engine().begin() as conn:
        vote = cast_vote_in(
            conn,
            battle_id=battle_id,
            user_id=user_id,
            recipe_id=recipe_id,
            proof_media_id=proof_media_id,
            notes=notes,
            now=now,
        )
    emit("info", "vote.cast", f"vote by {user_id} in battle {battle_id}", request_id, __name__,
         battle_id=battle_id, user_id=user_id, recipe_id=recipe_id, verified=vote["verified"])
    return vote
