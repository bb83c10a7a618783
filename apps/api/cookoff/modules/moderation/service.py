"""
Moderation queue for unverified proof-backed votes.

Decisions are idempotent: approving a verified vote, or rejecting an
unverified one with the same notes, writes nothing (no vote update, no
admin_logs row).
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from cookoff.core.clock import parse_iso, to_iso
from cookoff.core.db import get_engine
from cookoff.core.errors import NotFound
from cookoff.core.observability import emit
from cookoff.modules.accounts.auth import Capability, Principal, require_capability
from cookoff.modules.audit.service import log_admin_action
from cookoff.modules.votes.service import get_vote

_PENDING_SQL = """
SELECT v.battle_id, v.user_id, v.recipe_id, v.proof_media_id, v.notes, v.review_notes,
       v.created_at, v.updated_at,
       u.username AS voter_name, u.level AS voter_level,
       r.title AS recipe_title,
       b.dish_name AS battle_dish_name,
       m.url AS video_url, m.mime_type AS video_mime_type,
       m.file_size_bytes AS video_size, m.duration_seconds AS video_duration_seconds
FROM battle_votes v
JOIN users u ON u.id = v.user_id
JOIN recipes r ON r.id = v.recipe_id
JOIN battles b ON b.id = v.battle_id
JOIN media m ON m.id = v.proof_media_id
WHERE v.verified = 0 AND v.proof_media_id IS NOT NULL
ORDER BY v.created_at ASC, v.battle_id ASC, v.user_id ASC
"""


def list_pending(now: datetime) -> List[Dict[str, Any]]:
    with get_engine().connect() as conn:
        rows = conn.execute(text(_PENDING_SQL)).mappings().all()

    items: List[Dict[str, Any]] = []
    for r in rows:
        d = dict(r)
        submitted = parse_iso(d.get("created_at"))
        hours = (now - submitted).total_seconds() / 3600 if submitted else 0.0
        d["hours_pending"] = round(max(hours, 0.0), 2)
        items.append(d)
    return items


def decide(
    reviewer: Principal,
    battle_id: str,
    user_id: str,
    approved: bool,
    notes: Optional[str],
    now: datetime,
    ip_address: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Approve or reject the vote (battle_id, user_id).
    Returns {"vote": <row after the decision>, "changed": bool}.
    """
    require_capability(reviewer, Capability.MODERATE_PROOFS)

    stamp = to_iso(now)
    with get_engine().begin() as conn:
        vote = get_vote(conn, battle_id, user_id)
        if vote is None:
            raise NotFound("vote not found", details={"battle_id": battle_id, "user_id": user_id})

        if approved:
            changed = not vote["verified"]
            if changed:
                conn.execute(
                    text(
                        "UPDATE battle_votes SET verified = 1, proof_verified_at = :now, verified_by = :reviewer, "
                        "review_notes = :notes, updated_at = :now "
                        "WHERE battle_id = :battle_id AND user_id = :user_id"
                    ),
                    {"now": stamp, "reviewer": reviewer.id, "notes": notes, "battle_id": battle_id, "user_id": user_id},
                )
        else:
            # proof_media_id and the voter's notes stay; the voter may resubmit
            review_notes = notes if notes is not None else vote.get("review_notes")
            changed = vote["verified"] or review_notes != vote.get("review_notes")
            if changed:
                conn.execute(
                    text(
                        "UPDATE battle_votes SET verified = 0, proof_verified_at = NULL, verified_by = NULL, "
                        "review_notes = :notes, updated_at = :now "
                        "WHERE battle_id = :battle_id AND user_id = :user_id"
                    ),
                    {"now": stamp, "notes": review_notes, "battle_id": battle_id, "user_id": user_id},
                )

        if changed:
            log_admin_action(
                conn,
                admin_id=reviewer.id,
                action="APPROVE_PROOF" if approved else "REJECT_PROOF",
                target_type="battle_vote",
                target_id=f"{battle_id}:{user_id}",
                details={"battle_id": battle_id, "user_id": user_id, "proof_media_id": vote["proof_media_id"], "notes": notes},
                ip_address=ip_address,
                now=now,
            )
            vote = get_vote(conn, battle_id, user_id)

    emit("info", "moderation.decided", f"proof {'approved' if approved else 'rejected'} by {reviewer.id}", request_id, __name__,
         battle_id=battle_id, user_id=user_id, approved=approved, changed=changed)
    return {"vote": vote, "changed": changed}
