from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from cookoff.core.db import get_engine
from cookoff.core.errors import InvalidArgument
from cookoff.core.observability import emit
from cookoff.modules.accounts.auth import Principal
from cookoff.modules.media.service import delete_stored_file, insert_media, is_duplicate, write_proof_file
from cookoff.modules.votes.service import cast_vote_in, check_not_self_vote, check_vote_target

from .gate import compute_digest, validate_proof


def _required(value: Optional[str], field: str) -> str:
    v = (value or "").strip()
    if not v:
        raise InvalidArgument(f"{field} is required", details={"field": field})
    return v


def upload_proof(
    principal: Principal,
    *,
    battle_id: Optional[str],
    recipe_id: Optional[str],
    notes: Optional[str],
    filename: Optional[str],
    mime_type: Optional[str],
    data: Optional[bytes],
    duration_seconds: Optional[float] = None,
    upload_ip: Optional[str] = None,
    now: datetime,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Stores a proof video and casts the uploader's vote with it.

    The media row and the vote upsert commit together. The file is written
    before that transaction opens, so any failure from there on deletes it
    again before the error propagates.
    """
    battle_id = _required(battle_id, "battleId")
    recipe_id = _required(recipe_id, "recipeId")
    if data is None or not filename:
        raise InvalidArgument("No video file uploaded", details={"field": "video"})

    proof = validate_proof(filename, mime_type, len(data), duration_seconds)
    digest = compute_digest(data)

    with get_engine().connect() as conn:
        check_vote_target(conn, battle_id, recipe_id, now)
        check_not_self_vote(conn, principal.id, recipe_id)
        # check-then-insert: two uploaders racing with identical bytes can both pass
        if is_duplicate(conn, digest, principal.id):
            emit("warning", "proof.rejected", "duplicate proof content from another uploader", request_id, __name__,
                 user_id=principal.id, battle_id=battle_id, reason="duplicate")
            raise InvalidArgument(
                "This video has already been uploaded by another user. Please upload your own proof.",
                details={"reason": "duplicate"},
            )

    stored = write_proof_file(principal.id, proof.extension, data, now)
    try:
        with get_engine().begin() as conn:
            media_id = insert_media(
                conn,
                url=stored.url,
                media_type="video",
                file_size_bytes=stored.size,
                mime_type=proof.mime_type,
                uploaded_by=principal.id,
                upload_ip=upload_ip,
                video_hash=digest,
                duration_seconds=proof.duration_seconds,
                now=now,
            )
            vote = cast_vote_in(
                conn,
                battle_id=battle_id,
                user_id=principal.id,
                recipe_id=recipe_id,
                proof_media_id=media_id,
                notes=notes,
                now=now,
            )
    except Exception:
        delete_stored_file(stored.path, request_id)
        raise

    auto_approved = bool(vote["verified"])
    emit("info", "proof.uploaded", f"proof {media_id} uploaded for battle {battle_id}", request_id, __name__,
         media_id=media_id, user_id=principal.id, battle_id=battle_id, recipe_id=recipe_id,
         size=stored.size, auto_approved=auto_approved)
    return {
        "media_id": media_id,
        "url": stored.url,
        "size": stored.size,
        "auto_approved": auto_approved,
        "requires_verification": not auto_approved,
        "vote": vote,
    }
