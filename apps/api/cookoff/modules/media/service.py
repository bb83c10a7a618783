from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from cookoff.core.clock import to_iso
from cookoff.core.db import get_engine
from cookoff.core.ids import new_ulid
from cookoff.core.observability import emit
from cookoff.core.storage import PROOFS_SUBDIR, get_proofs_dir, path_for_public_url, public_url


SWEEP_MIN_AGE_SEC = 600


@dataclass(frozen=True)
class StoredFile:
    path: Path
    name: str
    url: str
    size: int


def proof_filename(user_id: str, ext: str, now: datetime) -> str:
    # uploader id + ms timestamp + 64 random bits: unguessable and collision-free in practice
    return f"proof-{user_id}-{int(now.timestamp() * 1000)}-{secrets.token_hex(8)}{ext}"


def write_proof_file(user_id: str, ext: str, data: bytes, now: datetime) -> StoredFile:
    name = proof_filename(user_id, ext, now)
    dest = get_proofs_dir() / name
    f = dest.open("xb")
    try:
        with f:
            f.write(data)
    except BaseException:
        # a partial file must not outlive the failed write
        delete_stored_file(dest)
        raise
    return StoredFile(path=dest, name=name, url=public_url(PROOFS_SUBDIR, name), size=len(data))


def delete_stored_file(path: Path, request_id: Optional[str] = None) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        emit("error", "proof.file_delete_failed", str(e), request_id, __name__, path=str(path))
        return False
    emit("info", "proof.file_deleted", f"deleted {path.name}", request_id, __name__, path=str(path))
    return True


def is_duplicate(conn: Connection, digest: str, uploader_id: str) -> bool:
    """True iff another uploader already stored identical content."""
    row = conn.execute(
        text("SELECT id FROM media WHERE video_hash = :digest AND uploaded_by != :uploader LIMIT 1"),
        {"digest": digest, "uploader": uploader_id},
    ).first()
    return row is not None


def insert_media(
    conn: Connection,
    *,
    url: str,
    media_type: str,
    file_size_bytes: int,
    mime_type: str,
    uploaded_by: str,
    upload_ip: Optional[str],
    video_hash: Optional[str],
    duration_seconds: Optional[float],
    now: datetime,
) -> str:
    media_id = new_ulid()
    conn.execute(
        text(
            "INSERT INTO media (id, url, media_type, file_size_bytes, mime_type, uploaded_by, upload_ip, video_hash, duration_seconds, created_at) "
            "VALUES (:id, :url, :media_type, :file_size_bytes, :mime_type, :uploaded_by, :upload_ip, :video_hash, :duration_seconds, :created_at)"
        ),
        {
            "id": media_id,
            "url": url,
            "media_type": media_type,
            "file_size_bytes": file_size_bytes,
            "mime_type": mime_type,
            "uploaded_by": uploaded_by,
            "upload_ip": upload_ip,
            "video_hash": video_hash,
            "duration_seconds": duration_seconds,
            "created_at": to_iso(now),
        },
    )
    return media_id


def get_media(conn: Connection, media_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(text("SELECT * FROM media WHERE id = :id"), {"id": media_id}).mappings().first()
    return dict(row) if row is not None else None


def sweep_orphaned_proofs(request_id: Optional[str] = None, min_age_seconds: float = SWEEP_MIN_AGE_SEC) -> Dict[str, int]:
    """
    Deletes files in the proofs directory that no media row points at.
    Recovers storage left behind when a process died between writing a file
    and cleaning it up. Files younger than min_age_seconds may belong to an
    upload whose transaction has not committed yet and are left alone.
    """
    proofs_dir = get_proofs_dir()
    with get_engine().connect() as conn:
        urls = conn.execute(text("SELECT url FROM media WHERE url LIKE :prefix"), {"prefix": public_url(PROOFS_SUBDIR, "%")}).scalars().all()

    referenced = set()
    for u in urls:
        p = path_for_public_url(u)
        if p is not None:
            referenced.add(p.name)

    cutoff = time.time()
    scanned = 0
    purged = 0
    for p in proofs_dir.iterdir():
        if not p.is_file():
            continue
        scanned += 1
        if p.name in referenced or (cutoff - p.stat().st_mtime) < min_age_seconds:
            continue
        if delete_stored_file(p, request_id):
            purged += 1

    emit("info", "uploads.swept", f"purged {purged} orphaned proof file(s)", request_id, __name__, scanned=scanned, purged=purged)
    return {"scanned_files": scanned, "purged_files": purged}
