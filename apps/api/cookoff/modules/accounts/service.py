from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from cookoff.core.clock import to_iso
from cookoff.core.db import get_engine
from cookoff.core.ids import new_ulid

DEFAULT_LEVEL = 1


def create_user(username: str, *, level: int = DEFAULT_LEVEL, role: str = "member", user_id: Optional[str] = None) -> Dict[str, Any]:
    uid = user_id or new_ulid()
    with get_engine().begin() as conn:
        conn.execute(
            text("INSERT INTO users (id, username, level, role, created_at) VALUES (:id, :username, :level, :role, :created_at)"),
            {"id": uid, "username": username, "level": level, "role": role, "created_at": to_iso(datetime.now(timezone.utc))},
        )
    return {"id": uid, "username": username, "level": level, "role": role}


def create_recipe(author_id: str, title: str, *, recipe_id: Optional[str] = None) -> Dict[str, Any]:
    rid = recipe_id or new_ulid()
    with get_engine().begin() as conn:
        conn.execute(
            text("INSERT INTO recipes (id, author_id, title, created_at) VALUES (:id, :author_id, :title, :created_at)"),
            {"id": rid, "author_id": author_id, "title": title, "created_at": to_iso(datetime.now(timezone.utc))},
        )
    return {"id": rid, "author_id": author_id, "title": title}


def get_recipe(conn: Connection, recipe_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        text("SELECT id, author_id, title FROM recipes WHERE id = :id"),
        {"id": recipe_id},
    ).mappings().first()
    return dict(row) if row is not None else None


def current_level(conn: Connection, user_id: str) -> int:
    # levels move as XP accrues; always read the live value
    level = conn.execute(text("SELECT level FROM users WHERE id = :id"), {"id": user_id}).scalar()
    return int(level) if level is not None else DEFAULT_LEVEL
