from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection

from cookoff.core.clock import to_iso
from cookoff.core.db import get_engine


def _safe_json_loads(v: Any) -> Dict[str, Any]:
    if not v:
        return {}
    if isinstance(v, dict):
        return v
    try:
        return json.loads(v)
    except ValueError:
        return {}


def log_admin_action(
    conn: Connection,
    *,
    admin_id: str,
    action: str,
    target_type: str,
    target_id: str,
    details: Optional[Dict[str, Any]],
    ip_address: Optional[str],
    now: datetime,
) -> None:
    """
    Append-only: one INSERT per admin/moderator action.
    Runs on the caller's connection so the log row commits with the action itself.
    """
    conn.execute(
        text(
            "INSERT INTO admin_logs (admin_id, action, target_type, target_id, details_json, ip_address, created_at) "
            "VALUES (:admin_id, :action, :target_type, :target_id, :details_json, :ip_address, :created_at)"
        ),
        {
            "admin_id": admin_id,
            "action": action,
            "target_type": target_type,
            "target_id": str(target_id),
            "details_json": json.dumps(details or {}, ensure_ascii=False, default=str),
            "ip_address": ip_address,
            "created_at": to_iso(now),
        },
    )


def list_admin_logs(limit: int, offset: int) -> Tuple[List[Dict[str, Any]], int]:
    with get_engine().connect() as conn:
        total = conn.execute(text("SELECT COUNT(1) FROM admin_logs")).scalar_one()
        rows = conn.execute(
            text(
                "SELECT al.*, u.username AS admin_name FROM admin_logs al "
                "LEFT JOIN users u ON al.admin_id = u.id "
                "ORDER BY al.created_at DESC, al.id DESC LIMIT :limit OFFSET :offset"
            ),
            {"limit": limit, "offset": offset},
        ).mappings().all()

    items: List[Dict[str, Any]] = []
    for r in rows:
        d = dict(r)
        d["details"] = _safe_json_loads(d.pop("details_json", None))
        items.append(d)
    return items, int(total)
