"""
DB utilities (sqlite default).

Defaults:
- DATABASE_URL: sqlite:///./data/app.db
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

SQLITE_BUSY_TIMEOUT_SEC = 30


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./data/app.db")


def _repo_root() -> Path:
    # apps/api/cookoff/core/db.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith("sqlite:///"):
        return None
    p = database_url[len("sqlite:///") :]

    # absolute unix
    if p.startswith("/"):
        return Path(p)

    # absolute windows drive, both C:/ and C:\ forms
    if len(p) >= 3 and p[1] == ":" and (p[2] == "/" or p[2] == "\\"):
        return Path(p)

    # relative -> repo root
    return (_repo_root() / p).resolve()


def _sqlite_pragmas(dbapi_conn, _record) -> None:
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is not None:
        return _engine

    url = get_database_url()
    connect_args: Dict[str, Any] = {}
    if url.startswith("sqlite:///"):
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SEC}

    sp = resolve_sqlite_path(url)
    if sp is not None:
        sp.parent.mkdir(parents=True, exist_ok=True)
        url = "sqlite:///" + sp.as_posix()

    _engine = create_engine(url, future=True, connect_args=connect_args)
    if url.startswith("sqlite"):
        event.listen(_engine, "connect", _sqlite_pragmas)
    return _engine


def reset_engine() -> None:
    """Drop the cached engine so the next get_engine() re-reads DATABASE_URL."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


# admin_logs is append-only; mirrors migration 0001
_SQLITE_TRIGGERS = (
    """
    CREATE TRIGGER IF NOT EXISTS trg_admin_logs_no_update
    BEFORE UPDATE ON admin_logs
    BEGIN
      SELECT RAISE(ABORT, 'append-only: admin_logs cannot be updated');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_admin_logs_no_delete
    BEFORE DELETE ON admin_logs
    BEGIN
      SELECT RAISE(ABORT, 'append-only: admin_logs cannot be deleted');
    END;
    """,
)


def init_db() -> None:
    """Create any missing tables from the SQLModel metadata."""
    # table classes register themselves on import
    from cookoff.modules.accounts import models as _accounts  # noqa: F401
    from cookoff.modules.audit import models as _audit  # noqa: F401
    from cookoff.modules.battles import models as _battles  # noqa: F401
    from cookoff.modules.media import models as _media  # noqa: F401
    from cookoff.modules.votes import models as _votes  # noqa: F401

    eng = get_engine()
    SQLModel.metadata.create_all(eng)
    if eng.dialect.name == "sqlite":
        with eng.begin() as conn:
            for ddl in _SQLITE_TRIGGERS:
                conn.execute(text(ddl))


def db_health() -> Dict[str, Any]:
    url = get_database_url()
    kind = "sqlite" if url.startswith("sqlite") else "unknown"
    sp = resolve_sqlite_path(url)
    path = str(sp.as_posix()) if sp is not None else url

    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "kind": kind, "path": path}
    except Exception as e:
        return {"status": "error", "kind": kind, "path": path, "error": str(e)}
