from __future__ import annotations

import os
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import pytest

# the /uploads static mount binds its directory at import time
_UPLOAD_ROOT = tempfile.mkdtemp(prefix="cookoff-uploads-")
os.environ["UPLOAD_ROOT"] = _UPLOAD_ROOT
os.environ["BATTLE_RECONCILE_ENABLED"] = "0"
os.environ.setdefault("APP_ENV", "test")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import text  # noqa: E402

from cookoff.core.clock import FixedClock, get_clock  # noqa: E402
from cookoff.core.db import get_engine, init_db, reset_engine  # noqa: E402
from cookoff.core.storage import get_proofs_dir  # noqa: E402
from cookoff.main import app  # noqa: E402
from cookoff.modules.accounts.service import create_recipe, create_user  # noqa: E402
from cookoff.modules.battles.service import create_battle, enter_battle  # noqa: E402
from cookoff.modules.media.service import insert_media  # noqa: E402

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def db(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///" + (tmp_path / "test.db").as_posix())
    reset_engine()
    init_db()
    shutil.rmtree(get_proofs_dir(), ignore_errors=True)
    get_proofs_dir()
    yield
    reset_engine()


@pytest.fixture()
def clock():
    c = FixedClock(T0)
    app.dependency_overrides[get_clock] = lambda: c
    yield c
    app.dependency_overrides.pop(get_clock, None)


@pytest.fixture()
def client(clock):
    return TestClient(app)


def hdr(user: Dict[str, Any]) -> Dict[str, str]:
    return {"X-User-Id": user["id"]}


def make_battle(admin: Dict[str, Any], now: datetime, *, start_h: float = -1, end_h: float = 1, dish: str = "Ramen") -> Dict[str, Any]:
    return create_battle(
        dish_name=dish,
        description=None,
        rules=None,
        starts_at=now + timedelta(hours=start_h),
        ends_at=now + timedelta(hours=end_h),
        creator_id=admin["id"],
        now=now,
    )


def make_media(user: Dict[str, Any], now: datetime, digest: Optional[str] = None) -> str:
    with get_engine().begin() as conn:
        return insert_media(
            conn,
            url=f"/uploads/proofs/seeded-{user['id']}-{digest or 'x'}.mp4",
            media_type="video",
            file_size_bytes=10,
            mime_type="video/mp4",
            uploaded_by=user["id"],
            upload_ip=None,
            video_hash=digest,
            duration_seconds=None,
            now=now,
        )


def count(table: str, where: str = "1=1", **params: Any) -> int:
    with get_engine().connect() as conn:
        return int(conn.execute(text(f"SELECT COUNT(1) FROM {table} WHERE {where}"), params).scalar_one())


def upload(
    client: TestClient,
    user: Dict[str, Any],
    battle_id: str,
    recipe_id: str,
    content: bytes = b"\x00\x00\x00\x18ftypmp42 proof",
    *,
    filename: str = "proof.mp4",
    mime: str = "video/mp4",
    **form: Any,
):
    data = {"battleId": battle_id, "recipeId": recipe_id}
    data.update({k: str(v) for k, v in form.items()})
    return client.post(
        "/proofs/upload",
        headers=hdr(user),
        data=data,
        files={"video": (filename, content, mime)},
    )


def proof_files():
    return sorted(p.name for p in get_proofs_dir().iterdir() if p.is_file())


@pytest.fixture()
def world(clock):
    """
    One active battle (T0-1h .. T0+1h) with two entries:
    alice -> r1, carol -> r2. bob is level 5, erin level 1.
    """
    now = clock.now()
    admin = create_user("admin", role="admin", level=10)
    mod = create_user("mod", role="moderator", level=3)
    alice = create_user("alice")
    carol = create_user("carol")
    bob = create_user("bob", level=5)
    erin = create_user("erin", level=1)

    r1 = create_recipe(alice["id"], "Tonkotsu")
    r2 = create_recipe(carol["id"], "Shoyu")
    battle = make_battle(admin, now)
    enter_battle(battle["id"], r1["id"], alice["id"], now)
    enter_battle(battle["id"], r2["id"], carol["id"], now)

    return {
        "now": now,
        "admin": admin,
        "mod": mod,
        "alice": alice,
        "carol": carol,
        "bob": bob,
        "erin": erin,
        "r1": r1,
        "r2": r2,
        "battle": battle,
    }
