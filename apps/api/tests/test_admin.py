from __future__ import annotations

import os
import time

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from conftest import count, hdr, proof_files, upload
from cookoff.core.db import get_engine
from cookoff.core.storage import get_proofs_dir


def test_create_battle(client, world, clock):
    admin = world["admin"]
    body = {
        "dishName": "Pho",
        "rules": "broth from scratch",
        "startsAt": "2026-03-02T00:00:00Z",
        "endsAt": "2026-03-03T00:00:00Z",
    }
    res = client.post("/admin/battles", json=body, headers=hdr(admin))
    assert res.status_code == 201, res.text
    battle = res.json()
    assert battle["status"] == "upcoming"
    assert battle["startsAt"] == "2026-03-02T00:00:00Z"
    assert battle["creatorId"] == admin["id"]

    logs = client.get("/admin/logs", headers=hdr(admin)).json()["items"]
    assert logs[0]["action"] == "CREATE_BATTLE"
    assert logs[0]["targetId"] == battle["id"]
    assert logs[0]["adminName"] == "admin"
    assert logs[0]["details"]["dish_name"] == "Pho"


def test_create_battle_validation(client, world):
    admin = world["admin"]
    res = client.post(
        "/admin/battles",
        json={"dishName": "Pho", "startsAt": "2026-03-02T00:00:00Z", "endsAt": "2026-03-01T00:00:00Z"},
        headers=hdr(admin),
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_argument"

    res = client.post("/admin/battles", json={"dishName": "Pho", "startsAt": "soon"}, headers=hdr(admin))
    assert res.status_code == 400
    assert res.json()["details"]["errors"]


def test_admin_routes_require_manage_capability(client, world):
    battle_id = world["battle"]["id"]
    for who in ("mod", "erin"):
        h = hdr(world[who])
        assert client.get("/admin/battles", headers=h).status_code == 403
        assert client.put(f"/admin/battles/{battle_id}", json={"status": "closed"}, headers=h).status_code == 403
        assert client.delete(f"/admin/battles/{battle_id}", headers=h).status_code == 403
        assert client.get("/admin/logs", headers=h).status_code == 403
        assert client.post("/admin/uploads/sweep", headers=h).status_code == 403
    assert client.get("/admin/battles").status_code == 401


def test_status_override_does_not_gate(client, world):
    admin = world["admin"]
    battle_id = world["battle"]["id"]

    res = client.put(f"/admin/battles/{battle_id}", json={"status": "finished"}, headers=hdr(admin))
    assert res.status_code == 400
    assert res.json()["details"]["allowed"] == ["upcoming", "active", "closed"]

    res = client.put(f"/admin/battles/{battle_id}", json={"status": "closed"}, headers=hdr(admin))
    assert res.status_code == 200
    assert res.json()["storedStatus"] == "closed"
    assert res.json()["status"] == "active"

    vote = upload(client, world["bob"], battle_id, world["r1"]["id"], b"still-open")
    assert vote.status_code == 201

    assert client.put("/admin/battles/missing", json={"status": "closed"}, headers=hdr(admin)).status_code == 404


def test_delete_battle_cascades(client, world):
    admin = world["admin"]
    battle_id = world["battle"]["id"]
    upload(client, world["bob"], battle_id, world["r1"]["id"], b"bob")
    upload(client, world["erin"], battle_id, world["r2"]["id"], b"erin")

    res = client.delete(f"/admin/battles/{battle_id}", headers=hdr(admin))
    assert res.status_code == 200
    assert res.json() == {"battleId": battle_id, "deletedVotes": 2, "deletedEntries": 2}

    assert client.get(f"/battles/{battle_id}").status_code == 404
    assert client.get(f"/battles/{battle_id}/entries").json()["items"] == []
    assert count("battle_votes") == 0
    # proofs are media, not battle data
    assert count("media") == 2
    assert client.delete(f"/admin/battles/{battle_id}", headers=hdr(admin)).status_code == 404

    actions = [e["action"] for e in client.get("/admin/logs", headers=hdr(admin)).json()["items"]]
    assert "DELETE_BATTLE" in actions


def test_logs_are_paginated_and_append_only(client, world):
    admin = world["admin"]
    battle_id = world["battle"]["id"]
    for status in ("closed", "active", "upcoming"):
        client.put(f"/admin/battles/{battle_id}", json={"status": status}, headers=hdr(admin))

    body = client.get("/admin/logs", params={"limit": 2, "offset": 0}, headers=hdr(admin)).json()
    assert len(body["items"]) == 2
    assert body["page"]["hasMore"] is True
    # world fixture logged CREATE_BATTLE
    assert body["page"]["total"] == 4

    body = client.get("/admin/logs", params={"limit": 1000}, headers=hdr(admin)).json()
    assert body["page"]["limit"] == 200

    with pytest.raises(IntegrityError):
        with get_engine().begin() as conn:
            conn.execute(text("DELETE FROM admin_logs"))
    with pytest.raises(IntegrityError):
        with get_engine().begin() as conn:
            conn.execute(text("UPDATE admin_logs SET action = 'X'"))
    assert count("admin_logs") == 4


def test_sweep_removes_only_old_orphans(client, world):
    admin = world["admin"]
    kept = upload(client, world["erin"], world["battle"]["id"], world["r1"]["id"], b"referenced").json()
    proofs = get_proofs_dir()
    old_orphan = proofs / "proof-ghost-1-dead.mp4"
    old_orphan.write_bytes(b"orphan")
    hour_ago = time.time() - 3600
    os.utime(old_orphan, (hour_ago, hour_ago))
    fresh_orphan = proofs / "proof-ghost-2-beef.mp4"
    fresh_orphan.write_bytes(b"in flight")

    res = client.post("/admin/uploads/sweep", headers=hdr(admin))
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "scannedFiles": 3, "purgedFiles": 1}
    assert proof_files() == sorted([kept["url"].rsplit("/", 1)[1], fresh_orphan.name])


def test_admin_can_list_battles(client, world):
    res = client.get("/admin/battles", headers=hdr(world["admin"]))
    assert res.status_code == 200
    assert res.json()["items"][0]["totalVotes"] == 0


def test_create_battle_mixed_naive_and_aware_times(client, world):
    admin = world["admin"]
    res = client.post(
        "/admin/battles",
        json={"dishName": "Bibimbap", "startsAt": "2026-03-02T00:00:00Z", "endsAt": "2026-03-03T00:00:00"},
        headers=hdr(admin),
    )
    assert res.status_code == 201, res.text
    assert res.json()["endsAt"] == "2026-03-03T00:00:00Z"

    res = client.post(
        "/admin/battles",
        json={"dishName": "Bibimbap", "startsAt": "2026-03-02T00:00:00", "endsAt": "2026-03-01T23:00:00+00:00"},
        headers=hdr(admin),
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_argument"
