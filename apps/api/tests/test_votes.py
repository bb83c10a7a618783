from __future__ import annotations

import random
import threading

from sqlalchemy import text

from conftest import count, hdr, make_media, upload
from cookoff.core.db import get_engine
from cookoff.core.errors import ApiError
from cookoff.modules.battles.service import set_battle_status
from cookoff.modules.votes.service import cast_vote


def _vote_rows(battle_id, user_id):
    with get_engine().connect() as conn:
        return conn.execute(
            text("SELECT * FROM battle_votes WHERE battle_id = :b AND user_id = :u"),
            {"b": battle_id, "u": user_id},
        ).mappings().all()


def test_high_level_voter_is_auto_approved(client, world):
    bob = world["bob"]
    res = upload(client, bob, world["battle"]["id"], world["r2"]["id"], b"bob-cooking-session-1")
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["autoApproved"] is True
    assert body["requiresVerification"] is False
    assert body["vote"]["verified"] is True
    assert body["vote"]["proofVerifiedAt"] is not None
    assert body["vote"]["proofMediaId"] == body["mediaId"]


def test_resubmission_replaces_the_single_vote(client, world):
    battle_id = world["battle"]["id"]
    bob = world["bob"]
    first = upload(client, bob, battle_id, world["r2"]["id"], b"clip-d1").json()
    second = upload(client, bob, battle_id, world["r1"]["id"], b"clip-d2").json()

    rows = _vote_rows(battle_id, bob["id"])
    assert len(rows) == 1
    assert rows[0]["recipe_id"] == world["r1"]["id"]
    assert rows[0]["proof_media_id"] == second["mediaId"]
    # the superseded proof stays in media, unreferenced
    assert count("media", "id = :id", id=first["mediaId"]) == 1
    assert count("battle_votes", "proof_media_id = :id", id=first["mediaId"]) == 0


def test_vote_endpoint_with_existing_media(client, world, clock):
    erin = world["erin"]
    media_id = make_media(erin, clock.now())
    res = client.post(
        f"/battles/{world['battle']['id']}/vote",
        json={"recipeId": world["r1"]["id"], "proofMediaId": media_id, "notes": "great broth"},
        headers=hdr(erin),
    )
    assert res.status_code == 201, res.text
    vote = res.json()
    assert vote["verified"] is False
    assert vote["notes"] == "great broth"
    assert vote["userId"] == erin["id"]


def test_ended_battle_rejects_votes_regardless_of_stored_status(client, world, clock):
    battle_id = world["battle"]["id"]
    set_battle_status(battle_id, "active", admin_id=world["admin"]["id"], now=clock.now())
    media_id = make_media(world["bob"], clock.now())

    clock.advance(hours=1, seconds=1)
    res = client.post(
        f"/battles/{battle_id}/vote",
        json={"recipeId": world["r1"]["id"], "proofMediaId": media_id},
        headers=hdr(world["bob"]),
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_state"
    assert count("battle_votes") == 0


def test_vote_gates(client, world, clock):
    battle_id = world["battle"]["id"]
    bob = world["bob"]
    own = make_media(bob, clock.now(), "own")
    foreign = make_media(world["erin"], clock.now(), "foreign")
    url = f"/battles/{battle_id}/vote"

    res = client.post("/battles/missing/vote", json={"recipeId": world["r1"]["id"], "proofMediaId": own}, headers=hdr(bob))
    assert res.status_code == 404

    res = client.post(url, json={"recipeId": "not-entered", "proofMediaId": own}, headers=hdr(bob))
    assert res.status_code == 400 and res.json()["error"] == "invalid_state"

    res = client.post(url, json={"recipeId": world["r1"]["id"]}, headers=hdr(bob))
    assert res.status_code == 400 and res.json()["error"] == "invalid_argument"

    res = client.post(url, json={"recipeId": world["r1"]["id"], "proofMediaId": foreign}, headers=hdr(bob))
    assert res.status_code == 400 and res.json()["error"] == "invalid_argument"

    res = client.post(url, json={"recipeId": world["r1"]["id"], "proofMediaId": own})
    assert res.status_code == 401

    assert count("battle_votes") == 0


def test_upcoming_battle_rejects_votes(client, world, clock):
    clock.set(world["now"].replace(hour=10))
    media_id = make_media(world["bob"], clock.now())
    res = client.post(
        f"/battles/{world['battle']['id']}/vote",
        json={"recipeId": world["r1"]["id"], "proofMediaId": media_id},
        headers=hdr(world["bob"]),
    )
    assert res.status_code == 400
    assert "not active" in res.json()["message"]


def test_self_vote_is_forbidden(client, world, clock):
    alice = world["alice"]
    media_id = make_media(alice, clock.now())
    res = client.post(
        f"/battles/{world['battle']['id']}/vote",
        json={"recipeId": world["r1"]["id"], "proofMediaId": media_id},
        headers=hdr(alice),
    )
    assert res.status_code == 403
    assert res.json()["error"] == "forbidden"


def test_no_successful_vote_targets_own_recipe(world, clock):
    now = clock.now()
    battle_id = world["battle"]["id"]
    voters = [world[k] for k in ("alice", "carol", "bob", "erin")]
    recipes = [world["r1"], world["r2"]]
    media = {u["id"]: make_media(u, now, u["id"]) for u in voters}
    rng = random.Random(42)

    for _ in range(60):
        voter = rng.choice(voters)
        recipe = rng.choice(recipes)
        try:
            vote = cast_vote(battle_id, voter["id"], recipe["id"], media[voter["id"]], None, now)
        except ApiError as e:
            assert recipe["author_id"] == voter["id"]
            assert e.status_code == 403
            continue
        assert vote["recipe_id"] == recipe["id"]
        assert recipe["author_id"] != voter["id"]

    with get_engine().connect() as conn:
        self_votes = conn.execute(
            text("SELECT COUNT(1) FROM battle_votes v JOIN recipes r ON r.id = v.recipe_id WHERE r.author_id = v.user_id")
        ).scalar_one()
    assert self_votes == 0


def test_concurrent_submissions_leave_one_row(world, clock):
    now = clock.now()
    battle_id = world["battle"]["id"]
    bob = world["bob"]
    media_ids = [make_media(bob, now, f"c{i}") for i in range(8)]
    recipes = [world["r1"]["id"], world["r2"]["id"]]
    errors = []

    def submit(i):
        try:
            cast_vote(battle_id, bob["id"], recipes[i % 2], media_ids[i], f"attempt {i}", now)
        except Exception as e:  # collected and asserted below
            errors.append(e)

    threads = [threading.Thread(target=submit, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    rows = _vote_rows(battle_id, bob["id"])
    assert len(rows) == 1
    i = media_ids.index(rows[0]["proof_media_id"])
    assert rows[0]["recipe_id"] == recipes[i % 2]
    assert rows[0]["notes"] == f"attempt {i}"


def test_cast_vote_returns_the_stored_row(world, clock):
    now = clock.now()
    battle_id = world["battle"]["id"]
    erin = world["erin"]
    media_id = make_media(erin, now)

    vote = cast_vote(battle_id, erin["id"], world["r2"]["id"], media_id, "with chili oil", now)
    rows = _vote_rows(battle_id, erin["id"])
    assert len(rows) == 1
    assert vote == {**dict(rows[0]), "verified": False}
    assert vote["notes"] == "with chili oil"
