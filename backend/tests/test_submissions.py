from __future__ import annotations
from datetime import datetime, timedelta, timezone
import pytest

START = datetime(2025, 1, 5, tzinfo=timezone.utc)  # matches the frozen clock

RUNNING = {"activity_type": "Running", "unit": "Kilometre", "points_per_unit": 3, "units_per_point": 1}


async def _competition(client, auth, rules=None, **kw):
    """Alice owns a two-week competition; Bob has joined it."""
    payload = {
        "name": "Scoring Test",
        "starts_at": START.isoformat(),
        "ends_at": (START + timedelta(days=14)).isoformat(),
        "rules": rules or [RUNNING],
    }
    payload.update(kw)
    r = await client.post("/competitions", headers=auth("alice"), json=payload)
    assert r.status_code == 201, r.text
    ch = r.json()
    r = await client.post(f"/competitions/{ch['id']}/join", headers=auth("bob"))
    assert r.status_code == 201, r.text
    return ch["id"]


def _entry(activity="Running", at=None, **measurements):
    return {"activity_type": activity, "date": (at or START + timedelta(hours=2)).isoformat(), **measurements}


async def _submit(client, hdrs, cid, **kw):
    return await client.post(f"/competitions/{cid}/submissions", headers=hdrs, json=_entry(**kw))


@pytest.mark.asyncio
async def test_submission_is_scored_and_stored(client, auth):
    cid = await _competition(client, auth)
    r = await _submit(client, auth("bob"), cid, distance=5.5, notes="  easy run ")
    assert r.status_code == 201, r.text
    s = r.json()
    assert s["quantity"] == 5.5
    assert s["raw_points"] == 15
    assert s["points"] == 15
    assert s["capped_by"] == []
    assert s["is_mine"] is True
    assert s["notes"] == "easy run"

    mine = (await client.get(f"/competitions/{cid}/submissions?mine=1", headers=auth("bob"))).json()
    assert [m["id"] for m in mine] == [s["id"]]


@pytest.mark.asyncio
async def test_hours_are_derived_from_minutes(client, auth):
    yoga = {"activity_type": "Yoga", "unit": "Hour", "points_per_unit": 10, "units_per_point": 1}
    cid = await _competition(client, auth, rules=[yoga])
    s = (await _submit(client, auth("bob"), cid, activity="Yoga", duration=90)).json()
    assert s["quantity"] == 1.5
    assert s["points"] == 10


@pytest.mark.asyncio
async def test_daily_cap_across_submissions(client, auth):
    cid = await _competition(client, auth, daily_cap=20)
    bob = auth("bob")
    assert (await _submit(client, bob, cid, distance=5)).json()["points"] == 15

    second = (await _submit(client, bob, cid, distance=5, at=START + timedelta(hours=5))).json()
    assert second["raw_points"] == 15
    assert second["points"] == 5
    assert second["capped_by"] == ["daily_cap"]

    third = await _submit(client, bob, cid, distance=5, at=START + timedelta(hours=8))
    assert third.status_code == 201
    assert third.json()["points"] == 0

    next_day = (await _submit(client, bob, cid, distance=5, at=START + timedelta(days=1, hours=2))).json()
    assert next_day["points"] == 15
    assert next_day["capped_by"] == []


@pytest.mark.asyncio
async def test_weekly_cap_uses_participant_week(client, auth, clock):
    cycling = {"activity_type": "Cycling", "unit": "Kilometre", "points_per_unit": 1, "units_per_point": 1,
               "max_points_per_week": 10}
    cid = await _competition(client, auth, rules=[cycling])
    ny = auth("bob", tz="America/New_York")
    await client.post(f"/competitions/{cid}/join", headers=ny)
    clock.now = datetime(2025, 1, 12, 18, tzinfo=timezone.utc)

    # Saturday evening in New York, already Sunday in UTC
    sat = await _submit(client, ny, cid, activity="Cycling", distance=8, at=datetime(2025, 1, 12, 1, tzinfo=timezone.utc))
    assert sat.json()["points"] == 8

    sun = await _submit(client, ny, cid, activity="Cycling", distance=8, at=datetime(2025, 1, 12, 15, tzinfo=timezone.utc))
    assert sun.json()["points"] == 8
    assert sun.json()["capped_by"] == []

    again = await _submit(client, ny, cid, activity="Cycling", distance=8, at=datetime(2025, 1, 12, 16, tzinfo=timezone.utc))
    assert again.json()["points"] == 2
    assert again.json()["capped_by"] == ["max_points_per_week"]


@pytest.mark.asyncio
async def test_daily_submission_limit(client, auth):
    limited = dict(RUNNING, max_submissions_per_day=1)
    cid = await _competition(client, auth, rules=[limited])
    bob = auth("bob")
    assert (await _submit(client, bob, cid, distance=3)).status_code == 201

    r = await _submit(client, bob, cid, distance=3, at=START + timedelta(hours=6))
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "limit_reached"

    mine = (await client.get(f"/competitions/{cid}/submissions?mine=1", headers=bob)).json()
    assert len(mine) == 1


@pytest.mark.asyncio
async def test_minimum_pace(client, auth):
    paced = dict(RUNNING, min_pace=6, pace_unit="min/km")
    cid = await _competition(client, auth, rules=[paced])
    bob = auth("bob")

    r = await _submit(client, bob, cid, distance=5, pace=7)
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "pace_not_met"

    r = await _submit(client, bob, cid, distance=5)
    assert r.status_code == 422

    r = await _submit(client, bob, cid, distance=5, pace=5)
    assert r.status_code == 201
    assert r.json()["points"] == 15


@pytest.mark.asyncio
async def test_rejections(client, auth, clock):
    cid = await _competition(client, auth)
    bob = auth("bob")

    r = await _submit(client, bob, cid, activity="Swimming", distance=1)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "rule_not_found"

    r = await _submit(client, auth("carol"), cid, distance=1)
    assert r.status_code == 403

    r = await _submit(client, bob, cid, distance=1, at=START + timedelta(days=15))
    assert r.status_code == 400

    clock.now = START + timedelta(days=14)
    r = await _submit(client, bob, cid, distance=1, at=START + timedelta(days=13))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_submissions_closed_before_start(client, auth, clock):
    payload_start = START + timedelta(days=1)
    r = await client.post("/competitions", headers=auth("alice"), json={
        "name": "Starts Tomorrow",
        "starts_at": payload_start.isoformat(),
        "ends_at": (payload_start + timedelta(days=7)).isoformat(),
        "rules": [RUNNING],
    })
    ch = r.json()
    assert ch["runtime_state"] == "upcoming"
    r = await _submit(client, auth("alice"), ch["id"], distance=1, at=payload_start + timedelta(hours=1))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_preview_does_not_persist(client, auth):
    cid = await _competition(client, auth, daily_cap=20)
    bob = auth("bob")
    await _submit(client, bob, cid, distance=4)

    r = await client.post(f"/competitions/{cid}/submissions/preview", headers=bob, json=_entry(distance=5))
    assert r.status_code == 200, r.text
    p = r.json()
    assert p["raw_points"] == 15
    assert p["points"] == 8
    assert p["capped_by"] == ["daily_cap"]
    assert p["points_today"] == 12
    assert p["remaining_daily_points"] == 8

    mine = (await client.get(f"/competitions/{cid}/submissions?mine=1", headers=bob)).json()
    assert len(mine) == 1


@pytest.mark.asyncio
async def test_hidden_cycle_leaderboard(client, auth, clock):
    cid = await _competition(client, auth, leaderboard_update_days=3)
    alice, bob = auth("alice"), auth("bob")

    clock.now = START + timedelta(days=1)
    assert (await _submit(client, alice, cid, distance=5, at=clock.now)).status_code == 201
    assert (await _submit(client, bob, cid, distance=2, at=clock.now)).status_code == 201

    clock.now = START + timedelta(days=2)
    board = (await client.get(f"/competitions/{cid}/leaderboard", headers=bob)).json()
    assert [(r["user_id"], r["points"], r["is_current_user"]) for r in board] == [("bob", 6, True), ("alice", 0, False)]
    feed = (await client.get(f"/competitions/{cid}/submissions", headers=bob)).json()
    assert [s["user_id"] for s in feed] == ["bob"]

    board = (await client.get(f"/competitions/{cid}/leaderboard", headers=alice)).json()
    assert [(r["user_id"], r["points"]) for r in board] == [("alice", 15), ("bob", 0)]

    clock.now = START + timedelta(days=3)
    board = (await client.get(f"/competitions/{cid}/leaderboard", headers=bob)).json()
    assert [(r["user_id"], r["points"], r["position"]) for r in board] == [("alice", 15, 1), ("bob", 6, 2)]
    feed = (await client.get(f"/competitions/{cid}/submissions", headers=bob)).json()
    assert {s["user_id"] for s in feed} == {"alice", "bob"}

    r = await client.get(f"/competitions/{cid}/leaderboard", headers=auth("carol"))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_delete_submission(client, auth):
    cid = await _competition(client, auth)
    s = (await _submit(client, auth("alice"), cid, distance=2)).json()

    r = await client.delete(f"/competitions/{cid}/submissions/{s['id']}", headers=auth("bob"))
    assert r.status_code == 403

    r = await client.delete(f"/competitions/{cid}/submissions/{s['id']}", headers=auth("alice"))
    assert r.status_code == 204

    r = await client.delete(f"/competitions/{cid}/submissions/{s['id']}", headers=auth("alice"))
    assert r.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("measurements", [
    {"distance": 1e308},
    {"distance": 2_000_000},
    {"distance": -1},
    {"steps": 1e300},
    {"distance": 5, "pace": -1},
    {"distance": 5, "pace": 1e308},
])
async def test_out_of_range_measurements_are_rejected(client, auth, measurements):
    cid = await _competition(client, auth)
    r = await _submit(client, auth("bob"), cid, **measurements)
    assert r.status_code == 422, r.text
    r = await client.post(f"/competitions/{cid}/submissions/preview", headers=auth("bob"), json=_entry(**measurements))
    assert r.status_code == 422

    assert (await client.get(f"/competitions/{cid}/submissions", headers=auth("bob"))).json() == []


@pytest.mark.asyncio
async def test_largest_measurement_scores_a_finite_total(client, auth):
    cid = await _competition(client, auth)
    r = await _submit(client, auth("bob"), cid, distance=1_000_000)
    assert r.status_code == 201, r.text
    assert r.json()["points"] == 3_000_000


@pytest.mark.asyncio
async def test_submission_locks_participant_row_until_commit(client, auth):
    from sqlalchemy import event
    from sqlalchemy.dialects import postgresql
    from sqlalchemy.orm import Session

    cid = await _competition(client, auth)
    seen: list[str] = []

    def capture(state):
        if state.is_select:
            seen.append(str(state.statement.compile(dialect=postgresql.dialect())))

    def participant_reads():
        return [q for q in seen if "FROM participants" in q]

    event.listen(Session, "do_orm_execute", capture)
    try:
        r = await client.post(f"/competitions/{cid}/submissions/preview", headers=auth("bob"), json=_entry(distance=2))
        assert r.status_code == 200, r.text
        assert participant_reads()
        assert not any("FOR UPDATE" in q for q in participant_reads())

        seen.clear()
        assert (await _submit(client, auth("bob"), cid, distance=2)).status_code == 201
        assert any("FOR UPDATE" in q for q in participant_reads())
    finally:
        event.remove(Session, "do_orm_execute", capture)
