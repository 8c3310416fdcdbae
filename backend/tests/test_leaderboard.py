from __future__ import annotations
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from fitcomp.services.leaderboard import build_leaderboard, final_rankings, rank

D = datetime(2025, 1, 5, tzinfo=timezone.utc)


def _p(user_id, name):
    return SimpleNamespace(user_id=user_id, display_name=name)


def _sub(user_id, created_at, points):
    return SimpleNamespace(user_id=user_id, created_at=created_at, points=points)


def test_rank_orders_by_points_then_name():
    participants = [_p("u1", "zed"), _p("u2", "Amy"), _p("u3", "bob"), _p("u4", "Cat")]
    rows = rank({"u1": 10, "u2": 5, "u3": 5}, participants, viewer_user_id="u3")
    assert [r.user_id for r in rows] == ["u1", "u2", "u3", "u4"]
    assert [r.position for r in rows] == [1, 2, 3, 4]
    assert rows[3].points == 0
    assert [r.is_current_user for r in rows] == [False, False, True, False]


def test_rank_drops_users_who_left():
    rows = rank({"gone": 50, "u1": 1}, [_p("u1", "Amy")])
    assert [r.user_id for r in rows] == ["u1"]


def test_build_leaderboard_hides_running_cycle_from_others():
    comp = SimpleNamespace(starts_at=D, ends_at=D + timedelta(days=14), leaderboard_update_days=3)
    participants = [_p("a", "Alice"), _p("b", "Bob")]
    subs = [
        _sub("a", D + timedelta(days=1), 10),
        _sub("a", D + timedelta(days=4), 20),
        _sub("b", D + timedelta(days=4, hours=1), 15),
    ]
    now = D + timedelta(days=5)

    as_bob = {r.user_id: r.points for r in build_leaderboard(subs, participants, comp, "b", now)}
    assert as_bob == {"a": 10, "b": 15}

    as_alice = build_leaderboard(subs, participants, comp, "a", now)
    assert [(r.user_id, r.points) for r in as_alice] == [("a", 30), ("b", 0)]

    after = build_leaderboard(subs, participants, comp, "b", comp.ends_at)
    assert [(r.user_id, r.points) for r in after] == [("a", 30), ("b", 15)]


def test_final_rankings():
    subs = [_sub("a", D, 5), _sub("b", D, 12), _sub("a", D, 4), _sub("c", D, 9)]
    assert final_rankings(subs) == [
        {"user_id": "b", "points": 12, "position": 1},
        {"user_id": "a", "points": 9, "position": 2},
        {"user_id": "c", "points": 9, "position": 3},
    ]
    assert final_rankings([]) == []


def test_final_rankings_include_idle_participants():
    subs = [_sub("a", D, 3)]
    participants = [_p("a", "Alice"), _p("z", "Zed"), _p("m", "Max")]
    assert final_rankings(subs, participants) == [
        {"user_id": "a", "points": 3, "position": 1},
        {"user_id": "m", "points": 0, "position": 2},
        {"user_id": "z", "points": 0, "position": 3},
    ]
    assert final_rankings([], [_p("z", "Zed")])[0] == {"user_id": "z", "points": 0, "position": 1}
