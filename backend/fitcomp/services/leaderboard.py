from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable
from fitcomp.schemas.submission import LeaderboardRow
from fitcomp.services.visibility import visible_totals


def rank(totals: dict[str, float], participants: Iterable[Any], viewer_user_id: str | None = None) -> list[LeaderboardRow]:
    """
    Order participants by points (desc). Everyone in `participants` gets a row, with 0
    when they have nothing visible; users with points but no participant record (left
    the competition) are dropped. Ties fall back to display name, then user id.
    """
    rows = [
        (p.user_id, p.display_name, float(totals.get(p.user_id, 0)))
        for p in participants
    ]
    rows.sort(key=lambda r: (-r[2], r[1].lower(), r[0]))
    return [
        LeaderboardRow(
            user_id=uid, display_name=name, points=pts, position=i + 1,
            is_current_user=(uid == viewer_user_id),
        )
        for i, (uid, name, pts) in enumerate(rows)
    ]


def build_leaderboard(
    submissions: Iterable[Any],
    participants: Iterable[Any],
    competition: Any,
    viewer_user_id: str,
    now: datetime,
) -> list[LeaderboardRow]:
    """Leaderboard as `viewer_user_id` sees it: hidden cycles excluded, own points included."""
    return rank(visible_totals(submissions, competition, viewer_user_id, now), participants, viewer_user_id)


def final_rankings(submissions: Iterable[Any], participants: Iterable[Any] = ()) -> list[dict]:
    """
    Unfiltered totals for a finished competition, best first.

    Every participant is ranked, with 0 points if they never submitted; ties fall
    back to user id. Returns [{"user_id", "points", "position"}, ...].
    """
    totals: dict[str, float] = defaultdict(float)
    for p in participants:
        totals[p.user_id] += 0
    for s in submissions:
        totals[s.user_id] += s.points or 0
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return [
        {"user_id": uid, "points": pts, "position": i + 1}
        for i, (uid, pts) in enumerate(ordered)
    ]
