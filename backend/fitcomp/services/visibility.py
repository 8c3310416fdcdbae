from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable
from fitcomp.services.time_windows import ensure_utc

DAY = timedelta(days=1)


class VisibilityState(str, Enum):
    LIVE = "live"
    NOT_STARTED = "not_started"
    ENDED = "ended"
    CYCLE_HIDDEN = "cycle_hidden"
    CYCLE_VISIBLE = "cycle_visible"


@dataclass(frozen=True)
class VisibilityStatus:
    state: VisibilityState
    should_show_scores: bool
    is_in_hidden_period: bool
    current_cycle: int | None
    next_reveal_date: datetime | None
    days_until_reveal: int
    days_into_cycle: int | None
    message: str


def _update_days(competition: Any) -> int:
    return int(getattr(competition, "leaderboard_update_days", 0) or 0)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def _cycle_position(start: datetime, now: datetime, update_days: int) -> tuple[int, int]:
    """(current_cycle, days_into_cycle), counting whole elapsed days since `start`."""
    days_since_start = (now - start) // DAY
    return days_since_start // update_days, days_since_start % update_days


def visibility_state(competition: Any, now: datetime) -> VisibilityState:
    update_days = _update_days(competition)
    if update_days == 0:
        return VisibilityState.LIVE
    now = ensure_utc(now)
    start = ensure_utc(competition.starts_at)
    if now < start:
        return VisibilityState.NOT_STARTED
    if now >= ensure_utc(competition.ends_at):
        return VisibilityState.ENDED
    cycle, _ = _cycle_position(start, now, update_days)
    return VisibilityState.CYCLE_VISIBLE if cycle > 0 else VisibilityState.CYCLE_HIDDEN


def compute_visibility(competition: Any, now: datetime) -> VisibilityStatus:
    """
    Where a competition is in its reveal schedule at `now`.

    With `leaderboard_update_days = N > 0` the window is split into N-day cycles from
    `starts_at`. The running cycle is always hidden; scores earned in cycle k are
    revealed when cycle k+1 begins. `should_show_scores` is therefore true only once
    cycle 0 has finished (or the competition is live or over).
    """
    state = visibility_state(competition, now)
    update_days = _update_days(competition)

    if state is VisibilityState.LIVE:
        return VisibilityStatus(state, True, False, None, None, 0, None, "Live updates enabled")
    if state is VisibilityState.ENDED:
        return VisibilityStatus(state, True, False, None, None, 0, None, "Competition ended - all scores visible")

    start = ensure_utc(competition.starts_at)
    end = ensure_utc(competition.ends_at)

    if state is VisibilityState.NOT_STARTED:
        return VisibilityStatus(
            state, False, True, -1, min(start + update_days * DAY, end), update_days, None,
            "Competition not started",
        )

    cycle, days_into_cycle = _cycle_position(start, ensure_utc(now), update_days)
    days_until_reveal = update_days - days_into_cycle
    next_reveal = min(start + (cycle + 1) * update_days * DAY, end)
    if cycle == 0:
        message = f"Scores hidden for {days_until_reveal} more day{'' if days_until_reveal == 1 else 's'}"
    else:
        message = f"Showing scores through cycle {cycle}, next update in {_plural(days_until_reveal, 'day')}"
    return VisibilityStatus(
        state, cycle > 0, True, cycle, next_reveal, days_until_reveal, days_into_cycle, message,
    )


def score_cutoff_date(competition: Any, now: datetime) -> datetime | None:
    """
    Latest `created_at` of another user's submission that may be shown at `now`.

    None means no filtering (live). Ended -> ends_at, not started -> starts_at,
    otherwise the start of the running cycle.
    """
    state = visibility_state(competition, now)
    if state is VisibilityState.LIVE:
        return None
    if state is VisibilityState.ENDED:
        return ensure_utc(competition.ends_at)
    start = ensure_utc(competition.starts_at)
    if state is VisibilityState.NOT_STARTED:
        return start
    cycle, _ = _cycle_position(start, ensure_utc(now), _update_days(competition))
    return start + cycle * _update_days(competition) * DAY


def last_reveal_date(competition: Any, now: datetime) -> datetime | None:
    """Start of the running cycle once at least one cycle has been revealed."""
    state = visibility_state(competition, now)
    if state is not VisibilityState.CYCLE_VISIBLE:
        return None
    return score_cutoff_date(competition, now)


def filter_visible(
    submissions: Iterable[Any],
    competition: Any,
    observer_user_id: str | None,
    now: datetime,
) -> list[Any]:
    """
    Submissions `observer_user_id` may see at `now`.

    The observer's own submissions are always kept. Other users' submissions are kept
    when there is no cutoff or `created_at <= cutoff`. Once the competition has ended
    everything is disclosed. Pass `observer_user_id=None` for the public view.
    """
    submissions = list(submissions)
    if visibility_state(competition, now) is VisibilityState.ENDED:
        return submissions
    cutoff = score_cutoff_date(competition, now)
    if cutoff is None:
        return submissions
    return [
        s for s in submissions
        if (observer_user_id is not None and s.user_id == observer_user_id)
        or ensure_utc(s.created_at) <= cutoff
    ]


def visible_totals(
    submissions: Iterable[Any],
    competition: Any,
    observer_user_id: str | None,
    now: datetime,
) -> dict[str, float]:
    """Per-user sum of `points` over the visible set."""
    totals: dict[str, float] = defaultdict(float)
    for s in filter_visible(submissions, competition, observer_user_id, now):
        totals[s.user_id] += s.points or 0
    return dict(totals)


def visible_points(
    submissions: Iterable[Any],
    competition: Any,
    observer_user_id: str | None,
    now: datetime,
) -> float:
    return sum((s.points or 0) for s in filter_visible(submissions, competition, observer_user_id, now))


def format_time_until_reveal(days_until_reveal: int) -> str:
    if days_until_reveal <= 0:
        return "Revealing soon"
    return f"{_plural(days_until_reveal, 'day')} remaining"


def visibility_message(status: VisibilityStatus) -> str:
    if not status.is_in_hidden_period:
        return status.message
    return f"Scores hidden, {format_time_until_reveal(status.days_until_reveal)}"
