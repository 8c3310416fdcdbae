from __future__ import annotations
from datetime import datetime
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fitcomp.models.submission import Submission
from fitcomp.services.scoring import HistoricalContext
from fitcomp.services.time_windows import day_window_utc, week_window_utc


async def _sum_points(session: AsyncSession, *conds) -> float:
    total = await session.scalar(select(func.coalesce(func.sum(Submission.points), 0)).where(*conds))
    return float(total or 0)


async def historical_context(
    session: AsyncSession,
    *,
    competition_id: UUID,
    user_id: str,
    activity_type: str,
    at: datetime,
    tz_name: str,
) -> HistoricalContext:
    """
    Aggregates the scoring engine needs for a workout dated `at`.

    Day and week are the participant's local calendar day and Sunday-aligned week
    containing `at`, keyed on the submission `date` (never `created_at`).
    """
    day_start, day_end = day_window_utc(at, tz_name)
    week_start, week_end = week_window_utc(at, tz_name)
    mine = (Submission.competition_id == competition_id, Submission.user_id == user_id)
    same_activity = Submission.activity_type == activity_type

    points_today = await _sum_points(session, *mine, Submission.date >= day_start, Submission.date < day_end)
    points_week = await _sum_points(
        session, *mine, same_activity, Submission.date >= week_start, Submission.date < week_end
    )
    count_today = await session.scalar(
        select(func.count(Submission.id)).where(
            *mine, same_activity, Submission.date >= day_start, Submission.date < day_end
        )
    )
    return HistoricalContext(
        points_today_all_activities=points_today,
        points_this_week_for_activity=points_week,
        submissions_today_for_activity=int(count_today or 0),
    )


async def competition_submissions(session: AsyncSession, competition_id: UUID) -> list[Submission]:
    return (await session.execute(
        select(Submission).where(Submission.competition_id == competition_id).order_by(Submission.created_at.desc())
    )).scalars().all()
