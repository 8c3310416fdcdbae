from __future__ import annotations
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from fitcomp.models.user_stats import UserStats


async def record_results(session: AsyncSession, rankings: list[dict], now: datetime) -> None:
    """Position 1 wins, everyone else ranked loses; every ranked user gets one more total. Caller commits."""
    for row in rankings:
        stats = await session.get(UserStats, row["user_id"], with_for_update=True)
        if stats is None:
            stats = UserStats(user_id=row["user_id"], wins=0, losses=0, totals=0)
            session.add(stats)
            await session.flush()
        if row["position"] == 1:
            stats.wins += 1
        else:
            stats.losses += 1
        stats.totals += 1
        stats.updated_at = now


async def get_stats(session: AsyncSession, user_id: str) -> UserStats:
    stats = await session.get(UserStats, user_id)
    return stats or UserStats(user_id=user_id, wins=0, losses=0, totals=0)
