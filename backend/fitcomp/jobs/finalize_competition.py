from __future__ import annotations
import asyncio
from datetime import datetime, timezone as dt_tz
from uuid import UUID
import structlog
from redis import Redis
from rq import Queue
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from fitcomp.config import settings
from fitcomp.db import SessionLocal
from fitcomp.models.competition import Competition, Participant
from fitcomp.services.history import competition_submissions
from fitcomp.services.leaderboard import final_rankings
from fitcomp.services.user_stats import record_results

log = structlog.get_logger()

_queue: Queue | None = None

def get_queue() -> Queue:
    # Lazy so importing the API never opens a Redis connection
    global _queue
    if _queue is None:
        _queue = Queue("default", connection=Redis.from_url(settings.redis_url))
    return _queue

def enqueue_finalize(competition_id: str):
    return get_queue().enqueue(finalize_competition, competition_id, job_timeout=60)

async def finalize(session: AsyncSession, ch: Competition, now: datetime) -> list[dict]:
    """
    Mark `ch` completed, store its unfiltered final rankings and update every ranked
    user's win/loss record. Runs once per competition. Caller commits.
    """
    if ch.finalized_at is not None:
        log.info("competition_already_finalized", competition_id=str(ch.id))
        return list(ch.final_rankings or [])

    participants = (await session.execute(
        select(Participant).where(Participant.competition_id == ch.id)
    )).scalars().all()
    rankings = final_rankings(await competition_submissions(session, ch.id), participants)
    ch.status = "completed"
    ch.completed_at = ch.completed_at or now
    ch.finalized_at = now
    ch.final_rankings = rankings
    if rankings:
        ch.winner_id = rankings[0]["user_id"]
        ch.winner_points = rankings[0]["points"]
    await record_results(session, rankings, now)
    log.info("competition_finalized", competition_id=str(ch.id), winner_id=ch.winner_id,
             winner_points=ch.winner_points, ranked=len(rankings))
    return rankings

async def expired_competitions(session: AsyncSession, now: datetime) -> list[Competition]:
    """Past their end and still active, or completed by hand without finalisation."""
    return (await session.execute(
        select(Competition).where(
            Competition.finalized_at.is_(None),
            or_(Competition.ends_at <= now, Competition.status == "completed"),
        )
    )).scalars().all()

async def _run(competition_id: str):
    async with SessionLocal() as session:
        ch = await session.get(Competition, UUID(competition_id), with_for_update=True)
        if not ch:
            log.warning("finalize_missing_competition", competition_id=competition_id)
            return
        await finalize(session, ch, datetime.now(dt_tz.utc))
        await session.commit()

async def _run_expired():
    now = datetime.now(dt_tz.utc)
    async with SessionLocal() as session:
        rows = await expired_competitions(session, now)
        for ch in rows:
            await finalize(session, ch, now)
        await session.commit()
    log.info("expired_competitions_completed", count=len(rows))

def finalize_competition(competition_id: str):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_run(competition_id))

def complete_expired_competitions():
    # Scheduled hourly (rq-scheduler / cron) in deployment
    asyncio.run(_run_expired())
