from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import structlog
from fitcomp.db import get_session
from fitcomp.clock import get_now
from fitcomp.auth_deps import get_current_user, CurrentUser
from fitcomp.models.competition import Competition, Participant
from fitcomp.models.submission import Submission
from fitcomp.schemas.competition import CompetitionRule
from fitcomp.schemas.submission import SubmissionCreate, SubmissionPublic, ScorePreview
from fitcomp.routes.competitions import compute_runtime_state, get_competition_or_404, get_participant, rules_of
from fitcomp.services.history import historical_context, competition_submissions
from fitcomp.services.scoring import (
    ScoringError, RuleNotFound, LimitReached, PaceNotMet, InvalidRule,
    HistoricalContext, ScoreResult, find_rule, quantity_for_unit, score,
)
from fitcomp.services.time_windows import ensure_utc
from fitcomp.services.visibility import filter_visible

router = APIRouter(prefix="/competitions/{competition_id}/submissions", tags=["submissions"])
log = structlog.get_logger()

SCORING_ERROR_STATUS = {
    RuleNotFound: 400,
    LimitReached: 409,
    PaceNotMet: 422,
    InvalidRule: 422,
}

@dataclass
class ScoredCandidate:
    competition: Competition
    participant: Participant
    rule: CompetitionRule
    quantity: float
    context: HistoricalContext
    result: ScoreResult

def to_submission_public(s: Submission, viewer_id: str) -> SubmissionPublic:
    return SubmissionPublic(
        id=s.id,
        competition_id=s.competition_id,
        user_id=s.user_id,
        activity_type=s.activity_type,
        unit=s.unit,
        quantity=s.quantity,
        duration=s.duration,
        distance=s.distance,
        calories=s.calories,
        sessions=s.sessions,
        reps=s.reps,
        sets=s.sets,
        steps=s.steps,
        custom_value=s.custom_value,
        pace=s.pace,
        raw_points=s.raw_points,
        points=s.points,
        capped_by=list(s.capped_by or []),
        notes=s.notes,
        date=ensure_utc(s.date),
        created_at=ensure_utc(s.created_at),
        is_mine=(s.user_id == viewer_id),
    )

async def score_candidate(
    session: AsyncSession, competition_id: UUID, user: CurrentUser, payload: SubmissionCreate, now: datetime,
    lock: bool = False,
) -> ScoredCandidate:
    """
    Run every gate and cap for a proposed workout. Raises HTTPException on rejection.

    With `lock`, the participant row stays locked until the caller commits, so the
    history read here is still current when the new submission is inserted.
    """
    ch = await get_competition_or_404(session, competition_id)

    runtime = compute_runtime_state(ch, now)
    if runtime != "started":
        raise HTTPException(status_code=400, detail=f"Submissions closed (status={ch.status}, runtime={runtime})")

    participant = await get_participant(session, ch, user.id, for_update=lock)
    if not participant:
        raise HTTPException(status_code=403, detail="You are not a participant of this competition")

    if not (ensure_utc(ch.starts_at) <= payload.date <= ensure_utc(ch.ends_at)):
        raise HTTPException(status_code=400, detail="Workout date must be within the competition period")

    try:
        rule = find_rule(rules_of(ch), payload.activity_type)
        quantity = quantity_for_unit(rule.unit, payload.measurements())
        ctx = await historical_context(
            session,
            competition_id=ch.id,
            user_id=user.id,
            activity_type=rule.activity_type,
            at=payload.date,
            tz_name=participant.timezone,
        )
        result = score(rule, quantity, ctx, ch.daily_cap, payload.pace)
    except ScoringError as e:
        log.info("submission_rejected", competition_id=str(ch.id), user_id=user.id,
                 activity_type=payload.activity_type, reason=e.code)
        raise HTTPException(status_code=SCORING_ERROR_STATUS.get(type(e), 400), detail={"code": e.code, "message": str(e)})

    return ScoredCandidate(ch, participant, rule, quantity, ctx, result)

@router.post("/preview", response_model=ScorePreview)
async def preview_submission(
    competition_id: UUID,
    payload: SubmissionCreate,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    c = await score_candidate(session, competition_id, user, payload, now)
    daily_cap = c.competition.daily_cap
    return ScorePreview(
        activity_type=c.rule.activity_type,
        unit=c.rule.unit,
        quantity=c.quantity,
        raw_points=c.result.raw_points,
        points=c.result.points,
        capped_by=[stage.value for stage in c.result.capped_by],
        points_today=c.context.points_today_all_activities,
        remaining_daily_points=(
            max(0.0, daily_cap - c.context.points_today_all_activities) if daily_cap is not None else None
        ),
    )

@router.post("", response_model=SubmissionPublic, status_code=201)
async def create_submission(
    competition_id: UUID,
    payload: SubmissionCreate,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    c = await score_candidate(session, competition_id, user, payload, now, lock=True)

    sub = Submission(
        competition_id=c.competition.id,
        user_id=user.id,
        activity_type=c.rule.activity_type,
        unit=c.rule.unit,
        **payload.measurements(),
        pace=payload.pace,
        quantity=c.quantity,
        raw_points=c.result.raw_points,
        points=c.result.points,
        capped_by=[stage.value for stage in c.result.capped_by],
        notes=(payload.notes or "").strip() or None,
        date=payload.date,
        created_at=now,
    )
    session.add(sub)
    await session.commit()
    await session.refresh(sub)

    log.info("submission_scored", competition_id=str(c.competition.id), submission_id=str(sub.id),
             user_id=user.id, activity_type=sub.activity_type, raw_points=sub.raw_points,
             points=sub.points, capped_by=sub.capped_by)
    return to_submission_public(sub, user.id)

@router.get("", response_model=list[SubmissionPublic])
async def list_submissions(
    competition_id: UUID,
    mine: int = Query(default=0, ge=0, le=1),
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    ch = await get_competition_or_404(session, competition_id)
    part = await get_participant(session, ch, user.id)
    if not (part or ch.owner_id == user.id):
        raise HTTPException(status_code=403, detail="Not a participant")

    if mine == 1:
        rows = (await session.execute(
            select(Submission)
            .where(Submission.competition_id == ch.id, Submission.user_id == user.id)
            .order_by(Submission.created_at.desc())
        )).scalars().all()
    else:
        rows = filter_visible(await competition_submissions(session, ch.id), ch, user.id, now)
    return [to_submission_public(s, user.id) for s in rows]

@router.delete("/{submission_id}", status_code=204)
async def delete_submission(
    competition_id: UUID,
    submission_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    sub = await session.scalar(
        select(Submission).where(Submission.id == submission_id, Submission.competition_id == competition_id)
    )
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    if sub.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can delete a submission")
    await session.delete(sub)
    await session.commit()
    log.info("submission_deleted", competition_id=str(competition_id), submission_id=str(submission_id), user_id=user.id)
    return Response(status_code=204)
