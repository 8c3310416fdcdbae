from __future__ import annotations
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from fastapi import APIRouter, Depends, HTTPException, Header, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, exists, delete
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
import structlog
from fitcomp.db import get_session
from fitcomp.clock import get_now
from fitcomp.config import settings
from fitcomp.auth_deps import get_current_user, CurrentUser
from fitcomp.models.competition import Competition, Participant
from fitcomp.models.submission import Submission
from fitcomp.schemas.competition import (
    CompetitionCreate, CompetitionPublic, CompetitionRule, ParticipantPublic,
    FromPresetRequest, PresetPublic, VisibilityPublic,
)
from fitcomp.schemas.submission import LeaderboardRow
from fitcomp.services.history import competition_submissions
from fitcomp.services.leaderboard import build_leaderboard
from fitcomp.services.presets import list_presets, build_from_preset, PresetNotFound
from fitcomp.services.time_windows import ensure_utc
from fitcomp.services.visibility import compute_visibility, score_cutoff_date, last_reveal_date
from fitcomp.jobs.finalize_competition import enqueue_finalize

router = APIRouter(prefix="/competitions", tags=["competitions"])
log = structlog.get_logger()

def compute_runtime_state(ch: Competition, now: datetime) -> str:
    if ch.status == "completed":
        return "completed"
    if now < ensure_utc(ch.starts_at):
        return "upcoming"
    if now < ensure_utc(ch.ends_at):
        return "started"
    return "ended"

def rules_of(ch: Competition) -> list[CompetitionRule]:
    return [CompetitionRule.model_validate(r) for r in (ch.rules_json or [])]

def resolve_timezone(tz: str | None) -> str:
    tz = (tz or "").strip() or settings.default_timezone
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=422, detail=f"Unknown timezone '{tz}'")
    return tz

async def get_competition_or_404(session: AsyncSession, competition_id: UUID) -> Competition:
    ch = await session.get(Competition, competition_id)
    if not ch:
        raise HTTPException(status_code=404, detail="Competition not found")
    return ch

async def get_participant(
    session: AsyncSession, ch: Competition, user_id: str, for_update: bool = False,
) -> Participant | None:
    q = select(Participant).where(Participant.competition_id == ch.id, Participant.user_id == user_id)
    if for_update:
        # Held until the caller commits
        q = q.with_for_update()
    return await session.scalar(q)

async def hydrate_public(session: AsyncSession, ch: Competition, user_id: str, now: datetime) -> CompetitionPublic:
    participant_count = await session.scalar(
        select(func.count()).select_from(Participant).where(Participant.competition_id == ch.id)
    )
    is_participant = await session.scalar(
        select(exists().where(Participant.competition_id == ch.id, Participant.user_id == user_id))
    )
    return CompetitionPublic(
        id=ch.id, owner_id=ch.owner_id, name=ch.name, description=ch.description,
        starts_at=ensure_utc(ch.starts_at), ends_at=ensure_utc(ch.ends_at),
        daily_cap=ch.daily_cap, leaderboard_update_days=ch.leaderboard_update_days,
        photo_proof_required=ch.photo_proof_required,
        rules=rules_of(ch),
        status=ch.status, created_at=ensure_utc(ch.created_at),
        participant_count=int(participant_count or 0),
        is_owner=(ch.owner_id == user_id),
        is_participant=bool(is_participant),
        runtime_state=compute_runtime_state(ch, now),
        winner_id=ch.winner_id,
        winner_points=ch.winner_points,
    )

async def _create(session: AsyncSession, data: CompetitionCreate, user: CurrentUser, tz: str, now: datetime) -> CompetitionPublic:
    ch = Competition(
        owner_id=user.id,
        name=data.name.strip(),
        description=(data.description or "").strip() or None,
        starts_at=data.starts_at,
        ends_at=data.ends_at,
        daily_cap=data.daily_cap,
        leaderboard_update_days=data.leaderboard_update_days,
        photo_proof_required=data.photo_proof_required,
        rules_json=[r.model_dump(mode="json") for r in data.rules],
        status="active",
        created_at=now,
    )
    session.add(ch)
    await session.flush()  # get ch.id without commit

    # Owner becomes participant #1
    session.add(Participant(competition_id=ch.id, user_id=user.id, display_name=user.display_name, timezone=tz, joined_at=now))
    await session.commit()
    await session.refresh(ch)
    log.info("competition_created", competition_id=str(ch.id), owner_id=user.id,
             rules=len(data.rules), leaderboard_update_days=data.leaderboard_update_days)
    return await hydrate_public(session, ch, user.id, now)

@router.get("/presets", response_model=list[PresetPublic])
async def presets():
    return list_presets()

@router.post("", response_model=CompetitionPublic, status_code=201)
async def create_competition(
    payload: CompetitionCreate,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
    x_client_tz: str | None = Header(default=None, alias="X-Client-Timezone"),
):
    return await _create(session, payload, user, resolve_timezone(x_client_tz), now)

@router.post("/from-preset", response_model=CompetitionPublic, status_code=201)
async def create_from_preset(
    payload: FromPresetRequest,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
    x_client_tz: str | None = Header(default=None, alias="X-Client-Timezone"),
):
    try:
        data = build_from_preset(
            payload.preset_id, payload.starts_at, name=payload.name,
            leaderboard_update_days=payload.leaderboard_update_days,
        )
    except PresetNotFound:
        raise HTTPException(status_code=404, detail=f"Unknown preset '{payload.preset_id}'")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid competition data: {e.errors(include_url=False)}")
    return await _create(session, data, user, resolve_timezone(x_client_tz), now)

@router.get("/mine", response_model=list[CompetitionPublic])
async def list_my_competitions(
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    q = select(Competition).where(Competition.owner_id == user.id).order_by(Competition.created_at.desc())
    rows = (await session.execute(q)).scalars().all()
    return [await hydrate_public(session, c, user.id, now) for c in rows]

@router.get("/joined", response_model=list[CompetitionPublic])
async def list_joined(
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    q = (
        select(Competition)
        .join(Participant, Participant.competition_id == Competition.id)
        .where(Participant.user_id == user.id)
        .order_by(Competition.created_at.desc())
    )
    rows = (await session.execute(q)).scalars().all()
    return [await hydrate_public(session, c, user.id, now) for c in rows]

@router.get("/{competition_id}", response_model=CompetitionPublic)
async def get_competition(
    competition_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    ch = await get_competition_or_404(session, competition_id)
    return await hydrate_public(session, ch, user.id, now)

@router.post("/{competition_id}/join", response_model=ParticipantPublic, status_code=201)
async def join_competition(
    competition_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
    x_client_tz: str | None = Header(default=None, alias="X-Client-Timezone"),
):
    ch = await get_competition_or_404(session, competition_id)
    runtime = compute_runtime_state(ch, now)
    if runtime in ("ended", "completed"):
        raise HTTPException(status_code=400, detail=f"Competition is {runtime}; joining is closed")

    p = await get_participant(session, ch, user.id)
    if p:
        # Rejoin only refreshes the timezone
        if x_client_tz:
            p.timezone = resolve_timezone(x_client_tz)
            await session.commit()
            await session.refresh(p)
    else:
        p = Participant(
            competition_id=ch.id, user_id=user.id, display_name=user.display_name,
            timezone=resolve_timezone(x_client_tz), joined_at=now,
        )
        session.add(p)
        try:
            await session.commit()
            await session.refresh(p)
            log.info("participant_joined", competition_id=str(ch.id), user_id=user.id)
        except IntegrityError:
            # A concurrent join for the same user won the unique constraint
            await session.rollback()
            p = await session.scalar(
                select(Participant).where(Participant.competition_id == competition_id, Participant.user_id == user.id)
            )
            if not p:
                raise HTTPException(status_code=409, detail="Could not join competition, try again")
            log.info("participant_join_raced", competition_id=str(competition_id), user_id=user.id)
    return ParticipantPublic(
        id=p.id, competition_id=p.competition_id, user_id=p.user_id,
        display_name=p.display_name, joined_at=ensure_utc(p.joined_at), timezone=p.timezone,
    )

@router.post("/{competition_id}/leave", status_code=204)
async def leave_competition(
    competition_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    ch = await get_competition_or_404(session, competition_id)
    if ch.owner_id == user.id:
        raise HTTPException(status_code=409, detail="The owner cannot leave their own competition")
    p = await get_participant(session, ch, user.id)
    if not p:
        raise HTTPException(status_code=403, detail="Not a participant")

    # Leaving removes the user's workouts from every leaderboard
    result = await session.execute(
        delete(Submission).where(Submission.competition_id == ch.id, Submission.user_id == user.id)
    )
    await session.delete(p)
    await session.commit()
    log.info("participant_left", competition_id=str(ch.id), user_id=user.id, submissions_deleted=result.rowcount)
    return Response(status_code=204)

@router.get("/{competition_id}/visibility", response_model=VisibilityPublic)
async def competition_visibility(
    competition_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    ch = await get_competition_or_404(session, competition_id)
    status = compute_visibility(ch, now)
    return VisibilityPublic(
        state=status.state.value,
        should_show_scores=status.should_show_scores,
        is_in_hidden_period=status.is_in_hidden_period,
        current_cycle=status.current_cycle,
        next_reveal_date=status.next_reveal_date,
        last_reveal_date=last_reveal_date(ch, now),
        days_until_reveal=status.days_until_reveal,
        cutoff_date=score_cutoff_date(ch, now),
        message=status.message,
    )

@router.get("/{competition_id}/leaderboard", response_model=list[LeaderboardRow])
async def leaderboard(
    competition_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    ch = await get_competition_or_404(session, competition_id)
    viewer = await get_participant(session, ch, user.id)
    if not (viewer or user.id == ch.owner_id):
        raise HTTPException(status_code=403, detail="Not a participant")

    participants = (await session.execute(
        select(Participant).where(Participant.competition_id == ch.id).order_by(Participant.joined_at.asc())
    )).scalars().all()
    submissions = await competition_submissions(session, ch.id)
    return build_leaderboard(submissions, participants, ch, user.id, now)

@router.post("/{competition_id}/complete", response_model=CompetitionPublic)
async def complete_competition(
    competition_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    ch = await get_competition_or_404(session, competition_id)
    if ch.owner_id != user.id:
        raise HTTPException(status_code=403, detail="Only the competition owner can complete it")
    if ch.status == "completed":
        raise HTTPException(status_code=409, detail="Competition is already completed")

    ch.status = "completed"
    ch.completed_at = now
    await session.commit()
    await session.refresh(ch)
    log.info("competition_completed", competition_id=str(ch.id), by=user.id, manual=True)

    # Rankings are written by the worker; the status change above already stops new submissions
    try:
        enqueue_finalize(str(ch.id))
    except Exception as e:
        log.warning("finalize_enqueue_failed", competition_id=str(ch.id), error=str(e))
    return await hydrate_public(session, ch, user.id, now)
