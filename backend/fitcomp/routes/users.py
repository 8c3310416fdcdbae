from __future__ import annotations
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from fitcomp.db import get_session
from fitcomp.auth_deps import get_current_user, CurrentUser
from fitcomp.schemas.user_stats import UserStatsPublic
from fitcomp.services.user_stats import get_stats

router = APIRouter(prefix="/users", tags=["users"])

@router.get("/me/stats", response_model=UserStatsPublic)
async def my_stats(
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    s = await get_stats(session, user.id)
    return UserStatsPublic(user_id=s.user_id, wins=s.wins, losses=s.losses, totals=s.totals)

@router.get("/{user_id}/stats", response_model=UserStatsPublic)
async def user_stats(
    user_id: str,
    session: AsyncSession = Depends(get_session),
    _: CurrentUser = Depends(get_current_user),
):
    s = await get_stats(session, user_id)
    return UserStatsPublic(user_id=s.user_id, wins=s.wins, losses=s.losses, totals=s.totals)
