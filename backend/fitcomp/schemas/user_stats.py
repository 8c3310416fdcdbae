from __future__ import annotations
from pydantic import BaseModel


class UserStatsPublic(BaseModel):
    user_id: str
    wins: int
    losses: int
    totals: int
