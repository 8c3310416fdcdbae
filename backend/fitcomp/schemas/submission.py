from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import List
from uuid import UUID
from datetime import datetime
from fitcomp.services.time_windows import ensure_utc

# Upper bound for any single measurement; well past a human day of activity
MAX_MEASUREMENT = 1_000_000


def _measurement(**kw):
    return Field(default=0, ge=0, le=MAX_MEASUREMENT, allow_inf_nan=False, **kw)


class SubmissionCreate(BaseModel):
    activity_type: str
    date: datetime = Field(description="When the workout happened; must fall inside the competition window")
    duration: float = _measurement(description="minutes")
    distance: float = _measurement()
    calories: float = _measurement()
    sessions: float = _measurement()
    reps: float = _measurement()
    sets: float = _measurement()
    steps: float = _measurement()
    custom_value: float = _measurement()
    pace: float | None = Field(default=None, ge=0, le=MAX_MEASUREMENT, allow_inf_nan=False)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("date")
    @classmethod
    def as_utc(cls, v: datetime):
        return ensure_utc(v)

    def measurements(self) -> dict:
        return self.model_dump(include={"duration", "distance", "calories", "sessions", "reps", "sets", "steps", "custom_value"})


class ScorePreview(BaseModel):
    activity_type: str
    unit: str
    quantity: float
    raw_points: float
    points: float
    capped_by: List[str]
    points_today: float
    remaining_daily_points: float | None


class SubmissionPublic(BaseModel):
    id: UUID
    competition_id: UUID
    user_id: str
    activity_type: str
    unit: str
    quantity: float
    duration: float
    distance: float
    calories: float
    sessions: float
    reps: float
    sets: float
    steps: float
    custom_value: float
    pace: float | None = None
    raw_points: float
    points: float
    capped_by: List[str] = Field(default_factory=list)
    notes: str | None = None
    date: datetime
    created_at: datetime
    is_mine: bool = False


class LeaderboardRow(BaseModel):
    user_id: str
    display_name: str
    points: float
    position: int
    is_current_user: bool
