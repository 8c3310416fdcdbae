from __future__ import annotations
import math
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Literal, List
from uuid import UUID
from datetime import datetime
from fitcomp.config import settings
from fitcomp.services.time_windows import ensure_utc

CompetitionStatus = Literal["active", "completed"]
RuntimeState = Literal["upcoming", "started", "ended", "completed"]
VisibilityStateName = Literal["live", "not_started", "ended", "cycle_hidden", "cycle_visible"]

class CompetitionRule(BaseModel):
    activity_type: str = Field(min_length=1, max_length=80)
    unit: str = Field(min_length=1, max_length=40, description="Standard unit (Kilometre, Minute, Step, ...) or a custom unit name")
    points_per_unit: float = Field(gt=0, allow_inf_nan=False)
    units_per_point: float = Field(gt=0, allow_inf_nan=False)
    is_custom_activity: bool = False
    is_custom_unit: bool = False

    # Activity-specific limits
    max_submissions_per_day: int | None = Field(default=None, ge=1)
    max_points_per_week: float | None = Field(default=None, gt=0, allow_inf_nan=False, description="Sunday-aligned week of the workout date")
    per_submission_cap: float | None = Field(default=None, gt=0, allow_inf_nan=False)

    # Minimum performance; direction depends on pace_unit (km/h, mph, m/min are speeds)
    min_pace: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    pace_unit: str = Field(default="min/km", max_length=16)

    @field_validator("activity_type", "unit")
    @classmethod
    def strip_names(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

class CompetitionCreate(BaseModel):
    name: str = Field(min_length=3, max_length=120)
    description: str | None = None
    starts_at: datetime
    ends_at: datetime
    daily_cap: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    leaderboard_update_days: int = Field(default=0, ge=0, description="0 = live; N = reveal scores every N days")
    photo_proof_required: bool = False
    rules: List[CompetitionRule] = Field(min_length=1)

    @field_validator("starts_at", "ends_at")
    @classmethod
    def as_utc(cls, v: datetime):
        return ensure_utc(v)

    @field_validator("rules")
    @classmethod
    def unique_activities(cls, v: List[CompetitionRule]):
        seen: set[str] = set()
        for r in v:
            if r.activity_type in seen:
                raise ValueError(f"duplicate activity_type '{r.activity_type}'")
            seen.add(r.activity_type)
        return v

    @model_validator(mode="after")
    def check_window(self):
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        if self.leaderboard_update_days > settings.max_leaderboard_update_days:
            raise ValueError(f"leaderboard_update_days must be <= {settings.max_leaderboard_update_days}")
        competition_days = math.ceil((self.ends_at - self.starts_at).total_seconds() / 86400)
        if self.leaderboard_update_days > competition_days:
            raise ValueError("leaderboard_update_days cannot exceed the competition length")
        return self

class FromPresetRequest(BaseModel):
    preset_id: str
    name: str | None = Field(default=None, min_length=3, max_length=120)
    starts_at: datetime
    leaderboard_update_days: int = Field(default=0, ge=0)

class PresetPublic(BaseModel):
    id: str
    name: str
    description: str
    goal: str
    duration_days: int
    daily_cap: float
    rules: List[CompetitionRule]
    tips: List[str]

class CompetitionPublic(BaseModel):
    id: UUID
    owner_id: str
    name: str
    description: str | None
    starts_at: datetime
    ends_at: datetime
    daily_cap: float | None
    leaderboard_update_days: int
    photo_proof_required: bool
    rules: List[CompetitionRule]
    status: CompetitionStatus
    created_at: datetime
    participant_count: int
    is_owner: bool
    is_participant: bool
    runtime_state: RuntimeState
    winner_id: str | None = None
    winner_points: float | None = None

class ParticipantPublic(BaseModel):
    id: UUID
    competition_id: UUID
    user_id: str
    display_name: str
    joined_at: datetime
    timezone: str

class VisibilityPublic(BaseModel):
    state: VisibilityStateName
    should_show_scores: bool
    is_in_hidden_period: bool
    current_cycle: int | None
    next_reveal_date: datetime | None
    last_reveal_date: datetime | None
    days_until_reveal: int
    cutoff_date: datetime | None
    message: str
