from __future__ import annotations
from datetime import datetime, timedelta
from fitcomp.schemas.competition import CompetitionCreate, CompetitionRule, PresetPublic


class PresetNotFound(Exception):
    pass


def _rule(activity_type: str, unit: str, points_per_unit: float, units_per_point: float) -> CompetitionRule:
    return CompetitionRule(
        activity_type=activity_type, unit=unit,
        points_per_unit=points_per_unit, units_per_point=units_per_point,
    )


PRESETS: dict[str, PresetPublic] = {
    p.id: p for p in (
        PresetPublic(
            id="cardio-challenge",
            name="7-Day Cardio Challenge",
            description="A week-long cardio competition focusing on running, walking, and cycling",
            goal="Improve cardiovascular fitness and endurance through consistent cardio activities",
            duration_days=7,
            daily_cap=50,
            rules=[
                _rule("Running", "Kilometre", 3, 1),
                _rule("Walking", "Kilometre", 1, 1),
                _rule("Cycling", "Kilometre", 1, 2),
            ],
            tips=[
                "Start with shorter distances and build up gradually",
                "Mix different activities to prevent boredom",
            ],
        ),
        PresetPublic(
            id="strength-showdown",
            name="Strength Training Showdown",
            description="A 10-day strength-focused competition with weightlifting and bodyweight exercises",
            goal="Build muscle strength and power through structured resistance training",
            duration_days=10,
            daily_cap=40,
            rules=[
                _rule("Weightlifting", "Session", 15, 1),
                _rule("Calisthenics", "Session", 12, 1),
                _rule("Powerlifting", "Session", 18, 1),
            ],
            tips=[
                "Focus on proper form over heavy weights",
                "Allow adequate rest between sessions",
            ],
        ),
        PresetPublic(
            id="fitness-variety",
            name="Fitness Variety Pack",
            description="A 14-day mixed competition with various workout types",
            goal="Explore different fitness modalities and discover new favorite activities",
            duration_days=14,
            daily_cap=60,
            rules=[
                _rule("HIIT", "Session", 20, 1),
                _rule("Yoga", "Session", 10, 1),
                _rule("Swimming", "Minute", 1, 2),
                _rule("Dance", "Minute", 1, 3),
            ],
            tips=[
                "Try a new activity each day",
                "Listen to your body and rest when needed",
            ],
        ),
        PresetPublic(
            id="step-counter",
            name="Step Counter Challenge",
            description="A simple 30-day step counting competition",
            goal="Increase daily movement and establish a consistent walking habit",
            duration_days=30,
            daily_cap=100,
            rules=[
                _rule("Walking", "Step", 1, 100),
                _rule("Running", "Step", 1, 50),
                _rule("Hiking", "Step", 1, 75),
            ],
            tips=[
                "Aim for 10,000 steps daily as a baseline",
                "Take stairs instead of elevators",
            ],
        ),
        PresetPublic(
            id="weekend-warrior",
            name="Weekend Warrior",
            description="A 3-day intensive weekend competition",
            goal="Maximize fitness gains during weekend time with high-intensity activities",
            duration_days=3,
            daily_cap=80,
            rules=[
                _rule("CrossFit", "Session", 25, 1),
                _rule("Rock Climbing", "Session", 20, 1),
                _rule("Martial Arts", "Session", 22, 1),
                _rule("Cycling", "Kilometre", 2, 1),
            ],
            tips=[
                "Warm up thoroughly before intense activities",
                "Get adequate sleep between sessions",
            ],
        ),
    )
}


def list_presets() -> list[PresetPublic]:
    return list(PRESETS.values())


def build_from_preset(
    preset_id: str,
    starts_at: datetime,
    name: str | None = None,
    leaderboard_update_days: int = 0,
) -> CompetitionCreate:
    preset = PRESETS.get(preset_id)
    if preset is None:
        raise PresetNotFound(preset_id)
    return CompetitionCreate(
        name=name or preset.name,
        description=preset.description,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(days=preset.duration_days),
        daily_cap=preset.daily_cap,
        leaderboard_update_days=leaderboard_update_days,
        rules=[r.model_copy() for r in preset.rules],
    )
