from __future__ import annotations
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from typing import Any, Iterable, Mapping

# Units whose quantity is read from the `distance` measurement
DISTANCE_UNITS = ("Kilometre", "Mile", "Meter", "Yard")

# Pace units where a higher value is better; every other unit is time-per-distance
SPEED_PACE_UNITS = ("km/h", "mph", "m/min")


class ScoringError(Exception):
    code = "scoring_error"


class RuleNotFound(ScoringError):
    code = "rule_not_found"


class LimitReached(ScoringError):
    code = "limit_reached"


class PaceNotMet(ScoringError):
    code = "pace_not_met"


class InvalidRule(ScoringError):
    code = "invalid_rule"


class CapStage(str, Enum):
    PER_SUBMISSION = "per_submission_cap"
    WEEKLY = "max_points_per_week"
    DAILY = "daily_cap"


@dataclass(frozen=True)
class HistoricalContext:
    """Aggregates over the user's *other* submissions in the same competition."""
    points_today_all_activities: float = 0
    points_this_week_for_activity: float = 0
    submissions_today_for_activity: int = 0


@dataclass(frozen=True)
class ScoreResult:
    points: float
    raw_points: float
    capped_by: list[CapStage] = field(default_factory=list)

    @property
    def was_capped(self) -> bool:
        return bool(self.capped_by)


def _number(value: Any) -> float:
    """Coerce user input to a non-negative finite float; anything else is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(n) or math.isinf(n) or n < 0:
        return 0.0
    return n


def _decimal(value: float) -> Decimal:
    # repr round-trip keeps 0.1 as Decimal("0.1") instead of its binary expansion
    return Decimal(repr(float(value)))


def find_rule(rules: Iterable[Any], activity_type: str):
    """Return the rule whose `activity_type` matches exactly, or raise RuleNotFound."""
    for rule in rules:
        if rule.activity_type == activity_type:
            return rule
    raise RuleNotFound(f"No scoring rule for activity '{activity_type}'")


def quantity_for_unit(unit: str, measurements: Mapping[str, Any]) -> float:
    """
    Select the measured quantity a rule's unit is scored on.

    `measurements` holds the raw entry fields (duration in minutes, distance, calories,
    sessions, reps, sets, steps, custom_value). Hours are derived from the minutes
    entered; unknown units are custom and read `custom_value`.

    Examples:
        >>> quantity_for_unit("Hour", {"duration": 90})
        1.5
        >>> quantity_for_unit("Laps", {"custom_value": "12"})
        12.0
        >>> quantity_for_unit("Kilometre", {"distance": -3})
        0.0
    """
    if unit in DISTANCE_UNITS:
        return _number(measurements.get("distance"))
    if unit == "Hour":
        return _number(measurements.get("duration")) / 60
    if unit == "Minute":
        return _number(measurements.get("duration"))
    if unit == "Calorie":
        return _number(measurements.get("calories"))
    if unit in ("Session", "Class"):
        return _number(measurements.get("sessions"))
    if unit == "Rep":
        return _number(measurements.get("reps"))
    if unit == "Set":
        return _number(measurements.get("sets"))
    if unit == "Step":
        return _number(measurements.get("steps"))
    return _number(measurements.get("custom_value"))


def is_speed_pace_unit(pace_unit: str | None) -> bool:
    return (pace_unit or "").strip().lower() in SPEED_PACE_UNITS


def pace_satisfied(min_pace: float, pace_unit: str | None, entered_pace: float) -> bool:
    if is_speed_pace_unit(pace_unit):
        return entered_pace >= min_pace
    return entered_pace <= min_pace


def validate_rule(rule: Any) -> None:
    units_per_point = rule.units_per_point
    points_per_unit = rule.points_per_unit
    if units_per_point is None or not math.isfinite(units_per_point) or units_per_point <= 0:
        raise InvalidRule(f"units_per_point must be a finite number > 0 for '{rule.activity_type}'")
    if points_per_unit is None or not math.isfinite(points_per_unit) or points_per_unit < 0:
        raise InvalidRule(f"points_per_unit must be a finite number >= 0 for '{rule.activity_type}'")


def raw_points(rule: Any, quantity: Any) -> float:
    """
    floor(quantity / units_per_point) * points_per_unit.

    Partial increments earn nothing. Decimal arithmetic keeps inputs like
    0.3 km at 0.1 km/point at exactly 3 increments. A product too large for a
    float is invalid input and scores 0, like any other unusable quantity.

    Examples:
        >>> from types import SimpleNamespace as R
        >>> rule = R(activity_type="Rowing", units_per_point=10, points_per_unit=1)
        >>> raw_points(rule, 9), raw_points(rule, 10), raw_points(rule, 19)
        (0.0, 1.0, 1.0)
    """
    validate_rule(rule)
    q = _number(quantity)
    increments = (_decimal(q) / _decimal(rule.units_per_point)).to_integral_value(rounding=ROUND_FLOOR)
    return _number(increments * _decimal(rule.points_per_unit))


def _clamp(points: float, limit: float, stage: CapStage, capped_by: list[CapStage]) -> float:
    if points > limit:
        capped_by.append(stage)
        return limit
    return points


def score(
    rule: Any,
    raw_quantity: Any,
    context: HistoricalContext | None = None,
    competition_daily_cap: float | None = None,
    entered_pace: float | None = None,
) -> ScoreResult:
    """
    Compute the final award for one candidate activity entry.

    Gates run first and raise (nothing may be persisted):
      1. daily submission count  -> LimitReached
      2. minimum pace            -> PaceNotMet
    Then the raw value is clamped downward in a fixed order:
      3. floor(quantity / units_per_point) * points_per_unit
      4. per-submission cap
      5. remaining weekly allowance for this activity
      6. remaining competition-wide daily allowance
    `capped_by` lists every stage (4-6) that actually lowered the value.
    The result never goes below 0. Pure: no clock, no I/O.
    """
    if rule is None:
        raise RuleNotFound("No scoring rule supplied")
    validate_rule(rule)
    ctx = context or HistoricalContext()

    max_per_day = getattr(rule, "max_submissions_per_day", None)
    if max_per_day is not None and ctx.submissions_today_for_activity >= max_per_day:
        raise LimitReached(
            f"Daily limit reached for '{rule.activity_type}' "
            f"({ctx.submissions_today_for_activity}/{max_per_day} submissions today)"
        )

    min_pace = getattr(rule, "min_pace", None)
    if min_pace is not None:
        pace_unit = getattr(rule, "pace_unit", None)
        if entered_pace is None:
            raise PaceNotMet(f"A pace in {pace_unit or 'min/km'} is required for '{rule.activity_type}'")
        if not pace_satisfied(min_pace, pace_unit, _number(entered_pace)):
            direction = "at least" if is_speed_pace_unit(pace_unit) else "at most"
            raise PaceNotMet(
                f"Pace {entered_pace} {pace_unit or 'min/km'} does not meet the minimum "
                f"(must be {direction} {min_pace})"
            )

    base = raw_points(rule, raw_quantity)
    points = base
    capped_by: list[CapStage] = []

    per_submission_cap = getattr(rule, "per_submission_cap", None)
    if per_submission_cap is not None:
        points = _clamp(points, per_submission_cap, CapStage.PER_SUBMISSION, capped_by)

    weekly_cap = getattr(rule, "max_points_per_week", None)
    if weekly_cap is not None:
        remaining = max(0.0, weekly_cap - ctx.points_this_week_for_activity)
        points = _clamp(points, remaining, CapStage.WEEKLY, capped_by)

    if competition_daily_cap is not None:
        remaining = max(0.0, competition_daily_cap - ctx.points_today_all_activities)
        points = _clamp(points, remaining, CapStage.DAILY, capped_by)

    return ScoreResult(points=max(0.0, float(points)), raw_points=base, capped_by=capped_by)


def score_activity(
    rules: Iterable[Any],
    activity_type: str,
    raw_quantity: Any,
    context: HistoricalContext | None = None,
    competition_daily_cap: float | None = None,
    entered_pace: float | None = None,
) -> ScoreResult:
    return score(find_rule(rules, activity_type), raw_quantity, context, competition_daily_cap, entered_pace)
