"""Domain models shared by repositories, services and the REST layer."""

from __future__ import annotations

import datetime
import enum
import uuid
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


def parse_rep_range(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse ``"8-12"`` or ``"5"`` into an inclusive (low, high) pair."""
    if not value:
        return None
    text = str(value).strip()
    try:
        if "-" in text:
            lo, hi = text.split("-", 1)
            low, high = int(lo.strip()), int(hi.strip())
        else:
            low = high = int(text)
    except ValueError:
        return None
    if low <= 0 or high < low:
        return None
    return low, high


class ExerciseDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    muscle_group: str
    equipment: str
    secondary_muscles: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()


class CustomExercise(ExerciseDefinition):
    muscle_group: str = "other"
    equipment: str = "other"


class SetRecord(BaseModel):
    weight: float = Field(ge=0)
    reps: int = Field(gt=0)
    rpe: Optional[float] = None
    is_warmup: bool = False
    timestamp: str = Field(default_factory=_now)
    xp: int = 0

    @field_validator("rpe")
    @classmethod
    def _check_rpe(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        if not 1 <= value <= 10 or (value * 2) != int(value * 2):
            raise ValueError("rpe must be between 1 and 10 in 0.5 steps")
        return value

    @property
    def volume(self) -> float:
        return self.weight * self.reps


class WorkoutExerciseEntry(BaseModel):
    exercise_id: str
    name: str
    sets: list[SetRecord] = Field(default_factory=list)
    is_custom: bool = False
    superset_group: Optional[int] = None
    target_reps: Optional[str] = None
    target_rpe: Optional[float] = None

    def working_sets(self) -> list[SetRecord]:
        return [s for s in self.sets if not s.is_warmup]


class Workout(BaseModel):
    id: str = Field(default_factory=_new_id)
    exercises: list[WorkoutExerciseEntry] = Field(default_factory=list)
    start_time: str = Field(default_factory=_now)
    end_time: Optional[str] = None
    duration: int = 0
    total_xp: int = 0
    source: Literal["manual", "csv"] = "manual"

    @property
    def date(self) -> str:
        return self.end_time or self.start_time

    def entries_for(self, exercise_id: str) -> list[WorkoutExerciseEntry]:
        return [e for e in self.exercises if e.exercise_id == exercise_id]


class PersonalRecord(BaseModel):
    exercise_id: str
    weight: float
    date: Optional[str] = None
    first_weight: Optional[float] = None
    first_date: Optional[str] = None
    imported: bool = False
    edited: bool = False


class TemplateExercise(BaseModel):
    exercise_id: str
    exercise_name: str = ""
    order: int = 0
    target_sets: int = Field(default=3, ge=1)
    target_reps: Optional[str] = "8-12"
    target_rpe: Optional[float] = None
    rest_seconds: Optional[int] = None
    superset_group: Optional[int] = None

    def rep_range(self) -> Optional[tuple[int, int]]:
        return parse_rep_range(self.target_reps)


class WorkoutTemplate(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    exercises: list[TemplateExercise] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)
    is_default: bool = False


class DoubleProgressionConfig(BaseModel):
    type: Literal["double_progression"] = "double_progression"
    rep_range: tuple[int, int] = (8, 12)
    weight_increment: float = 5
    per_exercise: bool = False
    exercise_ranges: dict[str, tuple[int, int]] = Field(default_factory=dict)
    set_ranges: dict[str, list[tuple[int, int]]] = Field(default_factory=dict)
    advanced_mode: bool = False


class LinearConfig(BaseModel):
    type: Literal["linear"] = "linear"
    weight_increment: float = 5
    deload_threshold: int = Field(default=3, ge=1)
    deload_percent: float = Field(default=0.1, ge=0, lt=1)


class RpeBasedConfig(BaseModel):
    type: Literal["rpe_based"] = "rpe_based"
    target_rpe: float = 8
    rpe_range: tuple[float, float] = (7, 9)
    adjustment_per_point: float = 5


class NoProgressionConfig(BaseModel):
    type: Literal["none"] = "none"


ProgressionConfig = Annotated[
    Union[DoubleProgressionConfig, LinearConfig, RpeBasedConfig, NoProgressionConfig],
    Field(discriminator="type"),
]


class ProgressionRule(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = ""
    exercise_id: Optional[str] = None
    config: ProgressionConfig = Field(default_factory=DoubleProgressionConfig)


class ProgramDay(BaseModel):
    day_number: int = Field(ge=1)
    name: str = ""
    is_rest: bool = False
    template_id: Optional[str] = None


class ProgramWeek(BaseModel):
    week_number: int = Field(ge=1)
    days: list[ProgramDay] = Field(default_factory=list)
    is_deload: bool = False


def build_program_weeks(
    days: list[ProgramDay], duration_weeks: int, deload_final_week: bool = False
) -> list[ProgramWeek]:
    """Repeat the week-1 day list for every week of the program."""
    weeks = []
    for number in range(1, duration_weeks + 1):
        weeks.append(
            ProgramWeek(
                week_number=number,
                days=[d.model_copy() for d in days],
                is_deload=deload_final_week and number == duration_weeks,
            )
        )
    return weeks


class Program(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    duration_weeks: int = Field(default=4, ge=1)
    cycle_type: Literal["weekly", "microcycle"] = "weekly"
    cycle_length_days: int = 7
    weeks: list[ProgramWeek] = Field(default_factory=list)
    progression_rules: list[ProgressionRule] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)

    @model_validator(mode="after")
    def _check_layout(self) -> "Program":
        if self.cycle_type == "weekly":
            self.cycle_length_days = 7
        elif not 3 <= self.cycle_length_days <= 10:
            raise ValueError("microcycle length must be between 3 and 10 days")
        if not self.weeks:
            days = [
                ProgramDay(day_number=i, name=f"Day {i}", is_rest=True)
                for i in range(1, self.cycle_length_days + 1)
            ]
            self.weeks = build_program_weeks(days, self.duration_weeks)
        if len(self.weeks) != self.duration_weeks:
            raise ValueError("number of weeks must equal duration_weeks")
        first = self.weeks[0].days
        if len(first) != self.cycle_length_days:
            raise ValueError("each week must have one entry per cycle day")
        for week in self.weeks[1:]:
            if [d.model_dump() for d in week.days] != [d.model_dump() for d in first]:
                raise ValueError("weeks must mirror week 1")
        for week in self.weeks[:-1]:
            if week.is_deload:
                raise ValueError("only the final week may be a deload week")
        return self

    def day(self, week: int, day: int) -> ProgramDay:
        if not 1 <= week <= len(self.weeks):
            raise ValueError("week not found")
        if not 1 <= day <= len(self.weeks[week - 1].days):
            raise ValueError("day not found")
        return self.weeks[week - 1].days[day - 1]

    def template_ids(self) -> set[str]:
        return {d.template_id for d in self.weeks[0].days if d.template_id}


class ActiveProgramState(BaseModel):
    program_id: str
    current_week: int = 1
    current_day: int = 1
    started_at: str = Field(default_factory=_now)
    completed_workouts: list[str] = Field(default_factory=list)
    is_complete: bool = False


class ProgressionState(str, enum.Enum):
    RAMPING = "ramping"
    IN_RANGE = "in_range"
    AT_CEILING = "at_ceiling"
    DELOAD = "deload"


class Prescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    exercise_id: str
    weight: float
    rep_low: int
    rep_high: int
    target_reps: int
    state: ProgressionState
    failure_count: int = 0
    reason: str = ""


class Profile(BaseModel):
    name: str = "Athlete"
    level: int = 1
    xp: int = 0
    total_workouts: int = 0
    total_sets: int = 0
    total_volume: float = 0
    height: Optional[float] = None
    body_weight: Optional[float] = None


class CampaignGoal(BaseModel):
    exercise_id: str
    exercise_name: str = ""
    target_weight: float = Field(gt=0)
    current_pr: float = 0


class Campaign(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    target_date: Optional[str] = None
    goals: list[CampaignGoal] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)
    completed_at: Optional[str] = None

    @property
    def progress(self) -> float:
        if not self.goals:
            return 0.0
        parts = [min(g.current_pr / g.target_weight, 1.0) for g in self.goals]
        return round(sum(parts) / len(parts) * 100, 1)
