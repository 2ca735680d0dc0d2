from __future__ import annotations

import csv
import datetime
import io
from typing import Callable, Iterable, Optional

from pydantic import BaseModel

from csv_import import ImportResult
from db import (
    CustomExerciseRepository,
    ProfileRepository,
    RecordRepository,
    WorkoutRepository,
)
from exercise_data import calculate_set_xp
from exercise_service import ExerciseService
from gamification_service import GamificationService
from logging_setup import get_logger
from models import (
    CustomExercise,
    PersonalRecord,
    Prescription,
    SetRecord,
    Workout,
    WorkoutExerciseEntry,
    WorkoutTemplate,
)

logger = get_logger(__name__)

EXPORT_HEADER = [
    "Date",
    "Time",
    "Exercise Name",
    "Set Order",
    "Weight",
    "Reps",
    "RPE",
    "Warmup",
    "XP",
    "Duration",
]


class ScheduledSlot(BaseModel):
    program_id: str
    week: int
    day: int


class ActiveWorkout(BaseModel):
    workout: Workout
    slot: Optional[ScheduledSlot] = None


class LoggedSet(BaseModel):
    exercise_index: int
    set_index: int
    xp: int
    is_pr: bool
    milestones: list[str] = []


def _now() -> datetime.datetime:
    return datetime.datetime.now().replace(microsecond=0)


class WorkoutService:
    """Active workout session, history mutations and personal records."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        record_repo: RecordRepository,
        custom_repo: CustomExerciseRepository,
        profile_repo: ProfileRepository,
        exercises: ExerciseService,
        gamification: GamificationService | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.records = record_repo
        self.customs = custom_repo
        self.profiles = profile_repo
        self.exercises = exercises
        self.gamification = gamification
        self.active: Optional[ActiveWorkout] = None
        self._completion_listeners: list[Callable[[Workout, Optional[ScheduledSlot]], None]] = []

    def add_completion_listener(
        self, listener: Callable[[Workout, Optional[ScheduledSlot]], None]
    ) -> None:
        self._completion_listeners.append(listener)

    # active session

    def _require_active(self) -> ActiveWorkout:
        if self.active is None:
            raise ValueError("no active workout")
        return self.active

    def _entry(self, exercise_index: int) -> WorkoutExerciseEntry:
        active = self._require_active()
        if not 0 <= exercise_index < len(active.workout.exercises):
            raise ValueError("exercise not found")
        return active.workout.exercises[exercise_index]

    def start_workout(self) -> Workout:
        if self.active is not None:
            raise ValueError("workout already in progress")
        self.active = ActiveWorkout(workout=Workout(start_time=_now().isoformat()))
        logger.info("workout %s started", self.active.workout.id)
        return self.active.workout

    def start_workout_from_template(
        self,
        template: WorkoutTemplate,
        prescriptions: Optional[dict[str, Prescription]] = None,
        slot: Optional[ScheduledSlot] = None,
    ) -> Workout:
        """Start a workout pre-filled with the template's exercises and targets."""
        workout = self.start_workout()
        self.active.slot = slot
        for ex in template.exercises:
            hint = (prescriptions or {}).get(ex.exercise_id)
            target = ex.target_reps
            if hint is not None:
                target = str(hint.rep_low)
                if hint.rep_low != hint.rep_high:
                    target = f"{hint.rep_low}-{hint.rep_high}"
            workout.exercises.append(
                WorkoutExerciseEntry(
                    exercise_id=ex.exercise_id,
                    name=ex.exercise_name or self.exercises.display_name(ex.exercise_id),
                    is_custom=self.exercises.is_custom(ex.exercise_id),
                    superset_group=ex.superset_group,
                    target_reps=target,
                    target_rpe=ex.target_rpe,
                )
            )
        return workout

    def add_exercise(self, exercise_id: str) -> int:
        active = self._require_active()
        exercise = self.exercises.get(exercise_id)
        if exercise is None:
            raise ValueError("exercise not found")
        active.workout.exercises.append(
            WorkoutExerciseEntry(
                exercise_id=exercise.id,
                name=exercise.name,
                is_custom=self.exercises.is_custom(exercise.id),
            )
        )
        return len(active.workout.exercises) - 1

    def remove_exercise(self, exercise_index: int) -> None:
        entry = self._entry(exercise_index)
        xp = sum(s.xp for s in entry.sets)
        self.active.workout.exercises.pop(exercise_index)
        if xp and self.gamification:
            self.gamification.add_xp(-xp)

    @staticmethod
    def _validate(weight: float, reps: int, rpe: Optional[float]) -> None:
        if reps is None or reps <= 0:
            raise ValueError("reps must be positive")
        if weight is None or weight < 0:
            raise ValueError("weight must be non-negative")
        if rpe is not None and (not 1 <= rpe <= 10 or rpe * 2 != int(rpe * 2)):
            raise ValueError("rpe must be between 1 and 10 in 0.5 steps")

    def log_set(
        self,
        exercise_index: int,
        weight: float,
        reps: int,
        rpe: Optional[float] = None,
        is_warmup: bool = False,
    ) -> LoggedSet:
        """Append a set to the active workout; working sets earn XP and may set a PR."""
        self._validate(weight, reps, rpe)
        entry = self._entry(exercise_index)
        xp = 0 if is_warmup else calculate_set_xp(entry.exercise_id, weight, reps)
        entry.sets.append(
            SetRecord(
                weight=weight,
                reps=reps,
                rpe=rpe,
                is_warmup=is_warmup,
                timestamp=_now().isoformat(),
                xp=xp,
            )
        )
        is_pr = False
        milestones: list[str] = []
        if not is_warmup:
            is_pr = self.check_pr(entry.exercise_id, weight)
            if self.gamification:
                self.gamification.add_xp(xp)
                if is_pr:
                    milestones = self.gamification.check_milestones(entry.exercise_id, weight)
        return LoggedSet(
            exercise_index=exercise_index,
            set_index=len(entry.sets) - 1,
            xp=xp,
            is_pr=is_pr,
            milestones=milestones,
        )

    def update_set(
        self,
        exercise_index: int,
        set_index: int,
        weight: Optional[float] = None,
        reps: Optional[int] = None,
        rpe: Optional[float] = None,
        is_warmup: Optional[bool] = None,
        clear_rpe: bool = False,
    ) -> SetRecord:
        """Edit a logged set in place; ``clear_rpe`` drops its RPE."""
        entry = self._entry(exercise_index)
        if not 0 <= set_index < len(entry.sets):
            raise ValueError("set not found")
        old = entry.sets[set_index]
        new_weight = old.weight if weight is None else weight
        new_reps = old.reps if reps is None else reps
        if clear_rpe:
            new_rpe = None
        else:
            new_rpe = old.rpe if rpe is None else rpe
        warm = old.is_warmup if is_warmup is None else is_warmup
        self._validate(new_weight, new_reps, new_rpe)
        xp = 0 if warm else calculate_set_xp(entry.exercise_id, new_weight, new_reps)
        updated = old.model_copy(
            update={
                "weight": new_weight,
                "reps": new_reps,
                "rpe": new_rpe,
                "is_warmup": warm,
                "xp": xp,
            }
        )
        entry.sets[set_index] = updated
        if self.gamification and xp != old.xp:
            self.gamification.add_xp(xp - old.xp)
        if not warm:
            self.check_pr(entry.exercise_id, new_weight)
        return updated

    def remove_set(self, exercise_index: int, set_index: int) -> None:
        entry = self._entry(exercise_index)
        if not 0 <= set_index < len(entry.sets):
            raise ValueError("set not found")
        removed = entry.sets.pop(set_index)
        if self.gamification and removed.xp:
            self.gamification.add_xp(-removed.xp)

    def link_superset(self, exercise_indices: list[int]) -> int:
        active = self._require_active()
        if len(exercise_indices) < 2:
            raise ValueError("a superset needs at least two exercises")
        entries = [self._entry(i) for i in exercise_indices]
        used = [e.superset_group for e in active.workout.exercises if e.superset_group]
        group = max(used, default=0) + 1
        for entry in entries:
            entry.superset_group = group
        return group

    def unlink_superset(self, exercise_index: int) -> None:
        self._entry(exercise_index).superset_group = None

    def cancel_workout(self) -> None:
        self._require_active()
        logger.info("workout %s cancelled", self.active.workout.id)
        self.active = None

    def finish_workout(self) -> Workout:
        """Persist the active workout and notify completion listeners."""
        active = self._require_active()
        workout = active.workout
        logged = [e for e in workout.exercises if e.sets]
        if not logged:
            raise ValueError("workout has no sets")
        workout.exercises = logged
        end = _now()
        workout.end_time = end.isoformat()
        start = datetime.datetime.fromisoformat(workout.start_time)
        workout.duration = max(0, int((end - start).total_seconds()))
        workout.total_xp = sum(s.xp for e in workout.exercises for s in e.sets)
        with self.workouts.transaction() as conn:
            self.workouts.add(workout, conn=conn)
            profile = self.profiles.fetch(conn)
            self._add_totals(profile, [workout])
            self.profiles.save(profile, conn)
            if self.gamification:
                self.gamification.record_workout(profile.total_workouts, conn)
        self.active = None
        logger.info(
            "workout %s finished with %d exercises, %d xp",
            workout.id,
            len(workout.exercises),
            workout.total_xp,
        )
        for listener in self._completion_listeners:
            listener(workout, active.slot)
        return workout

    @staticmethod
    def _add_totals(profile, workouts: Iterable[Workout]) -> None:
        for workout in workouts:
            profile.total_workouts += 1
            for entry in workout.exercises:
                for s in entry.working_sets():
                    profile.total_sets += 1
                    profile.total_volume += s.volume

    # history

    def get_workout(self, workout_id: str) -> Workout:
        return self.workouts.fetch(workout_id)

    def list_workouts(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> list[Workout]:
        return self.workouts.fetch_all_workouts(start_date, end_date)

    def delete_workout(self, workout_id: str) -> None:
        workout = self.workouts.fetch(workout_id)
        with self.workouts.transaction() as conn:
            self.workouts.delete(workout_id, conn=conn)
            profile = self.profiles.fetch(conn)
            profile.total_workouts = max(0, profile.total_workouts - 1)
            for entry in workout.exercises:
                for s in entry.working_sets():
                    profile.total_sets = max(0, profile.total_sets - 1)
                    profile.total_volume = max(0.0, profile.total_volume - s.volume)
            self.profiles.save(profile, conn)
        logger.info("workout %s deleted", workout_id)

    def import_workouts(
        self,
        workouts: list[Workout] | ImportResult,
        custom_exercises: Iterable[CustomExercise] = (),
    ) -> int:
        """Append imported workouts, custom exercises and PR candidates atomically."""
        if isinstance(workouts, ImportResult):
            custom_exercises = workouts.custom_exercises
            workouts = workouts.workouts
        if not workouts:
            return 0
        records = self.records.fetch_records()
        changed: dict[str, PersonalRecord] = {}
        for workout in sorted(workouts, key=lambda w: w.start_time):
            for entry in workout.exercises:
                for s in entry.working_sets():
                    rec = changed.get(entry.exercise_id) or records.get(entry.exercise_id)
                    updated = self._candidate(rec, entry.exercise_id, s.weight, workout.date, workout.source == "csv")
                    if updated is not None:
                        changed[entry.exercise_id] = updated
        with self.workouts.transaction() as conn:
            for custom in custom_exercises:
                self.customs.add(custom, conn=conn)
            self.workouts.add_many(list(workouts), conn=conn)
            for record in changed.values():
                self.records.upsert(record, conn=conn)
            profile = self.profiles.fetch(conn)
            self._add_totals(profile, workouts)
            self.profiles.save(profile, conn)
            if self.gamification:
                self.gamification.add_xp(sum(w.total_xp for w in workouts), conn)
                self.gamification.unlock("importer", conn)
        logger.info(
            "imported %d workouts, %d records updated", len(workouts), len(changed)
        )
        return len(workouts)

    # personal records

    @staticmethod
    def _candidate(
        record: Optional[PersonalRecord],
        exercise_id: str,
        weight: float,
        date: str,
        imported: bool,
    ) -> Optional[PersonalRecord]:
        """Return the updated record when ``weight`` beats it, else ``None``."""
        if record is None:
            return PersonalRecord(
                exercise_id=exercise_id,
                weight=weight,
                date=date,
                first_weight=weight,
                first_date=date,
                imported=imported,
            )
        if weight > record.weight:
            return record.model_copy(
                update={"weight": weight, "date": date, "imported": imported, "edited": False}
            )
        return None

    def check_pr(self, exercise_id: str, weight: float, date: Optional[str] = None) -> bool:
        """Apply a working-set candidate; a set matching the PR also counts."""
        record = self.records.fetch(exercise_id)
        updated = self._candidate(record, exercise_id, weight, date or _now().isoformat(), False)
        if updated is not None:
            self.records.upsert(updated)
            logger.info("new PR for %s: %s", exercise_id, weight)
            return True
        return record is not None and weight == record.weight

    def get_records(self) -> dict[str, PersonalRecord]:
        return self.records.fetch_records()

    def edit_pr(self, exercise_id: str, weight: float) -> PersonalRecord:
        """Override a PR by hand; first weight and date stay as they were."""
        if weight < 0:
            raise ValueError("weight must be non-negative")
        record = self.records.fetch(exercise_id)
        today = _now().isoformat()
        if record is None:
            record = PersonalRecord(
                exercise_id=exercise_id,
                weight=weight,
                date=today,
                first_weight=weight,
                first_date=today,
                edited=True,
            )
        else:
            record = record.model_copy(
                update={"weight": weight, "date": record.date or today, "edited": True}
            )
        self.records.upsert(record)
        logger.info("PR for %s edited to %s", exercise_id, weight)
        return record

    def delete_pr(self, exercise_id: str) -> None:
        self.records.delete(exercise_id)

    def recalculate_prs_from_history(self) -> dict[str, PersonalRecord]:
        """Rebuild every record from stored working sets, discarding manual edits."""
        rebuilt: dict[str, PersonalRecord] = {}
        for workout in self.workouts.fetch_all_workouts():
            for entry in workout.exercises:
                for s in entry.working_sets():
                    rec = rebuilt.get(entry.exercise_id)
                    updated = self._candidate(
                        rec, entry.exercise_id, s.weight, workout.date, workout.source == "csv"
                    )
                    if updated is not None:
                        rebuilt[entry.exercise_id] = updated
        self.records.replace_all(list(rebuilt.values()))
        logger.info("recalculated %d personal records", len(rebuilt))
        return rebuilt

    # export

    def export_workouts_csv(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> str:
        """CSV of every set, oldest workout first, readable by the importer."""
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(EXPORT_HEADER)
        for workout in self.workouts.fetch_all_workouts(start_date, end_date):
            try:
                time_part = datetime.datetime.fromisoformat(workout.start_time).strftime("%H:%M")
            except ValueError:
                time_part = ""
            hours, rest = divmod(workout.duration, 3600)
            duration = f"{hours}h {rest // 60}m" if hours else f"{rest // 60}m"
            for entry in workout.exercises:
                for order, s in enumerate(entry.sets, start=1):
                    writer.writerow(
                        [
                            workout.start_time,
                            time_part,
                            entry.name,
                            order,
                            s.weight,
                            s.reps,
                            "" if s.rpe is None else s.rpe,
                            1 if s.is_warmup else 0,
                            s.xp,
                            duration,
                        ]
                    )
        return output.getvalue()
