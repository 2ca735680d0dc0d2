from __future__ import annotations

import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from db import (
    ActiveProgramRepository,
    ProgramRepository,
    RecordRepository,
    SettingsRepository,
    TemplateRepository,
    WorkoutRepository,
)
from exercise_data import DEFAULT_TEMPLATES
from exercise_service import ExerciseService
from logging_setup import get_logger
from models import (
    ActiveProgramState,
    Prescription,
    Program,
    ProgramDay,
    ProgressionState,
    TemplateExercise,
    Workout,
    WorkoutTemplate,
    build_program_weeks,
)
from progression import compute_prescription, select_rule
from tools import MathTools
from workout_service import ScheduledSlot, WorkoutService

logger = get_logger(__name__)


def _now() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


class ScheduledDay(BaseModel):
    program_id: str
    week_number: int
    day_number: int
    name: str
    is_rest: bool
    is_today: bool = False
    is_deload: bool = False
    template: Optional[WorkoutTemplate] = None
    prescriptions: list[Prescription] = Field(default_factory=list)


class PlannerService:
    """Templates, programs and the program schedule cursor."""

    def __init__(
        self,
        template_repo: TemplateRepository,
        program_repo: ProgramRepository,
        active_repo: ActiveProgramRepository,
        workout_repo: WorkoutRepository,
        record_repo: RecordRepository,
        settings_repo: SettingsRepository,
        exercises: ExerciseService,
        workout_service: WorkoutService | None = None,
    ) -> None:
        self.templates = template_repo
        self.programs = program_repo
        self.active = active_repo
        self.workouts = workout_repo
        self.records = record_repo
        self.settings = settings_repo
        self.exercises = exercises
        self.workout_service = workout_service
        self._wizard: Optional[dict[str, Any]] = None
        self._wizard_program_id: Optional[str] = None

    # templates

    def ensure_default_templates(self) -> None:
        if self.templates.count():
            return
        for tid, name, exercise_ids in DEFAULT_TEMPLATES:
            template = self.migrate_template(
                {"id": tid, "name": name, "exercises": exercise_ids}
            )
            template.is_default = True
            self.templates.save(template)

    def migrate_template(self, data: dict | WorkoutTemplate) -> WorkoutTemplate:
        """Accept current templates and legacy ones listing bare exercise ids."""
        if isinstance(data, WorkoutTemplate):
            return data
        raw = dict(data)
        exercises = []
        for i, item in enumerate(raw.get("exercises") or []):
            if isinstance(item, str):
                exercises.append(
                    TemplateExercise(
                        exercise_id=item,
                        exercise_name=self.exercises.display_name(item),
                        order=i,
                        target_sets=3,
                        target_reps="8-12",
                    )
                )
            else:
                entry = item.model_dump() if isinstance(item, TemplateExercise) else dict(item)
                entry["order"] = i
                if not entry.get("exercise_name"):
                    entry["exercise_name"] = self.exercises.display_name(entry["exercise_id"])
                exercises.append(TemplateExercise(**entry))
        raw["exercises"] = exercises
        return WorkoutTemplate(**raw)

    def create_template(
        self, name: str, exercises: list, description: str = ""
    ) -> WorkoutTemplate:
        if not name.strip():
            raise ValueError("template name required")
        template = self.migrate_template(
            {"name": name.strip(), "description": description, "exercises": exercises}
        )
        self._check_exercises(template)
        self.templates.save(template)
        logger.info("template %s created", template.id)
        return template

    def _check_exercises(self, template: WorkoutTemplate) -> None:
        for ex in template.exercises:
            if not self.exercises.exists(ex.exercise_id):
                raise ValueError(f"exercise not found: {ex.exercise_id}")

    def update_template(self, template_id: str, **updates: Any) -> WorkoutTemplate:
        current = self.templates.fetch(template_id)
        data = current.model_dump()
        for key in ("name", "description", "exercises"):
            if updates.get(key) is not None:
                data[key] = updates[key]
        data["updated_at"] = _now()
        template = self.migrate_template(data)
        self._check_exercises(template)
        self.templates.save(template)
        return template

    def delete_template(self, template_id: str) -> None:
        if self.templates.fetch(template_id).is_default:
            raise ValueError("default templates cannot be deleted")
        self.templates.delete(template_id)

    def duplicate_template(self, template_id: str) -> WorkoutTemplate:
        source = self.templates.fetch(template_id)
        copy = WorkoutTemplate(
            name=f"{source.name} (Copy)",
            description=source.description,
            exercises=[e.model_copy() for e in source.exercises],
        )
        self.templates.save(copy)
        return copy

    def get_template(self, template_id: str) -> WorkoutTemplate:
        return self.templates.fetch(template_id)

    def list_templates(self) -> list[WorkoutTemplate]:
        return self.templates.fetch_all_templates()

    def save_workout_as_template(self, workout: Workout, name: str) -> WorkoutTemplate:
        exercises = [
            TemplateExercise(
                exercise_id=e.exercise_id,
                exercise_name=e.name,
                target_sets=max(1, len(e.working_sets())),
                target_reps=e.target_reps or "8-12",
                superset_group=e.superset_group,
            )
            for e in workout.exercises
        ]
        return self.create_template(name, exercises)

    # programs

    def _check_program(self, program: Program) -> None:
        for template_id in program.template_ids():
            self.templates.fetch(template_id)

    def create_program(self, data: Program | dict) -> Program:
        program = data if isinstance(data, Program) else Program.model_validate(data)
        self._check_program(program)
        self.programs.save(program)
        logger.info("program %s created", program.id)
        return program

    def update_program(self, program_id: str, updates: dict) -> Program:
        current = self.programs.fetch(program_id)
        data = current.model_dump()
        data.update({k: v for k, v in updates.items() if k not in ("id", "created_at")})
        data["updated_at"] = _now()
        program = Program.model_validate(data)
        self._check_program(program)
        self.programs.save(program)
        state = self.active.fetch()
        if state is not None and state.program_id == program.id:
            if self._clamp_cursor(state, program):
                self.active.save(state)
        return program

    def delete_program(self, program_id: str) -> None:
        state = self.active.fetch()
        self.programs.delete(program_id)
        if state is not None and state.program_id == program_id:
            self.stop_program()

    def duplicate_program(self, program_id: str) -> Program:
        source = self.programs.fetch(program_id)
        data = source.model_dump(exclude={"id", "created_at", "updated_at"})
        data["name"] = f"{source.name} (Copy)"
        copy = Program.model_validate(data)
        self.programs.save(copy)
        return copy

    def get_program(self, program_id: str) -> Program:
        return self.programs.fetch(program_id)

    def list_programs(self) -> list[Program]:
        return self.programs.fetch_all_programs()

    # program wizard

    def start_program_wizard(self) -> dict[str, Any]:
        self._wizard = {
            "name": "",
            "description": "",
            "duration_weeks": 4,
            "cycle_type": "weekly",
            "cycle_length_days": 7,
            "days": [],
            "deload_final_week": False,
            "progression_rules": [],
        }
        self._wizard_program_id = None
        return dict(self._wizard)

    def edit_program(self, program_id: str) -> dict[str, Any]:
        program = self.programs.fetch(program_id)
        self._wizard = program.model_dump(exclude={"id", "created_at", "updated_at", "weeks"})
        self._wizard["days"] = [d.model_dump() for d in program.weeks[0].days]
        self._wizard["deload_final_week"] = program.weeks[-1].is_deload
        self._wizard_program_id = program_id
        return dict(self._wizard)

    def update_program_wizard_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Merge a partial draft into the wizard, starting one if needed."""
        if self._wizard is None:
            self.start_program_wizard()
        self._wizard.update(data)
        return dict(self._wizard)

    def cancel_program_wizard(self) -> None:
        self._wizard = None
        self._wizard_program_id = None

    def finish_program_wizard(self) -> str:
        if self._wizard is None:
            raise ValueError("no program wizard in progress")
        draft = dict(self._wizard)
        if not str(draft.get("name", "")).strip():
            raise ValueError("program name required")
        days = [ProgramDay.model_validate(d) for d in draft.pop("days", [])]
        deload = bool(draft.pop("deload_final_week", False))
        if draft.get("cycle_type", "weekly") == "weekly":
            draft["cycle_length_days"] = 7
        length = int(draft.get("cycle_length_days", 7))
        by_number = {d.day_number: d for d in days}
        days = [
            by_number.get(i) or ProgramDay(day_number=i, name=f"Day {i}", is_rest=True)
            for i in range(1, length + 1)
        ]
        draft["weeks"] = build_program_weeks(days, int(draft.get("duration_weeks", 4)), deload)
        if self._wizard_program_id:
            program = self.update_program(self._wizard_program_id, draft)
        else:
            program = self.create_program(draft)
        self.cancel_program_wizard()
        return program.id

    # schedule

    def start_program(self, program_id: str) -> ActiveProgramState:
        program = self.programs.fetch(program_id)
        state = ActiveProgramState(program_id=program.id)
        self.active.save(state)
        logger.info("program %s started", program.name)
        return state

    def stop_program(self) -> None:
        self.active.clear()
        logger.info("program stopped")

    def active_program(self) -> Optional[ActiveProgramState]:
        return self.active.fetch()

    def _current(self) -> Optional[tuple[ActiveProgramState, Program]]:
        state = self.active.fetch()
        if state is None:
            return None
        program = self.programs.fetch(state.program_id)
        if self._clamp_cursor(state, program):
            self.active.save(state)
        return state, program

    def _active_pair(self) -> tuple[ActiveProgramState, Program]:
        current = self._current()
        if current is None:
            raise ValueError("no active program")
        return current

    @staticmethod
    def _clamp_cursor(state: ActiveProgramState, program: Program) -> bool:
        """Pull a cursor left outside an edited program back into range."""
        if state.is_complete:
            return False
        if state.current_week > program.duration_weeks:
            state.is_complete = True
        elif state.current_day > program.cycle_length_days:
            if state.current_week < program.duration_weeks:
                state.current_week += 1
                state.current_day = 1
            else:
                state.is_complete = True
        else:
            return False
        logger.info(
            "cursor for %s moved to week %d day %d (complete: %s)",
            program.name,
            state.current_week,
            state.current_day,
            state.is_complete,
        )
        return True

    @staticmethod
    def _step(state: ActiveProgramState, program: Program) -> ActiveProgramState:
        """Move one day forward; past the final day the program is complete."""
        if state.is_complete:
            return state
        if state.current_day < program.cycle_length_days:
            state.current_day += 1
        elif state.current_week < program.duration_weeks:
            state.current_week += 1
            state.current_day = 1
        else:
            state.is_complete = True
            logger.info("program %s complete", program.name)
        return state

    def advance_program_day(self) -> ActiveProgramState:
        state, program = self._active_pair()
        state = self._step(state, program)
        self.active.save(state)
        return state

    def complete_scheduled_workout(self, workout_id: str, week: int, day: int) -> bool:
        """Advance the cursor once for a workout done on the current slot."""
        current = self._current()
        if current is None or current[0].is_complete:
            return False
        state, program = current
        if workout_id in state.completed_workouts:
            logger.info("workout %s already counted", workout_id)
            return False
        if (week, day) != (state.current_week, state.current_day):
            logger.info(
                "ignoring stale completion for week %d day %d (cursor at %d/%d)",
                week,
                day,
                state.current_week,
                state.current_day,
            )
            return False
        state.completed_workouts.append(workout_id)
        self._step(state, program)
        self.active.save(state)
        return True

    def on_workout_finished(self, workout: Workout, slot: Optional[ScheduledSlot]) -> None:
        state = self.active.fetch()
        if slot is None or state is None or slot.program_id != state.program_id:
            return
        self.complete_scheduled_workout(workout.id, slot.week, slot.day)

    def preview_prescriptions(
        self,
        template: WorkoutTemplate,
        program: Program,
        is_deload: bool = False,
        history: Optional[list[Workout]] = None,
    ) -> list[Prescription]:
        """Next prescriptions for every exercise in ``template``."""
        if history is None:
            history = self.workouts.fetch_all_workouts()
        records = self.records.fetch_records()
        rounding = self.settings.get_float("weight_rounding", 5.0)
        factor = self.settings.get_float("deload_week_factor", 0.9)
        result = []
        for ex in template.exercises:
            record = records.get(ex.exercise_id)
            prescription = compute_prescription(
                select_rule(program.progression_rules, ex.exercise_id),
                ex.exercise_id,
                history,
                default_range=ex.rep_range(),
                target_sets=ex.target_sets,
                fallback_weight=record.weight if record else None,
                rounding=rounding,
            )
            if is_deload and prescription.weight:
                prescription = prescription.model_copy(
                    update={
                        "weight": MathTools.round_to_increment(
                            prescription.weight * factor, rounding
                        ),
                        "state": ProgressionState.DELOAD,
                        "reason": "deload week",
                    }
                )
            result.append(prescription)
        return result

    def _scheduled_day(
        self,
        program: Program,
        week: int,
        day: int,
        is_today: bool,
        preview: bool,
        history: Optional[list[Workout]],
    ) -> ScheduledDay:
        program_day = program.day(week, day)
        is_deload = program.weeks[week - 1].is_deload
        template = None
        if not program_day.is_rest and program_day.template_id:
            try:
                template = self.templates.fetch(program_day.template_id)
            except ValueError:
                logger.warning("template %s missing from program", program_day.template_id)
        prescriptions = []
        if preview and template is not None:
            prescriptions = self.preview_prescriptions(template, program, is_deload, history)
        return ScheduledDay(
            program_id=program.id,
            week_number=week,
            day_number=day,
            name=program_day.name or (template.name if template else f"Day {day}"),
            is_rest=program_day.is_rest or template is None,
            is_today=is_today,
            is_deload=is_deload,
            template=template,
            prescriptions=prescriptions,
        )

    def get_todays_workout(self, preview: bool = True) -> Optional[ScheduledDay]:
        current = self._current()
        if current is None or current[0].is_complete:
            return None
        state, program = current
        return self._scheduled_day(
            program, state.current_week, state.current_day, True, preview, None
        )

    def get_upcoming_workouts(self, days: int = 21, preview: bool = False) -> list[ScheduledDay]:
        """Project the next ``days`` program days from the cursor without moving it."""
        current = self._current()
        if current is None or current[0].is_complete or days <= 0:
            return []
        state, program = current
        history = self.workouts.fetch_all_workouts() if preview else None
        cursor = state.model_copy(deep=True)
        result = []
        while len(result) < days and not cursor.is_complete:
            result.append(
                self._scheduled_day(
                    program,
                    cursor.current_week,
                    cursor.current_day,
                    not result,
                    preview,
                    history,
                )
            )
            self._step(cursor, program)
        return result

    def start_program_workout_for_day(self, week: int, day: int) -> Workout:
        """Begin the workout scheduled for ``week``/``day`` of the active program."""
        if self.workout_service is None:
            raise ValueError("workouts unavailable")
        state, program = self._active_pair()
        if not 1 <= week <= program.duration_weeks:
            raise ValueError("week not found")
        if not 1 <= day <= program.cycle_length_days:
            raise ValueError("day not found")
        scheduled = self._scheduled_day(program, week, day, False, True, None)
        if scheduled.is_rest or scheduled.template is None:
            raise ValueError("no workout for this day")
        return self.workout_service.start_workout_from_template(
            scheduled.template,
            {p.exercise_id: p for p in scheduled.prescriptions},
            ScheduledSlot(program_id=state.program_id, week=week, day=day),
        )
