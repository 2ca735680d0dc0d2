from typing import Optional, Union

from fastapi import APIRouter, Body, FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field

from config import APP_VERSION
from csv_import import CsvValidationError
from logging_setup import get_logger
from models import CampaignGoal, TemplateExercise
from tracker import Tracker

logger = get_logger(__name__)


class TemplatePayload(BaseModel):
    name: str
    description: str = ""
    exercises: list[Union[TemplateExercise, str]] = Field(default_factory=list)


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    exercises: Optional[list[Union[TemplateExercise, str]]] = None


class CampaignPayload(BaseModel):
    name: str
    goals: list[CampaignGoal]
    target_date: Optional[str] = None


def _http_error(exc: ValueError) -> HTTPException:
    message = str(exc)
    status = 404 if "not found" in message else 400
    return HTTPException(status_code=status, detail=message)


class TrackerAPI:
    """Provides REST endpoints for workout logging, import and programs."""

    def __init__(self, db_path: str = "ironquest.db", yaml_path: str = "settings.yaml") -> None:
        self.tracker = Tracker(db_path, yaml_path)
        self.app = FastAPI(
            title="Iron Quest API",
            description="REST API for workout logging, CSV import and program scheduling",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _setup_routes(self) -> None:
        t = self.tracker
        exercises_router = APIRouter(prefix="/exercises", tags=["Exercises"])
        workout_router = APIRouter(prefix="/workout", tags=["Active Workout"])
        workouts_router = APIRouter(prefix="/workouts", tags=["History"])
        records_router = APIRouter(prefix="/records", tags=["Records"])
        stats_router = APIRouter(prefix="/stats", tags=["Statistics"])
        templates_router = APIRouter(prefix="/templates", tags=["Templates"])
        programs_router = APIRouter(prefix="/programs", tags=["Programs"])
        schedule_router = APIRouter(prefix="/schedule", tags=["Schedule"])
        campaigns_router = APIRouter(prefix="/campaigns", tags=["Campaigns"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            t.workout_repo.count()
            return {"status": "ok", "version": APP_VERSION}

        # exercises

        @exercises_router.get("")
        def list_exercises():
            return [
                {**e.model_dump(), "is_custom": t.exercises.is_custom(e.id)}
                for e in t.exercises.catalog()
            ]

        @exercises_router.get("/match")
        def match_exercise(name: str):
            return {"name": name, "exercise_id": t.exercises.match_exercise_from_csv(name)}

        @exercises_router.get("/{exercise_id}/substitutes")
        def exercise_substitutes(exercise_id: str):
            if not t.exercises.exists(exercise_id):
                raise HTTPException(status_code=404, detail="exercise not found")
            return t.exercises.get_exercise_substitutes(exercise_id)

        @exercises_router.post("/custom")
        def add_custom_exercise(name: str, muscle_group: str = "other"):
            try:
                return {"id": t.exercises.add_custom_exercise_with_muscle(name, muscle_group)}
            except ValueError as e:
                raise _http_error(e)

        @exercises_router.put("/custom/{exercise_id}")
        def update_custom_exercise(
            exercise_id: str, name: Optional[str] = None, muscle_group: Optional[str] = None
        ):
            try:
                t.exercises.update_custom_exercise(exercise_id, name, muscle_group)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "updated"}

        # active workout

        @workout_router.get("")
        def active_workout():
            if t.workouts.active is None:
                raise HTTPException(status_code=404, detail="no active workout")
            return t.workouts.active

        @workout_router.post("/start")
        def start_workout(template_id: Optional[str] = None):
            try:
                if template_id:
                    workout = t.workouts.start_workout_from_template(
                        t.planner.get_template(template_id)
                    )
                else:
                    workout = t.workouts.start_workout()
            except ValueError as e:
                raise _http_error(e)
            return {"id": workout.id}

        @workout_router.post("/exercises")
        def add_exercise(exercise_id: str):
            try:
                return {"index": t.workouts.add_exercise(exercise_id)}
            except ValueError as e:
                raise _http_error(e)

        @workout_router.delete("/exercises/{exercise_index}")
        def remove_exercise(exercise_index: int):
            try:
                t.workouts.remove_exercise(exercise_index)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @workout_router.post("/exercises/{exercise_index}/sets")
        def log_set(
            exercise_index: int,
            weight: float,
            reps: int,
            rpe: Optional[float] = None,
            is_warmup: bool = False,
        ):
            try:
                return t.workouts.log_set(exercise_index, weight, reps, rpe, is_warmup)
            except ValueError as e:
                raise _http_error(e)

        @workout_router.put("/exercises/{exercise_index}/sets/{set_index}")
        def update_set(
            exercise_index: int,
            set_index: int,
            weight: Optional[float] = None,
            reps: Optional[int] = None,
            rpe: Optional[float] = None,
            is_warmup: Optional[bool] = None,
            clear_rpe: bool = False,
        ):
            try:
                return t.workouts.update_set(
                    exercise_index, set_index, weight, reps, rpe, is_warmup, clear_rpe
                )
            except ValueError as e:
                raise _http_error(e)

        @workout_router.delete("/exercises/{exercise_index}/sets/{set_index}")
        def remove_set(exercise_index: int, set_index: int):
            try:
                t.workouts.remove_set(exercise_index, set_index)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @workout_router.post("/superset")
        def link_superset(exercise_indices: list[int] = Body(...)):
            try:
                return {"group": t.workouts.link_superset(exercise_indices)}
            except ValueError as e:
                raise _http_error(e)

        @workout_router.delete("/superset/{exercise_index}")
        def unlink_superset(exercise_index: int):
            try:
                t.workouts.unlink_superset(exercise_index)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "unlinked"}

        @workout_router.post("/finish")
        def finish_workout():
            try:
                return t.workouts.finish_workout()
            except ValueError as e:
                raise _http_error(e)

        @workout_router.post("/cancel")
        def cancel_workout():
            try:
                t.workouts.cancel_workout()
            except ValueError as e:
                raise _http_error(e)
            return {"status": "cancelled"}

        # history

        @workouts_router.get("")
        def list_workouts(start_date: Optional[str] = None, end_date: Optional[str] = None):
            return t.workouts.list_workouts(start_date, end_date)

        @workouts_router.get("/{workout_id}")
        def get_workout(workout_id: str):
            try:
                return t.workouts.get_workout(workout_id)
            except ValueError as e:
                raise _http_error(e)

        @workouts_router.delete("/{workout_id}")
        def delete_workout(workout_id: str):
            try:
                t.workouts.delete_workout(workout_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @workouts_router.post("/{workout_id}/template")
        def save_as_template(workout_id: str, name: str):
            try:
                template = t.planner.save_workout_as_template(
                    t.workouts.get_workout(workout_id), name
                )
            except ValueError as e:
                raise _http_error(e)
            return {"id": template.id}

        # import and export

        @self.app.post("/import/csv", tags=["Import"])
        async def import_csv(request: Request):
            text = (await request.body()).decode("utf-8", errors="replace")
            try:
                result = await t.import_csv_async(text)
            except CsvValidationError as e:
                raise HTTPException(
                    status_code=400,
                    detail={"message": str(e), "missing_columns": e.missing_columns},
                )
            return result.model_dump(exclude={"workouts", "custom_exercises"})

        @self.app.get("/export/csv", tags=["Import"])
        def export_csv(start_date: Optional[str] = None, end_date: Optional[str] = None):
            return Response(
                content=t.workouts.export_workouts_csv(start_date, end_date),
                media_type="text/csv",
                headers={"Content-Disposition": "attachment; filename=workouts.csv"},
            )

        # records

        @records_router.get("")
        def list_records():
            return t.statistics.personal_records()

        @records_router.post("/recalculate")
        def recalculate_records():
            rebuilt = t.workouts.recalculate_prs_from_history()
            t.gamification.update_campaign_progress(rebuilt)
            return {"count": len(rebuilt)}

        @records_router.put("/{exercise_id}")
        def edit_record(exercise_id: str, weight: float):
            try:
                return t.workouts.edit_pr(exercise_id, weight)
            except ValueError as e:
                raise _http_error(e)

        @records_router.delete("/{exercise_id}")
        def delete_record(exercise_id: str):
            try:
                t.workouts.delete_pr(exercise_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        # statistics

        @stats_router.get("/summary")
        def summary(period_days: Optional[int] = 30):
            return t.statistics.get_summary_stats(period_days)

        @stats_router.get("/weekly")
        def weekly():
            return t.statistics.weekly_summary()

        @stats_router.get("/monthly")
        def monthly():
            return t.statistics.monthly_summary()

        @stats_router.get("/volume_by_week")
        def volume_by_week(weeks: int = 8):
            try:
                return t.statistics.get_volume_by_week(weeks)
            except ValueError as e:
                raise _http_error(e)

        @stats_router.get("/volume_by_muscle")
        def volume_by_muscle(days: int = 30):
            return t.statistics.get_volume_by_muscle(days)

        @stats_router.get("/progress/{exercise_id}")
        def exercise_progress(exercise_id: str):
            return t.statistics.get_exercise_progress_data(exercise_id)

        @stats_router.get("/strength/{exercise_id}")
        def strength_progress(exercise_id: str):
            return t.statistics.get_strength_progress(exercise_id)

        @stats_router.get("/level")
        def level():
            return {
                **t.gamification.level_info(),
                "streak": t.gamification.workout_streak(),
                "achievements": t.gamification.unlocked(),
            }

        # templates

        @templates_router.get("")
        def list_templates():
            return t.planner.list_templates()

        @templates_router.post("")
        def create_template(payload: TemplatePayload):
            try:
                template = t.planner.create_template(
                    payload.name, payload.exercises, payload.description
                )
            except ValueError as e:
                raise _http_error(e)
            return {"id": template.id}

        @templates_router.get("/{template_id}")
        def get_template(template_id: str):
            try:
                return t.planner.get_template(template_id)
            except ValueError as e:
                raise _http_error(e)

        @templates_router.put("/{template_id}")
        def update_template(template_id: str, payload: TemplateUpdate):
            try:
                return t.planner.update_template(
                    template_id, **payload.model_dump(exclude_none=True)
                )
            except ValueError as e:
                raise _http_error(e)

        @templates_router.delete("/{template_id}")
        def delete_template(template_id: str):
            try:
                t.planner.delete_template(template_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @templates_router.post("/{template_id}/duplicate")
        def duplicate_template(template_id: str):
            try:
                return {"id": t.planner.duplicate_template(template_id).id}
            except ValueError as e:
                raise _http_error(e)

        # programs; wizard routes come first so "wizard" is never read as an id

        @programs_router.post("/wizard/start")
        def start_wizard():
            return t.planner.start_program_wizard()

        @programs_router.post("/wizard/edit/{program_id}")
        def edit_program(program_id: str):
            try:
                return t.planner.edit_program(program_id)
            except ValueError as e:
                raise _http_error(e)

        @programs_router.put("/wizard")
        def update_wizard(data: dict = Body(...)):
            return t.planner.update_program_wizard_data(data)

        @programs_router.post("/wizard/finish")
        def finish_wizard():
            try:
                return {"id": t.planner.finish_program_wizard()}
            except ValueError as e:
                raise _http_error(e)

        @programs_router.post("/wizard/cancel")
        def cancel_wizard():
            t.planner.cancel_program_wizard()
            return {"status": "cancelled"}

        @programs_router.get("")
        def list_programs():
            return t.planner.list_programs()

        @programs_router.post("")
        def create_program(data: dict = Body(...)):
            try:
                return {"id": t.planner.create_program(data).id}
            except ValueError as e:
                raise _http_error(e)

        @programs_router.get("/{program_id}")
        def get_program(program_id: str):
            try:
                return t.planner.get_program(program_id)
            except ValueError as e:
                raise _http_error(e)

        @programs_router.put("/{program_id}")
        def update_program(program_id: str, data: dict = Body(...)):
            try:
                return t.planner.update_program(program_id, data)
            except ValueError as e:
                raise _http_error(e)

        @programs_router.delete("/{program_id}")
        def delete_program(program_id: str):
            try:
                t.planner.delete_program(program_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @programs_router.post("/{program_id}/duplicate")
        def duplicate_program(program_id: str):
            try:
                return {"id": t.planner.duplicate_program(program_id).id}
            except ValueError as e:
                raise _http_error(e)

        @programs_router.post("/{program_id}/start")
        def start_program(program_id: str):
            try:
                return t.planner.start_program(program_id)
            except ValueError as e:
                raise _http_error(e)

        @programs_router.get("/{program_id}/preview/{template_id}")
        def preview_prescriptions(program_id: str, template_id: str, deload: bool = False):
            try:
                return t.planner.preview_prescriptions(
                    t.planner.get_template(template_id),
                    t.planner.get_program(program_id),
                    deload,
                )
            except ValueError as e:
                raise _http_error(e)

        # schedule

        @schedule_router.get("")
        def schedule_state():
            state = t.planner.active_program()
            if state is None:
                raise HTTPException(status_code=404, detail="no active program")
            return state

        @schedule_router.get("/today")
        def today(preview: bool = True):
            return t.planner.get_todays_workout(preview)

        @schedule_router.get("/upcoming")
        def upcoming(days: int = 21, preview: bool = False):
            return t.planner.get_upcoming_workouts(days, preview)

        @schedule_router.post("/advance")
        def advance():
            try:
                return t.planner.advance_program_day()
            except ValueError as e:
                raise _http_error(e)

        @schedule_router.post("/stop")
        def stop():
            t.planner.stop_program()
            return {"status": "stopped"}

        @schedule_router.post("/start_day")
        def start_day(week: int, day: int):
            try:
                return t.planner.start_program_workout_for_day(week, day)
            except ValueError as e:
                raise _http_error(e)

        @schedule_router.post("/complete")
        def complete(workout_id: str, week: int, day: int):
            return {"advanced": t.planner.complete_scheduled_workout(workout_id, week, day)}

        # campaigns

        @campaigns_router.get("")
        def list_campaigns():
            return [
                {**c.model_dump(), "progress": c.progress}
                for c in t.gamification.list_campaigns()
            ]

        @campaigns_router.post("")
        def create_campaign(payload: CampaignPayload):
            try:
                campaign = t.gamification.create_campaign(
                    payload.name,
                    payload.goals,
                    t.record_repo.fetch_records(),
                    payload.target_date,
                )
            except ValueError as e:
                raise _http_error(e)
            return {"id": campaign.id}

        @campaigns_router.delete("/{campaign_id}")
        def delete_campaign(campaign_id: str):
            try:
                t.gamification.delete_campaign(campaign_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        # settings and snapshot

        @self.app.get("/settings", tags=["Settings"])
        def get_settings():
            return t.settings.all_settings()

        @self.app.put("/settings/{key}", tags=["Settings"])
        def set_setting(key: str, value: str):
            try:
                t.settings.set_text(key, value)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "updated"}

        @self.app.get("/snapshot", tags=["Snapshot"])
        def export_snapshot():
            return t.export_snapshot()

        @self.app.put("/snapshot", tags=["Snapshot"])
        def load_snapshot(data: dict = Body(...)):
            try:
                t.load_snapshot(data)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "loaded"}

        for router in (
            exercises_router,
            workout_router,
            workouts_router,
            records_router,
            stats_router,
            templates_router,
            programs_router,
            schedule_router,
            campaigns_router,
        ):
            self.app.include_router(router)


api = TrackerAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
