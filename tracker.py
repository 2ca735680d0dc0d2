"""Composition root wiring repositories and services together."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from config import APP_VERSION
from csv_import import DEFAULT_BATCH_SIZE, CsvWorkoutImporter, ImportProgress, ImportResult
from db import (
    AchievementRepository,
    ActiveProgramRepository,
    CampaignRepository,
    CustomExerciseRepository,
    ProfileRepository,
    ProgramRepository,
    RecordRepository,
    SettingsRepository,
    TemplateRepository,
    WorkoutRepository,
)
from exercise_service import ExerciseService
from gamification_service import GamificationService
from logging_setup import get_logger
from models import (
    ActiveProgramState,
    Campaign,
    CustomExercise,
    PersonalRecord,
    Profile,
    Program,
    Workout,
)
from planner_service import PlannerService
from stats_service import StatisticsService
from workout_service import ScheduledSlot, WorkoutService

logger = get_logger(__name__)


def _snapshot_workout(raw: Any) -> Workout:
    """Validate one stored workout; unknown keys or an empty body are rejected."""
    if not isinstance(raw, dict):
        raise ValueError("snapshot workouts must be objects")
    unknown = set(raw) - set(Workout.model_fields)
    if unknown:
        raise ValueError("unknown workout fields: " + ", ".join(sorted(unknown)))
    if not raw.get("start_time") or not raw.get("exercises"):
        raise ValueError("snapshot workouts need start_time and exercises")
    return Workout.model_validate(raw)


class Tracker:
    """Owns every repository and service for one database file."""

    def __init__(self, db_path: str = "ironquest.db", yaml_path: str = "settings.yaml") -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.workout_repo = WorkoutRepository(db_path)
        self.custom_repo = CustomExerciseRepository(db_path)
        self.record_repo = RecordRepository(db_path)
        self.template_repo = TemplateRepository(db_path)
        self.program_repo = ProgramRepository(db_path)
        self.active_repo = ActiveProgramRepository(db_path)
        self.achievement_repo = AchievementRepository(db_path)
        self.profile_repo = ProfileRepository(db_path)
        self.campaign_repo = CampaignRepository(db_path)

        self.exercises = ExerciseService(self.custom_repo)
        self.gamification = GamificationService(
            self.profile_repo,
            self.achievement_repo,
            self.settings,
            self.workout_repo,
            self.campaign_repo,
        )
        self.workouts = WorkoutService(
            self.workout_repo,
            self.record_repo,
            self.custom_repo,
            self.profile_repo,
            self.exercises,
            self.gamification,
        )
        self.planner = PlannerService(
            self.template_repo,
            self.program_repo,
            self.active_repo,
            self.workout_repo,
            self.record_repo,
            self.settings,
            self.exercises,
            self.workouts,
        )
        self.statistics = StatisticsService(self.workout_repo, self.record_repo, self.exercises)
        self.workouts.add_completion_listener(self.planner.on_workout_finished)
        self.workouts.add_completion_listener(self._refresh_campaigns)
        self.planner.ensure_default_templates()

    def _refresh_campaigns(self, workout: Workout, slot: Optional[ScheduledSlot]) -> None:
        self.gamification.update_campaign_progress(self.record_repo.fetch_records())

    # import

    def importer(self) -> CsvWorkoutImporter:
        batch = self.settings.get_int("import_batch_size", DEFAULT_BATCH_SIZE)
        return CsvWorkoutImporter(self.exercises, batch_size=max(1, batch))

    def commit_import(self, result: ImportResult) -> ImportResult:
        self.workouts.import_workouts(result)
        self.gamification.update_campaign_progress(self.record_repo.fetch_records())
        return result

    def import_csv(self, text: str) -> ImportResult:
        """Parse ``text`` and append its workouts in one transaction."""
        return self.commit_import(self.importer().parse(text))

    async def import_csv_async(
        self,
        text: str,
        progress: Optional[Callable[[ImportProgress], None]] = None,
    ) -> ImportResult:
        """Parse cooperatively, then commit off the event loop.

        Cancelling the task before parsing finishes leaves the store untouched.
        """
        result = await self.importer().run_async(text, progress)
        return await asyncio.to_thread(self.commit_import, result)

    # snapshot

    def export_snapshot(self) -> dict[str, Any]:
        active = self.active_repo.fetch()
        return {
            "version": APP_VERSION,
            "profile": self.profile_repo.fetch().model_dump(mode="json"),
            "workouts": [
                w.model_dump(mode="json") for w in self.workout_repo.fetch_all_workouts()
            ],
            "records": {
                eid: r.model_dump(mode="json")
                for eid, r in self.record_repo.fetch_records().items()
            },
            "achievements": self.achievement_repo.fetch_keys(),
            "custom_exercises": [
                c.model_dump(mode="json") for c in self.custom_repo.fetch_all_exercises()
            ],
            "templates": [
                t.model_dump(mode="json") for t in self.template_repo.fetch_all_templates()
            ],
            "campaigns": [c.model_dump(mode="json") for c in self.campaign_repo.fetch_campaigns()],
            "programs": [p.model_dump(mode="json") for p in self.program_repo.fetch_all_programs()],
            "active_program": active.model_dump(mode="json") if active else None,
        }

    def load_snapshot(self, data: dict[str, Any]) -> None:
        """Replace the whole store with ``data``; nothing changes if it is invalid."""
        if not isinstance(data, dict):
            raise ValueError("snapshot must be an object")
        profile = Profile.model_validate(data.get("profile") or {})
        workouts = [_snapshot_workout(w) for w in data.get("workouts") or []]
        raw_records = data.get("records") or {}
        if isinstance(raw_records, dict):
            raw_records = [
                {"exercise_id": eid, **rec} for eid, rec in raw_records.items()
            ]
        records = [PersonalRecord.model_validate(r) for r in raw_records]
        customs = [CustomExercise.model_validate(c) for c in data.get("custom_exercises") or []]
        templates = [self.planner.migrate_template(t) for t in data.get("templates") or []]
        campaigns = [Campaign.model_validate(c) for c in data.get("campaigns") or []]
        programs = [Program.model_validate(p) for p in data.get("programs") or []]
        active = data.get("active_program")
        state = ActiveProgramState.model_validate(active) if active else None
        achievements = [str(k) for k in data.get("achievements") or []]

        with self.workout_repo.transaction() as conn:
            for repo in (
                self.workout_repo,
                self.custom_repo,
                self.record_repo,
                self.template_repo,
                self.program_repo,
                self.active_repo,
                self.achievement_repo,
                self.campaign_repo,
            ):
                repo.clear(conn)
            self.profile_repo.save(profile, conn)
            self.workout_repo.add_many(workouts, conn=conn)
            for custom in customs:
                self.custom_repo.add(custom, conn=conn)
            for record in records:
                self.record_repo.upsert(record, conn=conn)
            for template in templates:
                self.template_repo.save(template, conn=conn)
            for program in programs:
                self.program_repo.save(program, conn=conn)
            if state is not None:
                self.active_repo.save(state, conn=conn)
            for key in achievements:
                self.achievement_repo.add(key, conn=conn)
            for campaign in campaigns:
                self.campaign_repo.save(campaign, conn=conn)
        logger.info(
            "snapshot loaded: %d workouts, %d records, %d programs",
            len(workouts),
            len(records),
            len(programs),
        )
