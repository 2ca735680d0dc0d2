import os
import sys
import asyncio
import json
import unittest

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import APP_VERSION
from csv_import import CsvValidationError
from tracker import Tracker


BENCH_CSV = """Date,Exercise Name,Weight,Reps
2024-03-05 18:02:11,Bench Press (Barbell),135,8
2024-03-05 18:02:11,Bench Press (Barbell),145,6
2024-03-05 18:02:11,Bench Press (Barbell),155,4
2024-03-05 18:02:11,Sled Push,90,1
"""


class SnapshotTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.paths = ["test_tracker_a.db", "test_tracker_a.yaml", "test_tracker_b.db", "test_tracker_b.yaml"]
        for p in self.paths:
            if os.path.exists(p):
                os.remove(p)
        self.tracker = Tracker("test_tracker_a.db", "test_tracker_a.yaml")

    def tearDown(self) -> None:
        for p in self.paths:
            if os.path.exists(p):
                os.remove(p)

    def test_snapshot_keys_and_json(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        snapshot = self.tracker.export_snapshot()
        self.assertEqual(
            set(snapshot),
            {
                "version",
                "profile",
                "workouts",
                "records",
                "achievements",
                "custom_exercises",
                "templates",
                "campaigns",
                "programs",
                "active_program",
            },
        )
        self.assertEqual(snapshot["version"], APP_VERSION)
        self.assertEqual(snapshot["records"]["bench"]["weight"], 155)
        self.assertIsNone(snapshot["active_program"])
        json.dumps(snapshot)

    def test_load_replaces_store(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        program = self.tracker.planner.create_program({"name": "Blank"})
        self.tracker.planner.start_program(program.id)
        snapshot = self.tracker.export_snapshot()

        other = Tracker("test_tracker_b.db", "test_tracker_b.yaml")
        other.workouts.start_workout()
        other.workouts.add_exercise("squat")
        other.workouts.log_set(0, 225, 5)
        other.workouts.finish_workout()

        other.load_snapshot(snapshot)
        workouts = other.workouts.list_workouts()
        self.assertEqual(len(workouts), 1)
        self.assertEqual(workouts[0].id, snapshot["workouts"][0]["id"])
        self.assertNotIn("squat", other.workouts.get_records())
        self.assertEqual(other.workouts.get_records()["bench"].weight, 155)
        self.assertEqual([c.id for c in other.custom_repo.fetch_all_exercises()], ["sled_push"])
        self.assertEqual(other.planner.active_program().program_id, program.id)
        self.assertEqual(other.profile_repo.fetch().total_workouts, 1)
        self.assertEqual(other.export_snapshot(), snapshot)

    def test_invalid_snapshot_changes_nothing(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        bad = self.tracker.export_snapshot()
        bad["workouts"][0]["exercises"][0]["sets"][0]["reps"] = 0
        with self.assertRaises(ValueError):
            self.tracker.load_snapshot(bad)
        with self.assertRaises(ValueError):
            self.tracker.load_snapshot(["not", "a", "dict"])
        self.assertEqual(self.tracker.workout_repo.count(), 1)

    def test_malformed_workout_keeps_store(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        good = self.tracker.export_snapshot()["workouts"][0]
        for bad in (
            {"bad": 1},
            {"start_time": "2024-03-05T18:02:11", "exercises": []},
            {**good, "notes": "unexpected"},
            "not an object",
        ):
            with self.assertRaises(ValueError):
                self.tracker.load_snapshot({"workouts": [bad]})
        self.assertEqual(self.tracker.workout_repo.count(), 1)
        self.assertEqual(self.tracker.workouts.get_records()["bench"].weight, 155)
        self.assertEqual(self.tracker.profile_repo.fetch().total_workouts, 1)

    def test_legacy_templates_migrate_on_load(self) -> None:
        snapshot = self.tracker.export_snapshot()
        snapshot["templates"] = [{"id": "old", "name": "Old Day", "exercises": ["bench", "rows"]}]
        self.tracker.load_snapshot(snapshot)
        template = self.tracker.planner.get_template("old")
        self.assertEqual([e.target_reps for e in template.exercises], ["8-12", "8-12"])
        self.assertEqual([e.target_sets for e in template.exercises], [3, 3])

    def test_import_batch_size_setting(self) -> None:
        self.tracker.settings.set_int("import_batch_size", 2)
        self.assertEqual(self.tracker.importer().batch_size, 2)
        with self.assertRaises(ValueError):
            self.tracker.settings.set_int("import_batch_size", 0)


@pytest.mark.asyncio
async def test_import_csv_async_commits(tmp_path):
    tracker = Tracker(str(tmp_path / "async.db"), str(tmp_path / "async.yaml"))
    seen = []
    result = await tracker.import_csv_async(BENCH_CSV, seen.append)
    assert result.imported_count == 1
    assert result.unmapped_exercise_names == ["Sled Push"]
    assert seen[-1].phase == "done"
    assert tracker.workout_repo.count() == 1
    assert tracker.workouts.get_records()["bench"].weight == 155


@pytest.mark.asyncio
async def test_import_csv_async_cancel_leaves_store_untouched(tmp_path):
    tracker = Tracker(str(tmp_path / "cancel.db"), str(tmp_path / "cancel.yaml"))
    tracker.settings.set_int("import_batch_size", 1)
    rows = "\n".join(f"2024-01-{d:02d},Squat (Barbell),225,5" for d in range(1, 29))
    text = "Date,Exercise Name,Weight,Reps\n" + rows + "\n"
    started = asyncio.Event()

    def on_progress(event):
        if event.current >= 3:
            started.set()

    task = asyncio.create_task(tracker.import_csv_async(text, on_progress))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert tracker.workout_repo.count() == 0


@pytest.mark.asyncio
async def test_import_csv_async_rejects_bad_header(tmp_path):
    tracker = Tracker(str(tmp_path / "bad.db"), str(tmp_path / "bad.yaml"))
    with pytest.raises(CsvValidationError):
        await tracker.import_csv_async("Date,Reps\n2024-01-01,5\n")
    assert tracker.workout_repo.count() == 0
