import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from tracker import Tracker
from exercise_data import calculate_set_xp


BENCH_CSV = """Date,Exercise Name,Set Order,Weight,Reps,RPE,Duration
2024-03-05 18:02:11,Bench Press (Barbell),1,135,8,7,1h 11m
2024-03-05 18:02:11,Bench Press (Barbell),2,145,6,8,1h 11m
2024-03-05 18:02:11,Bench Press (Barbell),3,155,4,9,1h 11m
"""


class WorkoutServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_workout_service.db"
        self.yaml_path = "test_workout_service.yaml"
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)
        self.tracker = Tracker(self.db_path, self.yaml_path)
        self.service = self.tracker.workouts

    def tearDown(self) -> None:
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)

    def test_import_sets_pr_and_profile(self) -> None:
        result = self.tracker.import_csv(BENCH_CSV)
        self.assertEqual(result.imported_count, 1)
        record = self.service.get_records()["bench"]
        self.assertEqual(record.weight, 155)
        self.assertEqual(record.first_weight, 135)
        self.assertTrue(record.imported)
        profile = self.tracker.profile_repo.fetch()
        self.assertEqual(profile.total_workouts, 1)
        self.assertEqual(profile.total_sets, 3)
        self.assertEqual(profile.total_volume, 135 * 8 + 145 * 6 + 155 * 4)
        self.assertIn("importer", self.tracker.gamification.unlocked())

    def test_failed_import_writes_nothing(self) -> None:
        with self.assertRaises(ValueError):
            self.tracker.import_csv("Date,Weight\n2024-01-01,100\n")
        self.assertEqual(self.tracker.workout_repo.count(), 0)
        self.assertEqual(self.tracker.profile_repo.fetch().total_workouts, 0)

    def test_edit_then_recalculate_restores_max(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        edited = self.service.edit_pr("bench", 200)
        self.assertEqual(edited.weight, 200)
        self.assertTrue(edited.edited)
        self.assertEqual(edited.first_weight, 135)
        self.assertEqual(self.service.get_records()["bench"].weight, 200)

        rebuilt = self.service.recalculate_prs_from_history()
        self.assertEqual(rebuilt["bench"].weight, 155)
        self.assertFalse(self.service.get_records()["bench"].edited)

    def test_delete_pr(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        self.service.delete_pr("bench")
        self.assertNotIn("bench", self.service.get_records())
        with self.assertRaises(ValueError):
            self.service.delete_pr("bench")

    def test_session_logging(self) -> None:
        self.service.start_workout()
        with self.assertRaises(ValueError):
            self.service.start_workout()
        idx = self.service.add_exercise("bench")
        warm = self.service.log_set(idx, 95, 10, is_warmup=True)
        self.assertEqual(warm.xp, 0)
        self.assertFalse(warm.is_pr)
        logged = self.service.log_set(idx, 135, 8, rpe=8)
        self.assertEqual(logged.xp, calculate_set_xp("bench", 135, 8))
        self.assertTrue(logged.is_pr)
        self.assertIn("bench_135", logged.milestones)
        self.assertEqual(self.service.get_records()["bench"].weight, 135)

        self.service.update_set(idx, 1, reps=10)
        self.assertEqual(self.service.active.workout.exercises[0].sets[1].reps, 10)
        self.assertEqual(self.service.active.workout.exercises[0].sets[1].rpe, 8)
        cleared = self.service.update_set(idx, 1, clear_rpe=True)
        self.assertIsNone(cleared.rpe)
        self.assertEqual(cleared.reps, 10)
        self.service.remove_set(idx, 0)
        self.assertEqual(len(self.service.active.workout.exercises[0].sets), 1)

        workout = self.service.finish_workout()
        self.assertIsNone(self.service.active)
        stored = self.service.get_workout(workout.id)
        self.assertEqual(stored.total_xp, calculate_set_xp("bench", 135, 10))
        self.assertEqual(stored.source, "manual")
        self.assertIn("first_workout", self.tracker.gamification.unlocked())

    def test_set_validation(self) -> None:
        self.service.start_workout()
        idx = self.service.add_exercise("squat")
        with self.assertRaisesRegex(ValueError, "reps must be positive"):
            self.service.log_set(idx, 100, 0)
        with self.assertRaisesRegex(ValueError, "weight must be non-negative"):
            self.service.log_set(idx, -5, 5)
        with self.assertRaisesRegex(ValueError, "rpe must be between"):
            self.service.log_set(idx, 100, 5, rpe=7.3)
        with self.assertRaisesRegex(ValueError, "set not found"):
            self.service.remove_set(idx, 3)
        with self.assertRaisesRegex(ValueError, "exercise not found"):
            self.service.add_exercise("not_a_lift")

    def test_no_active_workout(self) -> None:
        with self.assertRaisesRegex(ValueError, "no active workout"):
            self.service.log_set(0, 100, 5)
        with self.assertRaisesRegex(ValueError, "no active workout"):
            self.service.finish_workout()

    def test_empty_workout_cannot_finish(self) -> None:
        self.service.start_workout()
        self.service.add_exercise("bench")
        with self.assertRaisesRegex(ValueError, "no sets"):
            self.service.finish_workout()

    def test_supersets(self) -> None:
        self.service.start_workout()
        a = self.service.add_exercise("bench")
        b = self.service.add_exercise("rows")
        group = self.service.link_superset([a, b])
        self.assertEqual(group, 1)
        entries = self.service.active.workout.exercises
        self.assertEqual({e.superset_group for e in entries}, {1})
        self.service.unlink_superset(b)
        self.assertIsNone(entries[b].superset_group)
        with self.assertRaises(ValueError):
            self.service.link_superset([a])

    def test_delete_workout_adjusts_profile(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        workout = self.service.list_workouts()[0]
        self.service.delete_workout(workout.id)
        profile = self.tracker.profile_repo.fetch()
        self.assertEqual(profile.total_workouts, 0)
        self.assertEqual(profile.total_sets, 0)
        with self.assertRaisesRegex(ValueError, "workout not found"):
            self.service.delete_workout(workout.id)

    def test_export_is_reimportable(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        exported = self.service.export_workouts_csv()
        lines = exported.strip().splitlines()
        self.assertEqual(
            lines[0], "Date,Time,Exercise Name,Set Order,Weight,Reps,RPE,Warmup,XP,Duration"
        )
        self.assertEqual(len(lines), 4)
        result = self.tracker.importer().parse(exported)
        self.assertEqual(result.rows_skipped, 0)
        entry = result.workouts[0].exercises[0]
        self.assertEqual(entry.exercise_id, "bench")
        self.assertEqual([s.weight for s in entry.sets], [135, 145, 155])
        self.assertEqual(result.workouts[0].duration, 4260)

    def test_export_date_range(self) -> None:
        self.tracker.import_csv(BENCH_CSV)
        exported = self.service.export_workouts_csv(start_date="2025-01-01")
        self.assertEqual(len(exported.strip().splitlines()), 1)


if __name__ == "__main__":
    unittest.main()
