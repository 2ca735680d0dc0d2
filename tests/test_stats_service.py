import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from tracker import Tracker
from stats_service import parse_timestamp


HISTORY_CSV = """Date,Exercise Name,Weight,Reps,Duration
2024-03-03 09:00:00,Bench Press (Barbell),135,10,1h
2024-03-03 09:00:00,Bench Press (Barbell),155,5,1h
2024-03-05 18:00:00,Squat (Barbell),225,5,45m
2024-03-05 18:00:00,Lateral Raise (Dumbbell),20,12,45m
2024-03-12 18:00:00,Bench Press (Barbell),160,5,50m
"""


class StatisticsServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_stats.db"
        self.yaml_path = "test_stats.yaml"
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)
        self.tracker = Tracker(self.db_path, self.yaml_path)
        self.tracker.import_csv(HISTORY_CSV)
        self.stats = self.tracker.statistics
        self.now = datetime.datetime(2024, 3, 14, 12, 0)

    def tearDown(self) -> None:
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)

    def test_parse_timestamp(self) -> None:
        self.assertEqual(parse_timestamp("2024-03-03T09:00:00+02:00"), datetime.datetime(2024, 3, 3, 9))
        self.assertIsNone(parse_timestamp("not a date"))
        self.assertIsNone(parse_timestamp(None))

    def test_summary_all_time(self) -> None:
        summary = self.stats.get_summary_stats(None)
        self.assertEqual(summary["workouts"], 3)
        self.assertEqual(summary["total_sets"], 5)
        self.assertEqual(summary["total_volume"], 1350 + 775 + 1125 + 240 + 800)
        self.assertEqual(summary["prs_hit"], 3)
        self.assertEqual(summary["top_exercises"][0]["exercise_id"], "bench")
        self.assertEqual(summary["top_exercises"][0]["sets"], 3)
        self.assertEqual(summary["avg_duration"], round((3600 + 2700 + 3000) / 3))

    def test_weekly_summary_window(self) -> None:
        summary = self.stats.weekly_summary(now=self.now)
        self.assertEqual(summary["workouts"], 1)
        self.assertEqual(summary["total_volume"], 800)

    def test_volume_by_week(self) -> None:
        weeks = self.stats.get_volume_by_week(3, today=datetime.date(2024, 3, 14))
        self.assertEqual([w["week_start"] for w in weeks], ["2024-02-25", "2024-03-03", "2024-03-10"])
        self.assertEqual(weeks[1]["week"], "Mar 3")
        self.assertEqual(weeks[1]["volume"], 1350 + 775 + 1125 + 240)
        self.assertEqual(weeks[1]["workouts"], 2)
        self.assertEqual(weeks[2]["volume"], 800)
        self.assertEqual(weeks[0]["volume"], 0)
        with self.assertRaises(ValueError):
            self.stats.get_volume_by_week(0)

    def test_volume_by_muscle(self) -> None:
        muscles = self.stats.get_volume_by_muscle(30, now=self.now)
        self.assertEqual(muscles[0]["muscle"], "chest")
        by_name = {m["muscle"]: m for m in muscles}
        self.assertEqual(by_name["quads"]["volume"], 1125)
        self.assertEqual(sum(m["percentage"] for m in muscles), 100)

    def test_exercise_progress(self) -> None:
        points = self.stats.get_exercise_progress_data("bench")
        self.assertEqual([p["max_weight"] for p in points], [155, 160])
        self.assertEqual(points[0]["total_volume"], 2125)
        self.assertEqual(points[1]["e1rm"], round(160 * (1 + 5 / 30)))

    def test_strength_progress(self) -> None:
        points = self.stats.get_strength_progress("bench")
        self.assertEqual(points, [{"date": "2024-03-03", "weight": 155}, {"date": "2024-03-12", "weight": 160}])

    def test_personal_records_progress(self) -> None:
        records = {r["exercise_id"]: r for r in self.stats.personal_records()}
        self.assertEqual(records["bench"]["weight"], 160)
        self.assertEqual(records["bench"]["first_weight"], 135)
        self.assertEqual(records["bench"]["progress_percent"], 18.5)
        self.assertTrue(records["bench"]["imported"])

    def test_shareable_excludes_imports(self) -> None:
        self.assertEqual(self.stats.shareable_workouts(), [])


if __name__ == "__main__":
    unittest.main()
