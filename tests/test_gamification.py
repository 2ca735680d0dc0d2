import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from exercise_data import get_level_from_xp, get_xp_for_next_level
from models import CampaignGoal
from tracker import Tracker


class GamificationTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_game.db"
        self.yaml_path = "test_game.yaml"
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)
        self.tracker = Tracker(self.db_path, self.yaml_path)
        self.game = self.tracker.gamification

    def tearDown(self) -> None:
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)

    def test_levels(self) -> None:
        self.assertEqual(get_level_from_xp(0), 1)
        self.assertEqual(get_level_from_xp(100), 2)
        self.assertEqual(get_level_from_xp(249), 2)
        self.assertEqual(get_xp_for_next_level(1), 100)

    def test_add_xp_levels_up_and_floors_at_zero(self) -> None:
        profile = self.game.add_xp(260)
        self.assertEqual((profile.xp, profile.level), (260, 3))
        profile = self.game.add_xp(-1000)
        self.assertEqual((profile.xp, profile.level), (0, 1))

    def test_disabled_game_grants_nothing(self) -> None:
        self.game.enable(False)
        self.assertFalse(self.game.is_enabled())
        self.assertEqual(self.game.add_xp(500).xp, 0)
        self.assertFalse(self.game.unlock("first_pr"))
        self.assertEqual(self.game.check_milestones("bench", 400), [])

    def test_unlock_once(self) -> None:
        self.assertTrue(self.game.unlock("first_pr"))
        self.assertFalse(self.game.unlock("first_pr"))
        self.assertFalse(self.game.unlock("not_an_achievement"))
        self.assertEqual(self.tracker.profile_repo.fetch().xp, 100)

    def test_milestones_cumulative(self) -> None:
        unlocked = self.game.check_milestones("bench", 230)
        self.assertEqual(unlocked, ["bench_135", "bench_185", "bench_225"])
        self.assertEqual(self.game.check_milestones("bench", 230), [])
        self.assertEqual(self.game.check_milestones("laterals", 500), [])

    def test_workout_count_achievements(self) -> None:
        self.assertEqual(self.game.record_workout(1), ["first_workout"])
        self.assertEqual(self.game.record_workout(10), ["ten_workouts"])

    def test_streak(self) -> None:
        text = (
            "Date,Exercise Name,Weight,Reps\n"
            "2024-03-01,Bench Press,100,5\n"
            "2024-03-02,Bench Press,100,5\n"
            "2024-03-03,Bench Press,100,5\n"
            "2024-03-07,Bench Press,100,5\n"
            "2024-03-08,Bench Press,100,5\n"
        )
        self.tracker.import_csv(text)
        self.assertEqual(
            self.game.workout_streak(datetime.date(2024, 3, 9)), {"current": 2, "record": 3}
        )
        self.assertEqual(
            self.game.workout_streak(datetime.date(2024, 3, 20)), {"current": 0, "record": 3}
        )

    def test_campaign_progress_follows_records(self) -> None:
        goals = [
            CampaignGoal(exercise_id="bench", target_weight=200),
            CampaignGoal(exercise_id="squat", target_weight=300),
        ]
        campaign = self.game.create_campaign("Summer", goals, self.tracker.record_repo.fetch_records())
        self.assertEqual(campaign.progress, 0.0)
        self.tracker.import_csv(
            "Date,Exercise Name,Weight,Reps\n"
            "2024-03-01,Bench Press,200,1\n"
            "2024-03-01,Squat (Barbell),150,1\n"
        )
        stored = self.game.list_campaigns()[0]
        self.assertEqual(stored.progress, 75.0)
        self.assertIsNone(stored.completed_at)
        self.tracker.workouts.edit_pr("squat", 300)
        self.game.update_campaign_progress(self.tracker.record_repo.fetch_records())
        self.assertIsNotNone(self.game.list_campaigns()[0].completed_at)
        self.game.delete_campaign(campaign.id)
        self.assertEqual(self.game.list_campaigns(), [])
        with self.assertRaises(ValueError):
            self.game.create_campaign(" ", goals, {})


if __name__ == "__main__":
    unittest.main()
