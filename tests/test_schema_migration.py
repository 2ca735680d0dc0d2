import os
import sqlite3
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database, WorkoutRepository


class TestSchemaMigration:
    def test_adds_missing_columns_with_defaults(self, tmp_path):
        db_file = tmp_path / "test.db"
        conn = sqlite3.connect(str(db_file))
        conn.execute(
            "CREATE TABLE workouts (id TEXT PRIMARY KEY, start_time TEXT NOT NULL, "
            "end_time TEXT, duration INTEGER, total_xp INTEGER)"
        )
        conn.execute(
            "INSERT INTO workouts VALUES ('w1', '2024-01-02T18:00:00', NULL, 600, 50)"
        )
        conn.commit()
        conn.close()

        Database(str(db_file))

        conn = sqlite3.connect(str(db_file))
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='workouts_old'"
        )
        assert cur.fetchone() is None
        cur = conn.execute("PRAGMA table_info(workouts)")
        cols = [row[1] for row in cur.fetchall()]
        assert "source" in cols
        row = conn.execute("SELECT duration, source FROM workouts WHERE id='w1'").fetchone()
        assert row == (600, "manual")
        conn.close()

    def test_migrated_workout_loads(self, tmp_path):
        db_file = tmp_path / "test.db"
        conn = sqlite3.connect(str(db_file))
        conn.execute(
            "CREATE TABLE workouts (id TEXT PRIMARY KEY, start_time TEXT NOT NULL, "
            "end_time TEXT, duration INTEGER, total_xp INTEGER)"
        )
        conn.execute(
            "INSERT INTO workouts VALUES ('w1', '2024-01-02T18:00:00', NULL, 0, 0)"
        )
        conn.commit()
        conn.close()

        repo = WorkoutRepository(str(db_file))
        workout = repo.fetch("w1")
        assert workout.source == "manual"
        assert workout.exercises == []

    def test_seeds_default_settings_and_profile(self, tmp_path):
        db_file = tmp_path / "fresh.db"
        Database(str(db_file))
        conn = sqlite3.connect(str(db_file))
        settings = dict(conn.execute("SELECT key, value FROM settings").fetchall())
        assert settings["weight_rounding"] == "5.0"
        assert settings["deload_week_factor"] == "0.9"
        assert conn.execute("SELECT COUNT(*) FROM profile").fetchone()[0] == 1
        conn.close()
