import json
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from tracker import Tracker


def _run(tmp_path, *args):
    cli.main(["--db", str(tmp_path / "cli.db"), "--yaml", str(tmp_path / "cli.yaml"), *args])


def test_demo_then_records(tmp_path, capsys):
    _run(tmp_path, "demo")
    assert "Demo data inserted: 2 workouts" in capsys.readouterr().out
    _run(tmp_path, "demo")
    assert "already contains workouts" in capsys.readouterr().out
    _run(tmp_path, "records")
    out = capsys.readouterr().out
    assert ": 205  +10.8%" in out
    assert "+14.8%" in out


def test_import_prints_progress(tmp_path, capsys):
    csv_path = tmp_path / "strong.csv"
    csv_path.write_text(cli.DEMO_CSV, encoding="utf-8")
    _run(tmp_path, "import", str(csv_path))
    out = capsys.readouterr().out
    assert "done: 7/7 rows" in out
    assert "Imported 2 workouts (7 sets, 0 rows skipped)" in out


def test_import_bad_header_exits(tmp_path):
    csv_path = tmp_path / "bad.csv"
    csv_path.write_text("Date,Weight\n2024-01-01,100\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        _run(tmp_path, "import", str(csv_path))
    assert "Exercise Name" in str(exc.value.code)


def test_missing_file_exits(tmp_path):
    with pytest.raises(SystemExit):
        _run(tmp_path, "import", str(tmp_path / "nope.csv"))


def test_backup_and_restore(tmp_path, capsys):
    _run(tmp_path, "demo")
    backup_path = tmp_path / "backup.json"
    _run(tmp_path, "backup", "--out", str(backup_path))
    data = json.loads(backup_path.read_text(encoding="utf-8"))
    assert len(data["workouts"]) == 2

    tracker = Tracker(str(tmp_path / "cli.db"), str(tmp_path / "cli.yaml"))
    tracker.workouts.delete_workout(data["workouts"][0]["id"])
    assert tracker.workout_repo.count() == 1

    _run(tmp_path, "restore", "--in", str(backup_path))
    assert tracker.workout_repo.count() == 2
    assert "Restored from" in capsys.readouterr().out


def test_export_writes_csv(tmp_path):
    _run(tmp_path, "demo")
    out_path = tmp_path / "out.csv"
    _run(tmp_path, "export", "--out", str(out_path))
    lines = out_path.read_text(encoding="utf-8").strip().splitlines()
    assert lines[0].startswith("Date,Time,Exercise Name")
    assert len(lines) == 8


def test_today_without_program(tmp_path, capsys):
    _run(tmp_path, "today")
    assert "No active program" in capsys.readouterr().out


def test_upcoming_with_program(tmp_path, capsys):
    tracker = Tracker(str(tmp_path / "cli.db"), str(tmp_path / "cli.yaml"))
    program = tracker.planner.create_program(
        {
            "name": "Three Day",
            "duration_weeks": 1,
            "cycle_type": "microcycle",
            "cycle_length_days": 3,
            "weeks": [
                {
                    "week_number": 1,
                    "days": [
                        {"day_number": 1, "name": "Push", "template_id": "push"},
                        {"day_number": 2, "name": "Rest", "is_rest": True},
                        {"day_number": 3, "name": "Pull", "template_id": "pull"},
                    ],
                }
            ],
        }
    )
    tracker.planner.start_program(program.id)
    _run(tmp_path, "upcoming", "--days", "5")
    out = capsys.readouterr().out.splitlines()
    assert out == ["W1D1: Push", "W1D2: rest", "W1D3: Pull"]
