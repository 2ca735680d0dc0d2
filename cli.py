import argparse
import json
import sys
from typing import Optional

from csv_import import CsvValidationError, ImportProgress
from logging_setup import configure_logging, get_logger
from tracker import Tracker

logger = get_logger(__name__)

DEMO_CSV = """Date,Exercise Name,Set Order,Weight,Reps,RPE,Duration
2024-01-02 18:00:00,Bench Press (Barbell),1,135,8,7,1h 5m
2024-01-02 18:00:00,Bench Press (Barbell),2,145,6,8,1h 5m
2024-01-02 18:00:00,Bench Press (Barbell),3,155,4,9,1h 5m
2024-01-02 18:00:00,Pull Up,1,0,10,,1h 5m
2024-01-04 18:00:00,Squat (Barbell),1,185,5,7,50m
2024-01-04 18:00:00,Squat (Barbell),2,205,5,8,50m
2024-01-04 18:00:00,Romanian Deadlift (Barbell),1,155,8,7,50m
"""


def _print_progress(event: ImportProgress) -> None:
    print(f"  {event.phase}: {event.current}/{event.total} rows")


def import_csv(tracker: Tracker, csv_path: str) -> None:
    with open(csv_path, encoding="utf-8-sig") as f:
        text = f.read()
    importer = tracker.importer()
    for event in importer.iter_progress(text):
        _print_progress(event)
    result = tracker.commit_import(importer.result)
    print(
        f"Imported {result.imported_count} workouts "
        f"({result.sets_imported} sets, {result.rows_skipped} rows skipped)"
    )
    if result.unmapped_exercise_names:
        print("Unmatched exercises saved as custom: " + ", ".join(result.unmapped_exercise_names))


def export_csv(tracker: Tracker, out_path: str, start: Optional[str], end: Optional[str]) -> None:
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        f.write(tracker.workouts.export_workouts_csv(start, end))
    print(f"Exported workouts to {out_path}")


def backup(tracker: Tracker, out_path: str) -> None:
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(tracker.export_snapshot(), f, indent=2)
    print(f"Backup written to {out_path}")


def restore(tracker: Tracker, src_path: str) -> None:
    with open(src_path, encoding="utf-8") as f:
        tracker.load_snapshot(json.load(f))
    print(f"Restored from {src_path}")


def show_records(tracker: Tracker) -> None:
    records = tracker.statistics.personal_records()
    if not records:
        print("No personal records yet")
        return
    for rec in sorted(records, key=lambda r: r["name"]):
        flag = " (edited)" if rec["edited"] else ""
        print(f"{rec['name']}: {rec['weight']:g}{flag}  +{rec['progress_percent']}%")


def _print_day(day) -> None:
    label = f"W{day.week_number}D{day.day_number}"
    if day.is_deload:
        label += " deload"
    if day.is_rest:
        print(f"{label}: rest")
        return
    print(f"{label}: {day.name}")
    for p in day.prescriptions:
        print(f"    {p.exercise_id}: {p.weight:g} x {p.rep_low}-{p.rep_high} ({p.state.value})")


def show_today(tracker: Tracker) -> None:
    day = tracker.planner.get_todays_workout(preview=True)
    if day is None:
        print("No active program")
        return
    _print_day(day)


def show_upcoming(tracker: Tracker, days: int, preview: bool) -> None:
    schedule = tracker.planner.get_upcoming_workouts(days, preview)
    if not schedule:
        print("No active program")
    for day in schedule:
        _print_day(day)


def demo_data(tracker: Tracker) -> None:
    """Populate the database with demo workouts if empty."""
    if tracker.workout_repo.count():
        print("Database already contains workouts")
        return
    result = tracker.import_csv(DEMO_CSV)
    print(f"Demo data inserted: {result.imported_count} workouts")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Iron Quest training log")
    parser.add_argument("--db", default="ironquest.db")
    parser.add_argument("--yaml", default="settings.yaml")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    imp = sub.add_parser("import", help="import a CSV export")
    imp.add_argument("csv")

    exp = sub.add_parser("export", help="export history as CSV")
    exp.add_argument("--out", default="workouts.csv")
    exp.add_argument("--start")
    exp.add_argument("--end")

    bkp = sub.add_parser("backup", help="write a JSON snapshot")
    bkp.add_argument("--out", default="backup.json")

    rst = sub.add_parser("restore", help="replace the store with a JSON snapshot")
    rst.add_argument("--in", dest="src", default="backup.json")

    sub.add_parser("recalc-prs", help="rebuild personal records from history")
    sub.add_parser("records", help="list personal records")
    sub.add_parser("today", help="show today's program workout")

    upc = sub.add_parser("upcoming", help="show the coming program days")
    upc.add_argument("--days", type=int, default=21)
    upc.add_argument("--preview", action="store_true")

    sub.add_parser("demo", help="insert demo workouts")

    args = parser.parse_args(argv)
    configure_logging(level=args.log_level)
    tracker = Tracker(args.db, args.yaml)

    try:
        if args.cmd == "import":
            import_csv(tracker, args.csv)
        elif args.cmd == "export":
            export_csv(tracker, args.out, args.start, args.end)
        elif args.cmd == "backup":
            backup(tracker, args.out)
        elif args.cmd == "restore":
            restore(tracker, args.src)
        elif args.cmd == "recalc-prs":
            rebuilt = tracker.workouts.recalculate_prs_from_history()
            print(f"Recalculated {len(rebuilt)} personal records")
        elif args.cmd == "records":
            show_records(tracker)
        elif args.cmd == "today":
            show_today(tracker)
        elif args.cmd == "upcoming":
            show_upcoming(tracker, args.days, args.preview)
        elif args.cmd == "demo":
            demo_data(tracker)
    except CsvValidationError as e:
        logger.error("import rejected: %s", e)
        sys.exit(str(e))
    except (OSError, ValueError) as e:
        logger.error("%s failed: %s", args.cmd, e)
        sys.exit(str(e))


if __name__ == "__main__":
    main()
