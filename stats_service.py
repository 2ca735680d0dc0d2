from __future__ import annotations

import datetime
from collections import Counter
from typing import Dict, List, Optional

from db import RecordRepository, WorkoutRepository
from exercise_service import ExerciseService
from models import Workout
from tools import MathTools


def parse_timestamp(value: Optional[str]) -> Optional[datetime.datetime]:
    """Parse an ISO timestamp, returning ``None`` for unparseable strings."""
    if not value:
        return None
    try:
        parsed = datetime.datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


class StatisticsService:
    """Compute workout statistics for analysis."""

    TOP_EXERCISES = 5

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        record_repo: RecordRepository,
        exercises: ExerciseService,
    ) -> None:
        self.workouts = workout_repo
        self.records = record_repo
        self.exercises = exercises

    def _workouts_since(
        self, days: Optional[int], now: Optional[datetime.datetime] = None
    ) -> List[Workout]:
        workouts = self.workouts.fetch_all_workouts()
        if days is None:
            return workouts
        cutoff = (now or datetime.datetime.now()) - datetime.timedelta(days=days)
        result = []
        for w in workouts:
            when = parse_timestamp(w.date)
            if when is not None and when >= cutoff:
                result.append(w)
        return result

    def get_summary_stats(
        self, period_days: Optional[int] = 30, now: Optional[datetime.datetime] = None
    ) -> Dict[str, object]:
        """Totals over the last ``period_days`` days (all history when ``None``)."""
        workouts = self._workouts_since(period_days, now)
        counts: Counter = Counter()
        names: dict[str, str] = {}
        total_volume = 0.0
        total_sets = 0
        for w in workouts:
            for entry in w.exercises:
                working = entry.working_sets()
                counts[entry.exercise_id] += len(working)
                names.setdefault(entry.exercise_id, entry.name)
                total_sets += len(working)
                total_volume += MathTools.volume([(s.reps, s.weight) for s in working])
        prs_hit = 0
        if period_days is not None:
            cutoff = (now or datetime.datetime.now()) - datetime.timedelta(days=period_days)
            for record in self.records.fetch_records().values():
                when = parse_timestamp(record.date)
                if when is not None and when >= cutoff:
                    prs_hit += 1
        else:
            prs_hit = len(self.records.fetch_records())
        durations = [w.duration for w in workouts if w.duration]
        return {
            "workouts": len(workouts),
            "total_volume": round(total_volume, 2),
            "total_xp": sum(w.total_xp for w in workouts),
            "total_sets": total_sets,
            "prs_hit": prs_hit,
            "avg_duration": round(sum(durations) / len(durations)) if durations else 0,
            "top_exercises": [
                {"exercise_id": eid, "name": names[eid], "sets": n}
                for eid, n in counts.most_common(self.TOP_EXERCISES)
                if n
            ],
        }

    def weekly_summary(self, now: Optional[datetime.datetime] = None) -> Dict[str, object]:
        return self.get_summary_stats(7, now)

    def monthly_summary(self, now: Optional[datetime.datetime] = None) -> Dict[str, object]:
        return self.get_summary_stats(30, now)

    def get_volume_by_week(
        self, weeks: int = 8, today: Optional[datetime.date] = None
    ) -> List[Dict[str, object]]:
        """Working-set volume per Sunday-based week, oldest week first."""
        if weeks < 1:
            raise ValueError("weeks must be positive")
        today = today or datetime.date.today()
        this_week = today - datetime.timedelta(days=(today.weekday() + 1) % 7)
        buckets = []
        for i in range(weeks - 1, -1, -1):
            start = this_week - datetime.timedelta(weeks=i)
            buckets.append({"week_start": start, "volume": 0.0, "workouts": 0})
        first = buckets[0]["week_start"]
        for w in self.workouts.fetch_all_workouts():
            when = parse_timestamp(w.date)
            if when is None:
                continue
            index = (when.date() - first).days // 7
            if 0 <= index < weeks:
                bucket = buckets[index]
                bucket["workouts"] += 1
                for entry in w.exercises:
                    bucket["volume"] += sum(s.volume for s in entry.working_sets())
        return [
            {
                "week": f"{b['week_start']:%b} {b['week_start'].day}",
                "week_start": b["week_start"].isoformat(),
                "volume": round(b["volume"], 2),
                "workouts": b["workouts"],
            }
            for b in buckets
        ]

    def get_volume_by_muscle(
        self, days: int = 30, now: Optional[datetime.datetime] = None
    ) -> List[Dict[str, object]]:
        """Volume per muscle group over the last ``days`` days, largest first."""
        volume: Counter = Counter()
        for w in self._workouts_since(days, now):
            for entry in w.exercises:
                muscle = self.exercises.muscle_for(entry.exercise_id, entry.name)
                volume[muscle] += sum(s.volume for s in entry.working_sets())
        total = sum(volume.values())
        return [
            {
                "muscle": muscle,
                "volume": round(v, 2),
                "percentage": round(v / total * 100) if total else 0,
            }
            for muscle, v in volume.most_common()
            if v > 0
        ]

    def get_exercise_progress_data(self, exercise_id: str) -> List[Dict[str, object]]:
        """Per-session max weight, volume and estimated 1RM, oldest first."""
        result = []
        for w in self.workouts.fetch_all_workouts():
            sets = [s for e in w.entries_for(exercise_id) for s in e.working_sets()]
            if not sets:
                continue
            result.append(
                {
                    "date": w.date,
                    "max_weight": max(s.weight for s in sets),
                    "total_volume": round(sum(s.volume for s in sets), 2),
                    "e1rm": round(max(MathTools.epley_1rm(s.weight, s.reps) for s in sets)),
                }
            )
        return result

    def get_strength_progress(self, exercise_id: str) -> List[Dict[str, object]]:
        """Heaviest working set per calendar day, one point per day."""
        name = self.exercises.display_name(exercise_id).lower()
        seen: set[str] = set()
        result = []
        for w in self.workouts.fetch_all_workouts():
            day = w.date[:10]
            if day in seen:
                continue
            weights = [
                s.weight
                for e in w.exercises
                if e.exercise_id == exercise_id or e.name.lower() == name
                for s in e.working_sets()
            ]
            top = max(weights, default=0)
            if top > 0:
                seen.add(day)
                result.append({"date": day, "weight": top})
        return result

    def personal_records(self) -> List[Dict[str, object]]:
        """All records with progress since the first logged weight."""
        result = []
        for eid, record in self.records.fetch_records().items():
            result.append(
                {
                    "exercise_id": eid,
                    "name": self.exercises.display_name(eid),
                    "weight": record.weight,
                    "date": record.date,
                    "first_weight": record.first_weight,
                    "progress_percent": MathTools.percent_change(
                        record.first_weight or 0, record.weight
                    ),
                    "imported": record.imported,
                    "edited": record.edited,
                }
            )
        return result

    def shareable_workouts(self) -> List[Workout]:
        """Workouts logged in the app, excluding imported history."""
        return [w for w in self.workouts.fetch_all_workouts() if w.source != "csv"]
