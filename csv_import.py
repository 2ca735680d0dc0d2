"""Import workout history exported by other training apps as CSV."""

from __future__ import annotations

import asyncio
import datetime
import re
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from pydantic import BaseModel, Field

from exercise_data import calculate_set_xp, get_exercise_by_id
from exercise_service import ExerciseService, slugify
from logging_setup import get_logger
from models import CustomExercise, SetRecord, Workout, WorkoutExerciseEntry
from tools import MathTools

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("Date", "Exercise Name", "Weight", "Reps")
DEFAULT_BATCH_SIZE = 500

_FLOAT_PREFIX = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")
_INT_PREFIX = re.compile(r"^\s*[-+]?\d+")
_HOURS = re.compile(r"(\d+)\s*h", re.IGNORECASE)
_MINUTES = re.compile(r"(\d+)\s*m", re.IGNORECASE)
_TRUTHY = {"1", "true", "yes", "w"}
_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%d.%m.%Y",
)


class CsvValidationError(ValueError):
    """Raised when the header lacks required columns."""

    def __init__(self, missing_columns: list[str]) -> None:
        self.missing_columns = list(missing_columns)
        super().__init__(
            "CSV is missing required columns: " + ", ".join(self.missing_columns)
        )


@dataclass(frozen=True)
class ImportProgress:
    current: int
    total: int
    phase: str = "parsing"

    @property
    def fraction(self) -> float:
        return self.current / self.total if self.total else 1.0


class ImportResult(BaseModel):
    workouts: list[Workout] = Field(default_factory=list)
    imported_count: int = 0
    unmapped_exercise_names: list[str] = Field(default_factory=list)
    custom_exercises: list[CustomExercise] = Field(default_factory=list)
    rows_total: int = 0
    rows_skipped: int = 0
    sets_imported: int = 0


def iter_csv_rows(text: str) -> list[list[str]]:
    """Split CSV text into rows of trimmed fields.

    Double quotes toggle quoted mode. Commas and newlines inside quotes are
    kept in the field. Lines with no content at all are dropped.
    """
    rows: list[list[str]] = []
    row: list[str] = []
    field: list[str] = []
    in_quotes = False

    def end_row() -> None:
        row.append("".join(field).strip())
        field.clear()
        if any(row):
            rows.append(list(row))
        row.clear()

    for ch in text.lstrip("\ufeff"):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            row.append("".join(field).strip())
            field.clear()
        elif ch == "\n" and not in_quotes:
            end_row()
        elif ch == "\r" and not in_quotes:
            continue
        else:
            field.append(ch)
    if field or row:
        end_row()
    return rows


def resolve_columns(header: list[str]) -> dict[str, Optional[int]]:
    """Locate the known columns, raising ``CsvValidationError`` if any are missing."""
    names = [h.replace('"', "").strip().lower() for h in header]

    def find(pred) -> Optional[int]:
        for i, name in enumerate(names):
            if pred(name):
                return i
        return None

    columns = {
        "date": find(lambda n: n == "date"),
        "exercise": find(lambda n: "exercise name" in n),
        "weight": find(lambda n: n == "weight" or n.startswith("weight ")),
        "reps": find(lambda n: n == "reps"),
        "rpe": find(lambda n: n == "rpe"),
        "warmup": find(lambda n: n == "warmup"),
        "duration": find(lambda n: n == "duration" or n.startswith("duration ")),
    }
    missing = [
        label
        for label, key in zip(REQUIRED_COLUMNS, ("date", "exercise", "weight", "reps"))
        if columns[key] is None
    ]
    if missing:
        raise CsvValidationError(missing)
    return columns


def parse_leading_float(text: str) -> float:
    match = _FLOAT_PREFIX.match(text or "")
    return float(match.group(0)) if match else 0.0


def parse_leading_int(text: str) -> int:
    match = _INT_PREFIX.match(text or "")
    return int(match.group(0)) if match else 0


def parse_rpe(text: str) -> Optional[float]:
    if not text or not _FLOAT_PREFIX.match(text):
        return None
    value = MathTools.round_to_half(parse_leading_float(text))
    if not 1 <= value <= 10:
        return None
    return value


def parse_duration(text: str) -> int:
    """Parse ``"1h 11m"`` style durations into seconds; unknown forms give 0."""
    if not text:
        return 0
    hours = _HOURS.search(text)
    minutes = _MINUTES.search(text)
    total = 0
    if hours:
        total += int(hours.group(1)) * 3600
    if minutes:
        total += int(minutes.group(1)) * 60
    return total


def normalize_date(raw: str) -> str:
    """Return an ISO timestamp for recognised formats, otherwise ``raw``."""
    text = raw.strip()
    try:
        return datetime.datetime.fromisoformat(text).isoformat(timespec="seconds")
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).isoformat(timespec="seconds")
        except ValueError:
            continue
    return text


class _Session:
    def __init__(self, date: str, duration: int) -> None:
        self.date = date
        self.duration = duration
        self.entries: dict[str, WorkoutExerciseEntry] = {}


class CsvWorkoutImporter:
    """Turn CSV text into ``Workout`` records in cooperative batches.

    ``iter_progress`` yields an ``ImportProgress`` after every batch; the
    finished ``ImportResult`` is stored on ``result`` once the generator is
    exhausted. Nothing is written here: the caller commits the result.
    """

    def __init__(
        self, exercises: ExerciseService, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.exercises = exercises
        self.batch_size = batch_size
        self.result: Optional[ImportResult] = None

    def iter_progress(self, text: str) -> Iterator[ImportProgress]:
        self.result = None
        rows = iter_csv_rows(text)
        if not rows:
            raise CsvValidationError(list(REQUIRED_COLUMNS))
        columns = resolve_columns(rows[0])
        data = rows[1:]
        total = len(data)
        logger.info("importing %d csv rows in batches of %d", total, self.batch_size)

        self._sessions: dict[str, _Session] = {}
        self._known_customs = self.exercises.customs.fetch_all_exercises()
        self._new_customs: dict[str, CustomExercise] = {}
        self._unmapped: list[str] = []
        self._matches: dict[str, Optional[str]] = {}
        self._skipped = 0
        self._sets = 0

        yield ImportProgress(0, total)
        for start in range(0, total, self.batch_size):
            for row in data[start : start + self.batch_size]:
                self._consume(row, columns)
            yield ImportProgress(min(start + self.batch_size, total), total)

        workouts = []
        for session in self._sessions.values():
            entries = [e for e in session.entries.values() if e.sets]
            if not entries:
                continue
            workouts.append(
                Workout(
                    exercises=entries,
                    start_time=session.date,
                    end_time=session.date,
                    duration=session.duration,
                    total_xp=sum(s.xp for e in entries for s in e.sets),
                    source="csv",
                )
            )
        self.result = ImportResult(
            workouts=workouts,
            imported_count=len(workouts),
            unmapped_exercise_names=list(self._unmapped),
            custom_exercises=list(self._new_customs.values()),
            rows_total=total,
            rows_skipped=self._skipped,
            sets_imported=self._sets,
        )
        if self._skipped:
            logger.info("skipped %d malformed csv rows", self._skipped)
        if self._unmapped:
            logger.warning(
                "%d exercise names had no catalog match: %s",
                len(self._unmapped),
                ", ".join(self._unmapped),
            )
        yield ImportProgress(total, total, "done")

    def parse(self, text: str) -> ImportResult:
        for _ in self.iter_progress(text):
            pass
        return self.result

    async def run_async(
        self,
        text: str,
        progress: Optional[Callable[[ImportProgress], None]] = None,
    ) -> ImportResult:
        """Parse ``text`` yielding to the event loop between batches."""
        for event in self.iter_progress(text):
            if progress is not None:
                progress(event)
            await asyncio.sleep(0)
        return self.result

    @staticmethod
    def _field(row: list[str], index: Optional[int]) -> str:
        if index is None or index >= len(row):
            return ""
        return row[index]

    def _resolve(self, raw_name: str) -> Optional[str]:
        """Catalog or custom id for ``raw_name``; None when it has no usable characters."""
        if raw_name in self._matches:
            return self._matches[raw_name]
        customs = self._known_customs + list(self._new_customs.values())
        exercise_id = self.exercises.match_exercise_from_csv(raw_name, customs=customs)
        if exercise_id is None:
            if not slugify(raw_name):
                self._matches[raw_name] = None
                return None
            custom = ExerciseService.build_custom_exercise(raw_name)
            self._new_customs.setdefault(custom.id, custom)
            exercise_id = custom.id
            if raw_name not in self._unmapped:
                self._unmapped.append(raw_name)
        self._matches[raw_name] = exercise_id
        return exercise_id

    def _consume(self, row: list[str], columns: dict[str, Optional[int]]) -> None:
        raw_date = self._field(row, columns["date"])
        raw_name = self._field(row, columns["exercise"])
        if not raw_date or not raw_name:
            self._skipped += 1
            return
        # the first row seen for a date sets the duration, valid or not
        session = self._sessions.get(raw_date)
        if session is None:
            session = _Session(
                normalize_date(raw_date),
                parse_duration(self._field(row, columns["duration"])),
            )
            self._sessions[raw_date] = session

        weight = parse_leading_float(self._field(row, columns["weight"]))
        reps = parse_leading_int(self._field(row, columns["reps"]))
        if reps <= 0 or weight < 0:
            self._skipped += 1
            return
        exercise_id = self._resolve(raw_name)
        if exercise_id is None:
            self._skipped += 1
            return
        entry = session.entries.get(exercise_id)
        if entry is None:
            catalog = get_exercise_by_id(exercise_id)
            custom = self._new_customs.get(exercise_id)
            if catalog is not None:
                name = catalog.name
            elif custom is not None:
                name = custom.name
            else:
                name = self.exercises.display_name(exercise_id)
            entry = WorkoutExerciseEntry(
                exercise_id=exercise_id, name=name, is_custom=catalog is None
            )
            session.entries[exercise_id] = entry
        is_warmup = self._field(row, columns["warmup"]).lower() in _TRUTHY
        entry.sets.append(
            SetRecord(
                weight=weight,
                reps=reps,
                rpe=parse_rpe(self._field(row, columns["rpe"])),
                is_warmup=is_warmup,
                timestamp=session.date,
                xp=0 if is_warmup else calculate_set_xp(exercise_id, weight, reps),
            )
        )
        self._sets += 1
