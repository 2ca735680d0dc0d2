import os
import sqlite3
import json
import datetime
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from config import YamlConfig
from settings_schema import validate_settings
from logging_setup import get_logger
from models import (
    ActiveProgramState,
    Campaign,
    CustomExercise,
    PersonalRecord,
    Profile,
    Program,
    SetRecord,
    TemplateExercise,
    Workout,
    WorkoutExerciseEntry,
    WorkoutTemplate,
)

logger = get_logger(__name__)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    duration INTEGER NOT NULL DEFAULT 0,
                    total_xp INTEGER NOT NULL DEFAULT 0,
                    source TEXT NOT NULL DEFAULT 'manual'
                );""",
            ["id", "start_time", "end_time", "duration", "total_xp", "source"],
        ),
        "workout_exercises": (
            """CREATE TABLE workout_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    exercise_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    is_custom INTEGER NOT NULL DEFAULT 0,
                    superset_group INTEGER,
                    target_reps TEXT,
                    target_rpe REAL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "position",
                "exercise_id",
                "name",
                "is_custom",
                "superset_group",
                "target_reps",
                "target_rpe",
            ],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_exercise_id INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    rpe REAL,
                    warmup INTEGER NOT NULL DEFAULT 0,
                    timestamp TEXT,
                    xp INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_exercise_id) REFERENCES workout_exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_exercise_id",
                "position",
                "weight",
                "reps",
                "rpe",
                "warmup",
                "timestamp",
                "xp",
            ],
        ),
        "custom_exercises": (
            """CREATE TABLE custom_exercises (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    muscle_group TEXT NOT NULL DEFAULT 'other',
                    equipment TEXT NOT NULL DEFAULT 'other'
                );""",
            ["id", "name", "muscle_group", "equipment"],
        ),
        "personal_records": (
            """CREATE TABLE personal_records (
                    exercise_id TEXT PRIMARY KEY,
                    weight REAL NOT NULL,
                    date TEXT,
                    first_weight REAL,
                    first_date TEXT,
                    imported INTEGER NOT NULL DEFAULT 0,
                    edited INTEGER NOT NULL DEFAULT 0
                );""",
            [
                "exercise_id",
                "weight",
                "date",
                "first_weight",
                "first_date",
                "imported",
                "edited",
            ],
        ),
        "workout_templates": (
            """CREATE TABLE workout_templates (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    is_default INTEGER NOT NULL DEFAULT 0,
                    position INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT,
                    updated_at TEXT
                );""",
            ["id", "name", "description", "is_default", "position", "created_at", "updated_at"],
        ),
        "template_exercises": (
            """CREATE TABLE template_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    exercise_id TEXT NOT NULL,
                    exercise_name TEXT NOT NULL DEFAULT '',
                    target_sets INTEGER NOT NULL DEFAULT 3,
                    target_reps TEXT,
                    target_rpe REAL,
                    rest_seconds INTEGER,
                    superset_group INTEGER,
                    FOREIGN KEY(template_id) REFERENCES workout_templates(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "template_id",
                "position",
                "exercise_id",
                "exercise_name",
                "target_sets",
                "target_reps",
                "target_rpe",
                "rest_seconds",
                "superset_group",
            ],
        ),
        "programs": (
            """CREATE TABLE programs (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT
                );""",
            ["id", "name", "data", "updated_at"],
        ),
        "active_program": (
            """CREATE TABLE active_program (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    program_id TEXT NOT NULL,
                    current_week INTEGER NOT NULL DEFAULT 1,
                    current_day INTEGER NOT NULL DEFAULT 1,
                    started_at TEXT,
                    completed_workouts TEXT NOT NULL DEFAULT '[]',
                    is_complete INTEGER NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "program_id",
                "current_week",
                "current_day",
                "started_at",
                "completed_workouts",
                "is_complete",
            ],
        ),
        "achievements": (
            """CREATE TABLE achievements (
                    key TEXT PRIMARY KEY,
                    unlocked_at TEXT
                );""",
            ["key", "unlocked_at"],
        ),
        "profile": (
            """CREATE TABLE profile (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    name TEXT NOT NULL DEFAULT 'Athlete',
                    level INTEGER NOT NULL DEFAULT 1,
                    xp INTEGER NOT NULL DEFAULT 0,
                    total_workouts INTEGER NOT NULL DEFAULT 0,
                    total_sets INTEGER NOT NULL DEFAULT 0,
                    total_volume REAL NOT NULL DEFAULT 0,
                    height REAL,
                    body_weight REAL
                );""",
            [
                "id",
                "name",
                "level",
                "xp",
                "total_workouts",
                "total_sets",
                "total_volume",
                "height",
                "body_weight",
            ],
        ),
        "campaigns": (
            """CREATE TABLE campaigns (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    target_date TEXT,
                    goals TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT,
                    completed_at TEXT
                );""",
            ["id", "name", "target_date", "goals", "created_at", "completed_at"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _DEFAULT_SETTINGS = {
        "weight_unit": "lbs",
        "rpe_scale": "10",
        "import_batch_size": "500",
        "weight_rounding": "5.0",
        "deload_week_factor": "0.9",
        "rest_timer_preset": "90",
        "game_enabled": "1",
        "log_level": "INFO",
    }

    def __init__(self, db_path: str = "ironquest.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def transaction(self):
        """Return a connection context that commits once on successful exit."""
        return self._connection()

    @contextmanager
    def _use(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
        else:
            with self._connection() as own:
                yield own

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s", table)
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("position", "duration", "total_xp", "xp", "warmup"):
                        return "0"
                    if col in ("imported", "edited", "is_custom", "is_default"):
                        return "0"
                    if col == "source":
                        return "'manual'"
                    if col in ("goals", "completed_workouts"):
                        return "'[]'"
                    if col == "description":
                        return "''"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in self._DEFAULT_SETTINGS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )
            conn.execute("INSERT OR IGNORE INTO profile (id) VALUES (1);")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str, conn: Optional[sqlite3.Connection] = None) -> None:
        with self._use(conn) as c:
            c.execute(f"DELETE FROM {table};")


class WorkoutRepository(BaseRepository):
    """Append-only store of completed workouts."""

    def add(self, workout: Workout, conn: Optional[sqlite3.Connection] = None) -> str:
        with self._use(conn) as c:
            c.execute(
                "INSERT INTO workouts (id, start_time, end_time, duration, total_xp, source) "
                "VALUES (?, ?, ?, ?, ?, ?);",
                (
                    workout.id,
                    workout.start_time,
                    workout.end_time,
                    workout.duration,
                    workout.total_xp,
                    workout.source,
                ),
            )
            for pos, entry in enumerate(workout.exercises):
                cur = c.execute(
                    "INSERT INTO workout_exercises (workout_id, position, exercise_id, name, "
                    "is_custom, superset_group, target_reps, target_rpe) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        workout.id,
                        pos,
                        entry.exercise_id,
                        entry.name,
                        int(entry.is_custom),
                        entry.superset_group,
                        entry.target_reps,
                        entry.target_rpe,
                    ),
                )
                entry_id = cur.lastrowid
                c.executemany(
                    "INSERT INTO sets (workout_exercise_id, position, weight, reps, rpe, "
                    "warmup, timestamp, xp) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                    [
                        (
                            entry_id,
                            i,
                            s.weight,
                            s.reps,
                            s.rpe,
                            int(s.is_warmup),
                            s.timestamp,
                            s.xp,
                        )
                        for i, s in enumerate(entry.sets)
                    ],
                )
        return workout.id

    def add_many(
        self, workouts: List[Workout], conn: Optional[sqlite3.Connection] = None
    ) -> int:
        with self._use(conn) as c:
            for workout in workouts:
                self.add(workout, conn=c)
        return len(workouts)

    def _load(self, rows: List[Tuple]) -> List[Workout]:
        if not rows:
            return []
        ids = [r[0] for r in rows]
        marks = ", ".join("?" for _ in ids)
        entry_rows = self.fetch_all(
            "SELECT id, workout_id, exercise_id, name, is_custom, superset_group, "
            f"target_reps, target_rpe FROM workout_exercises WHERE workout_id IN ({marks}) "
            "ORDER BY workout_id, position, id;",
            tuple(ids),
        )
        set_rows = self.fetch_all(
            "SELECT s.workout_exercise_id, s.weight, s.reps, s.rpe, s.warmup, s.timestamp, s.xp "
            "FROM sets s JOIN workout_exercises e ON e.id = s.workout_exercise_id "
            f"WHERE e.workout_id IN ({marks}) ORDER BY s.workout_exercise_id, s.position, s.id;",
            tuple(ids),
        )
        sets_by_entry: dict[int, list[SetRecord]] = {}
        for eid, weight, reps, rpe, warmup, ts, xp in set_rows:
            sets_by_entry.setdefault(eid, []).append(
                SetRecord(
                    weight=weight,
                    reps=reps,
                    rpe=rpe,
                    is_warmup=bool(warmup),
                    timestamp=ts or "",
                    xp=xp,
                )
            )
        entries_by_workout: dict[str, list[WorkoutExerciseEntry]] = {}
        for eid, wid, ex_id, name, is_custom, group, t_reps, t_rpe in entry_rows:
            entries_by_workout.setdefault(wid, []).append(
                WorkoutExerciseEntry(
                    exercise_id=ex_id,
                    name=name,
                    sets=sets_by_entry.get(eid, []),
                    is_custom=bool(is_custom),
                    superset_group=group,
                    target_reps=t_reps,
                    target_rpe=t_rpe,
                )
            )
        return [
            Workout(
                id=wid,
                exercises=entries_by_workout.get(wid, []),
                start_time=start,
                end_time=end,
                duration=duration,
                total_xp=total_xp,
                source=source,
            )
            for wid, start, end, duration, total_xp, source in rows
        ]

    def fetch(self, workout_id: str) -> Workout:
        rows = self.fetch_all(
            "SELECT id, start_time, end_time, duration, total_xp, source "
            "FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        return self._load(rows)[0]

    def fetch_all_workouts(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        source: Optional[str] = None,
    ) -> List[Workout]:
        """Return workouts oldest first, optionally filtered by date prefix and source."""
        query = "SELECT id, start_time, end_time, duration, total_xp, source FROM workouts WHERE 1=1"
        params: list = []
        if start_date:
            query += " AND substr(start_time, 1, 10) >= ?"
            params.append(start_date)
        if end_date:
            query += " AND substr(start_time, 1, 10) <= ?"
            params.append(end_date)
        if source:
            query += " AND source = ?"
            params.append(source)
        query += " ORDER BY start_time, rowid;"
        return self._load(self.fetch_all(query, tuple(params)))

    def delete(self, workout_id: str, conn: Optional[sqlite3.Connection] = None) -> None:
        with self._use(conn) as c:
            cur = c.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))
            if cur.rowcount == 0:
                raise ValueError("workout not found")

    def count(self) -> int:
        return self.fetch_all("SELECT COUNT(*) FROM workouts;")[0][0]

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        with self._use(conn) as c:
            c.execute("DELETE FROM sets;")
            c.execute("DELETE FROM workout_exercises;")
            c.execute("DELETE FROM workouts;")


class CustomExerciseRepository(BaseRepository):
    """Repository for user-defined exercises."""

    def add(
        self, exercise: CustomExercise, conn: Optional[sqlite3.Connection] = None
    ) -> bool:
        with self._use(conn) as c:
            cur = c.execute(
                "INSERT OR IGNORE INTO custom_exercises (id, name, muscle_group, equipment) "
                "VALUES (?, ?, ?, ?);",
                (exercise.id, exercise.name, exercise.muscle_group, exercise.equipment),
            )
            return cur.rowcount > 0

    def update(self, exercise_id: str, name: Optional[str], muscle_group: Optional[str]) -> None:
        current = self.fetch(exercise_id)
        self.execute(
            "UPDATE custom_exercises SET name = ?, muscle_group = ? WHERE id = ?;",
            (name or current.name, muscle_group or current.muscle_group, exercise_id),
        )

    def fetch(self, exercise_id: str) -> CustomExercise:
        rows = self.fetch_all(
            "SELECT id, name, muscle_group, equipment FROM custom_exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise ValueError("custom exercise not found")
        eid, name, muscle, equipment = rows[0]
        return CustomExercise(id=eid, name=name, muscle_group=muscle, equipment=equipment)

    def fetch_all_exercises(self) -> List[CustomExercise]:
        rows = self.fetch_all(
            "SELECT id, name, muscle_group, equipment FROM custom_exercises ORDER BY rowid;"
        )
        return [
            CustomExercise(id=eid, name=name, muscle_group=muscle, equipment=equipment)
            for eid, name, muscle, equipment in rows
        ]

    def delete(self, exercise_id: str) -> None:
        self.execute("DELETE FROM custom_exercises WHERE id = ?;", (exercise_id,))

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._delete_all("custom_exercises", conn)


class RecordRepository(BaseRepository):
    """Derived personal-record table keyed by exercise id."""

    _COLUMNS = "exercise_id, weight, date, first_weight, first_date, imported, edited"

    @staticmethod
    def _row_to_record(row: Tuple) -> PersonalRecord:
        eid, weight, date, first_weight, first_date, imported, edited = row
        return PersonalRecord(
            exercise_id=eid,
            weight=weight,
            date=date,
            first_weight=first_weight,
            first_date=first_date,
            imported=bool(imported),
            edited=bool(edited),
        )

    def fetch(self, exercise_id: str) -> Optional[PersonalRecord]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM personal_records WHERE exercise_id = ?;",
            (exercise_id,),
        )
        return self._row_to_record(rows[0]) if rows else None

    def fetch_records(self) -> dict[str, PersonalRecord]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM personal_records ORDER BY exercise_id;"
        )
        return {r[0]: self._row_to_record(r) for r in rows}

    def upsert(
        self, record: PersonalRecord, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        with self._use(conn) as c:
            c.execute(
                f"INSERT INTO personal_records ({self._COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(exercise_id) DO UPDATE SET weight=excluded.weight, "
                "date=excluded.date, first_weight=excluded.first_weight, "
                "first_date=excluded.first_date, imported=excluded.imported, "
                "edited=excluded.edited;",
                (
                    record.exercise_id,
                    record.weight,
                    record.date,
                    record.first_weight,
                    record.first_date,
                    int(record.imported),
                    int(record.edited),
                ),
            )

    def replace_all(
        self, records: List[PersonalRecord], conn: Optional[sqlite3.Connection] = None
    ) -> None:
        with self._use(conn) as c:
            c.execute("DELETE FROM personal_records;")
            for record in records:
                self.upsert(record, conn=c)

    def delete(self, exercise_id: str) -> None:
        with self._connection() as conn:
            cur = conn.execute(
                "DELETE FROM personal_records WHERE exercise_id = ?;", (exercise_id,)
            )
            if cur.rowcount == 0:
                raise ValueError("record not found")

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._delete_all("personal_records", conn)


class TemplateRepository(BaseRepository):
    """Repository for workout templates and their exercises."""

    def save(
        self, template: WorkoutTemplate, conn: Optional[sqlite3.Connection] = None
    ) -> str:
        with self._use(conn) as c:
            rows = c.execute(
                "SELECT position FROM workout_templates WHERE id = ?;", (template.id,)
            ).fetchall()
            if rows:
                position = rows[0][0]
            else:
                position = c.execute(
                    "SELECT COALESCE(MAX(position), -1) + 1 FROM workout_templates;"
                ).fetchone()[0]
            c.execute(
                "INSERT INTO workout_templates (id, name, description, is_default, position, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET name=excluded.name, "
                "description=excluded.description, is_default=excluded.is_default, "
                "updated_at=excluded.updated_at;",
                (
                    template.id,
                    template.name,
                    template.description,
                    int(template.is_default),
                    position,
                    template.created_at,
                    template.updated_at,
                ),
            )
            c.execute("DELETE FROM template_exercises WHERE template_id = ?;", (template.id,))
            c.executemany(
                "INSERT INTO template_exercises (template_id, position, exercise_id, "
                "exercise_name, target_sets, target_reps, target_rpe, rest_seconds, "
                "superset_group) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
                [
                    (
                        template.id,
                        i,
                        ex.exercise_id,
                        ex.exercise_name,
                        ex.target_sets,
                        ex.target_reps,
                        ex.target_rpe,
                        ex.rest_seconds,
                        ex.superset_group,
                    )
                    for i, ex in enumerate(template.exercises)
                ],
            )
        return template.id

    def _exercises(self, template_id: str) -> List[TemplateExercise]:
        rows = self.fetch_all(
            "SELECT position, exercise_id, exercise_name, target_sets, target_reps, "
            "target_rpe, rest_seconds, superset_group FROM template_exercises "
            "WHERE template_id = ? ORDER BY position;",
            (template_id,),
        )
        return [
            TemplateExercise(
                order=pos,
                exercise_id=eid,
                exercise_name=name,
                target_sets=sets,
                target_reps=reps,
                target_rpe=rpe,
                rest_seconds=rest,
                superset_group=group,
            )
            for pos, eid, name, sets, reps, rpe, rest, group in rows
        ]

    def fetch(self, template_id: str) -> WorkoutTemplate:
        rows = self.fetch_all(
            "SELECT id, name, description, is_default, created_at, updated_at "
            "FROM workout_templates WHERE id = ?;",
            (template_id,),
        )
        if not rows:
            raise ValueError("template not found")
        tid, name, desc, is_default, created, updated = rows[0]
        return WorkoutTemplate(
            id=tid,
            name=name,
            description=desc,
            is_default=bool(is_default),
            created_at=created,
            updated_at=updated,
            exercises=self._exercises(tid),
        )

    def fetch_all_templates(self) -> List[WorkoutTemplate]:
        rows = self.fetch_all("SELECT id FROM workout_templates ORDER BY position, rowid;")
        return [self.fetch(r[0]) for r in rows]

    def delete(self, template_id: str) -> None:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM workout_templates WHERE id = ?;", (template_id,))
            if cur.rowcount == 0:
                raise ValueError("template not found")

    def count(self) -> int:
        return self.fetch_all("SELECT COUNT(*) FROM workout_templates;")[0][0]

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        with self._use(conn) as c:
            c.execute("DELETE FROM template_exercises;")
            c.execute("DELETE FROM workout_templates;")


class ProgramRepository(BaseRepository):
    """Programs are stored as validated JSON documents."""

    def save(self, program: Program, conn: Optional[sqlite3.Connection] = None) -> str:
        with self._use(conn) as c:
            c.execute(
                "INSERT INTO programs (id, name, data, updated_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET name=excluded.name, data=excluded.data, "
                "updated_at=excluded.updated_at;",
                (program.id, program.name, program.model_dump_json(), program.updated_at),
            )
        return program.id

    def fetch(self, program_id: str) -> Program:
        rows = self.fetch_all("SELECT data FROM programs WHERE id = ?;", (program_id,))
        if not rows:
            raise ValueError("program not found")
        return Program.model_validate_json(rows[0][0])

    def fetch_all_programs(self) -> List[Program]:
        rows = self.fetch_all("SELECT data FROM programs ORDER BY rowid;")
        return [Program.model_validate_json(r[0]) for r in rows]

    def delete(self, program_id: str) -> None:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM programs WHERE id = ?;", (program_id,))
            if cur.rowcount == 0:
                raise ValueError("program not found")

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._delete_all("programs", conn)


class ActiveProgramRepository(BaseRepository):
    """Single-row store for the scheduler cursor."""

    def fetch(self) -> Optional[ActiveProgramState]:
        rows = self.fetch_all(
            "SELECT program_id, current_week, current_day, started_at, "
            "completed_workouts, is_complete FROM active_program WHERE id = 1;"
        )
        if not rows:
            return None
        pid, week, day, started, completed, is_complete = rows[0]
        return ActiveProgramState(
            program_id=pid,
            current_week=week,
            current_day=day,
            started_at=started,
            completed_workouts=json.loads(completed or "[]"),
            is_complete=bool(is_complete),
        )

    def save(
        self, state: ActiveProgramState, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        with self._use(conn) as c:
            c.execute(
                "INSERT INTO active_program (id, program_id, current_week, current_day, "
                "started_at, completed_workouts, is_complete) VALUES (1, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET program_id=excluded.program_id, "
                "current_week=excluded.current_week, current_day=excluded.current_day, "
                "started_at=excluded.started_at, "
                "completed_workouts=excluded.completed_workouts, "
                "is_complete=excluded.is_complete;",
                (
                    state.program_id,
                    state.current_week,
                    state.current_day,
                    state.started_at,
                    json.dumps(state.completed_workouts),
                    int(state.is_complete),
                ),
            )

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._delete_all("active_program", conn)


class AchievementRepository(BaseRepository):
    """Unlocked achievement keys."""

    def add(self, key: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        with self._use(conn) as c:
            cur = c.execute(
                "INSERT OR IGNORE INTO achievements (key, unlocked_at) VALUES (?, ?);",
                (key, datetime.datetime.now().isoformat(timespec="seconds")),
            )
            return cur.rowcount > 0

    def has(self, key: str) -> bool:
        return bool(self.fetch_all("SELECT 1 FROM achievements WHERE key = ?;", (key,)))

    def fetch_keys(self) -> List[str]:
        return [r[0] for r in self.fetch_all("SELECT key FROM achievements ORDER BY rowid;")]

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._delete_all("achievements", conn)


class ProfileRepository(BaseRepository):
    """Single-row athlete profile with running totals."""

    _COLUMNS = "name, level, xp, total_workouts, total_sets, total_volume, height, body_weight"

    def fetch(self, conn: Optional[sqlite3.Connection] = None) -> Profile:
        with self._use(conn) as c:
            row = c.execute(f"SELECT {self._COLUMNS} FROM profile WHERE id = 1;").fetchone()
        if row is None:
            return Profile()
        name, level, xp, workouts, sets, volume, height, body_weight = row
        return Profile(
            name=name,
            level=level,
            xp=xp,
            total_workouts=workouts,
            total_sets=sets,
            total_volume=volume,
            height=height,
            body_weight=body_weight,
        )

    def save(self, profile: Profile, conn: Optional[sqlite3.Connection] = None) -> None:
        with self._use(conn) as c:
            c.execute(
                f"INSERT INTO profile (id, {self._COLUMNS}) VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET name=excluded.name, level=excluded.level, "
                "xp=excluded.xp, total_workouts=excluded.total_workouts, "
                "total_sets=excluded.total_sets, total_volume=excluded.total_volume, "
                "height=excluded.height, body_weight=excluded.body_weight;",
                (
                    profile.name,
                    profile.level,
                    profile.xp,
                    profile.total_workouts,
                    profile.total_sets,
                    profile.total_volume,
                    profile.height,
                    profile.body_weight,
                ),
            )


class CampaignRepository(BaseRepository):
    """Strength campaigns with per-exercise goals."""

    def save(self, campaign: Campaign, conn: Optional[sqlite3.Connection] = None) -> str:
        with self._use(conn) as c:
            c.execute(
                "INSERT INTO campaigns (id, name, target_date, goals, created_at, completed_at) "
                "VALUES (?, ?, ?, ?, ?, ?) ON CONFLICT(id) DO UPDATE SET "
                "name=excluded.name, target_date=excluded.target_date, goals=excluded.goals, "
                "completed_at=excluded.completed_at;",
                (
                    campaign.id,
                    campaign.name,
                    campaign.target_date,
                    json.dumps([g.model_dump() for g in campaign.goals]),
                    campaign.created_at,
                    campaign.completed_at,
                ),
            )
        return campaign.id

    def fetch_campaigns(self) -> List[Campaign]:
        rows = self.fetch_all(
            "SELECT id, name, target_date, goals, created_at, completed_at "
            "FROM campaigns ORDER BY rowid;"
        )
        return [
            Campaign(
                id=cid,
                name=name,
                target_date=target,
                goals=json.loads(goals or "[]"),
                created_at=created,
                completed_at=completed,
            )
            for cid, name, target, goals, created, completed in rows
        ]

    def delete(self, campaign_id: str) -> None:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM campaigns WHERE id = ?;", (campaign_id,))
            if cur.rowcount == 0:
                raise ValueError("campaign not found")

    def clear(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._delete_all("campaigns", conn)


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    _BOOL_KEYS = {"game_enabled"}

    def __init__(
        self, db_path: str = "ironquest.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._yaml_mtime: Optional[float] = None
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _current_mtime(self) -> Optional[float]:
        try:
            return os.path.getmtime(self._yaml.path)
        except OSError:
            return None

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self._BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            try:
                result[k] = float(v)
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        mtime = self._current_mtime()
        if mtime is not None and mtime == self._yaml_mtime:
            return
        data = self._yaml.load()
        self._yaml_mtime = mtime
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self._BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())
        self._yaml_mtime = self._current_mtime()

    def get_float(self, key: str, default: float) -> float:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        try:
            return float(rows[0][0]) if rows else default
        except ValueError:
            logger.warning("setting %s is not numeric, using %s", key, default)
            return default

    def set_float(self, key: str, value: float) -> None:
        self.set_text(key, str(value))

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            logger.warning("setting %s is not an integer, using %s", key, default)
            return default

    def set_text(self, key: str, value: str) -> None:
        candidate = self._raw_all_settings()
        candidate[key] = value
        validate_settings(candidate)
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(int(value)))

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
