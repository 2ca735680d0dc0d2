"""Static exercise catalog and game tables."""

import math

from models import ExerciseDefinition

# (id, name, muscle group, equipment)
_CATALOG_ROWS = [
    ("bench", "Bench Press", "chest", "barbell"),
    ("incline_bench", "Incline Bench Press", "chest", "barbell"),
    ("decline_bench", "Decline Bench Press", "chest", "barbell"),
    ("db_bench", "Dumbbell Bench Press", "chest", "dumbbell"),
    ("incline_db", "Incline Dumbbell Press", "chest", "dumbbell"),
    ("decline_db", "Decline Dumbbell Press", "chest", "dumbbell"),
    ("db_flies", "Dumbbell Flies", "chest", "dumbbell"),
    ("incline_flies", "Incline Dumbbell Flies", "chest", "dumbbell"),
    ("cable_flies", "Cable Flies", "chest", "cable"),
    ("low_cable_flies", "Low Cable Flies", "chest", "cable"),
    ("high_cable_flies", "High Cable Flies", "chest", "cable"),
    ("chest_press_machine", "Chest Press Machine", "chest", "machine"),
    ("pec_deck", "Pec Deck", "chest", "machine"),
    ("pushups", "Push-Ups", "chest", "bodyweight"),
    ("dips_chest", "Chest Dips", "chest", "bodyweight"),
    ("deadlift", "Deadlift", "back", "barbell"),
    ("rows", "Barbell Rows", "back", "barbell"),
    ("pendlay_row", "Pendlay Row", "back", "barbell"),
    ("tbar_row", "T-Bar Row", "back", "barbell"),
    ("db_row", "Dumbbell Row", "back", "dumbbell"),
    ("pullups", "Pull-Ups", "back", "bodyweight"),
    ("chinups", "Chin-Ups", "back", "bodyweight"),
    ("lat_pulldown", "Lat Pulldown", "back", "cable"),
    ("close_grip_pulldown", "Close Grip Pulldown", "back", "cable"),
    ("seated_cable_row", "Seated Cable Row", "back", "cable"),
    ("cable_pullover", "Cable Pullover", "back", "cable"),
    ("facepull", "Face Pulls", "back", "cable"),
    ("machine_row", "Machine Row", "back", "machine"),
    ("chest_supported_row", "Chest Supported Row", "back", "machine"),
    ("hyperextension", "Hyperextensions", "back", "bodyweight"),
    ("rack_pull", "Rack Pull", "back", "barbell"),
    ("ohp", "Overhead Press", "shoulders", "barbell"),
    ("push_press", "Push Press", "shoulders", "barbell"),
    ("db_shoulder_press", "Dumbbell Shoulder Press", "shoulders", "dumbbell"),
    ("arnold_press", "Arnold Press", "shoulders", "dumbbell"),
    ("laterals", "Lateral Raises", "shoulders", "dumbbell"),
    ("cable_lateral", "Cable Lateral Raise", "shoulders", "cable"),
    ("front_raise", "Front Raises", "shoulders", "dumbbell"),
    ("rear_delt_fly", "Rear Delt Fly", "shoulders", "dumbbell"),
    ("reverse_pec_deck", "Reverse Pec Deck", "shoulders", "machine"),
    ("upright_row", "Upright Row", "shoulders", "barbell"),
    ("shrugs_bb", "Barbell Shrugs", "shoulders", "barbell"),
    ("shrugs_db", "Dumbbell Shrugs", "shoulders", "dumbbell"),
    ("shoulder_press_machine", "Shoulder Press Machine", "shoulders", "machine"),
    ("landmine_press", "Landmine Press", "shoulders", "barbell"),
    ("curls", "Barbell Curls", "biceps", "barbell"),
    ("ez_bar_curl", "EZ Bar Curl", "biceps", "barbell"),
    ("db_curl", "Dumbbell Curls", "biceps", "dumbbell"),
    ("hammercurl", "Hammer Curls", "biceps", "dumbbell"),
    ("incline_curl", "Incline Dumbbell Curl", "biceps", "dumbbell"),
    ("concentration_curl", "Concentration Curl", "biceps", "dumbbell"),
    ("preacher_curl", "Preacher Curl", "biceps", "barbell"),
    ("cable_curl", "Cable Curl", "biceps", "cable"),
    ("spider_curl", "Spider Curl", "biceps", "dumbbell"),
    ("machine_curl", "Machine Curl", "biceps", "machine"),
    ("tricep", "Tricep Pushdowns", "triceps", "cable"),
    ("rope_pushdown", "Rope Pushdowns", "triceps", "cable"),
    ("overhead_tricep", "Overhead Tricep Extension", "triceps", "cable"),
    ("skull_crushers", "Skull Crushers", "triceps", "barbell"),
    ("close_grip_bench", "Close Grip Bench Press", "triceps", "barbell"),
    ("tricep_dips", "Tricep Dips", "triceps", "bodyweight"),
    ("dip", "Dips", "triceps", "bodyweight"),
    ("db_tricep_ext", "Dumbbell Tricep Extension", "triceps", "dumbbell"),
    ("kickbacks", "Tricep Kickbacks", "triceps", "dumbbell"),
    ("diamond_pushup", "Diamond Push-Ups", "triceps", "bodyweight"),
    ("tricep_machine", "Tricep Machine", "triceps", "machine"),
    ("squat", "Barbell Squat", "quads", "barbell"),
    ("front_squat", "Front Squat", "quads", "barbell"),
    ("goblet_squat", "Goblet Squat", "quads", "dumbbell"),
    ("legpress", "Leg Press", "quads", "machine"),
    ("hack_squat", "Hack Squat", "quads", "machine"),
    ("legext", "Leg Extensions", "quads", "machine"),
    ("lunges", "Lunges", "quads", "bodyweight"),
    ("walking_lunge", "Walking Lunges", "quads", "dumbbell"),
    ("split_squat", "Bulgarian Split Squat", "quads", "dumbbell"),
    ("step_ups", "Step Ups", "quads", "dumbbell"),
    ("rdl", "Romanian Deadlift", "hamstrings", "barbell"),
    ("stiff_leg_dl", "Stiff Leg Deadlift", "hamstrings", "barbell"),
    ("db_rdl", "Dumbbell RDL", "hamstrings", "dumbbell"),
    ("legcurl", "Lying Leg Curl", "hamstrings", "machine"),
    ("seated_leg_curl", "Seated Leg Curl", "hamstrings", "machine"),
    ("nordic_curl", "Nordic Curl", "hamstrings", "bodyweight"),
    ("good_morning", "Good Mornings", "hamstrings", "barbell"),
    ("glute_ham_raise", "Glute Ham Raise", "hamstrings", "machine"),
    ("hip_thrust", "Hip Thrust", "glutes", "barbell"),
    ("glute_bridge", "Glute Bridge", "glutes", "bodyweight"),
    ("cable_kickback", "Cable Kickback", "glutes", "cable"),
    ("sumo_deadlift", "Sumo Deadlift", "glutes", "barbell"),
    ("cable_pull_through", "Cable Pull Through", "glutes", "cable"),
    ("hip_abduction", "Hip Abduction Machine", "glutes", "machine"),
    ("kickback_machine", "Glute Kickback Machine", "glutes", "machine"),
    ("calfraise", "Standing Calf Raise", "calves", "machine"),
    ("seated_calf", "Seated Calf Raise", "calves", "machine"),
    ("donkey_calf", "Donkey Calf Raise", "calves", "machine"),
    ("smith_calf", "Smith Machine Calf Raise", "calves", "machine"),
    ("plank", "Plank", "core", "bodyweight"),
    ("crunches", "Crunches", "core", "bodyweight"),
    ("leg_raise", "Hanging Leg Raise", "core", "bodyweight"),
    ("cable_crunch", "Cable Crunch", "core", "cable"),
    ("ab_rollout", "Ab Rollout", "core", "other"),
    ("russian_twist", "Russian Twist", "core", "bodyweight"),
    ("woodchop", "Cable Woodchop", "core", "cable"),
    ("dead_bug", "Dead Bug", "core", "bodyweight"),
    ("pallof_press", "Pallof Press", "core", "cable"),
    ("decline_situp", "Decline Sit-Up", "core", "bodyweight"),
]

# Higher tiers earn more XP per set
TIER1_EXERCISES = {"bench", "squat", "deadlift", "ohp"}
TIER2_EXERCISES = {"rows", "pullups", "chinups", "dip", "legpress", "rdl", "hip_thrust"}

BODYWEIGHT_EXERCISES = {
    "pushups", "dips_chest", "dip", "pullups", "chinups", "tricep_dips",
    "diamond_pushup", "lunges", "plank", "leg_raise", "crunches",
    "russian_twist", "dead_bug", "decline_situp", "glute_bridge",
    "nordic_curl", "hyperextension",
}

# Common names used by other training apps, keyed by catalog id
EXERCISE_ALIASES = {
    "bench": ["Bench Press (Barbell)", "Barbell Bench Press", "Flat Bench Press", "BB Bench"],
    "incline_bench": ["Incline Bench Press (Barbell)", "Incline Barbell Bench Press"],
    "decline_bench": ["Decline Bench Press (Barbell)"],
    "db_bench": ["Bench Press (Dumbbell)", "DB Bench Press", "Flat Dumbbell Press"],
    "incline_db": ["Incline Bench Press (Dumbbell)", "Incline DB Press"],
    "db_flies": ["Chest Fly (Dumbbell)", "Dumbbell Fly"],
    "cable_flies": ["Cable Crossover", "Chest Fly (Cable)"],
    "pec_deck": ["Chest Fly (Machine)", "Butterfly (Pec Deck)"],
    "pushups": ["Push Up", "Push Ups", "Pushup"],
    "deadlift": ["Deadlift (Barbell)", "Conventional Deadlift", "Barbell Deadlift"],
    "rows": ["Bent Over Row (Barbell)", "Barbell Row", "Bent Over Row", "BB Row"],
    "db_row": ["Bent Over One Arm Row (Dumbbell)", "One Arm Dumbbell Row", "DB Row"],
    "pullups": ["Pull Up", "Pull Ups", "Pullup", "Pull Up (Weighted)"],
    "chinups": ["Chin Up", "Chin Ups", "Chinup"],
    "lat_pulldown": ["Lat Pulldown (Cable)", "Lat Pulldown (Machine)", "Pulldown"],
    "seated_cable_row": ["Seated Row (Cable)", "Cable Row"],
    "facepull": ["Face Pull (Cable)", "Face Pull"],
    "ohp": ["Overhead Press (Barbell)", "Military Press", "Standing Press", "Shoulder Press (Barbell)"],
    "db_shoulder_press": ["Overhead Press (Dumbbell)", "Shoulder Press (Dumbbell)", "Seated Dumbbell Press"],
    "laterals": ["Lateral Raise (Dumbbell)", "Side Lateral Raise", "Lateral Raise"],
    "cable_lateral": ["Lateral Raise (Cable)"],
    "front_raise": ["Front Raise (Dumbbell)"],
    "rear_delt_fly": ["Reverse Fly (Dumbbell)", "Rear Delt Raise"],
    "shrugs_bb": ["Shrug (Barbell)"],
    "shrugs_db": ["Shrug (Dumbbell)"],
    "curls": ["Bicep Curl (Barbell)", "Barbell Curl", "Biceps Curl (Barbell)"],
    "ez_bar_curl": ["EZ Bar Biceps Curl", "Curl (EZ Bar)"],
    "db_curl": ["Bicep Curl (Dumbbell)", "Dumbbell Curl", "Biceps Curl (Dumbbell)"],
    "hammercurl": ["Hammer Curl (Dumbbell)", "Hammer Curl"],
    "preacher_curl": ["Preacher Curl (Barbell)"],
    "cable_curl": ["Bicep Curl (Cable)"],
    "tricep": ["Triceps Pushdown (Cable - Straight Bar)", "Triceps Pushdown", "Tricep Pushdown"],
    "rope_pushdown": ["Triceps Pushdown (Cable - Rope)", "Rope Pushdown"],
    "overhead_tricep": ["Triceps Extension (Cable)", "Overhead Cable Extension"],
    "skull_crushers": ["Skullcrusher (Barbell)", "Skullcrusher", "Lying Triceps Extension"],
    "close_grip_bench": ["Bench Press - Close Grip (Barbell)", "CGBP"],
    "dip": ["Triceps Dip", "Dip", "Dips (Weighted)"],
    "squat": ["Squat (Barbell)", "Back Squat", "Back Squat (Barbell)", "Squat"],
    "front_squat": ["Front Squat (Barbell)"],
    "goblet_squat": ["Goblet Squat (Kettlebell)", "Goblet Squat (Dumbbell)"],
    "legpress": ["Leg Press (Machine)", "Leg Press"],
    "hack_squat": ["Hack Squat (Machine)"],
    "legext": ["Leg Extension (Machine)", "Leg Extension"],
    "lunges": ["Lunge (Bodyweight)", "Lunge"],
    "walking_lunge": ["Walking Lunge (Dumbbell)", "Lunge (Dumbbell)"],
    "split_squat": ["Bulgarian Split Squat (Dumbbell)", "Split Squat"],
    "rdl": ["Romanian Deadlift (Barbell)", "RDL", "Romanian Deadlift"],
    "stiff_leg_dl": ["Stiff Leg Deadlift (Barbell)", "Straight Leg Deadlift"],
    "db_rdl": ["Romanian Deadlift (Dumbbell)"],
    "legcurl": ["Lying Leg Curl (Machine)", "Leg Curl"],
    "seated_leg_curl": ["Seated Leg Curl (Machine)"],
    "good_morning": ["Good Morning (Barbell)"],
    "hip_thrust": ["Hip Thrust (Barbell)", "Barbell Hip Thrust"],
    "glute_bridge": ["Glute Bridge (Bodyweight)"],
    "sumo_deadlift": ["Sumo Deadlift (Barbell)"],
    "hip_abduction": ["Hip Abductor (Machine)"],
    "calfraise": ["Standing Calf Raise (Machine)", "Calf Raise", "Calf Raise (Machine)"],
    "seated_calf": ["Seated Calf Raise (Machine)"],
    "plank": ["Plank Hold"],
    "crunches": ["Crunch", "Crunch (Bodyweight)"],
    "leg_raise": ["Hanging Leg Raise (Bodyweight)", "Leg Raise"],
    "cable_crunch": ["Crunch (Cable)", "Kneeling Cable Crunch"],
}

# Curated swaps tried before falling back to same-muscle exercises
EXERCISE_SUBSTITUTES = {
    "bench": ["db_bench", "chest_press_machine", "close_grip_bench", "pushups"],
    "incline_bench": ["incline_db", "bench", "landmine_press"],
    "squat": ["front_squat", "hack_squat", "legpress", "goblet_squat"],
    "deadlift": ["rack_pull", "sumo_deadlift", "rdl", "hip_thrust"],
    "ohp": ["db_shoulder_press", "push_press", "shoulder_press_machine", "landmine_press"],
    "rows": ["pendlay_row", "db_row", "chest_supported_row", "seated_cable_row"],
    "pullups": ["chinups", "lat_pulldown", "close_grip_pulldown"],
    "chinups": ["pullups", "close_grip_pulldown", "lat_pulldown"],
    "dip": ["tricep_dips", "close_grip_bench", "tricep_machine"],
    "legpress": ["hack_squat", "squat", "goblet_squat"],
    "rdl": ["db_rdl", "stiff_leg_dl", "good_morning", "legcurl"],
    "hip_thrust": ["glute_bridge", "cable_pull_through", "sumo_deadlift"],
    "curls": ["ez_bar_curl", "db_curl", "cable_curl"],
    "tricep": ["rope_pushdown", "overhead_tricep", "kickbacks"],
    "laterals": ["cable_lateral", "upright_row"],
    "calfraise": ["seated_calf", "smith_calf", "donkey_calf"],
}

XP_LEVELS = [
    0, 100, 250, 500, 850, 1300, 1900, 2600, 3500, 4600,
    6000, 7700, 9700, 12000, 15000, 18500, 22500, 27000, 32000, 38000,
    45000, 53000, 62000, 72000, 85000,
]

# exercise id -> [(weight, name, xp)]
MILESTONES = {
    "bench": [
        (135, "One Plate Club", 500),
        (185, "Getting Strong", 750),
        (225, "Two Plate Warrior", 1000),
        (315, "Elite Presser", 2000),
    ],
    "squat": [
        (135, "Squat Initiate", 500),
        (225, "Two Plate Squatter", 750),
        (315, "Three Plate Beast", 1000),
        (405, "Four Plate Legend", 2000),
    ],
    "deadlift": [
        (135, "Deadlift Beginner", 500),
        (225, "Deadlift Warrior", 750),
        (315, "Three Plate Puller", 1000),
        (405, "Four Plate Titan", 1500),
        (495, "Five Plate God", 2500),
    ],
    "ohp": [
        (95, "Press Novice", 400),
        (135, "One Plate OHP", 800),
        (185, "Shoulder Boulder", 1500),
    ],
}

# key -> (name, xp)
GENERAL_ACHIEVEMENTS = {
    "first_workout": ("First Quest", 100),
    "ten_workouts": ("Regular", 250),
    "fifty_workouts": ("Dedicated", 1000),
    "first_pr": ("Record Breaker", 100),
    "importer": ("Historian", 200),
}

# Seeded once into an empty template table
DEFAULT_TEMPLATES = [
    ("push", "Push Day", ["bench", "ohp", "incline_db", "laterals", "tricep", "cable_flies"]),
    ("pull", "Pull Day", ["deadlift", "rows", "pullups", "facepull", "curls", "hammercurl"]),
    ("legs", "Leg Day", ["squat", "rdl", "legpress", "legcurl", "legext", "calfraise"]),
]


def _build_catalog():
    return [
        ExerciseDefinition(
            id=eid,
            name=name,
            muscle_group=muscle,
            equipment=equipment,
            aliases=tuple(EXERCISE_ALIASES.get(eid, ())),
        )
        for eid, name, muscle, equipment in _CATALOG_ROWS
    ]


EXERCISES = _build_catalog()
_BY_ID = {ex.id: ex for ex in EXERCISES}


def get_exercise_by_id(exercise_id: str):
    """Return the catalog entry for ``exercise_id`` or ``None``."""
    return _BY_ID.get(exercise_id)


def get_exercise_tier(exercise_id: str) -> int:
    if exercise_id in TIER1_EXERCISES:
        return 1
    if exercise_id in TIER2_EXERCISES:
        return 2
    return 3


def get_tier_multiplier(exercise_id: str) -> int:
    return {1: 3, 2: 2}.get(get_exercise_tier(exercise_id), 1)


def calculate_set_xp(exercise_id: str, weight: float, reps: int) -> int:
    """XP for one working set: a tenth of its volume times the tier multiplier."""
    base = math.floor(weight * reps / 10)
    return base * get_tier_multiplier(exercise_id)


def get_level_from_xp(xp: float) -> int:
    for i in range(len(XP_LEVELS) - 1, -1, -1):
        if xp >= XP_LEVELS[i]:
            return i + 1
    return 1


def get_xp_for_next_level(level: int) -> int:
    if level >= len(XP_LEVELS):
        return XP_LEVELS[-1] * 2
    return XP_LEVELS[level]
