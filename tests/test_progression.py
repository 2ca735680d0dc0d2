import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import (
    DoubleProgressionConfig,
    LinearConfig,
    NoProgressionConfig,
    ProgressionRule,
    ProgressionState,
    RpeBasedConfig,
    SetRecord,
    Workout,
    WorkoutExerciseEntry,
)
from progression import compute_prescription, resolve_rep_range, select_rule


def session(day, weight, reps, rpe=None, exercise_id="bench", warmups=()):
    sets = [SetRecord(weight=w, reps=r, is_warmup=True) for w, r in warmups]
    sets += [SetRecord(weight=weight, reps=r, rpe=rpe) for r in reps]
    return Workout(
        start_time=f"2024-01-{day:02d}T18:00:00",
        exercises=[WorkoutExerciseEntry(exercise_id=exercise_id, name=exercise_id, sets=sets)],
    )


def double_rule(**kwargs):
    return ProgressionRule(
        config=DoubleProgressionConfig(rep_range=(8, 12), weight_increment=5, **kwargs)
    )


def test_double_progression_at_ceiling_adds_weight():
    p = compute_prescription(double_rule(), "bench", [session(1, 135, [12, 12, 12])])
    assert p.weight == 140
    assert p.target_reps == 8
    assert p.state is ProgressionState.AT_CEILING


def test_double_progression_below_floor_keeps_weight():
    p = compute_prescription(double_rule(), "bench", [session(1, 135, [6, 7, 6])])
    assert p.weight == 135
    assert p.target_reps == 8
    assert p.state is ProgressionState.RAMPING


def test_double_progression_in_range_keeps_target():
    p = compute_prescription(double_rule(), "bench", [session(1, 135, [10, 9, 9])])
    assert p.weight == 135
    assert p.target_reps == 9
    assert p.state is ProgressionState.IN_RANGE


def test_only_latest_session_and_working_sets_count():
    history = [
        session(2, 135, [12, 12, 12], warmups=[(45, 3)]),
        session(1, 130, [6, 6, 6]),
    ]
    p = compute_prescription(double_rule(), "bench", history)
    assert p.weight == 140


def test_no_history_uses_fallback_weight():
    p = compute_prescription(double_rule(), "bench", [], fallback_weight=185)
    assert p.weight == 185
    assert (p.rep_low, p.rep_high) == (8, 12)
    assert p.reason == "no history"


def test_rep_range_resolution_order():
    rule = double_rule(
        per_exercise=True,
        advanced_mode=True,
        exercise_ranges={"bench": (5, 8)},
        set_ranges={"bench": [(3, 5), (6, 8)]},
    )
    assert resolve_rep_range(rule, "bench", 0) == (3, 5)
    assert resolve_rep_range(rule, "bench", 1) == (6, 8)
    # past the configured sets falls back to the exercise range
    assert resolve_rep_range(rule, "bench", 7) == (5, 8)
    assert resolve_rep_range(rule, "squat", 0) == (8, 12)


def test_overrides_ignored_while_toggles_off():
    rule = double_rule(
        per_exercise=False,
        advanced_mode=True,
        exercise_ranges={"bench": (5, 8)},
        set_ranges={"bench": [(3, 5)]},
    )
    assert resolve_rep_range(rule, "bench", 0) == (8, 12)
    assert rule.config.exercise_ranges == {"bench": (5, 8)}


def test_linear_deloads_on_third_failure():
    rule = ProgressionRule(
        config=LinearConfig(weight_increment=5, deload_threshold=3, deload_percent=0.10)
    )
    history = [session(1, 200, [5, 5, 5])]
    p = compute_prescription(rule, "bench", history, default_range=(5, 5))
    assert p.weight == 205
    assert p.failure_count == 0

    history.append(session(2, 205, [5, 4, 3]))
    p = compute_prescription(rule, "bench", history, default_range=(5, 5))
    assert p.weight == 205
    assert p.failure_count == 1

    history.append(session(3, 205, [4, 4, 3]))
    p = compute_prescription(rule, "bench", history, default_range=(5, 5))
    assert p.failure_count == 2

    history.append(session(4, 205, [3, 3, 3]))
    p = compute_prescription(rule, "bench", history, default_range=(5, 5))
    assert p.state is ProgressionState.DELOAD
    assert p.weight == pytest.approx(184.5)
    assert p.failure_count == 0


def test_linear_success_requires_target_sets():
    rule = ProgressionRule(config=LinearConfig())
    history = [session(1, 100, [5, 5])]
    p = compute_prescription(rule, "bench", history, default_range=(5, 5), target_sets=3)
    assert p.weight == 100
    assert p.failure_count == 1


@pytest.mark.parametrize(
    "rpe,expected,state",
    [
        (6, 105, ProgressionState.AT_CEILING),
        (8, 100, ProgressionState.IN_RANGE),
        (10, 95, ProgressionState.RAMPING),
    ],
)
def test_rpe_based_adjustment(rpe, expected, state):
    rule = ProgressionRule(
        config=RpeBasedConfig(rpe_range=(7, 9), adjustment_per_point=5)
    )
    p = compute_prescription(rule, "bench", [session(1, 100, [5, 5], rpe=rpe)])
    assert p.weight == expected
    assert p.state is state


def test_rpe_based_never_negative():
    rule = ProgressionRule(config=RpeBasedConfig(rpe_range=(7, 8), adjustment_per_point=10))
    p = compute_prescription(rule, "bench", [session(1, 5, [5], rpe=10)])
    assert p.weight == 0


def test_none_rule_repeats_last_set():
    rule = ProgressionRule(config=NoProgressionConfig())
    p = compute_prescription(rule, "bench", [session(1, 100, [8, 7])])
    assert (p.weight, p.target_reps) == (100, 7)
    p = compute_prescription(None, "bench", [session(1, 100, [8, 7])])
    assert p.weight == 100


def test_select_rule_prefers_exercise_specific():
    general = ProgressionRule(name="general")
    bench = ProgressionRule(name="bench", exercise_id="bench")
    assert select_rule([general, bench], "bench") is bench
    assert select_rule([general, bench], "squat") is general
    assert select_rule([bench], "squat") is None


def test_rule_config_is_discriminated_union():
    rule = ProgressionRule.model_validate({"config": {"type": "linear", "weight_increment": 10}})
    assert isinstance(rule.config, LinearConfig)
    with pytest.raises(ValueError):
        ProgressionRule.model_validate({"config": {"type": "percentage"}})
