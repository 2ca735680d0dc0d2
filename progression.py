"""Next-session prescriptions derived from a progression rule and history.

Everything here is a pure function of its arguments: nothing is cached and
no state machine is persisted between calls.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, assert_never

from models import (
    DoubleProgressionConfig,
    LinearConfig,
    NoProgressionConfig,
    Prescription,
    ProgressionRule,
    ProgressionState,
    RpeBasedConfig,
    SetRecord,
    Workout,
)
from tools import MathTools

DEFAULT_REP_RANGE = (8, 12)


def select_rule(
    rules: Iterable[ProgressionRule], exercise_id: str
) -> Optional[ProgressionRule]:
    """Exercise-specific rule first, otherwise the first general rule."""
    rules = list(rules)
    for rule in rules:
        if rule.exercise_id == exercise_id:
            return rule
    for rule in rules:
        if not rule.exercise_id:
            return rule
    return None


def resolve_rep_range(
    rule: Optional[ProgressionRule],
    exercise_id: str,
    set_index: Optional[int] = None,
    default_range: Optional[tuple[int, int]] = None,
) -> tuple[int, int]:
    """Per-set override, then per-exercise override, then the rule default."""
    fallback = tuple(default_range or DEFAULT_REP_RANGE)
    if rule is None or not isinstance(rule.config, DoubleProgressionConfig):
        return fallback
    config = rule.config
    if config.per_exercise and config.advanced_mode and set_index is not None:
        per_set = config.set_ranges.get(exercise_id) or []
        # index past the configured sets falls through to the next level
        if 0 <= set_index < len(per_set):
            return tuple(per_set[set_index])
    if config.per_exercise and exercise_id in config.exercise_ranges:
        return tuple(config.exercise_ranges[exercise_id])
    return tuple(config.rep_range)


def exercise_sessions(
    history: Iterable[Workout], exercise_id: str
) -> list[list[SetRecord]]:
    """Working sets per workout for ``exercise_id``, oldest workout first."""
    sessions = []
    for workout in sorted(history, key=lambda w: w.start_time):
        sets = [
            s
            for entry in workout.entries_for(exercise_id)
            for s in entry.working_sets()
        ]
        if sets:
            sessions.append(sets)
    return sessions


def compute_prescription(
    rule: Optional[ProgressionRule],
    exercise_id: str,
    history: Sequence[Workout],
    set_index: Optional[int] = None,
    default_range: Optional[tuple[int, int]] = None,
    target_sets: Optional[int] = None,
    fallback_weight: Optional[float] = None,
    rounding: float = 5.0,
) -> Prescription:
    """Return weight and rep targets for the next session of ``exercise_id``."""
    low, high = resolve_rep_range(rule, exercise_id, set_index, default_range)
    sessions = exercise_sessions(history, exercise_id)

    if not sessions:
        return Prescription(
            exercise_id=exercise_id,
            weight=fallback_weight or 0.0,
            rep_low=low,
            rep_high=high,
            target_reps=low,
            state=ProgressionState.RAMPING,
            reason="no history",
        )

    config = rule.config if rule is not None else NoProgressionConfig()
    if isinstance(config, DoubleProgressionConfig):
        return _double_progression(rule, config, exercise_id, sessions[-1], low, high)
    elif isinstance(config, LinearConfig):
        return _linear(config, exercise_id, sessions, low, high, target_sets)
    elif isinstance(config, RpeBasedConfig):
        return _rpe_based(config, exercise_id, sessions[-1], low, high, rounding)
    elif isinstance(config, NoProgressionConfig):
        last = sessions[-1][-1]
        return Prescription(
            exercise_id=exercise_id,
            weight=last.weight,
            rep_low=low,
            rep_high=high,
            target_reps=last.reps,
            state=ProgressionState.IN_RANGE,
            reason="repeat last set",
        )
    else:
        assert_never(config)


def _double_progression(
    rule: ProgressionRule,
    config: DoubleProgressionConfig,
    exercise_id: str,
    last: list[SetRecord],
    low: int,
    high: int,
) -> Prescription:
    weight = max(s.weight for s in last)
    ranges = [resolve_rep_range(rule, exercise_id, i) for i in range(len(last))]
    top_sets = [(s, r) for s, r in zip(last, ranges) if s.weight == weight]

    if all(s.reps >= r[1] for s, r in top_sets):
        return Prescription(
            exercise_id=exercise_id,
            weight=weight + config.weight_increment,
            rep_low=low,
            rep_high=high,
            target_reps=low,
            state=ProgressionState.AT_CEILING,
            reason="all sets reached the top of the range",
        )
    if any(s.reps < r[0] for s, r in zip(last, ranges)):
        return Prescription(
            exercise_id=exercise_id,
            weight=weight,
            rep_low=low,
            rep_high=high,
            target_reps=low,
            state=ProgressionState.RAMPING,
            reason="build reps to the bottom of the range",
        )
    return Prescription(
        exercise_id=exercise_id,
        weight=weight,
        rep_low=low,
        rep_high=high,
        target_reps=min(s.reps for s, _r in top_sets),
        state=ProgressionState.IN_RANGE,
        reason="climb toward the top of the range",
    )


def _linear(
    config: LinearConfig,
    exercise_id: str,
    sessions: list[list[SetRecord]],
    low: int,
    high: int,
    target_sets: Optional[int],
) -> Prescription:
    failures = 0
    outcome = "success"
    for sets in sessions:
        met_count = target_sets is None or len(sets) >= target_sets
        if met_count and all(s.reps >= low for s in sets):
            failures = 0
            outcome = "success"
            continue
        failures += 1
        outcome = "failure"
        if failures >= config.deload_threshold:
            failures = 0
            outcome = "deload"

    weight = max(s.weight for s in sessions[-1])
    if outcome == "success":
        return Prescription(
            exercise_id=exercise_id,
            weight=weight + config.weight_increment,
            rep_low=low,
            rep_high=high,
            target_reps=low,
            state=ProgressionState.AT_CEILING,
            failure_count=0,
            reason="last session met every target",
        )
    if outcome == "deload":
        return Prescription(
            exercise_id=exercise_id,
            weight=round(weight * (1 - config.deload_percent), 2),
            rep_low=low,
            rep_high=high,
            target_reps=low,
            state=ProgressionState.DELOAD,
            failure_count=0,
            reason=f"{config.deload_threshold} failed sessions in a row",
        )
    return Prescription(
        exercise_id=exercise_id,
        weight=weight,
        rep_low=low,
        rep_high=high,
        target_reps=low,
        state=ProgressionState.RAMPING,
        failure_count=failures,
        reason="repeat the weight after a missed target",
    )


def _rpe_based(
    config: RpeBasedConfig,
    exercise_id: str,
    last: list[SetRecord],
    low: int,
    high: int,
    rounding: float,
) -> Prescription:
    weight = max(s.weight for s in last)
    rated = [s.rpe for s in last if s.rpe is not None]
    if not rated:
        return Prescription(
            exercise_id=exercise_id,
            weight=weight,
            rep_low=low,
            rep_high=high,
            target_reps=last[-1].reps,
            state=ProgressionState.IN_RANGE,
            reason="no rpe logged",
        )
    rpe = rated[-1]
    rpe_low, rpe_high = config.rpe_range
    if rpe < rpe_low:
        delta = config.adjustment_per_point * (rpe_low - rpe)
        state = ProgressionState.AT_CEILING
        reason = f"rpe {rpe} below {rpe_low}"
    elif rpe > rpe_high:
        delta = -config.adjustment_per_point * (rpe - rpe_high)
        state = ProgressionState.RAMPING
        reason = f"rpe {rpe} above {rpe_high}"
    else:
        delta = 0.0
        state = ProgressionState.IN_RANGE
        reason = f"rpe {rpe} within range"
    if delta:
        delta = MathTools.round_to_increment(delta, rounding)
    return Prescription(
        exercise_id=exercise_id,
        weight=max(0.0, weight + delta),
        rep_low=low,
        rep_high=high,
        target_reps=last[-1].reps,
        state=state,
        reason=reason,
    )
