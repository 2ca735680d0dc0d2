from __future__ import annotations

import re
from typing import Optional

from db import CustomExerciseRepository
from exercise_data import EXERCISE_SUBSTITUTES, EXERCISES, get_exercise_by_id
from logging_setup import get_logger
from models import CustomExercise, ExerciseDefinition

logger = get_logger(__name__)

_NON_WORD = re.compile(r"[\W_]+")
_PAREN_SUFFIX = re.compile(r"^(?P<base>.*?)\s*\((?P<detail>[^)]*)\)\s*$")

# Strong-style equipment labels mapped to catalog equipment
_EQUIPMENT_LABELS = {
    "barbell": "barbell",
    "ez bar": "barbell",
    "smith machine": "machine",
    "dumbbell": "dumbbell",
    "kettlebell": "dumbbell",
    "cable": "cable",
    "machine": "machine",
    "bodyweight": "bodyweight",
    "weighted": "bodyweight",
    "assisted": "bodyweight",
}


def slugify(name: str) -> str:
    """Return the stable id for an exercise name."""
    return _NON_WORD.sub("_", name.strip().casefold()).strip("_")


def normalize_name(name: str) -> str:
    """Case-fold, turn punctuation into spaces and collapse whitespace."""
    cleaned = re.sub(r"[^\w\s]", " ", name.casefold()).replace("_", " ")
    return " ".join(cleaned.split())


class ExerciseService:
    """Catalog lookups, CSV name matching and custom exercise management."""

    MAX_SUBSTITUTES = 5

    def __init__(self, custom_repo: CustomExerciseRepository) -> None:
        self.customs = custom_repo
        self._by_name: dict[str, str] = {}
        self._by_alias: dict[str, str] = {}
        for ex in EXERCISES:
            self._by_name.setdefault(normalize_name(ex.name), ex.id)
            for alias in ex.aliases:
                self._by_alias.setdefault(normalize_name(alias), ex.id)

    def catalog(self) -> list[ExerciseDefinition]:
        return list(EXERCISES) + list(self.customs.fetch_all_exercises())

    def get(self, exercise_id: str) -> Optional[ExerciseDefinition]:
        found = get_exercise_by_id(exercise_id)
        if found is not None:
            return found
        try:
            return self.customs.fetch(exercise_id)
        except ValueError:
            return None

    def exists(self, exercise_id: str) -> bool:
        return self.get(exercise_id) is not None

    def display_name(self, exercise_id: str) -> str:
        found = self.get(exercise_id)
        return found.name if found else exercise_id

    def is_custom(self, exercise_id: str) -> bool:
        return get_exercise_by_id(exercise_id) is None and self.exists(exercise_id)

    def muscle_for(self, exercise_id: str, name: str = "") -> str:
        """Custom muscle wins over the catalog; unknown exercises are ``other``."""
        for candidate in (exercise_id, slugify(name) if name else ""):
            if not candidate:
                continue
            try:
                return self.customs.fetch(candidate).muscle_group
            except ValueError:
                pass
            found = get_exercise_by_id(candidate)
            if found is not None:
                return found.muscle_group
        return "other"

    def match_exercise_from_csv(
        self, raw_name: str, customs: Optional[list[CustomExercise]] = None
    ) -> Optional[str]:
        """Map an exported exercise name to an id, or ``None`` when unknown.

        Lookup order is id, canonical name, alias, custom exercise and finally
        the name without its parenthesised equipment suffix. The first exact
        match wins so results only depend on the catalog contents.
        """
        key = normalize_name(raw_name)
        if not key:
            return None
        slug = slugify(raw_name)
        if get_exercise_by_id(slug) is not None:
            return slug
        if key in self._by_name:
            return self._by_name[key]
        if key in self._by_alias:
            return self._by_alias[key]
        if customs is None:
            customs = self.customs.fetch_all_exercises()
        for custom in customs:
            if custom.id == slug or normalize_name(custom.name) == key:
                return custom.id
        match = _PAREN_SUFFIX.match(raw_name.strip())
        if match:
            base = normalize_name(match.group("base"))
            equipment = _EQUIPMENT_LABELS.get(normalize_name(match.group("detail")))
            candidates = [
                ex
                for ex in EXERCISES
                if normalize_name(ex.name) == base
                or any(normalize_name(a) == base for a in ex.aliases)
            ]
            if equipment:
                for ex in candidates:
                    if ex.equipment == equipment:
                        return ex.id
            if candidates:
                return candidates[0].id
        return None

    def add_custom_exercise(self, name: str) -> str:
        return self.add_custom_exercise_with_muscle(name, "other")

    def add_custom_exercise_with_muscle(self, name: str, muscle_group: str) -> str:
        """Create a custom exercise unless its slug is already taken."""
        exercise = self.build_custom_exercise(name, muscle_group)
        if get_exercise_by_id(exercise.id) is not None:
            return exercise.id
        if self.customs.add(exercise):
            logger.info("added custom exercise %s", exercise.id)
        return exercise.id

    @staticmethod
    def build_custom_exercise(name: str, muscle_group: str = "other") -> CustomExercise:
        clean = name.strip()
        if not clean or not slugify(clean):
            raise ValueError("exercise name required")
        return CustomExercise(
            id=slugify(clean),
            name=clean[0].upper() + clean[1:],
            muscle_group=muscle_group or "other",
        )

    def update_custom_exercise(
        self, exercise_id: str, name: Optional[str] = None, muscle_group: Optional[str] = None
    ) -> None:
        self.customs.update(exercise_id, name, muscle_group)

    def get_exercise_substitutes(self, exercise_id: str) -> list[str]:
        """Curated swaps first, then same-muscle catalog exercises."""
        result: list[str] = []
        for candidate in EXERCISE_SUBSTITUTES.get(exercise_id, []):
            if candidate != exercise_id and candidate not in result:
                result.append(candidate)
        target = self.get(exercise_id)
        if target is not None:
            for ex in EXERCISES:
                if len(result) >= self.MAX_SUBSTITUTES:
                    break
                if (
                    ex.id != exercise_id
                    and ex.muscle_group == target.muscle_group
                    and ex.id not in result
                ):
                    result.append(ex.id)
        return result[: self.MAX_SUBSTITUTES]
