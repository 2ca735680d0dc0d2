import math
from decimal import Decimal, ROUND_HALF_UP


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    EPLEY_DIVISOR: float = 30.0

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @classmethod
    def epley_1rm(cls, weight: float, reps: int) -> float:
        """Return the estimated one-rep max using the Epley formula."""
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if weight < 0:
            raise ValueError("weight must be non-negative")
        return weight * (1 + reps / cls.EPLEY_DIVISOR)

    @staticmethod
    def volume(sets: list[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def round_half_up(value: float, ndigits: int = 0) -> float:
        """Round ``value`` with halves away from zero."""
        quant = Decimal(1).scaleb(-ndigits)
        return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))

    @classmethod
    def round_to_increment(cls, value: float, increment: float) -> float:
        """Round ``value`` to the nearest multiple of ``increment`` (halves up)."""
        if increment <= 0:
            raise ValueError("increment must be positive")
        steps = cls.round_half_up(value / increment)
        return steps * increment

    @staticmethod
    def percent_change(first: float, current: float) -> float:
        """Percentage progress from ``first`` to ``current``."""
        if not first:
            return 0.0
        return round((current - first) / first * 100, 1)

    @staticmethod
    def floor_to_half(value: float) -> float:
        return math.floor(value * 2) / 2

    @classmethod
    def round_to_half(cls, value: float) -> float:
        return cls.round_half_up(value * 2) / 2
