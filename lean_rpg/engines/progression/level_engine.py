"""
Level Engine - Maps cumulative XP to a level.

Level i+1 is reached at T[i] XP. Past the end of the table the next
threshold is extrapolated as ceil(T[last] * 1.5) so progression never stops.
"""

import math
from bisect import bisect_right
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel

from lean_rpg.kernel.errors import ValidationError

DEFAULT_LEVEL_THRESHOLDS: Tuple[int, ...] = (0, 1000, 2500, 4500, 7000, 10000)


class LevelInfo(BaseModel):
    """Level standing for a given total XP."""

    level: int
    total_xp: int
    current_level_xp: int  # threshold of the current level
    next_level_xp: int     # threshold of the next level

    @property
    def xp_to_next(self) -> int:
        return max(0, self.next_level_xp - self.total_xp)

    @property
    def progress(self) -> float:
        """Fraction of the way from the current level to the next (0.0-1.0)."""
        span = self.next_level_xp - self.current_level_xp
        if span <= 0:
            return 1.0
        return min(1.0, (self.total_xp - self.current_level_xp) / span)


class LevelTransition(BaseModel):
    """Before/after standing for an XP award."""

    previous: LevelInfo
    current: LevelInfo
    xp_awarded: int

    @property
    def leveled_up(self) -> bool:
        return self.current.level > self.previous.level


class LevelEngine:
    """
    Pure level lookup over a strictly increasing threshold table.

    The table is validated once; level_of() never raises for total_xp >= 0.
    """

    EXTRAPOLATION_FACTOR = 1.5

    def __init__(self, thresholds: Optional[Sequence[int]] = None):
        table = tuple(DEFAULT_LEVEL_THRESHOLDS if thresholds is None else thresholds)
        self._validate(table)
        self.thresholds = table

    @staticmethod
    def _validate(table: Tuple[int, ...]) -> None:
        if not table:
            raise ValidationError("Level threshold table is empty")
        if table[0] != 0:
            raise ValidationError(f"First level threshold must be 0, got {table[0]}")
        for prev, nxt in zip(table, table[1:]):
            if nxt <= prev:
                raise ValidationError(
                    f"Level thresholds must be strictly increasing ({prev} -> {nxt})"
                )

    def level_of(self, total_xp: int) -> LevelInfo:
        """
        Get the level for a total XP amount.

        Args:
            total_xp: Cumulative XP (>= 0)

        Returns:
            LevelInfo with level (1-based) and next_level_xp
        """
        if total_xp < 0:
            raise ValidationError(f"total_xp must be >= 0, got {total_xp}")

        # Index of the largest threshold <= total_xp
        index = bisect_right(self.thresholds, total_xp) - 1
        return LevelInfo(
            level=index + 1,
            total_xp=total_xp,
            current_level_xp=self.thresholds[index],
            next_level_xp=self.threshold_after(index),
        )

    def threshold_after(self, index: int) -> int:
        if index + 1 < len(self.thresholds):
            return self.thresholds[index + 1]
        return math.ceil(self.thresholds[index] * self.EXTRAPOLATION_FACTOR)

    def apply_award(self, total_xp: int, xp_awarded: int) -> LevelTransition:
        """Standing before and after adding an award. XP never goes down."""
        if xp_awarded < 0:
            raise ValidationError(f"xp_awarded must be >= 0, got {xp_awarded}")
        return LevelTransition(
            previous=self.level_of(total_xp),
            current=self.level_of(total_xp + xp_awarded),
            xp_awarded=xp_awarded,
        )
