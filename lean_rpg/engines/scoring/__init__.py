"""
Scoring Engine - Checklist compliance, risk tiers and XP scaling.
"""

from lean_rpg.engines.scoring.score_calculator import (
    ScoreBreakdown,
    ScoreCalculator,
    round_half_up,
)

__all__ = [
    "ScoreBreakdown",
    "ScoreCalculator",
    "round_half_up",
]
