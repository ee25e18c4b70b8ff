"""
Score Calculator - Checklist compliance scoring and XP scaling.

score = round(100 * compliant weight / total weight)

Risk tiers:
- Green (low): score >= 85
- Yellow (medium): 70 <= score < 85
- Red (high): score < 70
"""

import math
from typing import Dict, Iterable, List, Mapping, Union

from pydantic import BaseModel

from lean_rpg.kernel.errors import ValidationError
from lean_rpg.schemas.audit import (
    AuditFinding,
    AuditResponse,
    ChecklistItem,
    FindingSeverity,
    RiskTier,
)

ResponseSet = Union[Mapping[str, AuditResponse], Iterable[AuditResponse]]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (round() would go to even)."""
    return int(math.floor(value + 0.5))


class ScoreBreakdown(BaseModel):
    """Result of scoring one checklist."""

    score: int
    risk_tier: RiskTier
    total_items: int
    answered_items: int
    compliant_items: int
    earned_weight: float
    total_weight: float
    findings: List[AuditFinding] = []


class ScoreCalculator:
    """
    Scores checklist responses against expected answers.

    Thresholds:
    - >= 85: Green
    - 70-84: Yellow
    - < 70: Red

    Findings are raised for answered, non-compliant items; severity
    follows the item weight (>= 8 Critical, >= 5 Major, else Minor).
    """

    GREEN_THRESHOLD = 85
    YELLOW_THRESHOLD = 70

    CRITICAL_WEIGHT = 8
    MAJOR_WEIGHT = 5

    @classmethod
    def calculate(
        cls,
        items: List[ChecklistItem],
        responses: ResponseSet,
    ) -> ScoreBreakdown:
        """
        Score a checklist.

        Args:
            items: Checklist items with expected answers and weights
            responses: Responses keyed by item id, or an iterable of responses

        Returns:
            ScoreBreakdown with score, risk tier and findings

        Raises:
            ValidationError: negative weight or duplicate item id
        """
        cls._validate_items(items)
        by_item = cls._index_responses(responses)

        total_weight = 0.0
        earned_weight = 0.0
        answered = 0
        compliant = 0
        findings: List[AuditFinding] = []

        for item in items:
            total_weight += item.weight
            response = by_item.get(item.id)
            if response is None:
                continue
            answered += 1
            if response.answer == item.expected_answer:
                compliant += 1
                earned_weight += item.weight
            else:
                findings.append(
                    AuditFinding(
                        item_id=item.id,
                        severity=cls.severity_for_weight(item.weight),
                        description=f"Failed: {item.question or item.id}",
                        photo=response.photo_ids[0] if response.photo_ids else None,
                    )
                )

        score = cls.compliance_score(earned_weight, total_weight)
        return ScoreBreakdown(
            score=score,
            risk_tier=cls.risk_tier_for(score),
            total_items=len(items),
            answered_items=answered,
            compliant_items=compliant,
            earned_weight=earned_weight,
            total_weight=total_weight,
            findings=findings,
        )

    @staticmethod
    def compliance_score(earned_weight: float, total_weight: float) -> int:
        """Weighted percentage; zero total weight is vacuously 100."""
        if total_weight <= 0:
            return 100
        return round_half_up(100 * earned_weight / total_weight)

    @classmethod
    def score_counts(cls, correct: int, total: int) -> int:
        """Unweighted shortcut: correct / total as a percentage."""
        if correct < 0 or total < 0 or correct > total:
            raise ValidationError(f"Invalid counts: {correct}/{total}")
        return cls.compliance_score(float(correct), float(total))

    @classmethod
    def risk_tier_for(cls, score: int) -> RiskTier:
        if score >= cls.GREEN_THRESHOLD:
            return RiskTier.GREEN
        if score >= cls.YELLOW_THRESHOLD:
            return RiskTier.YELLOW
        return RiskTier.RED

    @classmethod
    def severity_for_weight(cls, weight: float) -> FindingSeverity:
        if weight >= cls.CRITICAL_WEIGHT:
            return FindingSeverity.CRITICAL
        if weight >= cls.MAJOR_WEIGHT:
            return FindingSeverity.MAJOR
        return FindingSeverity.MINOR

    @staticmethod
    def xp_for_score(base_reward: int, score: int) -> int:
        """Scale a scenario's base reward by the score."""
        if base_reward < 0:
            raise ValidationError(f"base_reward must be >= 0, got {base_reward}")
        if not 0 <= score <= 100:
            raise ValidationError(f"score must be within 0..100, got {score}")
        return round_half_up(base_reward * score / 100)

    @staticmethod
    def _validate_items(items: List[ChecklistItem]) -> None:
        seen = set()
        for item in items:
            if item.weight < 0 or math.isnan(item.weight):
                raise ValidationError(f"Checklist item {item.id!r} has invalid weight {item.weight}")
            if item.id in seen:
                raise ValidationError(f"Duplicate checklist item id {item.id!r}")
            seen.add(item.id)

    @staticmethod
    def _index_responses(responses: ResponseSet) -> Dict[str, AuditResponse]:
        if isinstance(responses, Mapping):
            return dict(responses)
        # Later answers to the same item replace earlier ones
        return {r.item_id: r for r in responses}
