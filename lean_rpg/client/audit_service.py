"""
Audit Service - Scores, submits and reviews checklist audits.
"""

from typing import List, Optional

from lean_rpg.client.submission_pipeline import SubmissionPipeline
from lean_rpg.config import Settings, get_settings
from lean_rpg.engines.scoring.score_calculator import ScoreCalculator
from lean_rpg.kernel.errors import NetworkError
from lean_rpg.logging_config import get_logger
from lean_rpg.orchestration.state_machine import apply_review, transition_audit
from lean_rpg.schemas.audit import AuditSession, AuditStatus, ChecklistTemplate

logger = get_logger(__name__)


class AuditService:
    """Audit lifecycle calls. Status changes go through the state machine first."""

    def __init__(self, pipeline: SubmissionPipeline, settings: Optional[Settings] = None):
        self.pipeline = pipeline
        self.settings = settings or get_settings()

    @staticmethod
    def score_session(session: AuditSession, template: ChecklistTemplate) -> AuditSession:
        """Fill score, risk tier, findings and XP from the session's responses."""
        breakdown = ScoreCalculator.calculate(template.items, session.responses)
        return session.model_copy(
            update={
                "score": breakdown.score,
                "overall_compliance": breakdown.score,
                "risk_level": breakdown.risk_tier,
                "findings": breakdown.findings,
                "xp_earned": ScoreCalculator.xp_for_score(template.xp_reward, breakdown.score),
            }
        )

    async def list_audits(self) -> List[AuditSession]:
        envelope = await self.pipeline.get(self.settings.audits_endpoint)
        return [AuditSession.model_validate(a) for a in envelope.data or []]

    async def get_audit(self, audit_id: str) -> AuditSession:
        endpoint = self.settings.audit_detail_endpoint.format(id=audit_id)
        envelope = await self.pipeline.get(endpoint)
        if not isinstance(envelope.data, dict):
            raise NetworkError(f"Unexpected audit payload from {endpoint}")
        return AuditSession.model_validate(envelope.data)

    async def get_templates(self) -> List[ChecklistTemplate]:
        """Checklist templates available to the tenant."""
        envelope = await self.pipeline.get(self.settings.checklist_templates_endpoint)
        return [ChecklistTemplate.model_validate(t) for t in envelope.data or []]

    async def get_template(self, template_id: str) -> ChecklistTemplate:
        endpoint = self.settings.checklist_template_endpoint.format(id=template_id)
        envelope = await self.pipeline.get(endpoint)
        if not isinstance(envelope.data, dict):
            raise NetworkError(f"Unexpected template payload from {endpoint}")
        return ChecklistTemplate.model_validate(envelope.data)

    async def submit_audit(self, session: AuditSession, template: ChecklistTemplate) -> AuditSession:
        """
        Score an in-progress session and submit it.

        Raises:
            ValueError: If the session is not in progress
        """
        if session.status != AuditStatus.IN_PROGRESS:
            raise ValueError(f"Audit {session.id} is {session.status.value}, not in_progress")

        scored = self.score_session(session, template)
        submitted = transition_audit(scored, AuditStatus.SUBMITTED)
        envelope = await self.pipeline.submit(self.settings.audits_endpoint, submitted.to_wire())
        logger.info(
            "Audit submitted",
            extra={"audit_id": session.id, "score": submitted.score, "risk_level": submitted.risk_level.value},
        )
        if isinstance(envelope.data, dict):
            return AuditSession.model_validate(envelope.data)
        return submitted

    async def review_audit(
        self,
        session: AuditSession,
        reviewer_id: str,
        approved: bool,
        comments: Optional[str] = None,
    ) -> AuditSession:
        """
        Approve or reject a submitted audit.

        Raises:
            ValueError: If the session is not awaiting review
        """
        reviewed = apply_review(session, reviewer_id, approved, comments)
        endpoint = self.settings.audit_review_endpoint.format(id=session.id)
        body = {
            "reviewerId": reviewer_id,
            "comments": comments or "",
            "status": reviewed.status.value,
        }
        envelope = await self.pipeline.put(endpoint, body)
        if isinstance(envelope.data, dict):
            return AuditSession.model_validate(envelope.data)
        return reviewed
