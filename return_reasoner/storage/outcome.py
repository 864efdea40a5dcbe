"""Outcome persister: writes the Decision row and claim bookkeeping."""

import logging
import time
from dataclasses import replace

from ..models.decision import ReturnAnalysisState
from .database import Database, ReturnDecision
from .repositories import ClaimRepository, DecisionRepository

logger = logging.getLogger(__name__)


class OutcomePersister:
    """
    Persists the result of a completed pipeline run.

    The Decision insert and the Claim update share one transaction, so a
    failed write leaves neither behind.
    """

    def __init__(self, database: Database):
        self.database = database

    def persist(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        """
        Write the Decision and advance the claim's round.

        Args:
            state: Pipeline state with outcome and email draft filled in

        Returns:
            State carrying the new decision id

        Raises:
            PersistenceError: If the store rejects the write
        """
        if state.short_circuited:
            # Duplicate detector already committed its own decision
            return state

        if state.outcome is None or state.extraction is None or state.analysis is None:
            raise ValueError("Cannot persist a run that has not reached the decision stage")

        outcome = state.outcome
        elapsed_ms = int((time.monotonic() - state.started_at) * 1000) if state.started_at else None

        with self.database.session("persist_outcome") as session:
            claim = ClaimRepository(session).get_or_raise(state.claim_id)

            decision = DecisionRepository(session).add(ReturnDecision(
                claim_id=claim.id,
                vision_analysis=state.analysis.text,
                defect_category=state.extraction.category.value,
                damage_type=state.extraction.damage_type.value,
                policy_id=state.matched_policy.id if state.matched_policy else None,
                disposition=outcome.disposition.value,
                decision_reason=outcome.reason,
                escalation_reason=outcome.escalation_reason,
                email_draft=state.email_draft,
                confidence=state.extraction.confidence,
                is_suspicious_image=state.authenticity.suspicious,
                ai_generated_image=state.authenticity.ai_generated,
                image_quality=state.authenticity.quality.value,
                has_watermark=state.analysis.has_watermark,
                language=state.request.language,
                analysis_round=state.analysis_round,
                processing_time_ms=elapsed_ms,
            ))

            claim.status = outcome.disposition.as_status().value
            if state.image_reference:
                claim.image_reference = state.image_reference
                if state.analysis_round == 1:
                    claim.original_image_reference = state.image_reference
            claim.analysis_round = state.analysis_round + 1
            decision_id = decision.id

        logger.info(
            f"Persisted decision {decision_id} for claim {state.claim_id}: "
            f"{outcome.disposition.value} (round {state.analysis_round})"
        )
        return replace(state, decision_id=decision_id)
