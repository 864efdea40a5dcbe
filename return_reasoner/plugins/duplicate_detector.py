"""Duplicate evidence detection across return claims."""

import logging
from dataclasses import replace

from ..models.claim import ClaimStatus, Disposition
from ..models.decision import DecisionOutcome, ReturnAnalysisState
from ..models.evidence import DUPLICATE_SUBMISSION_CATEGORY
from ..storage.database import Database, ReturnDecision
from ..storage.repositories import ClaimRepository, DecisionRepository

logger = logging.getLogger(__name__)

DUPLICATE_REASON = (
    "This image has already been submitted in a previous return request. "
    "Please upload a new photo of the product."
)
DUPLICATE_EMAIL = (
    "We noticed you've already submitted this image in a previous return request. "
    "To process your return, please provide a new photo of the product showing the current issue. "
    "If you need assistance, please contact our support team."
)


class DuplicateEvidenceDetector:
    """
    Rejects claims whose photo was already used by another claim.

    A hit is terminal: the denial is committed here and the pipeline skips
    every remaining stage. The claim's round counter and original image are
    left as they were.
    """

    def __init__(self, database: Database):
        self.database = database
        logger.info("Initialized DuplicateEvidenceDetector")

    def check(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        """
        Check the submitted image against every other claim.

        Args:
            state: Pipeline state

        Returns:
            The same state when no duplicate is found, otherwise a
            short-circuited state carrying the committed denial
        """
        image_reference = state.image_reference
        if not image_reference:
            return state

        with self.database.session("duplicate_check") as session:
            claims = ClaimRepository(session)
            other = claims.find_other_with_image(image_reference, exclude_claim_id=state.claim_id)
            if other is None:
                return state

            logger.warning(f"Duplicate image detected for claim {state.claim_id} (already on {other.id})")

            claim = claims.get_or_raise(state.claim_id)
            decision = DecisionRepository(session).add(ReturnDecision(
                claim_id=claim.id,
                vision_analysis="Duplicate image detected",
                defect_category=DUPLICATE_SUBMISSION_CATEGORY,
                disposition=Disposition.DENIED.value,
                decision_reason=DUPLICATE_REASON,
                email_draft=DUPLICATE_EMAIL,
                confidence=1.0,
                is_suspicious_image=True,
                ai_generated_image=False,
                language=state.request.language or "en",
                analysis_round=state.analysis_round,
            ))
            claim.status = ClaimStatus.DENIED.value
            decision_id = decision.id

        return replace(
            state,
            short_circuited=True,
            decision_id=decision_id,
            email_draft=DUPLICATE_EMAIL,
            outcome=DecisionOutcome(
                disposition=Disposition.DENIED,
                reason=DUPLICATE_REASON,
                rule="duplicate_submission",
            ),
        )
