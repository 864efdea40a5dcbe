"""Human review write-back for claims escalated to manual review."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .claims import ClaimView
from .models.claim import ClaimStatus, Disposition
from .storage.database import Database
from .storage.repositories import ClaimRepository, DecisionRepository
from .utils.errors import ClaimValidationError

logger = logging.getLogger(__name__)


class ReviewAction(str, Enum):
    APPROVE = "approve"
    DENY = "deny"
    REQUEST_MORE_INFO = "request_more_info"


@dataclass
class ReviewItem:
    """A claim waiting for a reviewer, with the decision that escalated it."""
    claim: ClaimView

    @property
    def escalation_reason(self) -> Optional[str]:
        decision = self.claim.latest_decision or {}
        return decision.get("escalationReason")

    def to_dict(self) -> Dict[str, Any]:
        payload = self.claim.to_dict()
        payload["escalationReason"] = self.escalation_reason
        return payload


class ManualReviewService:
    """
    Applies a reviewer's verdict to a claim in manual_review.

    approve and deny overwrite the latest Decision in place and move the
    claim to a terminal manual status. request_more_info hands the claim
    back to the customer for new evidence.
    """

    def __init__(self, database: Database):
        self.database = database

    def pending_reviews(self) -> List[ReviewItem]:
        """Claims in manual_review joined with their latest decision, oldest first."""
        with self.database.session("pending_reviews") as session:
            decisions = DecisionRepository(session)
            return [
                ReviewItem(ClaimView.from_row(claim, decisions.latest_for_claim(claim.id)))
                for claim in ClaimRepository(session).list_by_status(ClaimStatus.MANUAL_REVIEW.value)
            ]

    def apply(self, claim_id: str, action: str, admin_notes: Optional[str] = None) -> ClaimView:
        """
        Record a reviewer's verdict.

        Args:
            claim_id: Claim under review
            action: approve, deny or request_more_info
            admin_notes: Reviewer notes; required for request_more_info

        Returns:
            Updated ClaimView

        Raises:
            ClaimNotFoundError: If the claim does not exist
            ClaimValidationError: On an unknown action, missing notes or a
                claim that is not in manual_review
        """
        try:
            review_action = ReviewAction(action)
        except ValueError:
            raise ClaimValidationError.invalid_transition(claim_id, f"unknown review action '{action}'")

        notes = (admin_notes or "").strip() or None
        if review_action == ReviewAction.REQUEST_MORE_INFO and not notes:
            raise ClaimValidationError.missing_fields(["adminNotes"])

        with self.database.session("apply_review") as session:
            claim = ClaimRepository(session).get_or_raise(claim_id)
            if claim.status != ClaimStatus.MANUAL_REVIEW.value:
                raise ClaimValidationError.invalid_transition(
                    claim_id, f"claim is {claim.status}, not in manual review"
                )

            decisions = DecisionRepository(session)
            latest = decisions.latest_for_claim(claim.id)

            if review_action == ReviewAction.REQUEST_MORE_INFO:
                if latest is not None:
                    latest.admin_notes = notes
                claim.status = ClaimStatus.MORE_INFO_REQUESTED.value
                claim.more_info_requested = True
            else:
                if latest is None:
                    raise ClaimValidationError.invalid_transition(claim_id, "no decision to review")

                approved = review_action == ReviewAction.APPROVE
                latest.disposition = (Disposition.APPROVED if approved else Disposition.DENIED).value
                latest.decision_reason = notes or latest.decision_reason
                latest.admin_notes = notes
                claim.status = (
                    ClaimStatus.APPROVED_MANUAL if approved else ClaimStatus.DENIED_MANUAL
                ).value

            session.flush()
            view = ClaimView.from_row(claim, latest)

        logger.info(f"Review action {review_action.value} applied to claim {claim_id}: status={view.status}")
        return view
