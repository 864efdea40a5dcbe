"""Claim intake and evidence resubmission."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models.claim import ClaimStatus, ClaimSubmission
from .storage.database import Database, ReturnClaim, ReturnDecision
from .storage.repositories import ClaimRepository, DecisionRepository
from .utils.bedrock_client import BedrockClient
from .utils.errors import ClaimValidationError

logger = logging.getLogger(__name__)

REQUIRED_SUBMISSION_FIELDS = ("customer_name", "customer_email", "product_name", "issue_description")


def validate_image_reference(image_reference: Optional[str]) -> None:
    """Reject photo locators the model service cannot read; an absent photo is allowed."""
    if image_reference and not BedrockClient.is_image_locator(image_reference):
        raise ClaimValidationError.unsupported_image(image_reference)


def decision_to_dict(decision: Optional[ReturnDecision]) -> Optional[Dict[str, Any]]:
    """camelCase view of a decision row."""
    if decision is None:
        return None
    return {
        "id": decision.id,
        "visionAnalysis": decision.vision_analysis,
        "defectCategory": decision.defect_category,
        "damageType": decision.damage_type,
        "policyId": decision.policy_id,
        "decision": decision.disposition,
        "decisionReason": decision.decision_reason,
        "escalationReason": decision.escalation_reason,
        "emailDraft": decision.email_draft,
        "confidence": decision.confidence,
        "isSuspiciousImage": decision.is_suspicious_image,
        "aiGeneratedImage": decision.ai_generated_image,
        "imageQuality": decision.image_quality,
        "hasWatermark": decision.has_watermark,
        "adminNotes": decision.admin_notes,
        "analysisRound": decision.analysis_round,
        "processingTimeMs": decision.processing_time_ms,
        "createdAt": decision.created_at.isoformat() if decision.created_at else None,
    }


@dataclass
class ClaimView:
    """A claim together with its most recent decision."""
    id: str
    user_id: Optional[str]
    customer_name: str
    customer_email: str
    product_name: str
    issue_description: str
    status: str
    language: str
    analysis_round: int
    more_info_requested: bool
    order_id: Optional[str] = None
    product_category: Optional[str] = None
    issue_category: Optional[str] = None
    image_reference: Optional[str] = None
    original_image_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    latest_decision: Optional[Dict[str, Any]] = None
    decision_count: int = 0

    @classmethod
    def from_row(cls, claim: ReturnClaim, latest: Optional[ReturnDecision] = None) -> "ClaimView":
        return cls(
            id=claim.id,
            user_id=claim.user_id,
            customer_name=claim.customer_name,
            customer_email=claim.customer_email,
            product_name=claim.product_name,
            issue_description=claim.issue_description,
            status=claim.status,
            language=claim.language,
            analysis_round=claim.analysis_round,
            more_info_requested=bool(claim.more_info_requested),
            order_id=claim.order_id,
            product_category=claim.product_category,
            issue_category=claim.issue_category,
            image_reference=claim.image_reference,
            original_image_reference=claim.original_image_reference,
            created_at=claim.created_at,
            latest_decision=decision_to_dict(latest),
            decision_count=len(claim.decisions),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "orderId": self.order_id,
            "productCategory": self.product_category,
            "productName": self.product_name,
            "issueCategory": self.issue_category,
            "issueDescription": self.issue_description,
            "imageReference": self.image_reference,
            "originalImageReference": self.original_image_reference,
            "status": self.status,
            "language": self.language,
            "analysisRound": self.analysis_round,
            "moreInfoRequested": self.more_info_requested,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "latestDecision": self.latest_decision,
            "decisionCount": self.decision_count,
        }


class ClaimService:
    """
    Creates claims and accepts new evidence for claims awaiting it.

    Running the pipeline is left to the caller, so intake stays free of
    model-service calls.
    """

    def __init__(self, database: Database):
        self.database = database

    def submit_claim(self, user_id: str, submission: ClaimSubmission) -> str:
        """
        Create a claim in status processing on round 1.

        Args:
            user_id: Owner of the claim
            submission: Customer-provided fields

        Returns:
            New claim id

        Raises:
            ClaimValidationError: If a required field is blank or the photo locator is unsupported
        """
        missing: List[str] = [
            name for name in REQUIRED_SUBMISSION_FIELDS
            if not (getattr(submission, name) or "").strip()
        ]
        if missing:
            raise ClaimValidationError.missing_fields(missing)
        validate_image_reference(submission.image_reference)

        with self.database.session("submit_claim") as session:
            claim = ClaimRepository(session).add(ReturnClaim(
                user_id=user_id,
                customer_name=submission.customer_name.strip(),
                customer_email=submission.customer_email.strip(),
                order_id=submission.order_id,
                product_category=submission.product_category,
                product_name=submission.product_name.strip(),
                issue_category=submission.issue_category,
                issue_description=submission.issue_description.strip(),
                language=submission.language or "en",
                image_reference=submission.image_reference or None,
                status=ClaimStatus.PROCESSING.value,
                more_info_requested=False,
                analysis_round=1,
            ))
            claim_id = claim.id

        logger.info(f"Created return claim {claim_id} for user {user_id}")
        return claim_id

    def resubmit_evidence(
        self,
        claim_id: str,
        image_reference: str,
        description: Optional[str] = None
    ) -> ClaimView:
        """
        Attach a new photo to a claim awaiting more information.

        Moves the claim from more_info_requested back to processing. The new
        photo must differ from both the current and the original photo.

        Args:
            claim_id: Claim to update
            image_reference: Locator of the new photo
            description: Optional replacement issue description

        Returns:
            Updated ClaimView

        Raises:
            ClaimNotFoundError: If the claim does not exist
            ClaimValidationError: On a missing, unreadable or reused photo, or wrong status
        """
        if not image_reference:
            raise ClaimValidationError.missing_fields(["imageReference"])
        validate_image_reference(image_reference)

        with self.database.session("resubmit_evidence") as session:
            claims = ClaimRepository(session)
            claim = claims.get_or_raise(claim_id)

            awaiting = claim.status == ClaimStatus.MORE_INFO_REQUESTED.value or claim.more_info_requested
            if not awaiting:
                raise ClaimValidationError.invalid_transition(
                    claim_id, f"claim is {claim.status}, not awaiting more information"
                )

            if image_reference in (claim.image_reference, claim.original_image_reference):
                raise ClaimValidationError.invalid_transition(
                    claim_id, "resubmitted image matches a previously submitted image"
                )

            claim.image_reference = image_reference
            if description and description.strip():
                claim.issue_description = description.strip()
            claim.status = ClaimStatus.PROCESSING.value
            claim.more_info_requested = False
            session.flush()

            view = ClaimView.from_row(claim, DecisionRepository(session).latest_for_claim(claim.id))

        logger.info(f"Accepted new evidence for claim {claim_id} (round {view.analysis_round})")
        return view

    def get_claim(self, claim_id: str) -> ClaimView:
        """
        Load a claim with its latest decision.

        Raises:
            ClaimNotFoundError: If the claim does not exist
        """
        with self.database.session("get_claim") as session:
            claim = ClaimRepository(session).get_or_raise(claim_id)
            return ClaimView.from_row(claim, DecisionRepository(session).latest_for_claim(claim.id))
