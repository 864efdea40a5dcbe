"""Claim intake data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ClaimStatus(str, Enum):
    """Lifecycle status of a return claim."""
    PROCESSING = "processing"
    APPROVED = "approved"
    DENIED = "denied"
    MORE_INFO_REQUESTED = "more_info_requested"
    MANUAL_REVIEW = "manual_review"
    APPROVED_MANUAL = "approved_manual"
    DENIED_MANUAL = "denied_manual"


class Disposition(str, Enum):
    """Outcome of one pipeline run."""
    APPROVED = "approved"
    DENIED = "denied"
    MORE_INFO_REQUESTED = "more_info_requested"
    MANUAL_REVIEW = "manual_review"

    def as_status(self) -> ClaimStatus:
        return ClaimStatus(self.value)


@dataclass(frozen=True)
class AnalysisRequest:
    """
    One invocation of the return analysis pipeline.

    Attributes:
        claim_id: Claim to analyse
        description: Customer's issue description
        image_reference: Object-store locator of the submitted photo, if any
        language: ISO language code for generated text
    """
    claim_id: str
    description: str
    image_reference: Optional[str] = None
    language: str = "en"


@dataclass
class ClaimSubmission:
    """
    Customer-provided fields for a new return claim.

    Attributes:
        customer_name: Customer display name
        customer_email: Contact address
        product_name: Product being returned
        issue_description: Free-text defect description
        order_id: Optional order reference
        product_category: Optional product category
        issue_category: Optional customer-selected issue category
        image_reference: Optional object-store locator of the defect photo
        language: ISO language code
    """
    customer_name: str
    customer_email: str
    product_name: str
    issue_description: str
    order_id: Optional[str] = None
    product_category: Optional[str] = None
    issue_category: Optional[str] = None
    image_reference: Optional[str] = None
    language: str = "en"
