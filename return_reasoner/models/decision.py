"""Decision and pipeline state data models."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .claim import AnalysisRequest, Disposition
from .evidence import (
    AuthenticityResult,
    DamageType,
    DefectAnalysis,
    DefectCategory,
    DefectExtraction,
    ImageQuality,
)


@dataclass(frozen=True)
class PolicySnapshot:
    """
    Return policy as read at match time.

    Attributes:
        id: Policy row id, stored on the Decision as a non-owning reference
        defect_category: Category the policy applies to
        is_returnable: Whether the category qualifies for a return
        time_limit_days: Optional return window in days
        conditions: Free-text policy conditions
        policy_type: Policy family label
    """
    id: str
    defect_category: str
    is_returnable: bool
    time_limit_days: Optional[int] = None
    conditions: Optional[str] = None
    policy_type: str = "standard"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "defectCategory": self.defect_category,
            "isReturnable": self.is_returnable,
            "timeLimitDays": self.time_limit_days,
            "conditions": self.conditions,
            "policyType": self.policy_type,
        }


@dataclass(frozen=True)
class DecisionSignals:
    """Every input the decision rules look at."""
    is_ai_generated_image: bool
    has_watermark: bool
    damage_type: DamageType
    category: DefectCategory
    is_visible: bool
    confidence: float
    image_quality: ImageQuality
    is_suspicious_image: bool
    analysis_round: int
    matched_policy: Optional[PolicySnapshot] = None


@dataclass(frozen=True)
class DecisionOutcome:
    """
    Result of evaluating the decision rules.

    Attributes:
        disposition: Outcome value
        reason: Customer-facing rationale
        escalation_reason: Reviewer-facing reason, set for manual review
        rule: Name of the rule that matched
    """
    disposition: Disposition
    reason: str
    escalation_reason: Optional[str] = None
    rule: str = ""


@dataclass(frozen=True)
class ReturnAnalysisState:
    """
    Immutable state threaded through the pipeline stages.

    Each stage returns a new instance built with dataclasses.replace; fields
    are filled in stage order and read by later stages only.
    """
    request: AnalysisRequest
    analysis_round: int = 1
    original_image_reference: Optional[str] = None
    authenticity: AuthenticityResult = field(default_factory=AuthenticityResult.safe_default)
    analysis: Optional[DefectAnalysis] = None
    extraction: Optional[DefectExtraction] = None
    matched_policy: Optional[PolicySnapshot] = None
    outcome: Optional[DecisionOutcome] = None
    email_draft: Optional[str] = None
    short_circuited: bool = False
    decision_id: Optional[str] = None
    started_at: float = 0.0

    @property
    def claim_id(self) -> str:
        return self.request.claim_id

    @property
    def image_reference(self) -> Optional[str]:
        return self.request.image_reference

    def to_signals(self) -> DecisionSignals:
        """Collect decision inputs; analysis and extraction must be present."""
        if self.analysis is None or self.extraction is None:
            raise ValueError("Decision signals require analysis and extraction results")

        return DecisionSignals(
            is_ai_generated_image=self.authenticity.ai_generated,
            has_watermark=self.analysis.has_watermark,
            damage_type=self.extraction.damage_type,
            category=self.extraction.category,
            is_visible=self.extraction.is_visible,
            confidence=self.extraction.confidence,
            image_quality=self.authenticity.quality,
            is_suspicious_image=self.authenticity.suspicious,
            analysis_round=self.analysis_round,
            matched_policy=self.matched_policy,
        )
