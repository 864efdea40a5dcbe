"""
Decision rules for return claims.

Rules are evaluated in order and the first matching rule decides. The table
is free of I/O so it can be exercised directly with synthetic signals.
"""

from typing import Callable, List, NamedTuple

from ..models.claim import Disposition
from ..models.decision import DecisionOutcome, DecisionSignals
from ..models.evidence import DamageType, DefectCategory, ImageQuality

CONFIDENCE_THRESHOLD = 0.7
ESCALATION_ROUND = 2

SUBJECTIVE_CATEGORIES = frozenset({
    DefectCategory.SIZE_ISSUE,
    DefectCategory.FIT_ISSUE,
    DefectCategory.COLOR_MISMATCH,
})
REVIEW_CATEGORIES = SUBJECTIVE_CATEGORIES | {DefectCategory.UNKNOWN}

AI_GENERATED_REASON = (
    "The uploaded image appears to be AI-generated. We require authentic photographs of the "
    "actual product to process return requests. Please upload a real photo taken by you "
    "showing the defect clearly."
)
WATERMARK_REASON = (
    "Image contains watermarks, logos, or appears to be a stock/catalog photo. Please provide "
    "an authentic photo of your actual product showing the defect clearly."
)
USER_DAMAGE_REASON = (
    "Return denied. Damage caused by user mishandling. Our policy only covers manufacturing defects."
)
NORMAL_WEAR_REASON = "Return denied. Normal wear and tear is not covered by our return policy."
NOT_COVERED_REASON = "Return denied. This type of defect is not covered under our return policy."
MANUAL_REVIEW_SUFFIX = "Our team will review your request within 24-48 hours."


class DecisionRule(NamedTuple):
    name: str
    applies: Callable[[DecisionSignals], bool]
    decide: Callable[[DecisionSignals], DecisionOutcome]


def needs_review(signals: DecisionSignals) -> bool:
    """Whether the evidence is too weak or subjective for a policy-based decision."""
    return (
        signals.confidence < CONFIDENCE_THRESHOLD
        or signals.image_quality != ImageQuality.GOOD
        or signals.is_suspicious_image
        or not signals.is_visible
        or signals.category in REVIEW_CATEGORIES
    )


def review_factors(signals: DecisionSignals) -> List[str]:
    """Every factor that contributed to needs_review, for the reviewer."""
    factors = []
    if signals.confidence < CONFIDENCE_THRESHOLD:
        factors.append(f"AI confidence too low (<{int(CONFIDENCE_THRESHOLD * 100)}%)")
    if signals.image_quality != ImageQuality.GOOD:
        factors.append(f"poor image quality ({signals.image_quality.value})")
    if signals.is_suspicious_image:
        factors.append("image appears suspicious")
    if not signals.is_visible:
        factors.append("defect not clearly visible in image")
    if signals.category == DefectCategory.UNKNOWN:
        factors.append("unable to identify defect type")
    if signals.category in SUBJECTIVE_CATEGORIES:
        factors.append("subjective issue requiring human judgment")
    return factors


def resubmission_requests(signals: DecisionSignals) -> List[str]:
    """Evidence the customer should resubmit; never empty."""
    requests = []
    if signals.confidence < CONFIDENCE_THRESHOLD:
        requests.append("a closer photo of the defect")
    if signals.image_quality != ImageQuality.GOOD:
        requests.append("a sharper, well-lit photo")
    if signals.is_suspicious_image:
        requests.append("an original photo taken by you of your actual product")
    if not signals.is_visible:
        requests.append("a photo where the defect is clearly visible")
    if signals.category == DefectCategory.UNKNOWN:
        requests.append("a photo that shows what kind of defect it is")
    if signals.category in SUBJECTIVE_CATEGORIES:
        requests.append("a photo showing the size, fit or color issue next to a reference such as the product label")
    if not requests:
        requests.append("clearer photos of the defect")
    return requests


def _deny_ai_generated(signals: DecisionSignals) -> DecisionOutcome:
    return DecisionOutcome(Disposition.DENIED, AI_GENERATED_REASON, rule="ai_generated_image")


def _deny_watermark(signals: DecisionSignals) -> DecisionOutcome:
    return DecisionOutcome(Disposition.DENIED, WATERMARK_REASON, rule="watermarked_image")


def _deny_user_damage(signals: DecisionSignals) -> DecisionOutcome:
    return DecisionOutcome(Disposition.DENIED, USER_DAMAGE_REASON, rule="user_damage")


def _deny_normal_wear(signals: DecisionSignals) -> DecisionOutcome:
    return DecisionOutcome(Disposition.DENIED, NORMAL_WEAR_REASON, rule="normal_wear")


def _escalate(signals: DecisionSignals) -> DecisionOutcome:
    factors = ", ".join(review_factors(signals))
    return DecisionOutcome(
        Disposition.MANUAL_REVIEW,
        f"Manual review required: {factors}. {MANUAL_REVIEW_SUFFIX}",
        escalation_reason=f"After {signals.analysis_round} rounds of AI analysis: {factors}",
        rule="escalate_after_retries",
    )


def _request_more_info(signals: DecisionSignals) -> DecisionOutcome:
    requests = ", ".join(resubmission_requests(signals))
    return DecisionOutcome(
        Disposition.MORE_INFO_REQUESTED,
        f"We need clearer images to process your return. Please upload: {requests}. "
        f"Take clear, well-lit photos showing the defect from multiple angles.",
        rule="request_more_info",
    )


def _apply_policy(signals: DecisionSignals) -> DecisionOutcome:
    policy = signals.matched_policy
    if policy is None:
        return DecisionOutcome(Disposition.DENIED, NOT_COVERED_REASON, rule="no_matching_policy")

    if not policy.is_returnable:
        if policy.conditions:
            reason = f"Return denied. {policy.conditions.rstrip('.')}."
        else:
            reason = NOT_COVERED_REASON
        return DecisionOutcome(Disposition.DENIED, reason, rule="policy_not_returnable")

    reason = "Return approved."
    if policy.conditions:
        reason += f" {policy.conditions.rstrip('.')}."
    if policy.time_limit_days is not None:
        reason += f" Valid for {policy.time_limit_days} days from purchase."
    return DecisionOutcome(Disposition.APPROVED, reason, rule="policy_returnable")


def _unclear_damage_type(signals: DecisionSignals) -> DecisionOutcome:
    damage_type = getattr(signals.damage_type, "value", signals.damage_type)
    return DecisionOutcome(
        Disposition.MANUAL_REVIEW,
        f"Manual review required: unclear damage type. {MANUAL_REVIEW_SUFFIX}",
        escalation_reason=f"Unclear damage type: {damage_type}",
        rule="unclear_damage_type",
    )


DECISION_RULES: List[DecisionRule] = [
    DecisionRule("ai_generated_image", lambda s: s.is_ai_generated_image, _deny_ai_generated),
    DecisionRule("watermarked_image", lambda s: s.has_watermark, _deny_watermark),
    DecisionRule("user_damage", lambda s: s.damage_type == DamageType.USER_DAMAGE, _deny_user_damage),
    DecisionRule("normal_wear", lambda s: s.damage_type == DamageType.NORMAL_WEAR, _deny_normal_wear),
    DecisionRule(
        "escalate_after_retries",
        lambda s: needs_review(s) and s.analysis_round >= ESCALATION_ROUND,
        _escalate,
    ),
    DecisionRule(
        "request_more_info",
        lambda s: needs_review(s) and s.analysis_round < ESCALATION_ROUND,
        _request_more_info,
    ),
    DecisionRule(
        "manufacturing_defect",
        lambda s: s.damage_type == DamageType.MANUFACTURING_DEFECT,
        _apply_policy,
    ),
    DecisionRule("unclear_damage_type", lambda s: True, _unclear_damage_type),
]


def evaluate(signals: DecisionSignals) -> DecisionOutcome:
    """
    Decide a claim from its signals.

    Args:
        signals: Collected decision inputs

    Returns:
        DecisionOutcome of the first matching rule
    """
    for rule in DECISION_RULES:
        if rule.applies(signals):
            return rule.decide(signals)
    # Unreachable: the last rule always applies
    raise RuntimeError("No decision rule matched")
