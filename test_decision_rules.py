"""Tests for the return decision rule table."""

from dataclasses import replace

import pytest

from return_reasoner.models.claim import Disposition
from return_reasoner.models.decision import DecisionSignals, PolicySnapshot
from return_reasoner.models.evidence import DamageType, DefectCategory, ImageQuality
from return_reasoner.orchestration.rules import (
    AI_GENERATED_REASON,
    DECISION_RULES,
    NOT_COVERED_REASON,
    WATERMARK_REASON,
    evaluate,
    needs_review,
    resubmission_requests,
)

RETURNABLE_POLICY = PolicySnapshot(
    id="policy-scratches",
    defect_category="scratches",
    is_returnable=True,
    time_limit_days=30,
    conditions="cosmetic damage accepted",
)


def clear_signals(**overrides) -> DecisionSignals:
    """Signals for a clear, visible manufacturing defect with a returnable policy."""
    signals = DecisionSignals(
        is_ai_generated_image=False,
        has_watermark=False,
        damage_type=DamageType.MANUFACTURING_DEFECT,
        category=DefectCategory.SCRATCHES,
        is_visible=True,
        confidence=0.85,
        image_quality=ImageQuality.GOOD,
        is_suspicious_image=False,
        analysis_round=1,
        matched_policy=RETURNABLE_POLICY,
    )
    return replace(signals, **overrides)


def test_clear_manufacturing_defect_is_approved():
    outcome = evaluate(clear_signals())

    assert outcome.disposition == Disposition.APPROVED
    assert "30" in outcome.reason
    assert outcome.reason == (
        "Return approved. cosmetic damage accepted. Valid for 30 days from purchase."
    )
    assert outcome.escalation_reason is None


def test_approval_without_time_limit_omits_validity_sentence():
    policy = replace(RETURNABLE_POLICY, time_limit_days=None)
    outcome = evaluate(clear_signals(matched_policy=policy))

    assert outcome.disposition == Disposition.APPROVED
    assert "Valid for" not in outcome.reason


def test_ai_generated_overrides_everything():
    outcome = evaluate(clear_signals(is_ai_generated_image=True, confidence=0.99, has_watermark=True))

    assert outcome.disposition == Disposition.DENIED
    assert outcome.reason == AI_GENERATED_REASON
    assert outcome.rule == "ai_generated_image"


@pytest.mark.parametrize("overrides", [
    {"damage_type": DamageType.USER_DAMAGE},
    {"image_quality": ImageQuality.BLURRY, "analysis_round": 3},
    {"category": DefectCategory.UNKNOWN},
    {"matched_policy": None},
    {"is_visible": False, "confidence": 0.1},
])
def test_ai_generated_denies_regardless_of_other_signals(overrides):
    outcome = evaluate(clear_signals(is_ai_generated_image=True, **overrides))
    assert outcome.disposition == Disposition.DENIED
    assert outcome.reason == AI_GENERATED_REASON


def test_watermark_denied_before_damage_type():
    outcome = evaluate(clear_signals(has_watermark=True, damage_type=DamageType.USER_DAMAGE))

    assert outcome.disposition == Disposition.DENIED
    assert outcome.reason == WATERMARK_REASON


def test_user_damage_and_normal_wear_are_denied_even_when_review_needed():
    user_damage = evaluate(clear_signals(damage_type=DamageType.USER_DAMAGE, confidence=0.2))
    normal_wear = evaluate(clear_signals(damage_type=DamageType.NORMAL_WEAR, is_visible=False))

    assert user_damage.disposition == Disposition.DENIED
    assert "user mishandling" in user_damage.reason
    assert normal_wear.disposition == Disposition.DENIED
    assert "Normal wear and tear" in normal_wear.reason


def test_confidence_boundary_is_strict():
    assert not needs_review(clear_signals(confidence=0.7))
    assert needs_review(clear_signals(confidence=0.6999))

    assert evaluate(clear_signals(confidence=0.7)).disposition == Disposition.APPROVED
    assert evaluate(clear_signals(confidence=0.6999)).disposition == Disposition.MORE_INFO_REQUESTED


@pytest.mark.parametrize("overrides", [
    {"confidence": 0.5},
    {"image_quality": ImageQuality.BAD},
    {"image_quality": ImageQuality.BLURRY},
    {"is_suspicious_image": True},
    {"is_visible": False},
    {"category": DefectCategory.UNKNOWN},
    {"category": DefectCategory.SIZE_ISSUE},
    {"category": DefectCategory.FIT_ISSUE},
    {"category": DefectCategory.COLOR_MISMATCH},
])
def test_each_review_factor_triggers_needs_review(overrides):
    assert needs_review(clear_signals(**overrides))


def test_round_escalation():
    first_round = evaluate(clear_signals(confidence=0.4, analysis_round=1))
    second_round = evaluate(clear_signals(confidence=0.4, analysis_round=2))

    assert first_round.disposition == Disposition.MORE_INFO_REQUESTED
    assert first_round.escalation_reason is None
    assert second_round.disposition == Disposition.MANUAL_REVIEW
    assert second_round.escalation_reason.startswith("After 2 rounds of AI analysis:")
    assert "24-48 hours" in second_round.reason


def test_unknown_category_requests_more_info_despite_high_confidence():
    outcome = evaluate(clear_signals(category=DefectCategory.UNKNOWN, confidence=0.9, analysis_round=1))
    assert outcome.disposition == Disposition.MORE_INFO_REQUESTED


def test_escalation_reason_lists_every_factor():
    outcome = evaluate(clear_signals(
        confidence=0.3,
        image_quality=ImageQuality.BLURRY,
        is_suspicious_image=True,
        is_visible=False,
        category=DefectCategory.FIT_ISSUE,
        analysis_round=2,
    ))

    reason = outcome.escalation_reason
    assert "confidence too low" in reason
    assert "poor image quality" in reason
    assert "suspicious" in reason
    assert "not clearly visible" in reason
    assert "subjective issue" in reason


@pytest.mark.parametrize("overrides", [
    {"is_suspicious_image": True},
    {"category": DefectCategory.SIZE_ISSUE},
    {"category": DefectCategory.COLOR_MISMATCH},
])
def test_more_info_request_always_names_evidence(overrides):
    signals = clear_signals(**overrides)
    outcome = evaluate(signals)

    assert outcome.disposition == Disposition.MORE_INFO_REQUESTED
    assert resubmission_requests(signals)
    assert "Please upload: ." not in outcome.reason


def test_non_returnable_policy_denies_with_conditions():
    policy = PolicySnapshot(
        id="policy-water",
        defect_category="water_damage",
        is_returnable=False,
        conditions="Liquid damage is excluded from the return policy",
    )
    outcome = evaluate(clear_signals(category=DefectCategory.WATER_DAMAGE, matched_policy=policy))

    assert outcome.disposition == Disposition.DENIED
    assert outcome.reason == "Return denied. Liquid damage is excluded from the return policy."


def test_missing_policy_denies_as_not_covered():
    outcome = evaluate(clear_signals(category=DefectCategory.OTHER, matched_policy=None))

    assert outcome.disposition == Disposition.DENIED
    assert outcome.reason == NOT_COVERED_REASON


def test_unknown_damage_type_with_clear_evidence_goes_to_manual_review():
    outcome = evaluate(clear_signals(damage_type=DamageType.UNKNOWN))

    assert outcome.disposition == Disposition.MANUAL_REVIEW
    assert outcome.escalation_reason == "Unclear damage type: UNKNOWN"


def test_evaluation_is_deterministic():
    signals = clear_signals(confidence=0.65, analysis_round=2, category=DefectCategory.FIT_ISSUE)
    assert evaluate(signals) == evaluate(signals)


def test_rule_order():
    assert [rule.name for rule in DECISION_RULES] == [
        "ai_generated_image",
        "watermarked_image",
        "user_damage",
        "normal_wear",
        "escalate_after_retries",
        "request_more_info",
        "manufacturing_defect",
        "unclear_damage_type",
    ]
