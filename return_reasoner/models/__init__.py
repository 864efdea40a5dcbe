"""Data models for return claims, evidence and decisions."""

from .claim import AnalysisRequest, ClaimStatus, ClaimSubmission, Disposition
from .evidence import (
    AuthenticityResult,
    DamageType,
    DefectAnalysis,
    DefectCategory,
    DefectExtraction,
    ImageQuality,
)
from .decision import DecisionOutcome, DecisionSignals, PolicySnapshot, ReturnAnalysisState

__all__ = [
    "AnalysisRequest",
    "ClaimStatus",
    "ClaimSubmission",
    "Disposition",
    "AuthenticityResult",
    "DamageType",
    "DefectAnalysis",
    "DefectCategory",
    "DefectExtraction",
    "ImageQuality",
    "DecisionOutcome",
    "DecisionSignals",
    "PolicySnapshot",
    "ReturnAnalysisState",
]
