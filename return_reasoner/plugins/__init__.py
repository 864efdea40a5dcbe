"""Pipeline capabilities: model-service calls and store lookups."""

from .duplicate_detector import DuplicateEvidenceDetector
from .image_authenticity import AuthenticityClassifier
from .defect_analyst import DefectAnalyst, KeywordWatermarkDetector, WatermarkDetector
from .defect_extractor import StructuredExtractor
from .policy_resolver import PolicyResolver
from .correspondence import CorrespondenceDrafter

__all__ = [
    'DuplicateEvidenceDetector',
    'AuthenticityClassifier',
    'DefectAnalyst',
    'KeywordWatermarkDetector',
    'WatermarkDetector',
    'StructuredExtractor',
    'PolicyResolver',
    'CorrespondenceDrafter',
]
