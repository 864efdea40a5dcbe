"""Evidence data models produced by the model-service capabilities."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ImageQuality(str, Enum):
    GOOD = "good"
    BAD = "bad"
    BLURRY = "blurry"


class DamageType(str, Enum):
    MANUFACTURING_DEFECT = "manufacturing_defect"
    USER_DAMAGE = "user_damage"
    NORMAL_WEAR = "normal_wear"
    UNKNOWN = "UNKNOWN"


class DefectCategory(str, Enum):
    CRACKED_SCREEN = "cracked_screen"
    BROKEN_COMPONENT = "broken_component"
    COLOR_DEFECT = "color_defect"
    PHYSICAL_DAMAGE = "physical_damage"
    WATER_DAMAGE = "water_damage"
    SCRATCHES = "scratches"
    DISCOLORATION = "discoloration"
    SIZE_ISSUE = "size_issue"
    FIT_ISSUE = "fit_issue"
    COLOR_MISMATCH = "color_mismatch"
    NOT_AS_DESCRIBED = "not_as_described"
    UNKNOWN = "UNKNOWN"
    OTHER = "other"


# Written by the duplicate detector only; never produced by extraction
DUPLICATE_SUBMISSION_CATEGORY = "duplicate_submission"


@dataclass(frozen=True)
class AuthenticityResult:
    """
    Image authenticity screening result.

    Attributes:
        suspicious: Stock/catalog/screenshot indicators found
        ai_generated: Synthetic-generation artifacts found
        quality: Quality tier of the photo
        reason: Short explanation from the model, if any
    """
    suspicious: bool = False
    ai_generated: bool = False
    quality: ImageQuality = ImageQuality.GOOD
    reason: Optional[str] = None

    @classmethod
    def safe_default(cls) -> "AuthenticityResult":
        return cls()


@dataclass(frozen=True)
class DefectAnalysis:
    """Free-text defect assessment plus the watermark heuristic flag."""
    text: str
    has_watermark: bool = False


@dataclass(frozen=True)
class DefectExtraction:
    """
    Typed record extracted from a free-text assessment.

    Attributes:
        damage_type: Cause of the defect
        category: Defect category
        is_visible: Whether the defect is clearly visible in the photo
        confidence: Model confidence in [0, 1]
    """
    damage_type: DamageType
    category: DefectCategory
    is_visible: bool
    confidence: float
