"""Decision rules and the staged return analysis pipeline."""

from .rules import DECISION_RULES, evaluate, needs_review
from .pipeline import ReturnPipeline, build_pipeline

__all__ = [
    "DECISION_RULES",
    "evaluate",
    "needs_review",
    "ReturnPipeline",
    "build_pipeline",
]
