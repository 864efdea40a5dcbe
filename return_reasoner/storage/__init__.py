"""Storage layer for claims, decisions and return policies."""

from .database import Database, ReturnClaim, ReturnDecision, ReturnPolicy
from .repositories import ClaimRepository, DecisionRepository, PolicyRepository
from .outcome import OutcomePersister

__all__ = [
    'Database',
    'ReturnClaim',
    'ReturnDecision',
    'ReturnPolicy',
    'ClaimRepository',
    'DecisionRepository',
    'PolicyRepository',
    'OutcomePersister',
]
