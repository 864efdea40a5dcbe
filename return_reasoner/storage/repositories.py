"""Repositories for claim, decision and policy rows.

Each repository wraps a Session owned by the caller, so several repository
calls can share one transaction.
"""

from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..utils.errors import ClaimNotFoundError
from .database import ReturnClaim, ReturnDecision, ReturnPolicy


class ClaimRepository:
    """Repository for ReturnClaim rows."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, claim_id: str) -> Optional[ReturnClaim]:
        return self.session.get(ReturnClaim, claim_id)

    def get_or_raise(self, claim_id: str) -> ReturnClaim:
        claim = self.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError.for_claim(claim_id)
        return claim

    def add(self, claim: ReturnClaim) -> ReturnClaim:
        self.session.add(claim)
        self.session.flush()
        return claim

    def find_other_with_image(self, image_reference: str, exclude_claim_id: str) -> Optional[ReturnClaim]:
        """
        Find another claim that already carries this image.

        Matches both the current and the original image of other claims.
        """
        stmt = (
            select(ReturnClaim)
            .where(
                or_(
                    ReturnClaim.image_reference == image_reference,
                    ReturnClaim.original_image_reference == image_reference,
                ),
                ReturnClaim.id != exclude_claim_id,
            )
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def list_by_status(self, status: str) -> List[ReturnClaim]:
        stmt = select(ReturnClaim).where(ReturnClaim.status == status).order_by(ReturnClaim.created_at)
        return list(self.session.execute(stmt).scalars())


class DecisionRepository:
    """Repository for append-only ReturnDecision rows."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, decision: ReturnDecision) -> ReturnDecision:
        self.session.add(decision)
        self.session.flush()
        return decision

    def latest_for_claim(self, claim_id: str) -> Optional[ReturnDecision]:
        stmt = (
            select(ReturnDecision)
            .where(ReturnDecision.claim_id == claim_id)
            .order_by(ReturnDecision.created_at.desc(), ReturnDecision.analysis_round.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()


class PolicyRepository:
    """Repository for ReturnPolicy rows."""

    def __init__(self, session: Session):
        self.session = session

    def list_for_category(self, defect_category: str) -> List[ReturnPolicy]:
        """Policies for a category, oldest first with id as tie-break."""
        stmt = (
            select(ReturnPolicy)
            .where(ReturnPolicy.defect_category == defect_category)
            .order_by(ReturnPolicy.created_at, ReturnPolicy.id)
        )
        return list(self.session.execute(stmt).scalars())

    def first_for_category(self, defect_category: str) -> Optional[ReturnPolicy]:
        policies = self.list_for_category(defect_category)
        return policies[0] if policies else None

    def add(self, policy: ReturnPolicy) -> ReturnPolicy:
        self.session.add(policy)
        self.session.flush()
        return policy
