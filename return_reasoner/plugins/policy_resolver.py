"""Return policy lookup by defect category."""

import logging
from typing import Optional

from ..models.decision import PolicySnapshot
from ..storage.database import Database
from ..storage.repositories import PolicyRepository

logger = logging.getLogger(__name__)


class PolicyResolver:
    """
    Read-only lookup of the return policy for a defect category.

    When several policies share a category the oldest wins (id breaks ties),
    so resolution is deterministic.
    """

    def __init__(self, database: Database):
        self.database = database
        logger.info("Initialized PolicyResolver")

    def resolve(self, defect_category: str) -> Optional[PolicySnapshot]:
        """
        Resolve the policy for a category.

        Args:
            defect_category: Extracted defect category value

        Returns:
            PolicySnapshot, or None when no policy covers the category

        Raises:
            PersistenceError: If the store read fails
        """
        with self.database.session("policy_lookup") as session:
            policies = PolicyRepository(session).list_for_category(defect_category)
            if not policies:
                logger.info(f"No return policy for category '{defect_category}'")
                return None

            if len(policies) > 1:
                logger.warning(
                    f"{len(policies)} policies for category '{defect_category}', using {policies[0].id}"
                )

            policy = policies[0]
            snapshot = PolicySnapshot(
                id=policy.id,
                defect_category=policy.defect_category,
                is_returnable=bool(policy.is_returnable),
                time_limit_days=policy.time_limit_days,
                conditions=policy.conditions,
                policy_type=policy.policy_type,
            )

        logger.info(
            f"Matched policy {snapshot.id} for '{defect_category}': returnable={snapshot.is_returnable}"
        )
        return snapshot
