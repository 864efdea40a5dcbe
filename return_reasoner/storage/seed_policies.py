"""Seed the return policy table with the default policy catalogue.

Run from the project root:

    python -m return_reasoner.storage.seed_policies [--replace]
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Any

from sqlalchemy import delete

from ..utils.config import Config
from ..utils.logging import setup_logging
from .database import Database, ReturnPolicy
from .repositories import PolicyRepository

logger = logging.getLogger(__name__)

DEFAULT_POLICIES: List[Dict[str, Any]] = [
    {
        "defect_category": "cracked_screen",
        "policy_type": "electronics",
        "is_returnable": True,
        "time_limit_days": 30,
        "conditions": "Cracks present on delivery or caused by a manufacturing fault are covered",
    },
    {
        "defect_category": "broken_component",
        "policy_type": "electronics",
        "is_returnable": True,
        "time_limit_days": 30,
        "conditions": "Components that fail under normal use are replaced or refunded",
    },
    {
        "defect_category": "color_defect",
        "policy_type": "apparel",
        "is_returnable": True,
        "time_limit_days": 30,
        "conditions": "Uneven dyeing or bleeding colours from manufacturing are covered",
    },
    {
        "defect_category": "physical_damage",
        "policy_type": "standard",
        "is_returnable": True,
        "time_limit_days": 14,
        "conditions": "Damage present on arrival must be reported with photos",
    },
    {
        "defect_category": "water_damage",
        "policy_type": "electronics",
        "is_returnable": False,
        "time_limit_days": None,
        "conditions": "Liquid damage is excluded from the return policy",
    },
    {
        "defect_category": "scratches",
        "policy_type": "standard",
        "is_returnable": True,
        "time_limit_days": 30,
        "conditions": "Cosmetic damage accepted when present on delivery",
    },
    {
        "defect_category": "discoloration",
        "policy_type": "apparel",
        "is_returnable": True,
        "time_limit_days": 30,
        "conditions": "Discoloration not caused by washing or sunlight is covered",
    },
    {
        "defect_category": "not_as_described",
        "policy_type": "standard",
        "is_returnable": True,
        "time_limit_days": 30,
        "conditions": "Items that differ materially from the listing are covered",
    },
    {
        "defect_category": "other",
        "policy_type": "standard",
        "is_returnable": False,
        "time_limit_days": None,
        "conditions": "Issues outside listed categories are handled case by case by support",
    },
]


def seed_policies(database: Database, replace: bool = False) -> int:
    """
    Insert the default policy catalogue.

    Args:
        database: Target database
        replace: Delete existing policies first

    Returns:
        Number of policies inserted
    """
    inserted = 0
    with database.session("seed_policies") as session:
        if replace:
            session.execute(delete(ReturnPolicy))

        repo = PolicyRepository(session)
        for policy_data in DEFAULT_POLICIES:
            if not replace and repo.first_for_category(policy_data["defect_category"]) is not None:
                logger.debug(f"Policy for {policy_data['defect_category']} exists, skipping")
                continue
            repo.add(ReturnPolicy(**policy_data))
            inserted += 1

    logger.info(f"Seeded {inserted} return policies")
    return inserted


def main():
    parser = argparse.ArgumentParser(description="Seed default return policies")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--replace", action="store_true", help="Delete existing policies first")
    args = parser.parse_args()

    setup_logging(level="INFO")

    if not os.path.exists(args.config):
        logger.error(f"{args.config} not found; run from the project root directory")
        sys.exit(1)

    config = Config.load(args.config)
    database = Database(config.database.url, echo=config.database.echo)
    database.create_all()
    seed_policies(database, replace=args.replace)


if __name__ == "__main__":
    main()
