"""Shared fixtures: in-memory store, scripted Bedrock runtime and wired pipeline."""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from return_reasoner import reasoner
from return_reasoner.orchestration.pipeline import build_pipeline
from return_reasoner.storage.database import Database, ReturnClaim, ReturnPolicy
from return_reasoner.storage.repositories import ClaimRepository, PolicyRepository
from return_reasoner.storage.seed_policies import seed_policies
from return_reasoner.utils.bedrock_client import BedrockClient
from return_reasoner.utils.config import (
    AuthConfig,
    BedrockConfig,
    Config,
    DatabaseConfig,
    LoggingConfig,
    PipelineConfig,
)

TEST_JWT_SECRET = "test-secret-key-with-enough-length-for-hs256"

DEFAULT_ANALYSIS = (
    "The photo shows a scratch across the front panel of the device. "
    "The mark appears to be present from the factory finish."
)
DEFAULT_DRAFT = (
    "Thank you for your patience. We have reviewed your return request.\n"
    "Please check your account for the next steps."
)


class ScriptedBedrockRuntime:
    """
    Stands in for the boto3 bedrock-runtime client.

    Each capability is recognised from the request it sends: forced tool use
    for extraction, and the system prompt for the others.
    """

    def __init__(self):
        self.authenticity: Any = {
            "suspicious_image": False,
            "ai_generated": False,
            "image_quality": "good",
            "reason": "Clear photo of a real product",
        }
        self.analysis_text = DEFAULT_ANALYSIS
        self.extraction: Optional[Dict[str, Any]] = {
            "damage_type": "manufacturing_defect",
            "category": "scratches",
            "is_visible": True,
            "confidence": 0.85,
        }
        self.draft_text = DEFAULT_DRAFT
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    @staticmethod
    def capability(params: Dict[str, Any]) -> str:
        if "toolConfig" in params:
            return "extraction"
        system = " ".join(block.get("text", "") for block in params.get("system", []))
        if "image forensics expert" in system:
            return "authenticity"
        if "product defect analyst" in system:
            return "analysis"
        if "customer service representative" in system:
            return "drafting"
        return "unknown"

    def converse(self, **params):
        kind = self.capability(params)
        self.calls.append((kind, params))

        if kind in self.failures:
            raise self.failures[kind]

        if kind == "extraction":
            content = []
            if self.extraction is not None:
                content.append({
                    "toolUse": {
                        "toolUseId": "tooluse-1",
                        "name": "extract_defect_data",
                        "input": self.extraction,
                    }
                })
        elif kind == "authenticity":
            text = self.authenticity if isinstance(self.authenticity, str) else json.dumps(self.authenticity)
            content = [{"text": text}]
        elif kind == "analysis":
            content = [{"text": self.analysis_text}]
        else:
            content = [{"text": self.draft_text}]

        return {
            "output": {"message": {"role": "assistant", "content": content}},
            "stopReason": "tool_use" if kind == "extraction" else "end_turn",
            "usage": {"inputTokens": 10, "outputTokens": 20, "totalTokens": 30},
        }

    def capabilities_called(self) -> List[str]:
        return [kind for kind, _ in self.calls]


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    seed_policies(db)
    yield db
    db.dispose()


@pytest.fixture
def runtime():
    return ScriptedBedrockRuntime()


@pytest.fixture
def bedrock(runtime):
    return BedrockClient(region="us-east-1", model_id="test-model", max_retries=1, runtime=runtime)


@pytest.fixture
def pipeline(database, bedrock):
    return build_pipeline(database, bedrock)


@pytest.fixture
def make_claim(database):
    """Insert a claim row directly and return its id."""

    def _make(**overrides) -> str:
        fields = {
            "user_id": "user-1",
            "customer_name": "Dana Smith",
            "customer_email": "dana@example.com",
            "product_name": "Phone X",
            "issue_description": "The screen arrived scratched",
            "language": "en",
            "status": "processing",
            "analysis_round": 1,
            "more_info_requested": False,
        }
        fields.update(overrides)
        with database.session("test_make_claim") as session:
            return ClaimRepository(session).add(ReturnClaim(**fields)).id

    return _make


@pytest.fixture
def load_claim(database):
    """Read a claim row back as a detached object."""

    def _load(claim_id: str) -> ReturnClaim:
        with database.session("test_load_claim") as session:
            claim = ClaimRepository(session).get(claim_id)
            claim.decisions  # load before the session closes
            return claim

    return _load


@pytest.fixture
def add_policy(database):
    def _add(**fields) -> str:
        with database.session("test_add_policy") as session:
            return PolicyRepository(session).add(ReturnPolicy(**fields)).id

    return _add


@pytest.fixture
def test_config():
    return Config(
        aws_region="us-east-1",
        bedrock=BedrockConfig(model_id="test-model", timeout=5, max_retries=1),
        database=DatabaseConfig(url="sqlite://"),
        auth=AuthConfig(jwt_secret=TEST_JWT_SECRET),
        pipeline=PipelineConfig(),
        logging=LoggingConfig(level="INFO", format="%(levelname)s %(message)s"),
    )


@pytest.fixture
def configured_reasoner(test_config, database, bedrock):
    """Install the in-memory store and scripted client as the reasoner's components."""
    reasoner.configure(test_config, database, bedrock)
    yield reasoner
    reasoner.reset_system()
