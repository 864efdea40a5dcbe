"""Tests for configuration loading, logging context and error payloads."""

import logging
from pathlib import Path

import pytest

from return_reasoner.utils.config import Config
from return_reasoner.utils.errors import (
    GENERIC_PUBLIC_MESSAGE,
    AuthenticationError,
    ClaimNotFoundError,
    PersistenceError,
    UpstreamModelError,
)
from return_reasoner.utils.logging import ContextFilter, get_context, log_context, set_context, clear_context
from return_reasoner.utils.response_formatter import ResponseFormatter

CONFIG_YAML = """
aws:
  region: eu-west-1
  bedrock:
    model_id: amazon.nova-lite-v1:0
    timeout: 30
    max_retries: 5
database:
  url: sqlite:///tmp/returns.db
auth:
  jwt_secret: from-file
  issuer: ""
  audience: returns-api
pipeline:
  parallel_screening: true
  watermark_keywords: [watermark, shutterstock]
logging:
  level: DEBUG
"""

ENV_VARS = ["AWS_REGION", "BEDROCK_MODEL_ID", "DATABASE_URL", "JWT_SECRET", "PARALLEL_SCREENING", "LOG_LEVEL"]


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return str(path)


def test_load_from_file(config_file):
    config = Config.load(config_file)

    assert config.aws_region == "eu-west-1"
    assert config.bedrock.model_id == "amazon.nova-lite-v1:0"
    assert config.bedrock.max_retries == 5
    assert config.database.url == "sqlite:///tmp/returns.db"
    assert config.auth.jwt_secret == "from-file"
    assert config.auth.issuer is None
    assert config.auth.audience == "returns-api"
    assert config.auth.algorithms == ["HS256"]
    assert config.pipeline.parallel_screening is True
    assert config.pipeline.watermark_keywords == ["watermark", "shutterstock"]
    assert config.logging.level == "DEBUG"
    assert config.logging.file is None


def test_environment_overrides(config_file, monkeypatch):
    monkeypatch.setenv("AWS_REGION", "us-west-2")
    monkeypatch.setenv("BEDROCK_MODEL_ID", "anthropic.claude-3-haiku")
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/returns")
    monkeypatch.setenv("JWT_SECRET", "from-env")
    monkeypatch.setenv("PARALLEL_SCREENING", "no")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    config = Config.load(config_file)

    assert config.aws_region == "us-west-2"
    assert config.bedrock.model_id == "anthropic.claude-3-haiku"
    assert config.database.url == "postgresql://db/returns"
    assert config.auth.jwt_secret == "from-env"
    assert config.pipeline.parallel_screening is False
    assert config.logging.level == "WARNING"


def test_repository_config_loads(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    config = Config.load(str(Path(__file__).parent / "config.yaml"))

    assert config.bedrock.model_id == "amazon.nova-pro-v1:0"
    assert config.pipeline.parallel_screening is False
    assert "%(correlation_id)s" in config.logging.format


def test_log_records_carry_request_context():
    clear_context()
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)

    with log_context(claim_id="claim-9", correlation_id="corr-9"):
        ContextFilter().filter(record)
        assert get_context() == {"claim_id": "claim-9", "correlation_id": "corr-9"}

    assert record.claim_id == "claim-9"
    assert record.correlation_id == "corr-9"
    assert get_context() == {}


def test_log_records_default_context():
    clear_context()
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)

    ContextFilter().filter(record)

    assert record.claim_id == "-"
    assert record.correlation_id == "-"


def test_set_context_merges_fields():
    clear_context()
    set_context(claim_id="a")
    set_context(correlation_id="b")

    assert get_context() == {"claim_id": "a", "correlation_id": "b"}
    clear_context()


def test_public_messages_hide_internal_detail():
    upstream = UpstreamModelError.unparseable("defect_extraction", "tool input had category 'dents'")
    store = PersistenceError.from_exception("persist_outcome", RuntimeError("disk full"))

    assert upstream.public_message == GENERIC_PUBLIC_MESSAGE
    assert store.public_message == GENERIC_PUBLIC_MESSAGE
    assert AuthenticationError.missing().public_message == "Authentication required"
    assert ClaimNotFoundError.for_claim("x").public_message == "Return request not found"
    assert "dents" in upstream.to_dict()["message"]


def test_error_payload_shape():
    assert ResponseFormatter.error_payload("Nope", "id-1") == {"error": "Nope", "errorId": "id-1"}


@pytest.mark.parametrize("text, expected", [
    ('{"a": 1}', {"a": 1}),
    ('Here you go:\n```json\n{"a": 2}\n```', {"a": 2}),
    ('Verdict: {"a": {"b": 3}} done', {"a": {"b": 3}}),
    ("no json here", None),
    ("[1, 2]", None),
])
def test_extract_json_from_response(text, expected):
    assert ResponseFormatter.extract_json_from_response(text) == expected
