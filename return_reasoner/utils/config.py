"""Configuration management for the return claims reasoner."""

import os
import yaml
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class BedrockConfig:
    """AWS Bedrock configuration."""
    model_id: str
    timeout: int
    max_retries: int


@dataclass
class DatabaseConfig:
    """Relational store configuration."""
    url: str
    echo: bool = False


@dataclass
class AuthConfig:
    """Bearer token verification settings."""
    jwt_secret: str
    algorithms: List[str] = field(default_factory=lambda: ["HS256"])
    issuer: Optional[str] = None
    audience: Optional[str] = None
    admin_role: str = "admin"


@dataclass
class PipelineConfig:
    """Return analysis pipeline settings."""
    parallel_screening: bool = False
    watermark_keywords: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    format: str
    file: Optional[str] = None


@dataclass
class Config:
    """Main configuration class."""
    aws_region: str
    bedrock: BedrockConfig
    database: DatabaseConfig
    auth: AuthConfig
    pipeline: PipelineConfig
    logging: LoggingConfig

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> "Config":
        """
        Load configuration from file and environment variables.

        Environment variables override config file values:
        - AWS_REGION
        - BEDROCK_MODEL_ID
        - DATABASE_URL
        - JWT_SECRET
        - PARALLEL_SCREENING
        - LOG_LEVEL

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings
        """
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        aws = config_data.get("aws", {})
        aws_region = os.getenv("AWS_REGION", aws.get("region", "us-east-1"))

        bedrock_data = aws.get("bedrock", {})
        bedrock_config = BedrockConfig(
            model_id=os.getenv("BEDROCK_MODEL_ID", bedrock_data.get("model_id", "amazon.nova-pro-v1:0")),
            timeout=int(bedrock_data.get("timeout", 120)),
            max_retries=int(bedrock_data.get("max_retries", 3)),
        )

        db_data = config_data.get("database", {})
        database_config = DatabaseConfig(
            url=os.getenv("DATABASE_URL", db_data.get("url", "sqlite:///data/returns.db")),
            echo=bool(db_data.get("echo", False)),
        )

        auth_data = config_data.get("auth", {})
        auth_config = AuthConfig(
            jwt_secret=os.getenv("JWT_SECRET", auth_data.get("jwt_secret", "")),
            algorithms=list(auth_data.get("algorithms", ["HS256"])),
            issuer=auth_data.get("issuer") or None,
            audience=auth_data.get("audience") or None,
            admin_role=auth_data.get("admin_role", "admin"),
        )

        pipeline_data = config_data.get("pipeline", {})
        parallel = pipeline_data.get("parallel_screening", False)
        if os.getenv("PARALLEL_SCREENING") is not None:
            parallel = os.getenv("PARALLEL_SCREENING", "").lower() in ("1", "true", "yes")
        pipeline_config = PipelineConfig(
            parallel_screening=bool(parallel),
            watermark_keywords=list(pipeline_data.get("watermark_keywords", [])),
        )

        log_data = config_data.get("logging", {})
        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", log_data.get("level", "INFO")),
            format=log_data.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            file=log_data.get("file") or None,
        )

        return cls(
            aws_region=aws_region,
            bedrock=bedrock_config,
            database=database_config,
            auth=auth_config,
            pipeline=pipeline_config,
            logging=logging_config,
        )
