"""
Main reasoner entry point for return claims.

This module provides the run_reasoner function that drives one analysis of a
return claim through the staged pipeline using AWS Bedrock.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .claims import validate_image_reference
from .models.claim import AnalysisRequest
from .models.decision import ReturnAnalysisState
from .models.evidence import DUPLICATE_SUBMISSION_CATEGORY
from .orchestration.pipeline import ReturnPipeline, build_pipeline
from .storage.database import Database
from .utils.bedrock_client import BedrockClient
from .utils.config import Config
from .utils.errors import ClaimValidationError, ErrorContext, ErrorType, ReturnProcessingError
from .utils.logging import log_context, setup_logging

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Global instances (initialized on first use)
_config: Optional[Config] = None
_database: Optional[Database] = None
_bedrock_client: Optional[BedrockClient] = None
_pipeline: Optional[ReturnPipeline] = None


def _initialize_system(config_path: str = "config.yaml") -> None:
    """
    Initialize the system components (config, logging, store, Bedrock, pipeline).

    This is called lazily on first use to avoid initialization overhead when
    the module is imported.
    """
    if _pipeline is not None:
        return

    try:
        config = _config or Config.load(config_path)
        setup_logging(config.logging.level, config.logging.format, config.logging.file)
        logger.info(f"Configuration loaded: region={config.aws_region}, model={config.bedrock.model_id}")

        database = _database or Database(config.database.url, echo=config.database.echo)
        database.create_all()

        bedrock_client = _bedrock_client or BedrockClient(
            region=config.aws_region,
            model_id=config.bedrock.model_id,
            timeout=config.bedrock.timeout,
            max_retries=config.bedrock.max_retries,
        )

        configure(config, database, bedrock_client)
        logger.info("System initialization complete")

    except ReturnProcessingError:
        raise
    except Exception as e:
        logger.error(f"System initialization failed: {str(e)}", exc_info=True)
        raise ReturnProcessingError(
            ErrorContext(
                error_type=ErrorType.INITIALIZATION_FAILED,
                message=f"Failed to initialize return reasoner: {str(e)}",
                recoverable=False,
                original_exception=e
            )
        )


def configure(config: Config, database: Database, bedrock_client: Any) -> ReturnPipeline:
    """
    Install pre-built components and wire the pipeline from them.

    Used by the server at startup and by tests that supply an in-memory
    database and a scripted model client.
    """
    global _config, _database, _bedrock_client, _pipeline

    _config = config
    _database = database
    _bedrock_client = bedrock_client
    _pipeline = build_pipeline(
        database,
        bedrock_client,
        parallel_screening=config.pipeline.parallel_screening,
        watermark_keywords=config.pipeline.watermark_keywords,
    )
    return _pipeline


def reset_system() -> None:
    """Drop all initialized components; the next call re-initializes."""
    global _config, _database, _bedrock_client, _pipeline
    _config = None
    _database = None
    _bedrock_client = None
    _pipeline = None


def get_config() -> Config:
    _initialize_system()
    return _config


def get_database() -> Database:
    _initialize_system()
    return _database


def get_pipeline() -> ReturnPipeline:
    _initialize_system()
    return _pipeline


def run_reasoner(
    claim_id: str,
    image_reference: Optional[str],
    description: str,
    language: str = "en",
    correlation_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Analyse a return claim and persist the decision.

    Args:
        claim_id: Existing claim to analyse
        image_reference: Object-store locator of the defect photo, or None
        description: Customer's issue description
        language: ISO language code for generated text
        correlation_id: Id stamped on every log record of this run

    Returns:
        Dictionary with keys success, claimId, visionAnalysis, defectCategory,
        decision, decisionReason, emailDraft, confidence, isSuspiciousImage and
        policyMatched; or, for a duplicate image, success=False with the
        denial and defectCategory "duplicate_submission".

    Raises:
        ClaimValidationError: If claim id or description is missing, the photo
            locator is unsupported, or the claim is not in processing
        ClaimNotFoundError: If the claim does not exist
        ReturnProcessingError: For model, store or unexpected failures
    """
    missing = [name for name, value in (("claimId", claim_id), ("description", description)) if not value]
    if missing:
        raise ClaimValidationError.missing_fields(missing)
    validate_image_reference(image_reference)

    correlation_id = correlation_id or str(uuid.uuid4())

    with log_context(claim_id=claim_id, correlation_id=correlation_id):
        return _run(claim_id, image_reference, description, language, correlation_id)


def _run(
    claim_id: str,
    image_reference: Optional[str],
    description: str,
    language: str,
    correlation_id: str,
) -> Dict[str, Any]:
    try:
        pipeline = get_pipeline()

        request = AnalysisRequest(
            claim_id=claim_id,
            description=description,
            image_reference=image_reference or None,
            language=language or "en",
        )

        logger.info(f"Processing return claim {claim_id}")
        state = asyncio.run(pipeline.run(request))
        return _format_response(state)

    except ReturnProcessingError as e:
        logger.error(f"Return analysis failed [{correlation_id}]: {e}", extra={"error": e.to_dict()})
        raise

    except Exception as e:
        logger.error(f"Unexpected error in run_reasoner [{correlation_id}]: {str(e)}", exc_info=True)
        raise ReturnProcessingError(
            ErrorContext(
                error_type=ErrorType.UNKNOWN_ERROR,
                message=f"Unexpected error analysing claim {claim_id}: {str(e)}",
                recoverable=False,
                original_exception=e
            )
        )


def _format_response(state: ReturnAnalysisState) -> Dict[str, Any]:
    """
    Shape the final pipeline state into the caller-facing payload.

    Args:
        state: Final pipeline state

    Returns:
        camelCase response dictionary
    """
    outcome = state.outcome

    if state.short_circuited:
        return {
            "success": False,
            "claimId": state.claim_id,
            "decision": outcome.disposition.value,
            "decisionReason": outcome.reason,
            "defectCategory": DUPLICATE_SUBMISSION_CATEGORY,
        }

    return {
        "success": True,
        "claimId": state.claim_id,
        "visionAnalysis": state.analysis.text,
        "defectCategory": state.extraction.category.value,
        "decision": outcome.disposition.value,
        "decisionReason": outcome.reason,
        "emailDraft": state.email_draft,
        "confidence": state.extraction.confidence,
        "isSuspiciousImage": state.authenticity.suspicious,
        "policyMatched": state.matched_policy.to_dict() if state.matched_policy else None,
    }
