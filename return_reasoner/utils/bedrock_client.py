"""AWS Bedrock client wrapper with retry logic and error handling."""

import asyncio
import logging
import os
from typing import Dict, List, Optional, Any
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from dotenv import load_dotenv

from .errors import UpstreamModelError, ErrorType, ErrorContext

# Ensure environment variables are loaded
load_dotenv()

logger = logging.getLogger(__name__)

IMAGE_FORMATS = {
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "png": "png",
    "gif": "gif",
    "webp": "webp",
}


class BedrockClient:
    """
    Wrapper for AWS Bedrock Runtime client with retry logic.

    Provides methods for:
    - Invoking a multimodal model via the Converse API
    - Forced tool use for schema-constrained output
    - Automatic retry with exponential backoff on transient errors
    """

    def __init__(
        self,
        region: str = "us-east-1",
        model_id: str = "amazon.nova-pro-v1:0",
        timeout: int = 120,
        max_retries: int = 3,
        runtime: Any = None
    ):
        """
        Initialize Bedrock client.

        Args:
            region: AWS region for Bedrock service
            model_id: Model ID used for every capability
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per call
            runtime: Optional pre-built bedrock-runtime client
        """
        self.region = region
        self.model_id = model_id
        self.max_retries = max(1, max_retries)

        if runtime is not None:
            self.runtime = runtime
        else:
            config_kwargs: Dict[str, Any] = {
                "region_name": region,
                "connect_timeout": timeout,
                "read_timeout": timeout,
                "retries": {"max_attempts": 0},  # We handle retries manually
            }
            # botocore honours AWS_BEARER_TOKEN_BEDROCK when bearer signing is requested
            if os.getenv("AWS_BEARER_TOKEN_BEDROCK"):
                config_kwargs["signature_version"] = "bearer"
                logger.info("BedrockClient configured to use Amazon Bedrock API key authentication")
            else:
                logger.info("BedrockClient configured to use AWS IAM credentials (SigV4)")

            self.runtime = boto3.client("bedrock-runtime", config=Config(**config_kwargs))

        logger.info(
            f"Initialized BedrockClient: region={region}, "
            f"model={model_id}, max_retries={self.max_retries}"
        )

    async def converse(
        self,
        messages: List[Dict[str, Any]],
        system_prompts: Optional[List[Dict[str, Any]]] = None,
        tool_config: Optional[Dict[str, Any]] = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        operation: str = "converse"
    ) -> Dict[str, Any]:
        """
        Invoke the model via the Converse API with retry logic.

        Args:
            messages: List of message dicts with 'role' and 'content'
            system_prompts: Optional system prompts
            tool_config: Optional tool configuration for forced tool use
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens to generate
            operation: Name of the calling capability, used in logs and errors

        Returns:
            Parsed response dict with 'text', 'tool_uses', 'stop_reason', 'usage'

        Raises:
            UpstreamModelError: If all attempts fail or the error is not retryable
        """
        params: Dict[str, Any] = {
            "modelId": self.model_id,
            "messages": messages,
            "inferenceConfig": {
                "temperature": temperature,
                "maxTokens": max_tokens
            }
        }

        if tool_config:
            params["toolConfig"] = tool_config

        if system_prompts:
            params["system"] = system_prompts

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Invoking {operation} (attempt {attempt + 1}/{self.max_retries})")

                response = await asyncio.to_thread(self.runtime.converse, **params)

                logger.info(
                    f"{operation} invocation successful: "
                    f"stop_reason={response.get('stopReason')}, "
                    f"usage={response.get('usage')}"
                )

                return self._parse_converse_response(response)

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))

                logger.warning(
                    f"Bedrock API error during {operation} (attempt {attempt + 1}/{self.max_retries}): "
                    f"code={error_code}, message={error_message}"
                )

                if self._is_retryable_error(error_code) and attempt < self.max_retries - 1:
                    # Exponential backoff: 1s, 2s, 4s, ...
                    wait_time = 2 ** attempt
                    logger.info(f"Retrying {operation} in {wait_time} seconds...")
                    await asyncio.sleep(wait_time)
                    continue

                logger.error(
                    f"{operation} failed after {attempt + 1} attempts: "
                    f"{error_code} - {error_message}"
                )
                raise UpstreamModelError.from_client_error(error=e, operation=operation)

            except Exception as e:
                logger.error(f"Unexpected error during {operation}: {str(e)}")
                raise UpstreamModelError(ErrorContext(
                    error_type=ErrorType.MODEL_SERVICE_ERROR,
                    message=f"Unexpected error during {operation}: {str(e)}",
                    recoverable=False,
                    details={"operation": operation},
                    original_exception=e
                ))

        # Only reachable when max_retries is misconfigured
        raise UpstreamModelError(ErrorContext(
            error_type=ErrorType.MODEL_SERVICE_ERROR,
            message=f"Failed to invoke {operation} after {self.max_retries} attempts",
            recoverable=False
        ))

    @staticmethod
    def is_image_locator(image_reference: str) -> bool:
        """Whether the model service can dereference this locator (s3://bucket/key)."""
        parsed = urlparse(image_reference or "")
        return parsed.scheme == "s3" and bool(parsed.netloc)

    @staticmethod
    def image_block(image_reference: str) -> Dict[str, Any]:
        """
        Build a Converse image content block from an object-store locator.

        The image bytes are never read here; the model service dereferences
        the S3 location itself.

        Args:
            image_reference: s3://bucket/key locator

        Returns:
            Converse content block

        Raises:
            ValueError: If the locator is not an S3 URI
        """
        if not BedrockClient.is_image_locator(image_reference):
            raise ValueError(f"Unsupported image locator: {image_reference}")

        parsed = urlparse(image_reference)
        extension = parsed.path.rsplit(".", 1)[-1].lower() if "." in parsed.path else ""
        image_format = IMAGE_FORMATS.get(extension)
        if image_format is None:
            logger.warning(f"Unknown image format for {image_reference}, defaulting to JPEG")
            image_format = "jpeg"

        return {
            "image": {
                "format": image_format,
                "source": {"s3Location": {"uri": image_reference}}
            }
        }

    def _parse_converse_response(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """
        Parse Converse API response into a simplified format.

        Args:
            response: Raw response from Converse API

        Returns:
            Parsed response dict with 'content', 'text', 'tool_uses', 'stop_reason', 'usage'
        """
        message = response.get("output", {}).get("message", {})
        content = message.get("content", []) or []

        text_parts = [block["text"] for block in content if isinstance(block, dict) and block.get("text")]
        tool_uses = [block["toolUse"] for block in content if isinstance(block, dict) and "toolUse" in block]

        return {
            "content": content,
            "role": message.get("role", "assistant"),
            "text": "\n".join(text_parts),
            "tool_uses": tool_uses,
            "stop_reason": response.get("stopReason", "unknown"),
            "usage": response.get("usage", {}),
        }

    def _is_retryable_error(self, error_code: str) -> bool:
        """Determine if an error code is retryable."""
        retryable_errors = {
            "ThrottlingException",
            "TooManyRequestsException",
            "ServiceUnavailableException",
            "InternalServerException",
            "ModelNotReadyException",
            "RequestTimeout",
            "RequestTimeoutException"
        }

        return error_code in retryable_errors
