"""Image authenticity screening using Bedrock vision."""

import logging
import time
from typing import Any, Dict, Optional

from semantic_kernel.functions import kernel_function

from ..models.evidence import AuthenticityResult, ImageQuality
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import AuthenticityClassificationError
from ..utils.response_formatter import ResponseFormatter

logger = logging.getLogger(__name__)

AUTHENTICITY_SYSTEM_PROMPT = (
    "You are an image forensics expert specialized in detecting fake, AI-generated, and "
    "suspicious images. Respond ONLY with valid JSON matching this exact structure: "
    '{"suspicious_image": true/false, "ai_generated": true/false, '
    '"image_quality": "good"/"bad"/"blurry", "reason": "brief explanation"}'
)

AUTHENTICITY_PROMPT = (
    "Analyze this image carefully. Check for: "
    "1) Is it AI-generated (look for unnatural textures, impossible reflections, inconsistent "
    "lighting, overly perfect details, AI artifacts)? "
    "2) Is it suspicious (stock photo, screenshot, watermark, logo overlay, text overlay, "
    "catalog photo)? "
    "3) Rate the image quality. Return JSON only."
)


class AuthenticityClassifier:
    """
    Scores a return photo as suspicious, AI-generated and by quality tier.

    Screening is advisory: any failure yields the safe default
    (not suspicious, not generated, good quality) and the pipeline continues.
    """

    def __init__(self, bedrock_client: BedrockClient, max_tokens: int = 512):
        self.bedrock = bedrock_client
        self.max_tokens = max_tokens
        logger.info("Initialized AuthenticityClassifier")

    @kernel_function(
        name="classify_image_authenticity",
        description=(
            "Check a product photo for AI-generation artifacts and stock/catalog indicators, "
            "and rate its quality as good, bad or blurry."
        )
    )
    async def classify(self, image_reference: Optional[str] = None) -> AuthenticityResult:
        """
        Classify the image behind an object-store locator.

        Args:
            image_reference: Image locator; screening is skipped when absent

        Returns:
            AuthenticityResult, the safe default on any failure
        """
        if not image_reference:
            return AuthenticityResult.safe_default()

        start_time = time.time()
        try:
            messages = [
                {
                    "role": "user",
                    "content": [
                        {"text": AUTHENTICITY_PROMPT},
                        self.bedrock.image_block(image_reference),
                    ]
                }
            ]

            response = await self.bedrock.converse(
                messages=messages,
                system_prompts=[{"text": AUTHENTICITY_SYSTEM_PROMPT}],
                temperature=0.0,
                max_tokens=self.max_tokens,
                operation="authenticity_check",
            )

            data = ResponseFormatter.extract_json_from_response(response.get("text", ""))
            if data is None:
                raise ValueError("response did not contain a JSON object")

            result = self._to_result(data)

        except Exception as e:
            error = AuthenticityClassificationError.downgraded(image_reference, e)
            logger.warning(f"Authenticity screening downgraded: {error}")
            return AuthenticityResult.safe_default()

        logger.info(
            f"Authenticity check complete in {time.time() - start_time:.3f}s: "
            f"suspicious={result.suspicious}, ai_generated={result.ai_generated}, "
            f"quality={result.quality.value}"
        )
        return result

    def _to_result(self, data: Dict[str, Any]) -> AuthenticityResult:
        """
        Validate the model's JSON verdict.

        Raises:
            ValueError: If the quality tier is outside good/bad/blurry
        """
        quality_raw = data.get("image_quality") or ImageQuality.GOOD.value
        try:
            quality = ImageQuality(str(quality_raw).strip().lower())
        except ValueError:
            raise ValueError(f"unknown image quality tier: {quality_raw!r}")

        reason = data.get("reason")
        return AuthenticityResult(
            suspicious=data.get("suspicious_image") is True,
            ai_generated=data.get("ai_generated") is True,
            quality=quality,
            reason=str(reason) if reason else None,
        )
