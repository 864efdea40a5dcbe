"""Free-text defect assessment using Bedrock vision-language reasoning."""

import logging
import time
from typing import Iterable, List, Optional, Protocol

from semantic_kernel.functions import kernel_function

from ..models.evidence import DefectAnalysis
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import UpstreamModelError

logger = logging.getLogger(__name__)

LANGUAGE_INSTRUCTIONS = {
    "en": "Respond in English",
    "es": "Responde en español",
    "fr": "Répondez en français",
    "de": "Antworten Sie auf Deutsch",
    "zh": "用中文回答",
    "ja": "日本語で答えてください",
    "ar": "أجب بالعربية",
}

DEFAULT_WATERMARK_KEYWORDS = (
    "watermark",
    "logo overlay",
    "text overlay",
    "stock photo",
    "catalog photo",
)

ANALYST_SYSTEM_PROMPT = """You are an expert product defect analyst. {language_instruction}.

CRITICAL INSTRUCTIONS:
- Only describe what is CLEARLY VISIBLE in the photo and CLEARLY WRITTEN in the user text
- If you are not sure about something, say "UNKNOWN" or "NOT CLEARLY VISIBLE"
- Prefer UNKNOWN over guessing; prefer escalation over false confidence
- Do NOT make assumptions or infer things that aren't explicitly shown
- If the image quality is poor (blurry, dark, unclear), state this explicitly
- If the photo shows a watermark, logo overlay, text overlay, or looks like a stock or catalog photo, say so
- Be objective and conservative in your analysis

Analyze product images and descriptions to determine:
1. The type of defect (manufacturing defect, user damage, normal wear, or UNKNOWN)
2. The specific defect category
3. Whether the damage is clearly visible in the image
4. Your confidence level (0-1) in this assessment

If uncertain, always prefer to flag for manual review rather than making a definitive judgment."""


def language_instruction(language: Optional[str]) -> str:
    """Language directive for a code; unknown codes fall back to English."""
    return LANGUAGE_INSTRUCTIONS.get((language or "en").lower(), LANGUAGE_INSTRUCTIONS["en"])


class WatermarkDetector(Protocol):
    """Decides from free-text analysis whether the photo carries a watermark."""

    def detect(self, analysis_text: str) -> bool:
        ...


class KeywordWatermarkDetector:
    """
    Case-insensitive keyword match over the analysis text.

    Brittle by nature: paraphrases are missed and the words also match when
    the model says a watermark is absent.
    """

    def __init__(self, keywords: Optional[Iterable[str]] = None):
        self.keywords: List[str] = [k.lower() for k in (keywords or DEFAULT_WATERMARK_KEYWORDS)]

    def detect(self, analysis_text: str) -> bool:
        text = (analysis_text or "").lower()
        return any(keyword in text for keyword in self.keywords)


class DefectAnalyst:
    """Produces a conservative free-text assessment of the reported defect."""

    def __init__(
        self,
        bedrock_client: BedrockClient,
        watermark_detector: Optional[WatermarkDetector] = None,
        max_tokens: int = 1500
    ):
        self.bedrock = bedrock_client
        self.watermark_detector = watermark_detector or KeywordWatermarkDetector()
        self.max_tokens = max_tokens
        logger.info(f"Initialized DefectAnalyst with {type(self.watermark_detector).__name__}")

    @kernel_function(
        name="analyze_defect",
        description=(
            "Assess a product defect from the customer's description and optional photo. "
            "Returns a conservative free-text analysis that flags uncertainty."
        )
    )
    async def analyze(
        self,
        description: str,
        image_reference: Optional[str] = None,
        language: str = "en"
    ) -> DefectAnalysis:
        """
        Analyze the reported defect.

        Args:
            description: Customer's issue description
            image_reference: Optional image locator
            language: Language code for the analysis text

        Returns:
            DefectAnalysis with the text and watermark flag

        Raises:
            UpstreamModelError: If the model call fails or returns no text
        """
        start_time = time.time()

        content = [{"text": f"Product Issue Description: {description}"}]
        if image_reference:
            try:
                content.append(self.bedrock.image_block(image_reference))
            except ValueError as e:
                raise UpstreamModelError.unparseable("defect_analysis", str(e), e)

        response = await self.bedrock.converse(
            messages=[{"role": "user", "content": content}],
            system_prompts=[{"text": ANALYST_SYSTEM_PROMPT.format(
                language_instruction=language_instruction(language)
            )}],
            temperature=0.0,
            max_tokens=self.max_tokens,
            operation="defect_analysis",
        )

        text = (response.get("text") or "").strip()
        if not text:
            raise UpstreamModelError.unparseable("defect_analysis", "empty analysis text")

        has_watermark = self.watermark_detector.detect(text)

        logger.info(
            f"Defect analysis complete in {time.time() - start_time:.3f}s: "
            f"{len(text)} characters, has_watermark={has_watermark}"
        )
        logger.debug(f"Analysis preview: {text[:200]}...")

        return DefectAnalysis(text=text, has_watermark=has_watermark)
