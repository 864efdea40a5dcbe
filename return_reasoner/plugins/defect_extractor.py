"""Schema-constrained extraction of a typed defect record."""

import logging
from typing import Any, Dict

from pydantic import BaseModel, Field, ValidationError
from semantic_kernel.functions import kernel_function

from ..models.evidence import DamageType, DefectCategory, DefectExtraction
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import UpstreamModelError

logger = logging.getLogger(__name__)

EXTRACTION_TOOL_NAME = "extract_defect_data"

EXTRACTION_TOOL_CONFIG: Dict[str, Any] = {
    "tools": [
        {
            "toolSpec": {
                "name": EXTRACTION_TOOL_NAME,
                "description": "Extract structured defect data with confidence scoring",
                "inputSchema": {
                    "json": {
                        "type": "object",
                        "properties": {
                            "damage_type": {
                                "type": "string",
                                "enum": [d.value for d in DamageType],
                                "description": "Cause of the defect, use UNKNOWN if not clear",
                            },
                            "category": {
                                "type": "string",
                                "enum": [c.value for c in DefectCategory],
                                "description": "The defect category, use UNKNOWN if not clear",
                            },
                            "is_visible": {
                                "type": "boolean",
                                "description": "Whether the defect is clearly visible in the image",
                            },
                            "confidence": {
                                "type": "number",
                                "minimum": 0,
                                "maximum": 1,
                                "description": "Confidence level 0-1, where <0.7 indicates uncertainty",
                            },
                        },
                        "required": ["damage_type", "category", "is_visible", "confidence"],
                    }
                },
            }
        }
    ],
    "toolChoice": {"tool": {"name": EXTRACTION_TOOL_NAME}},
}


class ExtractedDefectPayload(BaseModel):
    """Validation schema for the tool input returned by the model."""

    damage_type: DamageType
    category: DefectCategory
    is_visible: bool
    confidence: float = Field(ge=0.0, le=1.0)


class StructuredExtractor:
    """
    Converts a free-text defect assessment into a DefectExtraction.

    There is no fallback classification: a missing or invalid tool call
    aborts the run.
    """

    def __init__(self, bedrock_client: BedrockClient, max_tokens: int = 512):
        self.bedrock = bedrock_client
        self.max_tokens = max_tokens
        logger.info("Initialized StructuredExtractor")

    @kernel_function(
        name="extract_defect_data",
        description="Extract damage type, defect category, visibility and confidence from a defect analysis."
    )
    async def extract(self, analysis_text: str) -> DefectExtraction:
        """
        Extract the typed defect record.

        Args:
            analysis_text: Free-text analysis from the DefectAnalyst

        Returns:
            DefectExtraction

        Raises:
            UpstreamModelError: On model failure or malformed/missing tool output
        """
        response = await self.bedrock.converse(
            messages=[
                {
                    "role": "user",
                    "content": [{"text": f"Based on this defect analysis, extract structured data: {analysis_text}"}],
                }
            ],
            tool_config=EXTRACTION_TOOL_CONFIG,
            temperature=0.0,
            max_tokens=self.max_tokens,
            operation="defect_extraction",
        )

        tool_input = self._find_tool_input(response)
        try:
            payload = ExtractedDefectPayload.model_validate(tool_input)
        except ValidationError as e:
            logger.error(f"Extraction output failed validation: {tool_input}")
            raise UpstreamModelError.unparseable("defect_extraction", f"schema validation failed: {e}", e)

        extraction = DefectExtraction(
            damage_type=payload.damage_type,
            category=payload.category,
            is_visible=payload.is_visible,
            confidence=payload.confidence,
        )
        logger.info(
            f"Extracted defect data: damage_type={extraction.damage_type.value}, "
            f"category={extraction.category.value}, visible={extraction.is_visible}, "
            f"confidence={extraction.confidence:.2f}"
        )
        return extraction

    def _find_tool_input(self, response: Dict[str, Any]) -> Dict[str, Any]:
        for tool_use in response.get("tool_uses", []):
            if tool_use.get("name") == EXTRACTION_TOOL_NAME and isinstance(tool_use.get("input"), dict):
                return tool_use["input"]
        raise UpstreamModelError.unparseable("defect_extraction", "model did not call the extraction tool")
