"""Response formatting utilities for JSON extraction and caller payloads."""

import json
import logging
import re
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


class ResponseFormatter:
    """
    Utility class for extracting JSON from model output and shaping API payloads.

    Provides methods for:
    - Extracting JSON from various model response formats
    - Building the generic failure payload returned to callers
    """

    @staticmethod
    def extract_json_from_response(response_text: str) -> Optional[Dict[str, Any]]:
        """
        Extract a JSON object from a model response.

        Tries, in order: the entire response, a markdown code block, and the
        first complete JSON object embedded in surrounding prose.

        Args:
            response_text: Raw response text that may contain JSON

        Returns:
            Parsed JSON dictionary, or None if no valid JSON object found
        """
        if not response_text or not response_text.strip():
            logger.warning("Empty response text provided")
            return None

        text = response_text.strip()

        for extractor in (
            ResponseFormatter._extract_raw_json,
            ResponseFormatter._extract_markdown_json,
            ResponseFormatter._extract_embedded_json,
        ):
            data = extractor(text)
            if isinstance(data, dict):
                return data

        logger.warning(f"Failed to extract JSON from response: {text[:200]}...")
        return None

    @staticmethod
    def _extract_raw_json(text: str) -> Optional[Any]:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return None

    @staticmethod
    def _extract_markdown_json(text: str) -> Optional[Any]:
        match = re.search(r'```(?:json)?\s*\n?(.*?)\n?```', text, re.DOTALL)
        if not match:
            return None
        try:
            return json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            return None

    @staticmethod
    def _extract_embedded_json(text: str) -> Optional[Dict[str, Any]]:
        """Find the first balanced JSON object in text using brace counting."""
        start_idx = text.find('{')
        while start_idx != -1:
            depth = 0
            in_string = False
            escape_next = False

            for i in range(start_idx, len(text)):
                char = text[i]
                if escape_next:
                    escape_next = False
                    continue
                if char == '\\':
                    escape_next = True
                    continue
                if char == '"':
                    in_string = not in_string
                    continue
                if in_string:
                    continue
                if char == '{':
                    depth += 1
                elif char == '}':
                    depth -= 1
                    if depth == 0:
                        try:
                            return json.loads(text[start_idx:i + 1])
                        except json.JSONDecodeError:
                            break

            start_idx = text.find('{', start_idx + 1)

        return None

    @staticmethod
    def error_payload(message: str, error_id: str) -> Dict[str, Any]:
        """Generic failure payload: never carries upstream error detail."""
        return {"error": message, "errorId": error_id}
