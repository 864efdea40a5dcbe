"""Customer message drafting."""

import logging

from semantic_kernel.functions import kernel_function

from ..models.claim import Disposition
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import UpstreamModelError

logger = logging.getLogger(__name__)

DRAFTER_SYSTEM_PROMPT = (
    "You are a professional customer service representative. Write SHORT email body text "
    "(3-4 lines max). Do NOT include greetings like 'Dear Customer' or signatures. "
    "Just the body content."
)


class CorrespondenceDrafter:
    """
    Drafts the short customer-facing message for a disposition.

    A failed draft aborts the run; there is no template fallback.
    """

    def __init__(self, bedrock_client: BedrockClient, max_tokens: int = 300):
        self.bedrock = bedrock_client
        self.max_tokens = max_tokens
        logger.info("Initialized CorrespondenceDrafter")

    @kernel_function(
        name="draft_customer_message",
        description="Write a 3-4 line customer email body explaining a return decision."
    )
    async def draft(self, disposition: Disposition, reason: str) -> str:
        """
        Draft the message body.

        Args:
            disposition: Decision outcome
            reason: Rationale the message must convey

        Returns:
            Message body text

        Raises:
            UpstreamModelError: If the model fails or returns nothing
        """
        disposition_text = Disposition(disposition).value.replace("_", " ")
        prompt = (
            f"Write a very short email body (3-4 lines only, no greeting, no signature) "
            f"for a customer whose return was {disposition_text}.\n\n"
            f"Reason: {reason}\n\n"
            f"Keep it brief, empathetic, and actionable."
        )

        response = await self.bedrock.converse(
            messages=[{"role": "user", "content": [{"text": prompt}]}],
            system_prompts=[{"text": DRAFTER_SYSTEM_PROMPT}],
            temperature=0.3,
            max_tokens=self.max_tokens,
            operation="draft_correspondence",
        )

        draft = (response.get("text") or "").strip()
        if not draft:
            raise UpstreamModelError.unparseable("draft_correspondence", "empty email draft")

        logger.info(f"Drafted customer message ({len(draft)} characters)")
        return draft
