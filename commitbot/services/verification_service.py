import asyncio
import json
import logging
import os
import re
from typing import Any, Dict, Optional

import litellm

from ..core.config import get_settings
from ..core.defaults_loader import get_config_value, get_timeout
from ..domain.errors import UpstreamVerificationFailure
from ..models.value_objects import Confidence, VerificationVerdict

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class VerificationService:
    """Proof verification through a LiteLLM vision model"""

    def __init__(self, model: Optional[str] = None) -> None:
        settings = get_settings()
        self.model = model or settings.llm_model
        self.temperature = float(get_config_value("verification.temperature", 0.1))
        self.max_tokens = int(get_config_value("verification.max_tokens", 500))
        self.timeout = get_timeout("verification", 60.0)

        litellm.set_verbose = os.getenv("LLM_VERBOSE", "false").lower() == "true"

        if settings.openai_api_key and not os.getenv("OPENAI_API_KEY"):
            os.environ["OPENAI_API_KEY"] = settings.openai_api_key

    def _build_messages(
        self, commitment_text: str, extracted_text: str, image_url: str
    ) -> list:
        system_prompt = get_config_value("verification.system_prompt", "")
        user_prompt = get_config_value("verification.user_prompt", "{commitment}").format(
            commitment=commitment_text, extracted_text=extracted_text
        )
        return [
            {"role": "system", "content": system_prompt},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": user_prompt},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ]

    async def verify(
        self, commitment_text: str, extracted_text: str, image_url: str
    ) -> VerificationVerdict:
        """Ask the model whether the image proves the commitment.

        Raises:
            UpstreamVerificationFailure: The API call failed or timed out.
        """
        messages = self._build_messages(commitment_text, extracted_text, image_url)

        logger.info(f"Calling LLM API with model: {self.model}")
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    litellm.completion,
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
                timeout=self.timeout,
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"Proof verification call failed: {e}", exc_info=True)
            raise UpstreamVerificationFailure(
                f"Verification service error: {type(e).__name__}"
            ) from e

        return self.parse_verdict(content)

    @staticmethod
    def parse_verdict(content: str) -> VerificationVerdict:
        """Turn a raw model reply into a sanitized verdict.

        Pulls the first ``{...}`` block out of surrounding prose. A reply
        that still isn't a JSON object yields the low-confidence fallback.
        """
        content = (content or "").strip()
        match = _JSON_BLOCK.search(content)
        json_str = match.group(0) if match else content

        try:
            analysis = json.loads(json_str)
            if not isinstance(analysis, dict):
                raise ValueError(f"expected a JSON object, got {type(analysis).__name__}")
        except ValueError as e:
            logger.error(f"Verification response parsing error: {e}")
            logger.error(f"Raw response: {content}")
            return VerificationVerdict.fallback()

        return VerificationService._sanitize(analysis)

    @staticmethod
    def _sanitize(analysis: Dict[str, Any]) -> VerificationVerdict:
        confidence = analysis.get("confidence")
        if confidence not in {c.value for c in Confidence}:
            confidence = Confidence.MEDIUM
        return VerificationVerdict(
            is_valid=bool(analysis.get("isValid")),
            explanation=str(analysis.get("explanation") or "No explanation provided"),
            confidence=Confidence(confidence),
        )


# Global service instance
_verification_service: Optional[VerificationService] = None


def get_verification_service() -> VerificationService:
    """Get the global verification service instance"""
    global _verification_service
    if _verification_service is None:
        _verification_service = VerificationService()
    return _verification_service
