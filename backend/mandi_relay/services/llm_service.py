from __future__ import annotations

import logging
from typing import Any, List

import google.generativeai as genai

from mandi_relay.config import settings
from mandi_relay.services.exceptions import ExtractionFailure


def _safe_text(resp: Any) -> str:
    """Join the text parts of every candidate.

    Avoids `resp.text`, which raises for multi-part or blocked responses.
    """
    try:
        pieces: List[str] = []
        for cand in getattr(resp, "candidates", []) or []:
            content = getattr(cand, "content", None)
            parts = getattr(content, "parts", []) if content else []
            for part in parts:
                t = getattr(part, "text", None)
                if t:
                    pieces.append(t)
                elif isinstance(part, dict):
                    # Some SDK variants expose dict-like parts
                    v = part.get("text") or part.get("content")
                    if isinstance(v, str):
                        pieces.append(v)
        return "\n".join(pieces).strip()
    except Exception:
        return ""


class LLMService:
    """Gemini client used as the offer extraction oracle."""

    def __init__(self, model_name: str | None = None):
        genai.configure(api_key=settings.GEMINI_API_KEY)
        # Extraction should be repeatable, so keep sampling tight.
        self._gen_config = {
            "temperature": 0.2,
            "top_p": 0.9,
            "max_output_tokens": 8192,
        }
        self.model_name = model_name or settings.OFFER_MODEL
        self.model = genai.GenerativeModel(self.model_name, generation_config=self._gen_config)

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the response text.

        Raises ExtractionFailure when the call fails or returns no text.
        """
        logger = logging.getLogger(__name__)
        logger.debug("LLM.generate start model=%s prompt_len=%d", self.model_name, len(prompt))
        try:
            resp = await self.model.generate_content_async(prompt)
        except Exception as e:
            raise ExtractionFailure(f"Oracle call failed: {e}") from e

        text = _safe_text(resp)
        if not text:
            feedback = getattr(resp, "prompt_feedback", None)
            raise ExtractionFailure(f"Oracle response contained no text (feedback={feedback})")
        logger.debug("LLM.text len=%d", len(text))
        return text
