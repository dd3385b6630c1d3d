"""Gemini API backend for receipt extraction."""

from __future__ import annotations

from ..capture import ReceiptImage
from . import ExtractionBackend, ReceiptData
from .parser import AI_EXTRACTION_PROMPT, parse_ai_response


class GeminiExtractionBackend(ExtractionBackend):
    """Read receipts using Google Gemini's vision capability."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def extract(self, image: ReceiptImage) -> ReceiptData:
        if not self._api_key:
            raise ValueError(
                "Gemini API key is not set. "
                "Check the config file or the GEMINI_API_KEY environment variable."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)

        parts = [
            {"mime_type": image.media_type, "data": image.data},
            AI_EXTRACTION_PROMPT,
        ]
        response = await model.generate_content_async(parts)
        return parse_ai_response(response.text, captured_at=image.captured_at)
