"""Claude API backend for receipt extraction."""

from __future__ import annotations

import base64

from ..capture import ReceiptImage
from . import ExtractionBackend, ReceiptData
from .parser import AI_EXTRACTION_PROMPT, parse_ai_response


class ClaudeExtractionBackend(ExtractionBackend):
    """Read receipts using Claude's vision capability."""

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model

    async def extract(self, image: ReceiptImage) -> ReceiptData:
        if not self._api_key:
            raise ValueError(
                "Anthropic API key is not set. "
                "Check the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": base64.standard_b64encode(image.data).decode(),
                },
            },
            {"type": "text", "text": AI_EXTRACTION_PROMPT},
        ]

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        response = await client.messages.create(
            model=self._model,
            max_tokens=2048,
            messages=[{"role": "user", "content": content}],
        )

        return parse_ai_response(response.content[0].text, captured_at=image.captured_at)
