"""Tesseract OCR backend for receipt extraction."""

from __future__ import annotations

import asyncio
import io
import logging
from enum import Enum

from ..capture import ReceiptImage
from ..errors import ExtractionError
from . import ExtractionBackend, ReceiptData
from .parser import build_receipt

logger = logging.getLogger(__name__)


class OCRErrorType(str, Enum):
    INVALID_IMAGE = "invalid_image"
    RECOGNITION_FAILED = "recognition_failed"
    TIMEOUT = "timeout"
    LOW_CONFIDENCE = "low_confidence"
    UNKNOWN = "unknown"


def _import_tesseract():
    try:
        import pytesseract
        from PIL import Image, UnidentifiedImageError
    except ImportError:
        raise ImportError(
            "pytesseract and Pillow are required: pip install pytesseract Pillow"
        ) from None
    return pytesseract, Image, UnidentifiedImageError


class TesseractBackend(ExtractionBackend):
    """Read receipts with a local Tesseract install."""

    def __init__(
        self,
        lang: str = "eng",
        tesseract_cmd: str = "",
        min_confidence: float = 30.0,
        timeout: float = 30.0,
    ) -> None:
        self._lang = lang
        self._tesseract_cmd = tesseract_cmd
        self._min_confidence = min_confidence
        self._timeout = timeout

    def _recognize(self, data: bytes) -> tuple[str, float]:
        """Run OCR and return the text with its mean word confidence."""
        pytesseract, Image, UnidentifiedImageError = _import_tesseract()
        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ExtractionError(
                f"The receipt image could not be read: {e}",
                code=OCRErrorType.INVALID_IMAGE.value,
            ) from e

        try:
            text = pytesseract.image_to_string(image, lang=self._lang)
            ocr_data = pytesseract.image_to_data(
                image, lang=self._lang, output_type=pytesseract.Output.DICT
            )
        except pytesseract.TesseractError as e:
            raise ExtractionError(
                f"Text recognition failed: {e}",
                code=OCRErrorType.RECOGNITION_FAILED.value,
            ) from e
        except pytesseract.TesseractNotFoundError as e:
            raise ExtractionError(
                f"Tesseract is not installed or not on PATH: {e}",
                code=OCRErrorType.UNKNOWN.value,
            ) from e

        # Tesseract reports -1 for non-word boxes
        confidences = [float(c) for c in ocr_data.get("conf", []) if float(c) >= 0]
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return text, confidence

    async def extract(self, image: ReceiptImage) -> ReceiptData:
        try:
            text, confidence = await asyncio.wait_for(
                asyncio.to_thread(self._recognize, image.data),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            raise ExtractionError(
                "Text recognition timed out. Try again with a smaller image.",
                code=OCRErrorType.TIMEOUT.value,
            ) from None

        if confidence < self._min_confidence:
            logger.warning(
                "Low OCR confidence %.1f (threshold %.1f)",
                confidence,
                self._min_confidence,
            )
        else:
            logger.debug("OCR confidence %.1f", confidence)

        return build_receipt(text, captured_at=image.captured_at)
