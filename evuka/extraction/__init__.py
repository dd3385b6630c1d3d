"""Receipt extraction base class, data types, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ..errors import ExtractionError

if TYPE_CHECKING:
    from ..capture import ReceiptImage
    from ..config import RewardsConfig


@dataclass(frozen=True)
class ReceiptItem:
    name: str
    price: Decimal
    category: str = ""


@dataclass(frozen=True)
class ReceiptData:
    """Structured purchase data read from one receipt."""

    store: str
    total: Decimal
    timestamp: datetime
    items: tuple[ReceiptItem, ...] = ()
    raw_text: str = ""
    timestamp_confident: bool = False  # False when the date defaulted to capture time
    advanced_data: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ProcessedReceipt(ReceiptData):
    """A receipt annotated with the duplicate check result."""

    is_duplicate: bool = False
    duplicate_score: float = 0.0

    @classmethod
    def from_receipt(
        cls, receipt: ReceiptData, is_duplicate: bool, duplicate_score: float
    ) -> ProcessedReceipt:
        return cls(
            store=receipt.store,
            total=receipt.total,
            timestamp=receipt.timestamp,
            items=receipt.items,
            raw_text=receipt.raw_text,
            timestamp_confident=receipt.timestamp_confident,
            advanced_data=dict(receipt.advanced_data),
            is_duplicate=is_duplicate,
            duplicate_score=duplicate_score,
        )


class ExtractionBackend(ABC):
    """Abstract base for turning a receipt image into ReceiptData."""

    @abstractmethod
    async def extract(self, image: ReceiptImage) -> ReceiptData:
        """Extract structured receipt data from an image.

        Raises:
            ExtractionError: If no total or store name could be read.
        """
        ...


class DisabledBackend(ExtractionBackend):
    """Used when both OCR and AI extraction are switched off."""

    async def extract(self, image: ReceiptImage) -> ReceiptData:
        raise ExtractionError(
            "Receipt extraction is disabled. Enable OCR or AI analysis in settings.",
            code="disabled",
        )


def create_backend(
    config: RewardsConfig,
    enable_ocr: bool | None = None,
    enable_ai: bool | None = None,
) -> ExtractionBackend:
    """Create an extraction backend from configuration.

    AI extraction takes precedence over OCR when both are enabled. The
    toggles default to the ``[capture]`` section of the config.
    """
    if enable_ocr is None:
        enable_ocr = config.capture.enable_ocr
    if enable_ai is None:
        enable_ai = config.capture.enable_ai

    ext = config.extraction

    if enable_ai:
        match ext.ai_backend:
            case "claude":
                from .claude import ClaudeExtractionBackend

                return ClaudeExtractionBackend(
                    api_key=ext.claude.api_key,
                    model=ext.claude.model,
                )
            case "gemini":
                from .gemini import GeminiExtractionBackend

                return GeminiExtractionBackend(
                    api_key=ext.gemini.api_key,
                    model=ext.gemini.model,
                )
            case _:
                raise ValueError(
                    f"Unknown AI extraction backend: {ext.ai_backend!r} "
                    f"(choose claude or gemini)"
                )

    if enable_ocr:
        from .tesseract import TesseractBackend

        return TesseractBackend(
            lang=ext.tesseract.lang,
            tesseract_cmd=ext.tesseract.cmd,
            min_confidence=ext.min_confidence,
            timeout=ext.timeout,
        )

    return DisabledBackend()
