"""eVuka Rewards: receipt scanning, points and rewards."""

from .capture import ReceiptCamera, ReceiptImage, compress_image, load_image_file
from .config import (
    CaptureConfig,
    DatabaseConfig,
    ExtractionConfig,
    RewardsConfig,
    SyncConfig,
    load_config,
)
from .duplicates import DuplicateCheck, ReceiptHistory, check_for_duplicates
from .errors import (
    AppError,
    AuthenticationError,
    CaptureError,
    ExtractionError,
    ProcessingError,
    ProductCodeError,
    RateLimitError,
    StorageError,
)
from .extraction import (
    ExtractionBackend,
    ProcessedReceipt,
    ReceiptData,
    ReceiptItem,
    create_backend,
)
from .models import PointsSource, PointsTransaction, ReceiptRecord
from .pipeline import CaptureResult, CaptureSettings, ReceiptPipeline
from .points import calculate_points
from .product_codes import ProductCode, calculate_product_code_points, validate_product_code

__all__ = [
    "ReceiptCamera",
    "ReceiptImage",
    "compress_image",
    "load_image_file",
    "CaptureConfig",
    "DatabaseConfig",
    "ExtractionConfig",
    "RewardsConfig",
    "SyncConfig",
    "load_config",
    "DuplicateCheck",
    "ReceiptHistory",
    "check_for_duplicates",
    "AppError",
    "AuthenticationError",
    "CaptureError",
    "ExtractionError",
    "ProcessingError",
    "ProductCodeError",
    "RateLimitError",
    "StorageError",
    "ExtractionBackend",
    "ProcessedReceipt",
    "ReceiptData",
    "ReceiptItem",
    "create_backend",
    "PointsSource",
    "PointsTransaction",
    "ReceiptRecord",
    "CaptureResult",
    "CaptureSettings",
    "ReceiptPipeline",
    "calculate_points",
    "ProductCode",
    "calculate_product_code_points",
    "validate_product_code",
]
