"""Receipt image capture from a camera or an uploaded file."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import mimetypes
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path

from .errors import CaptureError

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = "data:image"


@dataclass(frozen=True)
class ReceiptImage:
    """Raw encoded receipt image."""

    data: bytes
    media_type: str = "image/jpeg"
    source: str = "upload"  # "camera" | "upload"
    captured_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_data_url(self) -> str:
        encoded = base64.standard_b64encode(self.data).decode()
        return f"data:{self.media_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, data_url: str, source: str = "upload") -> ReceiptImage:
        """Decode a ``data:image/...;base64,...`` string.

        Raises:
            CaptureError: If the string is not a base64 image data URL.
        """
        if not data_url or not data_url.startswith(_DATA_URL_PREFIX):
            raise CaptureError("Invalid image data provided")
        header, _, payload = data_url.partition(",")
        if ";base64" not in header or not payload:
            raise CaptureError("Invalid image data provided")
        media_type = header[len("data:"):].split(";", 1)[0]
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CaptureError(f"Invalid image data provided: {e}") from e
        return cls(data=data, media_type=media_type, source=source)


def load_image_file(path: str | Path) -> ReceiptImage:
    """Read an uploaded receipt image from disk."""
    p = Path(path)
    if not p.is_file():
        raise CaptureError(f"Receipt image not found: {p}")
    media_type = mimetypes.guess_type(p.name)[0] or "image/jpeg"
    if not media_type.startswith("image/"):
        raise CaptureError(f"Not an image file: {p}")
    return ReceiptImage(data=p.read_bytes(), media_type=media_type, source="upload")


def compress_image(
    image: ReceiptImage, max_dimension: int = 1920, quality: int = 85
) -> ReceiptImage:
    """Downscale an uploaded receipt and re-encode it as JPEG.

    The aspect ratio is kept. If Pillow cannot decode or encode the image
    the original is returned unchanged so the capture can still go ahead.
    """
    try:
        from PIL import Image
    except ImportError:
        raise ImportError("Pillow is required: pip install Pillow") from None

    try:
        with Image.open(io.BytesIO(image.data)) as img:
            img.thumbnail((max_dimension, max_dimension))
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            buf = io.BytesIO()
            img.save(buf, format="JPEG", quality=quality, optimize=True)
    except (OSError, ValueError) as e:
        logger.warning("Image compression failed, using the original: %s", e)
        return image

    data = buf.getvalue()
    logger.info(
        "Compressed receipt image from %d to %d bytes", len(image.data), len(data)
    )
    return replace(image, data=data, media_type="image/jpeg")


class ReceiptCamera:
    """Capture receipt photos from a local camera."""

    def __init__(self, camera_index: int = 0, save_dir: str = "/tmp/evuka") -> None:
        self._camera_index = camera_index
        self._save_dir = Path(save_dir)
        self._save_dir.mkdir(parents=True, exist_ok=True)

    def capture(self) -> ReceiptImage:
        """Grab a single frame and return it JPEG-encoded.

        The frame is also written to ``save_dir`` for later review.
        """
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        cap = cv2.VideoCapture(self._camera_index)
        if not cap.isOpened():
            raise CaptureError(
                f"Could not open camera {self._camera_index}. Check the connection."
            )

        try:
            ret, frame = cap.read()
            if not ret or frame is None:
                raise CaptureError(
                    f"Could not read a frame from camera {self._camera_index}."
                )

            ok, buf = cv2.imencode(".jpg", frame)
            if not ok:
                raise CaptureError("Failed to encode the captured frame.")

            now = datetime.now(timezone.utc)
            filename = f"receipt_{now.strftime('%Y%m%d_%H%M%S')}.jpg"
            data = buf.tobytes()
            (self._save_dir / filename).write_bytes(data)

            return ReceiptImage(
                data=data,
                media_type="image/jpeg",
                source="camera",
                captured_at=now,
            )
        finally:
            cap.release()

    @staticmethod
    def list_cameras(max_check: int = 10) -> list[int]:
        """List available camera indices by probing."""
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        available: list[int] = []
        for i in range(max_check):
            cap = cv2.VideoCapture(i)
            if cap.isOpened():
                available.append(i)
                cap.release()
        return available
