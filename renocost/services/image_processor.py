"""Image payload preparation for vision model tiers.

Selects the most recent photos and compresses each one under a byte
budget before it is attached inline to a model request.

Compression loop (per image):
1. Downscale so the longest side is at most max_dimension
2. Re-encode JPEG starting at initial_quality, stepping down by
   quality_step until within max_bytes or min_quality is reached
3. Still too large: shrink dimensions toward the budget until it fits
   or the longest side reaches min_dimension

The loop never raises for size. An image that cannot be decoded is
skipped with a warning.
"""

import base64
import io
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError
import structlog

from renocost.config.settings import settings

logger = structlog.get_logger(__name__)


INITIAL_QUALITY = 70
QUALITY_STEP = 15
MIN_QUALITY = 10
MIN_DIMENSION = 64
SHRINK_SAFETY_FACTOR = 0.9


@dataclass
class CompressedImage:
    """JPEG payload ready for inline attachment."""
    data: bytes
    width: int
    height: int
    quality: int
    original_bytes: int
    mime_type: str = "image/jpeg"

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def base64_data(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_inline_part(self) -> Dict[str, Any]:
        """Gemini inlineData content part."""
        return {"inlineData": {"mimeType": self.mime_type, "data": self.base64_data}}


class ImageProcessor:
    """Selects and compresses request images."""

    def __init__(
        self,
        max_images: Optional[int] = None,
        max_dimension: Optional[int] = None,
        max_bytes: Optional[int] = None,
        initial_quality: int = INITIAL_QUALITY,
        quality_step: int = QUALITY_STEP,
        min_quality: int = MIN_QUALITY,
        min_dimension: int = MIN_DIMENSION,
    ):
        self.max_images = max_images if max_images is not None else settings.max_images
        self.max_dimension = max_dimension if max_dimension is not None else settings.image_max_dimension
        self.max_bytes = max_bytes if max_bytes is not None else settings.image_max_bytes
        self.initial_quality = initial_quality
        self.quality_step = quality_step
        self.min_quality = min_quality
        self.min_dimension = min_dimension

    def select(self, images: Sequence[bytes]) -> List[bytes]:
        """Keep the most recent max_images images (the end of the list)."""
        if self.max_images <= 0 or not images:
            return []
        return list(images[-self.max_images:])

    def prepare(self, images: Sequence[bytes]) -> List[CompressedImage]:
        """Select and compress images for attachment.

        Args:
            images: Encoded photos, oldest first.

        Returns:
            Compressed images in their original relative order.
        """
        if not images:
            return []

        selected = self.select(images)
        if len(selected) < len(images):
            logger.info("images_capped", received=len(images), kept=len(selected))

        prepared = []
        for image_bytes in selected:
            compressed = self.compress(image_bytes)
            if compressed is not None:
                prepared.append(compressed)
        return prepared

    def compress(self, image_bytes: bytes) -> Optional[CompressedImage]:
        """Compress one image under the byte budget.

        Returns:
            CompressedImage, or None if the bytes are not a decodable image.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as source:
                image = source.convert("RGB")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning("image_decode_failed", size_bytes=len(image_bytes), error=str(e))
            return None

        image.thumbnail((self.max_dimension, self.max_dimension), Image.LANCZOS)

        quality = self.initial_quality
        data = self._encode(image, quality)
        while len(data) > self.max_bytes and quality > self.min_quality:
            quality = max(self.min_quality, quality - self.quality_step)
            data = self._encode(image, quality)

        while len(data) > self.max_bytes and max(image.size) > self.min_dimension:
            scale = math.sqrt(self.max_bytes / len(data)) * SHRINK_SAFETY_FACTOR
            longest = max(image.size)
            target = max(self.min_dimension, min(longest - 1, int(longest * scale)))
            ratio = target / longest
            image = image.resize(
                (max(1, round(image.width * ratio)), max(1, round(image.height * ratio))),
                Image.LANCZOS,
            )
            data = self._encode(image, quality)

        if len(data) > self.max_bytes:
            logger.warning(
                "image_over_budget_at_floor",
                size_bytes=len(data),
                max_bytes=self.max_bytes,
                quality=quality,
            )

        logger.debug(
            "image_compressed",
            original_bytes=len(image_bytes),
            size_bytes=len(data),
            width=image.width,
            height=image.height,
            quality=quality,
        )
        return CompressedImage(
            data=data,
            width=image.width,
            height=image.height,
            quality=quality,
            original_bytes=len(image_bytes),
        )

    @staticmethod
    def _encode(image: Image.Image, quality: int) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality, optimize=True)
        return buffer.getvalue()
