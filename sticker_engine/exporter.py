"""Re-encode finished stickers into the chat-app sticker format."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image

from .exceptions import EncodeError
from .utils import ensure_rgba, load_image

logger = logging.getLogger(__name__)

EXPORT_SIZE = 512
MAX_EXPORT_BYTES = 99 * 1024
START_QUALITY = 0.9
QUALITY_STEP = 0.1
MIN_QUALITY = 0.1
EXPORT_MIME_TYPE = "image/webp"


@dataclass(slots=True)
class ExportBlob:
    """An encoded sticker ready for sharing."""

    data: bytes
    quality: float
    mime_type: str = EXPORT_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


def fit_to_canvas(image: Image.Image, size: int = EXPORT_SIZE) -> Image.Image:
    """Scale ``image`` to fit a transparent ``size`` x ``size`` canvas and center it."""

    rgba = ensure_rgba(image)
    scale = min(size / rgba.width, size / rgba.height)
    scaled_w = max(1, round(rgba.width * scale))
    scaled_h = max(1, round(rgba.height * scale))
    if (scaled_w, scaled_h) != rgba.size:
        rgba = rgba.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)

    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    canvas.alpha_composite(rgba, dest=((size - scaled_w) // 2, (size - scaled_h) // 2))
    return canvas


def encode_webp(image: Image.Image, quality: float) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="WEBP", quality=int(round(quality * 100)))
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"WebP encoding failed: {exc}") from exc
    data = buffer.getvalue()
    if not data:
        raise EncodeError("WebP encoding failed")
    return data


def export_image(
    image: Image.Image,
    size: int = EXPORT_SIZE,
    max_bytes: int = MAX_EXPORT_BYTES,
    start_quality: float = START_QUALITY,
    step: float = QUALITY_STEP,
    min_quality: float = MIN_QUALITY,
) -> ExportBlob:
    """Encode ``image`` at decreasing quality until it fits in ``max_bytes``.

    Quality starts at ``start_quality`` and drops by ``step``. Once the floor
    ``min_quality`` is reached that encoding is returned whatever its size.
    """

    canvas = fit_to_canvas(image, size)
    # integer percent steps avoid float drift around the floor
    quality_pct = int(round(start_quality * 100))
    step_pct = max(1, int(round(step * 100)))
    floor_pct = int(round(min_quality * 100))

    while True:
        data = encode_webp(canvas, quality_pct / 100)
        if len(data) <= max_bytes or quality_pct <= floor_pct:
            break
        logger.debug("Export at quality %d%% is %d bytes, stepping down", quality_pct, len(data))
        quality_pct = max(floor_pct, quality_pct - step_pct)

    if len(data) > max_bytes:
        logger.warning("Export still %d bytes at floor quality %d%%", len(data), quality_pct)
    return ExportBlob(data=data, quality=quality_pct / 100)


def export_for_sharing(image_bytes: bytes, **options) -> ExportBlob:
    """Decode ``image_bytes`` and export them as a size-capped 512x512 WebP.

    Raises
    ------
    DecodeError
        If the input cannot be decoded.
    EncodeError
        If the encoder produces no output.
    """

    image = load_image(image_bytes)
    try:
        return export_image(image, **options)
    finally:
        image.close()
