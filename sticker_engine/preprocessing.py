"""Normalise user supplied photos before they are uploaded to the model."""

from __future__ import annotations

import io
import logging
from typing import Tuple

from PIL import Image, ImageOps

from .utils import ensure_rgba, has_transparency, load_image

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1024
JPEG_QUALITY = 0.92
OUTPUT_MIME_TYPE = "image/jpeg"


def fit_within(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> Tuple[int, int]:
    """Return the size of ``width`` x ``height`` scaled so its longest side is at most ``max_dimension``."""

    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width > height:
        return max_dimension, max(1, round(height * max_dimension / width))
    return max(1, round(width * max_dimension / height)), max_dimension


def flatten_on_white(image: Image.Image) -> Image.Image:
    """Composite any transparency onto an opaque white canvas and return an RGB image."""

    if not has_transparency(image):
        return image.convert("RGB")
    rgba = ensure_rgba(image)
    try:
        canvas = Image.new("RGB", rgba.size, (255, 255, 255))
        canvas.paste(rgba, mask=rgba.getchannel("A"))
    finally:
        if rgba is not image:
            rgba.close()
    return canvas


def preprocess_image(
    data: bytes,
    max_dimension: int = MAX_DIMENSION,
    quality: float = JPEG_QUALITY,
) -> Tuple[bytes, str]:
    """Prepare an arbitrary photo for upload.

    The result is no larger than ``max_dimension`` on its longest side, has
    no transparency and is JPEG encoded at ``quality`` (0-1).

    Raises
    ------
    DecodeError
        If ``data`` is not a readable image.
    """

    image = load_image(data)
    intermediates = [image]
    try:
        oriented = ImageOps.exif_transpose(image)
        intermediates.append(oriented)
        flattened = flatten_on_white(oriented)
        intermediates.append(flattened)
        target = fit_within(flattened.width, flattened.height, max_dimension)
        if target != flattened.size:
            flattened = flattened.resize(target, Image.Resampling.LANCZOS)
            intermediates.append(flattened)

        buffer = io.BytesIO()
        flattened.save(buffer, format="JPEG", quality=int(round(quality * 100)))
    finally:
        for item in intermediates:
            item.close()

    logger.debug("Preprocessed upload to %sx%s (%d bytes)", target[0], target[1], buffer.tell())
    return buffer.getvalue(), OUTPUT_MIME_TYPE
