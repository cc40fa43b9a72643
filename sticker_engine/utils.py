"""Utility helpers for the sticker engine."""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from .exceptions import DecodeError


def ensure_rgba(image: Image.Image) -> Image.Image:
    """Ensure that a Pillow image is in RGBA mode."""

    if image.mode == "RGBA":
        return image
    return image.convert("RGBA")


def has_transparency(image: Image.Image) -> bool:
    """Return True when some pixel of ``image`` may be transparent."""

    if image.mode in ("RGBA", "LA", "PA"):
        return True
    return "transparency" in image.info


def load_image(data: bytes) -> Image.Image:
    """Decode ``data`` into a fully loaded Pillow image.

    Raises
    ------
    DecodeError
        If the bytes are empty, not a recognised image format or too large
        to decode safely.
    """

    if not data:
        raise DecodeError("Empty image payload")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return image.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise DecodeError(f"Unable to decode image: {exc}") from exc


def image_to_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
