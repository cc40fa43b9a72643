"""Background matting for stickers rendered on a pure black canvas.

The generation prompts ask the model for a ``#000000`` background. This module
turns that background transparent in two passes:

1. A 4-connected flood fill, seeded from the image border, marks every
   near-black pixel reachable from the outside as background. Black pixels
   enclosed by the subject are never reached and stay opaque.
2. Background pixels get alpha 0. Foreground pixels touching the background
   take ``max(R, G, B)`` as alpha, so an antialiased fade-to-black halo becomes
   a fade-to-transparent one.
"""

from __future__ import annotations

import logging
from typing import List

import numpy as np
from PIL import Image

from .utils import ensure_rgba, image_to_png_bytes, load_image

logger = logging.getLogger(__name__)

TOLERANCE = 20
EDGE_SEED_STEP = 10


def near_black_mask(pixels: np.ndarray, tolerance: int = TOLERANCE) -> np.ndarray:
    """Flat boolean array: True where ``r*r + g*g + b*b <= tolerance**2``."""

    rgb = pixels[..., :3].reshape(-1, 3).astype(np.int32)
    return (rgb * rgb).sum(axis=1) <= tolerance * tolerance


def flood_fill_background(near_black: np.ndarray, width: int, height: int) -> bytearray:
    """Return the ``visited`` bitmap of near-black pixels reachable from the border."""

    total = width * height
    black = near_black.tolist()
    visited = bytearray(total)
    queue: List[int] = [0] * total
    tail = 0

    def push(idx: int) -> None:
        nonlocal tail
        if 0 <= idx < total and not visited[idx] and black[idx]:
            visited[idx] = 1
            queue[tail] = idx
            tail += 1

    for corner in (0, width - 1, (height - 1) * width, total - 1):
        push(corner)

    if tail == 0:
        for i in range(0, width, EDGE_SEED_STEP):
            push(i)
            push(total - 1 - i)
        for i in range(0, height, EDGE_SEED_STEP):
            push(i * width)
            push(i * width + width - 1)

    head = 0
    last_row = total - width
    while head < tail:
        idx = queue[head]
        head += 1
        x = idx % width
        if x > 0:
            push(idx - 1)
        if x < width - 1:
            push(idx + 1)
        if idx >= width:
            push(idx - width)
        if idx < last_row:
            push(idx + width)

    return visited


def apply_alpha(pixels: np.ndarray, background: np.ndarray) -> None:
    """Write matting alpha into ``pixels`` (H x W x 4) in place.

    ``background`` is the H x W boolean mask produced by the flood fill.
    """

    borders = np.zeros_like(background)
    borders[:, 1:] |= background[:, :-1]
    borders[:, :-1] |= background[:, 1:]
    borders[1:, :] |= background[:-1, :]
    borders[:-1, :] |= background[1:, :]
    edge = borders & ~background

    alpha = pixels[..., 3]
    alpha[edge] = pixels[..., :3].max(axis=2)[edge]
    alpha[background] = 0


def matte_image(image: Image.Image) -> Image.Image:
    """Return an RGBA copy of ``image`` with its black background made transparent.

    Never raises: on any internal failure the original image is returned.
    """

    try:
        rgba = ensure_rgba(image)
        width, height = rgba.size
        if width == 0 or height == 0:
            return image

        pixels = np.array(rgba, dtype=np.uint8)
        visited = flood_fill_background(near_black_mask(pixels), width, height)
        background = np.frombuffer(bytes(visited), dtype=np.uint8).reshape(height, width).astype(bool)
        apply_alpha(pixels, background)
        return Image.fromarray(pixels)
    except Exception:
        logger.exception("Background matting failed, returning original image")
        return image


def remove_background(image_bytes: bytes) -> bytes:
    """Matte encoded image bytes and return the result as PNG.

    The input bytes are returned unchanged when they cannot be decoded or
    matting fails.
    """

    try:
        image = load_image(image_bytes)
        matted = matte_image(image)
        if matted is image:
            return image_bytes
        return image_to_png_bytes(matted)
    except Exception:
        logger.exception("Background removal failed, returning raw image")
        return image_bytes
