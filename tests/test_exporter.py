from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from helpers import image_bytes
from sticker_engine import DecodeError, EncodeError, export_for_sharing
from sticker_engine import exporter
from sticker_engine.exporter import MAX_EXPORT_BYTES, export_image, fit_to_canvas


def _noise(width: int, height: int, seed: int = 7) -> Image.Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return Image.fromarray(pixels, "RGBA")


def test_export_is_512_square_webp_within_limit() -> None:
    source = image_bytes(Image.new("RGBA", (300, 150), (255, 200, 0, 255)))

    blob = export_for_sharing(source)

    assert blob.mime_type == "image/webp"
    assert blob.size == len(blob.data)
    assert blob.size <= MAX_EXPORT_BYTES
    assert blob.quality == pytest.approx(0.9)
    with Image.open(io.BytesIO(blob.data)) as image:
        assert image.format == "WEBP"
        assert image.size == (512, 512)


def test_fit_to_canvas_centers_scaled_image() -> None:
    canvas = fit_to_canvas(Image.new("RGBA", (200, 100), (255, 0, 0, 255)))

    assert canvas.size == (512, 512)
    assert canvas.getpixel((256, 256)) == (255, 0, 0, 255)
    # 200x100 scales to 512x256, leaving 128px transparent bands
    assert canvas.getpixel((256, 10))[3] == 0
    assert canvas.getpixel((256, 500))[3] == 0
    assert canvas.getpixel((256, 130))[3] == 255


def test_small_image_is_scaled_up() -> None:
    canvas = fit_to_canvas(Image.new("RGBA", (32, 64), (0, 0, 255, 255)))

    assert canvas.getpixel((256, 5)) == (0, 0, 255, 255)
    assert canvas.getpixel((5, 256))[3] == 0


def test_quality_steps_down_until_under_limit() -> None:
    blob = export_image(_noise(512, 512), max_bytes=60 * 1024)

    assert blob.size <= 60 * 1024 or blob.quality == pytest.approx(0.1)
    assert blob.quality < 0.9


def test_floor_quality_is_returned_when_limit_unreachable(monkeypatch) -> None:
    qualities = []

    def fake_encode(image, quality):
        qualities.append(quality)
        return b"x" * (MAX_EXPORT_BYTES + 1)

    monkeypatch.setattr(exporter, "encode_webp", fake_encode)

    blob = export_image(Image.new("RGBA", (10, 10)))

    assert blob.quality == pytest.approx(0.1)
    assert blob.size == MAX_EXPORT_BYTES + 1
    assert qualities == pytest.approx([0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2, 0.1])


def test_stops_at_first_quality_that_fits(monkeypatch) -> None:
    sizes = iter([MAX_EXPORT_BYTES + 10, MAX_EXPORT_BYTES + 5, MAX_EXPORT_BYTES])
    monkeypatch.setattr(exporter, "encode_webp", lambda image, quality: b"x" * next(sizes))

    blob = export_image(Image.new("RGBA", (10, 10)))

    assert blob.quality == pytest.approx(0.7)
    assert blob.size == MAX_EXPORT_BYTES


def test_empty_encoder_output_raises() -> None:
    class SilentImage:
        def save(self, buffer, **kwargs):
            return None

    with pytest.raises(EncodeError):
        exporter.encode_webp(SilentImage(), 0.9)


def test_undecodable_input_raises_decode_error() -> None:
    with pytest.raises(DecodeError):
        export_for_sharing(b"garbage")
