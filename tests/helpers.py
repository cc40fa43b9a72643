from __future__ import annotations

import io
import random
from typing import Any, Dict, List, Optional

from PIL import Image

from sticker_engine.client import ContentResult


def image_bytes(image: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def black_canvas_with_square(size: int = 40) -> Image.Image:
    """A white square with a one pixel gray ramp on a pure black canvas."""

    image = Image.new("RGB", (size, size), (0, 0, 0))
    image.paste((128, 128, 128), (10, 10, 30, 30))
    image.paste((255, 255, 255), (11, 11, 29, 29))
    return image


class FakeModelClient:
    """Stands in for the GenAI client; every call is recorded on a shared log."""

    def __init__(self, api_key: str, script: "ClientScript") -> None:
        self.api_key = api_key
        self.script = script

    async def _respond(self, method: str, **kwargs: Any) -> Any:
        self.script.calls.append({"method": method, "api_key": self.api_key, **kwargs})
        outcome = self.script.next_outcome(method)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def generate_images(self, prompt: str, *, model: str, aspect_ratio: str = "1:1") -> Optional[bytes]:
        return await self._respond("generate_images", prompt=prompt, model=model, aspect_ratio=aspect_ratio)

    async def generate_content(self, prompt: str, *, model: str, **kwargs: Any) -> ContentResult:
        return await self._respond("generate_content", prompt=prompt, model=model, **kwargs)

    async def count_tokens(self, prompt: str, *, model: str) -> int:
        return await self._respond("count_tokens", prompt=prompt, model=model)


class ClientScript:
    """Queues outcomes per method and builds :class:`FakeModelClient` instances."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.outcomes: Dict[str, List[Any]] = {}
        self.defaults: Dict[str, Any] = {
            "generate_images": image_bytes(black_canvas_with_square(), "JPEG"),
            "generate_content": ContentResult(text="a cat"),
            "count_tokens": 1,
        }

    def queue(self, method: str, *outcomes: Any) -> None:
        self.outcomes.setdefault(method, []).extend(outcomes)

    def next_outcome(self, method: str) -> Any:
        pending = self.outcomes.get(method)
        if pending:
            return pending.pop(0)
        return self.defaults[method]

    def factory(self, api_key: str) -> FakeModelClient:
        return FakeModelClient(api_key, self)

    def methods(self) -> List[str]:
        return [call["method"] for call in self.calls]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__()
        self.value = value

    def random(self) -> float:
        return self.value


