from __future__ import annotations

from fastapi import Request

from sticker_engine import StickerService


def get_sticker_service(request: Request) -> StickerService:
    """Return the service the lifespan handler attached to ``app.state``."""

    service = getattr(request.app.state, "sticker_service", None)
    if service is None:
        raise RuntimeError("Sticker service not initialized")
    return service
