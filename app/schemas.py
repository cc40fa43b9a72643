from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class StickerResponse(BaseModel):
    sticker_id: str
    prompt: str
    created_at: datetime
    mime_type: str
    image_base64: str


class ImageRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    aspect_ratio: str = "16:9"


class ImageResponse(BaseModel):
    mime_type: str
    image_base64: str


class TextResponse(BaseModel):
    text: str


class EnhanceRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class SourceItem(BaseModel):
    uri: str
    title: str


class EnhanceResponse(BaseModel):
    text: str
    sources: List[SourceItem] = Field(default_factory=list)


class KeyRequest(BaseModel):
    api_key: str


class KeyValidationResponse(BaseModel):
    valid: bool


class QuotaResponse(BaseModel):
    used: int
    limit: int
    remaining: int
    has_user_key: bool
