from __future__ import annotations

import base64
import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from app.dependencies import get_sticker_service
from app.schemas import (
    EnhanceRequest,
    EnhanceResponse,
    ImageRequest,
    ImageResponse,
    KeyRequest,
    KeyValidationResponse,
    QuotaResponse,
    SourceItem,
    StickerResponse,
    TextResponse,
)
from sticker_engine import StickerArtifact, StickerService
from sticker_engine.styles import DEFAULT_STYLE

api_router = APIRouter(prefix="/api/v1", tags=["stickers"])


async def _read_upload(upload: UploadFile) -> bytes:
    if not (upload.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type for: {upload.filename or ''}",
        )
    contents = await upload.read()
    await upload.close()
    if not contents:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty image upload")
    return contents


def _sticker_response(artifact: StickerArtifact) -> StickerResponse:
    return StickerResponse(
        sticker_id=artifact.sticker_id,
        prompt=artifact.prompt,
        created_at=artifact.created_at,
        mime_type=artifact.mime_type,
        image_base64=base64.b64encode(artifact.image).decode("ascii"),
    )


@api_router.post("/stickers", status_code=status.HTTP_201_CREATED, response_model=StickerResponse, name="create_sticker")
async def create_sticker(
    file: Optional[UploadFile] = File(None),
    prompt: str = Form(""),
    caption: str = Form(""),
    style: str = Form(DEFAULT_STYLE),
    enhance: bool = Form(True),
    service: StickerService = Depends(get_sticker_service),
) -> StickerResponse:
    photo = await _read_upload(file) if file is not None else None
    artifact = await service.create_sticker(photo, prompt=prompt, caption=caption, style=style, enhance=enhance)
    return _sticker_response(artifact)


@api_router.post("/stickers/edit", response_model=StickerResponse, name="edit_sticker")
async def edit_sticker(
    file: UploadFile = File(...),
    instruction: str = Form(...),
    service: StickerService = Depends(get_sticker_service),
) -> StickerResponse:
    if not instruction.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Edit instruction is required")
    current = await _read_upload(file)
    artifact = await service.edit_sticker_artifact(current, instruction)
    return _sticker_response(artifact)


@api_router.post("/stickers/export", name="export_sticker")
async def export_sticker(
    file: UploadFile = File(...),
    service: StickerService = Depends(get_sticker_service),
) -> Response:
    sticker = await _read_upload(file)
    blob = await service.export_for_sharing(sticker)
    filename = f"sticker-{int(time.time() * 1000)}.webp"
    return Response(
        content=blob.data,
        media_type=blob.mime_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Export-Quality": f"{blob.quality:.1f}",
        },
    )


@api_router.post("/images", response_model=ImageResponse, name="generate_image")
async def generate_image(
    payload: ImageRequest,
    service: StickerService = Depends(get_sticker_service),
) -> ImageResponse:
    image = await service.generate_image(payload.prompt, aspect_ratio=payload.aspect_ratio)
    return ImageResponse(mime_type="image/jpeg", image_base64=base64.b64encode(image).decode("ascii"))


@api_router.post("/detect", response_model=TextResponse, name="detect_subject")
async def detect_subject(
    file: UploadFile = File(...),
    service: StickerService = Depends(get_sticker_service),
) -> TextResponse:
    data, mime_type = await service.preprocess_image(await _read_upload(file))
    return TextResponse(text=await service.detect_subject(data, mime_type))


@api_router.post("/analyze", response_model=TextResponse, name="analyze_image")
async def analyze_image(
    file: UploadFile = File(...),
    prompt: str = Form(""),
    service: StickerService = Depends(get_sticker_service),
) -> TextResponse:
    data, mime_type = await service.preprocess_image(await _read_upload(file))
    return TextResponse(text=await service.analyze_image(data, prompt, mime_type))


@api_router.post("/prompts/enhance", response_model=EnhanceResponse, name="enhance_prompt")
async def enhance_prompt(
    payload: EnhanceRequest,
    service: StickerService = Depends(get_sticker_service),
) -> EnhanceResponse:
    enhanced = await service.enhance_prompt(payload.prompt)
    return EnhanceResponse(
        text=enhanced.text,
        sources=[SourceItem(uri=source.uri, title=source.title) for source in enhanced.sources],
    )


@api_router.post("/keys", response_model=KeyValidationResponse, name="register_key")
async def register_key(
    payload: KeyRequest,
    service: StickerService = Depends(get_sticker_service),
) -> KeyValidationResponse:
    return KeyValidationResponse(valid=await service.register_user_key(payload.api_key))


@api_router.delete("/keys", status_code=status.HTTP_204_NO_CONTENT, name="clear_key")
async def clear_key(service: StickerService = Depends(get_sticker_service)) -> Response:
    await service.clear_user_key()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@api_router.get("/quota", response_model=QuotaResponse, name="get_quota")
async def get_quota(service: StickerService = Depends(get_sticker_service)) -> QuotaResponse:
    quota = await service.quota_status()
    return QuotaResponse(
        used=quota.used,
        limit=quota.limit,
        remaining=quota.remaining,
        has_user_key=quota.has_user_key,
    )
