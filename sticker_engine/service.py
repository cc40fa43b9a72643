"""High-level sticker service: the operations exposed to the application."""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from . import exporter, matting, preprocessing
from .client import ClientFactory, GeminiModelClient, GroundingSource, ModelClient
from .config import EngineSettings, get_settings
from .exceptions import CredentialInvalid, CredentialRequired, GenerationEmpty, InvalidRequest
from .exporter import ExportBlob
from .orchestrator import GenerationOrchestrator, OperationKind, QuotaStatus
from .retry import SleepFunc
from .store import CredentialStore
from .styles import (
    DEFAULT_ANALYSIS_PROMPT,
    DEFAULT_STYLE,
    DETECT_SUBJECT_PROMPT,
    SYSTEM_PROMPT,
    build_caption_prompt,
    build_edit_prompt,
    build_enhance_prompt,
    build_photo_sticker_prompt,
    build_text_sticker_prompt,
    resolve_style,
)

logger = logging.getLogger(__name__)

VALIDATION_PROMPT = "ping"


@dataclass(slots=True)
class StickerArtifact:
    """A finished sticker handed to the caller for display or storage."""

    sticker_id: str
    image: bytes
    prompt: str
    created_at: datetime
    mime_type: str = "image/png"

    def to_dict(self) -> dict:
        return {
            "sticker_id": self.sticker_id,
            "prompt": self.prompt,
            "created_at": self.created_at.isoformat(),
            "mime_type": self.mime_type,
        }


@dataclass(slots=True)
class EnhancedPrompt:
    text: str
    sources: List[GroundingSource] = field(default_factory=list)


def require_payload(payload: Optional[bytes], message: str) -> bytes:
    if not payload:
        raise GenerationEmpty(message)
    return payload


def describe_prompt(prompt: str, caption: str) -> str:
    if prompt.strip():
        return prompt
    if caption.strip():
        return f"Caption: {caption}"
    return "Generated Sticker"


class StickerService:
    """Coordinates preprocessing, model calls, matting and export."""

    def __init__(
        self,
        store: CredentialStore,
        settings: Optional[EngineSettings] = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self._client_factory = client_factory or GeminiModelClient
        self._rng = rng or random.Random()
        self.orchestrator = GenerationOrchestrator(
            store,
            settings=self.settings,
            client_factory=self._client_factory,
            sleep=sleep,
        )

    # ---------------------------------------------------------------------
    # Image pre/post processing
    # ---------------------------------------------------------------------

    async def preprocess_image(self, data: bytes) -> Tuple[bytes, str]:
        return await asyncio.to_thread(
            preprocessing.preprocess_image,
            data,
            self.settings.max_dimension,
            self.settings.jpeg_quality,
        )

    async def remove_background(self, image: bytes) -> bytes:
        return await asyncio.to_thread(matting.remove_background, image)

    async def export_for_sharing(self, image: bytes) -> ExportBlob:
        return await asyncio.to_thread(
            exporter.export_for_sharing,
            image,
            size=self.settings.export_size,
            max_bytes=self.settings.export_max_bytes,
            start_quality=self.settings.export_start_quality,
            step=self.settings.export_quality_step,
            min_quality=self.settings.export_min_quality,
        )

    # ---------------------------------------------------------------------
    # Model operations
    # ---------------------------------------------------------------------

    async def generate_sticker(
        self,
        image: Optional[bytes],
        prompt: str = "",
        caption: str = "",
        mime_type: str = "image/jpeg",
        style: str = DEFAULT_STYLE,
    ) -> bytes:
        """Generate a sticker from text or a photo and strip its background.

        Returns PNG bytes. Consumes free quota when the device key is used.
        """

        style_config = resolve_style(style)
        caption_prompt = build_caption_prompt(caption, self._rng)

        if image is None:
            full_prompt = build_text_sticker_prompt(prompt, style_config, caption_prompt)

            async def operation(client: ModelClient) -> bytes:
                raw = await client.generate_images(full_prompt, model=self.settings.image_model, aspect_ratio="1:1")
                return require_payload(raw, "No sticker generated.")

        else:
            full_prompt = build_photo_sticker_prompt(prompt, style_config, caption_prompt)

            async def operation(client: ModelClient) -> bytes:
                result = await client.generate_content(
                    full_prompt,
                    model=self.settings.image_edit_model,
                    image=image,
                    mime_type=mime_type,
                    system_instruction=SYSTEM_PROMPT,
                    response_modality="IMAGE",
                    temperature=1.2,
                )
                return require_payload(result.image, "No sticker generated from image.")

        raw = await self.orchestrator.execute(OperationKind.CREATE, operation)
        return await self.remove_background(raw)

    async def edit_sticker(self, current_image: bytes, instruction: str) -> bytes:
        prompt = build_edit_prompt(instruction)

        async def operation(client: ModelClient) -> bytes:
            result = await client.generate_content(
                prompt,
                model=self.settings.image_edit_model,
                image=current_image,
                mime_type="image/png",
                system_instruction=SYSTEM_PROMPT,
                response_modality="IMAGE",
            )
            return require_payload(result.image, "Failed to edit sticker.")

        raw = await self.orchestrator.execute(OperationKind.EDIT, operation)
        return await self.remove_background(raw)

    async def generate_image(self, prompt: str, aspect_ratio: str = "16:9") -> bytes:
        """Plain text-to-image generation, without matting."""

        async def operation(client: ModelClient) -> bytes:
            raw = await client.generate_images(prompt, model=self.settings.image_model, aspect_ratio=aspect_ratio)
            return require_payload(raw, "No image generated.")

        return await self.orchestrator.execute(OperationKind.CREATE, operation)

    async def detect_subject(self, image: bytes, mime_type: str = "image/jpeg") -> str:
        """Suggest a roast caption for ``image``. Returns "" when nothing usable came back."""

        async def operation(client: ModelClient) -> str:
            result = await client.generate_content(
                DETECT_SUBJECT_PROMPT,
                model=self.settings.vision_model,
                image=image,
                mime_type=mime_type,
            )
            return result.text

        try:
            return await self.orchestrator.execute(OperationKind.DETECT_SUBJECT, operation)
        except (CredentialRequired, CredentialInvalid):
            raise
        except Exception:
            logger.exception("Vision detection error")
            return ""

    async def analyze_image(self, image: bytes, prompt: str = "", mime_type: str = "image/jpeg") -> str:
        question = prompt.strip() or DEFAULT_ANALYSIS_PROMPT

        async def operation(client: ModelClient) -> str:
            result = await client.generate_content(
                question,
                model=self.settings.vision_model,
                image=image,
                mime_type=mime_type,
            )
            if not result.text:
                raise GenerationEmpty("No analysis generated.")
            return result.text

        return await self.orchestrator.execute(OperationKind.ANALYZE, operation)

    async def enhance_prompt(self, prompt: str) -> EnhancedPrompt:
        """Rewrite ``prompt`` into a funnier sticker description using search grounding.

        Best effort: on any failure the original prompt comes back unchanged.
        """

        request = build_enhance_prompt(prompt)

        async def operation(client: ModelClient) -> EnhancedPrompt:
            result = await client.generate_content(
                request,
                model=self.settings.text_model,
                temperature=1.5,
                use_search=True,
            )
            return EnhancedPrompt(text=result.text or prompt, sources=result.sources)

        try:
            return await self.orchestrator.execute(OperationKind.ENHANCE, operation)
        except Exception as exc:
            logger.warning("Prompt enhancement skipped: %s", exc)
            return EnhancedPrompt(text=prompt)

    # ---------------------------------------------------------------------
    # Credentials
    # ---------------------------------------------------------------------

    async def validate_user_key(self, secret: str) -> bool:
        """Check ``secret`` with a token count call. Never raises."""

        if not secret or not secret.strip():
            return False
        try:
            client = self._client_factory(secret.strip())
            await client.count_tokens(VALIDATION_PROMPT, model=self.settings.text_model)
        except Exception as exc:
            logger.warning("Key validation failed: %s", exc)
            return False
        return True

    async def register_user_key(self, secret: str) -> bool:
        if not await self.validate_user_key(secret):
            return False
        await self.store.save_user_key(secret.strip())
        return True

    async def clear_user_key(self) -> None:
        await self.store.clear_user_key()

    async def quota_status(self) -> QuotaStatus:
        return await self.orchestrator.quota_status()

    # ---------------------------------------------------------------------
    # Pipelines
    # ---------------------------------------------------------------------

    async def create_sticker(
        self,
        photo: Optional[bytes] = None,
        prompt: str = "",
        caption: str = "",
        style: str = DEFAULT_STYLE,
        enhance: bool = True,
    ) -> StickerArtifact:
        """Run the full pipeline and package the result as a :class:`StickerArtifact`."""

        if photo is None and not prompt.strip():
            raise InvalidRequest("Upload an image or enter a text prompt to start.")

        final_prompt = prompt
        if enhance and prompt.strip():
            final_prompt = (await self.enhance_prompt(prompt)).text

        image: Optional[bytes] = None
        mime_type = preprocessing.OUTPUT_MIME_TYPE
        if photo is not None:
            image, mime_type = await self.preprocess_image(photo)

        sticker = await self.generate_sticker(image, final_prompt, caption, mime_type, style)
        return self._artifact(sticker, describe_prompt(prompt, caption))

    async def edit_sticker_artifact(self, current_image: bytes, instruction: str) -> StickerArtifact:
        sticker = await self.edit_sticker(current_image, instruction)
        return self._artifact(sticker, f"Edit: {instruction}")

    @staticmethod
    def _artifact(image: bytes, prompt: str) -> StickerArtifact:
        return StickerArtifact(
            sticker_id=uuid.uuid4().hex,
            image=image,
            prompt=prompt,
            created_at=datetime.now(timezone.utc),
        )
