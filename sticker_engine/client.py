"""Async adapter over the Google GenAI SDK.

Only the three calls the engine needs are exposed. SDK errors are translated
into :class:`ClientError` / :class:`TransientError` here; their messages keep
the status code and reason text so substring based classification still
works further up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol

from google import genai
from google.genai import errors, types

from .exceptions import ClientError, TransientError

logger = logging.getLogger(__name__)

# 429 is a 4xx code but rate limiting clears up on its own.
RETRYABLE_CLIENT_CODES = {408, 429}


@dataclass(slots=True)
class GroundingSource:
    uri: str
    title: str


@dataclass(slots=True)
class ContentResult:
    """The usable parts of a ``generate_content`` response."""

    image: Optional[bytes] = None
    image_mime_type: Optional[str] = None
    text: str = ""
    sources: List[GroundingSource] = field(default_factory=list)


class ModelClient(Protocol):
    async def generate_images(self, prompt: str, *, model: str, aspect_ratio: str = "1:1") -> Optional[bytes]: ...

    async def generate_content(
        self,
        prompt: str,
        *,
        model: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        system_instruction: Optional[str] = None,
        response_modality: str = "TEXT",
        temperature: Optional[float] = None,
        use_search: bool = False,
    ) -> ContentResult: ...

    async def count_tokens(self, prompt: str, *, model: str) -> int: ...


ClientFactory = Callable[[str], ModelClient]


def translate_api_error(exc: errors.APIError) -> Exception:
    code = getattr(exc, "code", None)
    message = str(exc)
    if isinstance(code, int) and 400 <= code < 500 and code not in RETRYABLE_CLIENT_CODES:
        return ClientError(message, status_code=code)
    return TransientError(message, status_code=code if isinstance(code, int) else None)


def extract_sources(response: Any) -> List[GroundingSource]:
    """Collect web grounding sources, de-duplicated by uri in first-seen order."""

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []

    seen = {}
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        title = getattr(web, "title", None)
        if uri and title and uri not in seen:
            seen[uri] = GroundingSource(uri=uri, title=title)
    return list(seen.values())


def parse_content_response(response: Any) -> ContentResult:
    result = ContentResult()
    candidates = getattr(response, "candidates", None) or []
    content = getattr(candidates[0], "content", None) if candidates else None
    texts: List[str] = []
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data and result.image is None:
            result.image = inline.data
            result.image_mime_type = inline.mime_type or "image/png"
        elif getattr(part, "text", None):
            texts.append(part.text)
    result.text = "".join(texts).strip()
    result.sources = extract_sources(response)
    return result


class GeminiModelClient:
    """:class:`ModelClient` backed by ``genai.Client(api_key=...).aio``."""

    def __init__(self, api_key: str) -> None:
        self._client = genai.Client(api_key=api_key)

    async def generate_images(self, prompt: str, *, model: str, aspect_ratio: str = "1:1") -> Optional[bytes]:
        try:
            response = await self._client.aio.models.generate_images(
                model=model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type="image/jpeg",
                    aspect_ratio=aspect_ratio,
                ),
            )
        except errors.APIError as exc:
            raise translate_api_error(exc) from exc

        generated = getattr(response, "generated_images", None) or []
        if not generated or generated[0].image is None:
            return None
        return generated[0].image.image_bytes or None

    async def generate_content(
        self,
        prompt: str,
        *,
        model: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        system_instruction: Optional[str] = None,
        response_modality: str = "TEXT",
        temperature: Optional[float] = None,
        use_search: bool = False,
    ) -> ContentResult:
        contents: List[Any] = []
        if image is not None:
            contents.append(types.Part.from_bytes(data=image, mime_type=mime_type or "image/jpeg"))
        contents.append(prompt)

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            response_modalities=[response_modality],
            tools=[types.Tool(google_search=types.GoogleSearch())] if use_search else None,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except errors.APIError as exc:
            raise translate_api_error(exc) from exc
        return parse_content_response(response)

    async def count_tokens(self, prompt: str, *, model: str) -> int:
        try:
            response = await self._client.aio.models.count_tokens(model=model, contents=prompt)
        except errors.APIError as exc:
            raise translate_api_error(exc) from exc
        return response.total_tokens or 0
