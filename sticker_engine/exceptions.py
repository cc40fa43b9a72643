"""Custom exceptions for the sticker engine."""

from __future__ import annotations

from typing import Optional


class StickerEngineError(Exception):
    """Base exception for all sticker engine errors."""


class DecodeError(StickerEngineError):
    """Raised when input bytes cannot be interpreted as an image."""


class EncodeError(StickerEngineError):
    """Raised when the image encoder produces no output."""


class InvalidRequest(StickerEngineError):
    """Raised when a pipeline is started without the input it needs."""


class CredentialRequired(StickerEngineError):
    """Raised when no usable credential exists (quota exhausted or no device key)."""

    code = "API_KEY_REQUIRED"

    def __init__(self, message: str = code) -> None:
        super().__init__(message)


class CredentialInvalid(StickerEngineError):
    """Raised when the stored user key was rejected; the key is cleared first."""

    code = "API_KEY_INVALID"

    def __init__(self, message: str = code) -> None:
        super().__init__(message)


class ModelServiceError(StickerEngineError):
    """An error reported by the generative model service."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientError(ModelServiceError):
    """Raised for network or service hiccups that are worth retrying."""


class ClientError(ModelServiceError):
    """Raised for structurally invalid requests; never retried."""


class GenerationEmpty(StickerEngineError):
    """Raised when the service succeeded but returned no usable payload."""
