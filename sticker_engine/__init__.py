"""Public API for the sticker engine package."""

from .config import EngineSettings, get_settings
from .exceptions import (
    ClientError,
    CredentialInvalid,
    CredentialRequired,
    DecodeError,
    EncodeError,
    GenerationEmpty,
    InvalidRequest,
    StickerEngineError,
    TransientError,
)
from .exporter import ExportBlob, export_for_sharing
from .matting import matte_image, remove_background
from .orchestrator import Credential, CredentialKind, GenerationOrchestrator, OperationKind, QuotaStatus
from .preprocessing import preprocess_image
from .service import EnhancedPrompt, StickerArtifact, StickerService
from .store import CredentialStore, InMemoryCredentialStore, JsonFileCredentialStore

__all__ = [
    "ClientError",
    "Credential",
    "CredentialInvalid",
    "CredentialKind",
    "CredentialRequired",
    "CredentialStore",
    "DecodeError",
    "EncodeError",
    "EngineSettings",
    "EnhancedPrompt",
    "ExportBlob",
    "GenerationEmpty",
    "GenerationOrchestrator",
    "InMemoryCredentialStore",
    "InvalidRequest",
    "JsonFileCredentialStore",
    "OperationKind",
    "QuotaStatus",
    "StickerArtifact",
    "StickerEngineError",
    "StickerService",
    "TransientError",
    "export_for_sharing",
    "get_settings",
    "matte_image",
    "preprocess_image",
    "remove_background",
]
