from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from helpers import ClientScript, FixedRandom, RecordingSleep
from sticker_engine import CredentialStore, EngineSettings, InMemoryCredentialStore, StickerService


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(device_key="device-key")


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def script() -> ClientScript:
    return ClientScript()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_service(
    store: InMemoryCredentialStore,
    script: ClientScript,
    sleeps: RecordingSleep,
    engine_settings: EngineSettings,
) -> Callable[..., StickerService]:
    def _make(service_store: Optional[CredentialStore] = None, **overrides: Any) -> StickerService:
        options = {
            "settings": engine_settings,
            "client_factory": script.factory,
            "sleep": sleeps,
            "rng": FixedRandom(0.9),
        }
        options.update(overrides)
        return StickerService(service_store or store, **options)

    return _make
