"""Credential selection, quota accounting and error classification for model calls."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .client import ClientFactory, GeminiModelClient, ModelClient
from .config import EngineSettings, get_settings
from .exceptions import ClientError, CredentialInvalid, CredentialRequired
from .retry import SleepFunc, error_message, retry_with_backoff
from .store import CredentialStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTH_ERROR_MARKERS = ("API key", "403", "PERMISSION_DENIED", "API_KEY_INVALID")
AUTH_STATUS_CODES = {401, 403}


class OperationKind(str, enum.Enum):
    CREATE = "create"
    EDIT = "edit"
    DETECT_SUBJECT = "detectSubject"
    ANALYZE = "analyze"
    ENHANCE = "enhance"

    @property
    def consumes_quota(self) -> bool:
        return self in (OperationKind.CREATE, OperationKind.EDIT)


class CredentialKind(str, enum.Enum):
    DEVICE = "device"
    USER = "user"


@dataclass(frozen=True, slots=True)
class Credential:
    kind: CredentialKind
    secret: str

    @property
    def is_user_key(self) -> bool:
        return self.kind is CredentialKind.USER

    def __repr__(self) -> str:
        return f"Credential(kind={self.kind.value!r})"


@dataclass(slots=True)
class QuotaStatus:
    used: int
    limit: int
    has_user_key: bool

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


def is_auth_error(exc: BaseException) -> bool:
    if isinstance(exc, ClientError) and exc.status_code in AUTH_STATUS_CODES:
        return True
    message = error_message(exc)
    return any(marker in message for marker in AUTH_ERROR_MARKERS)


class GenerationOrchestrator:
    """Runs model operations with the right credential.

    A stored user key always wins. Without one, the operator's device key is
    used until ``quota_limit`` consuming operations have succeeded on this
    installation.
    """

    def __init__(
        self,
        store: CredentialStore,
        settings: Optional[EngineSettings] = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self._client_factory = client_factory or GeminiModelClient
        self._sleep = sleep

    async def select_credential(self) -> Credential:
        user_key = await self.store.get_user_key()
        if user_key:
            return Credential(CredentialKind.USER, user_key)

        device_key = self.settings.device_key
        if not device_key:
            logger.error("Device key missing in environment")
            raise CredentialRequired()

        count = await self.store.get_quota_count()
        if count >= self.settings.quota_limit:
            logger.info("Free quota exhausted (%d/%d)", count, self.settings.quota_limit)
            raise CredentialRequired()
        return Credential(CredentialKind.DEVICE, device_key)

    async def execute(self, kind: OperationKind, operation: Callable[[ModelClient], Awaitable[T]]) -> T:
        credential = await self.select_credential()
        client = self._client_factory(credential.secret)

        try:
            result = await retry_with_backoff(
                lambda: operation(client),
                retries=self.settings.max_retries,
                initial_delay=self.settings.retry_initial_delay,
                sleep=self._sleep,
            )
        except Exception as exc:
            if not is_auth_error(exc):
                raise
            if credential.is_user_key:
                logger.warning("User API key rejected, clearing it: %s", error_message(exc))
                await self.store.clear_user_key()
                raise CredentialInvalid() from exc
            logger.warning("Device API key rejected: %s", error_message(exc))
            raise CredentialRequired() from exc

        if not credential.is_user_key and kind.consumes_quota:
            count = await self.store.increment_quota_count()
            logger.info("Free quota used: %d/%d", count, self.settings.quota_limit)
        return result

    async def quota_status(self) -> QuotaStatus:
        return QuotaStatus(
            used=await self.store.get_quota_count(),
            limit=self.settings.quota_limit,
            has_user_key=bool(await self.store.get_user_key()),
        )
