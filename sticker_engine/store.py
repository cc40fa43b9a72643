"""Stores for the user API key and the free-generation quota counter."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)

USER_KEY_FIELD = "user_api_key"
QUOTA_FIELD = "free_generations_count"
DEVICE_ID_FIELD = "device_id"


class CredentialStore(Protocol):
    """Settings collaborator consulted by the orchestrator.

    ``increment_quota_count`` must be atomic when several pipelines share
    one store.
    """

    async def get_user_key(self) -> Optional[str]: ...

    async def save_user_key(self, key: str) -> None: ...

    async def clear_user_key(self) -> None: ...

    async def get_quota_count(self) -> int: ...

    async def increment_quota_count(self) -> int: ...


class InMemoryCredentialStore:
    def __init__(self, user_key: Optional[str] = None, quota_count: int = 0, device_id: Optional[str] = None) -> None:
        self.device_id = device_id or uuid4().hex
        self._user_key = user_key
        self._quota_count = quota_count
        self._lock = asyncio.Lock()

    async def get_user_key(self) -> Optional[str]:
        return self._user_key

    async def save_user_key(self, key: str) -> None:
        self._user_key = key

    async def clear_user_key(self) -> None:
        self._user_key = None

    async def get_quota_count(self) -> int:
        return self._quota_count

    async def increment_quota_count(self) -> int:
        async with self._lock:
            self._quota_count += 1
            return self._quota_count


class JsonFileCredentialStore:
    """Persists key and quota for one installation in a JSON document.

    The document also holds a ``device_id`` generated on first use, which
    scopes the quota counter to this installation.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._data: Optional[Dict[str, Any]] = None

    async def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data
        data: Dict[str, Any] = {}
        if self.path.exists():
            try:
                raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
                loaded = json.loads(raw)
                if isinstance(loaded, dict):
                    data = loaded
            except (OSError, json.JSONDecodeError):
                logger.warning("Settings store '%s' is unreadable, starting fresh", self.path)
        if not data.get(DEVICE_ID_FIELD):
            data[DEVICE_ID_FIELD] = uuid4().hex
            await self._persist(data)
        self._data = data
        return data

    async def _persist(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data, indent=2)
        await asyncio.to_thread(self.path.write_text, payload, encoding="utf-8")

    async def _commit(self, data: Dict[str, Any]) -> None:
        # the cache only changes once the document is on disk
        await self._persist(data)
        self._data = data

    async def _update(self, key: str, value: Any) -> None:
        async with self._lock:
            data = dict(await self._load())
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            await self._commit(data)

    async def get_device_id(self) -> str:
        async with self._lock:
            data = await self._load()
        return data[DEVICE_ID_FIELD]

    async def get_user_key(self) -> Optional[str]:
        async with self._lock:
            data = await self._load()
        return data.get(USER_KEY_FIELD) or None

    async def save_user_key(self, key: str) -> None:
        await self._update(USER_KEY_FIELD, key)

    async def clear_user_key(self) -> None:
        await self._update(USER_KEY_FIELD, None)

    async def get_quota_count(self) -> int:
        async with self._lock:
            data = await self._load()
        return int(data.get(QUOTA_FIELD) or 0)

    async def increment_quota_count(self) -> int:
        async with self._lock:
            data = dict(await self._load())
            count = int(data.get(QUOTA_FIELD) or 0) + 1
            data[QUOTA_FIELD] = count
            await self._commit(data)
        return count
