"""Optional best-effort copy of the ledger in a remote realtime tree.

The local store stays authoritative: mirror calls are scheduled in the
background, never awaited by the ledger operations, never retried, and
their failures are only logged.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from ..config import get_settings

logger = logging.getLogger(__name__)

CUSTOMERS_COLLECTION = "customers"
SALES_COLLECTION = "sales"

ChangeCallback = Callable[[str, Any], Optional[Awaitable[None]]]


class RemoteMirror(Protocol):
    async def load_collection(self, collection: str) -> list[dict[str, Any]]: ...

    async def save_record(self, collection: str, record_id: str, record: dict[str, Any]) -> bool: ...

    async def delete_record(self, collection: str, record_id: str) -> bool: ...

    async def subscribe(self, collection: str, callback: ChangeCallback) -> None: ...

    async def aclose(self) -> None: ...


class RealtimeTreeMirror:
    """Mirror backed by a realtime-tree REST endpoint (``/<collection>/<id>.json``)."""

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout=timeout, connect=min(timeout, 10.0)),
            transport=transport,
        )
        self._params = {"auth": auth_token} if auth_token else {}

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _path(collection: str, record_id: Optional[str] = None) -> str:
        if record_id is None:
            return f"/{quote(collection, safe='')}.json"
        return f"/{quote(collection, safe='')}/{quote(record_id, safe='')}.json"

    async def load_collection(self, collection: str) -> list[dict[str, Any]]:
        try:
            response = await self.client.get(self._path(collection), params=self._params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to load %s from the remote mirror: %s", collection, exc)
            return []
        data = response.json()
        if isinstance(data, dict):
            return [{"id": key, **value} for key, value in data.items() if isinstance(value, dict)]
        if isinstance(data, list):
            return [value for value in data if isinstance(value, dict)]
        return []

    async def save_record(self, collection: str, record_id: str, record: dict[str, Any]) -> bool:
        try:
            response = await self.client.put(
                self._path(collection, record_id), params=self._params, json=record
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to save %s/%s to the remote mirror: %s", collection, record_id, exc)
            return False
        return True

    async def delete_record(self, collection: str, record_id: str) -> bool:
        try:
            response = await self.client.delete(self._path(collection, record_id), params=self._params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "Failed to delete %s/%s from the remote mirror: %s", collection, record_id, exc
            )
            return False
        return True

    async def subscribe(self, collection: str, callback: ChangeCallback) -> None:
        """Stream change events for a collection until cancelled.

        ``callback`` receives the event name (``put`` or ``patch``) and its
        decoded ``{"path": ..., "data": ...}`` payload.
        """
        event: Optional[str] = None
        try:
            async with self.client.stream(
                "GET",
                self._path(collection),
                params=self._params,
                headers={"Accept": "text/event-stream"},
                timeout=None,
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if line.startswith("event:"):
                        event = line[len("event:"):].strip()
                    elif line.startswith("data:") and event in ("put", "patch"):
                        payload = json.loads(line[len("data:"):].strip())
                        result = callback(event, payload)
                        if inspect.isawaitable(result):
                            await result
        except httpx.HTTPError as exc:
            logger.warning("Remote mirror subscription to %s ended: %s", collection, exc)


@lru_cache(maxsize=1)
def get_remote_mirror() -> Optional[RemoteMirror]:
    """The configured mirror, or ``None`` when ``REMOTE_MIRROR_URL`` is unset."""
    settings = get_settings()
    if not settings.remote_mirror_url:
        return None
    return RealtimeTreeMirror(
        str(settings.remote_mirror_url),
        auth_token=settings.remote_mirror_auth_token,
        timeout=settings.remote_mirror_timeout_seconds,
    )


async def close_remote_mirror() -> None:
    """Close the mirror client at shutdown, if one was ever created."""
    if get_remote_mirror.cache_info().currsize == 0:
        return
    mirror = get_remote_mirror()
    get_remote_mirror.cache_clear()
    if mirror is not None:
        await mirror.aclose()


_background_tasks: set[asyncio.Task] = set()


def mirror_in_background(
    action: Callable[[RemoteMirror], Awaitable[Any]],
) -> Optional[asyncio.Task]:
    """Schedule ``action`` against the mirror without waiting for it."""
    mirror = get_remote_mirror()
    if mirror is None:
        return None

    async def _run() -> None:
        try:
            await action(mirror)
        except Exception:
            logger.exception("Remote mirror call failed")

    task = asyncio.get_running_loop().create_task(_run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def mirror_save(collection: str, record: BaseModel, record_id: str) -> Optional[asyncio.Task]:
    payload = record.model_dump(mode="json", by_alias=True)
    return mirror_in_background(lambda m: m.save_record(collection, record_id, payload))


def mirror_delete(collection: str, record_id: str) -> Optional[asyncio.Task]:
    return mirror_in_background(lambda m: m.delete_record(collection, record_id))
