"""
Ready-made config fetchers

Any ``(key) -> awaitable config`` callable works as a fetcher; these cover
the two common cases of an in-process table and a config HTTP service.
"""

import asyncio
import copy
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import aiohttp


class StaticConfigFetcher:
    """Serve configurations from an in-memory table"""

    def __init__(self, configs: Mapping[str, Any], latency_ms: float = 0):
        self.configs = dict(configs)
        self.latency_ms = latency_ms

    def set(self, key: str, config: Optional[Mapping[str, Any]]) -> None:
        """Add, replace or (with None) remove the configuration for a key"""
        if config is None:
            self.configs.pop(key, None)
        else:
            self.configs[key] = config

    async def __call__(self, key: str) -> Optional[Dict[str, Any]]:
        if self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000.0)
        config = self.configs.get(key)
        return copy.deepcopy(config) if config is not None else None


class HTTPConfigFetcher:
    """
    Fetch configurations from ``GET {base_url}/{key}``.

    A 404 means the key has no configuration. Other error statuses raise
    ``aiohttp.ClientResponseError``, which the resolver turns into a fetch
    failure.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000.0) if timeout_ms else None
        self._session = session
        self._owns_session = session is None

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{quote(key, safe='')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def __call__(self, key: str) -> Optional[Dict[str, Any]]:
        session = self._get_session()
        async with session.get(self.url_for(key), headers=self.headers) as response:
            if response.status == 404:
                return None
            response.raise_for_status()
            return await response.json()

    async def close(self) -> None:
        """Close the session if this fetcher created it"""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
