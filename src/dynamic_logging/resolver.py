"""
Per call site configuration lookup with a bounded wait
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from .config import DEFAULT_FETCH_TIMEOUT_MS
from .exceptions import ConfigFetchError, ConfigTimeoutError

ConfigFetcher = Callable[[str], Union[Awaitable[Any], Any]]


class ConfigResolver:
    """Races the user supplied fetcher against a timeout"""

    def __init__(
        self,
        config_fetcher: ConfigFetcher,
        timeout_ms: float = DEFAULT_FETCH_TIMEOUT_MS,
        verbose: bool = False,
        diagnostics: Optional[logging.Logger] = None,
    ):
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.config_fetcher = config_fetcher
        self.timeout_ms = timeout_ms
        self.verbose = verbose
        self.diagnostics = diagnostics or logging.getLogger("dynamic_logging.diagnostics")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    async def fetch(self, key: str) -> Any:
        """
        Fetch the raw configuration for ``key``.

        Whichever settles first wins: the fetch, or the timer. A fetch still
        pending when the timer fires is cancelled and its result never seen.

        Raises:
            ConfigTimeoutError: If the timer fired first
            ConfigFetchError: If the fetcher raised
        """
        try:
            result = self.config_fetcher(key)
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ConfigTimeoutError(key, self.timeout_ms) from e
        except Exception as e:
            raise ConfigFetchError(key, e) from e
        return result

    async def resolve(self, key: str) -> Optional[Any]:
        """Soft variant of fetch: failures and timeouts resolve to None"""
        try:
            return await self.fetch(key)
        except ConfigFetchError as e:
            if self.verbose:
                self.diagnostics.error(
                    f"Error fetching or timeout for config key '{key}': {e}",
                    extra={"ctx_key": key, "ctx_error_type": type(e).__name__},
                )
            return None
