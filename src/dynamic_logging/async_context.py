"""
Async context management for dynamic logging

Ambient entries live in a ContextVar, which asyncio copies into every new
task. Child tasks therefore start from their parent's snapshot and never
leak their own writes back.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Mapping, Optional

from .context import AmbientContextStore, AmbientMapping, default_store


@asynccontextmanager
async def async_ambient_context(
    store: Optional[AmbientContextStore] = None, **fields: Any
) -> AsyncGenerator[AmbientMapping, None]:
    """
    Async context manager for request-scoped ambient context.

    Example:
        async with async_ambient_context(request_id="abc", user="bob"):
            await logger.dynamic_log("CHECKOUT", "order placed")
    """
    with (store or default_store).scope(**fields) as values:
        yield values


async def aset_ambient_context(values: Optional[Mapping[str, Any]]) -> None:
    """Async version of set_ambient_context for consistency"""
    default_store.set(values)


async def aget_ambient_context() -> Optional[AmbientMapping]:
    """Async version of get_ambient_context for consistency"""
    return default_store.get()
