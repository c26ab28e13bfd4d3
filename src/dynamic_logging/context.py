import inspect
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

AmbientMapping = Mapping[str, Any]


class AmbientContextStore:
    """
    Per task key/value store read by the dynamic logger.

    Backed by a ContextVar holding an immutable mapping. Every write builds a
    new mapping, so a task created with ``asyncio.create_task`` keeps the
    snapshot it inherited and its own writes stay invisible to its parent
    and siblings.
    """

    def __init__(self, name: str = "dynamic_logging_ambient"):
        self._var: ContextVar[Optional[AmbientMapping]] = ContextVar(name, default=None)

    def get(self) -> Optional[AmbientMapping]:
        """Get the entries of the current task, if any were set"""
        return self._var.get()

    def set(self, values: Optional[Mapping[str, Any]]) -> None:
        """Establish or extend the entries of the current task"""
        current = self._var.get() or {}
        self._var.set(MappingProxyType({**current, **(values or {})}))

    def update(self, **fields: Any) -> None:
        self.set(fields)

    def clear(self) -> None:
        self._var.set(None)

    @contextmanager
    def scope(self, **fields: Any) -> Generator[AmbientMapping, None, None]:
        """Extend the entries for the duration of a block"""
        current = self._var.get() or {}
        token = self._var.set(MappingProxyType({**current, **fields}))
        try:
            yield self._var.get()
        finally:
            self._var.reset(token)


default_store = AmbientContextStore()


def get_ambient_context() -> Optional[AmbientMapping]:
    """Get current ambient context"""
    return default_store.get()


def set_ambient_context(values: Optional[Mapping[str, Any]]) -> None:
    """Set (extend) ambient context for current context"""
    default_store.set(values)


def update_ambient_context(**fields: Any) -> None:
    """Update ambient context with additional fields"""
    default_store.update(**fields)


def clear_ambient_context() -> None:
    default_store.clear()


@contextmanager
def ambient_context(**fields: Any) -> Generator[AmbientMapping, None, None]:
    """Context manager for block-scoped ambient logging context"""
    with default_store.scope(**fields) as values:
        yield values


def merge_context(
    local_vars: Optional[Mapping[str, Any]],
    ambient_vars: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Combine explicit locals with ambient entries.

    Local values always win; ambient entries only fill names that are missing.
    A source that is not a mapping contributes nothing.
    """
    merged: Dict[str, Any] = dict(local_vars) if isinstance(local_vars, Mapping) else {}
    if not isinstance(ambient_vars, Mapping):
        return merged
    for name, value in ambient_vars.items():
        if name not in merged:
            merged[name] = value
    return merged


def capture_locals(depth: int = 1) -> Dict[str, Any]:
    """
    Snapshot the local variables of a calling frame.

    Args:
        depth: How many frames above the caller of this function to look.
            ``1`` captures the locals of whoever called ``capture_locals``.

    Returns:
        A flat name to value mapping without dunder names
    """
    frame = inspect.currentframe()
    try:
        for _ in range(depth):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            return {}
        return {
            name: value
            for name, value in frame.f_locals.items()
            if not name.startswith("__")
        }
    finally:
        del frame
