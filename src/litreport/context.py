# src/litreport/context.py

import inspect
import logging
from collections.abc import Mapping
from contextlib import AsyncExitStack
from typing import Any

from .errors import MissingResourceError, UnboundReferenceError

logger = logging.getLogger(__name__)


class ExecutionContext:
    """Bindings and side resources shared by every block of one render.

    One instance per render, passed explicitly to whoever needs it. Bindings
    only ever grow or get overwritten; nothing is removed.

    Every resource handle registered here is released exactly once by
    ``aclose()``, in reverse registration order. Use it as an async context
    manager so release also happens on failure:

        >>> async with ExecutionContext({"db": conn}) as context:
        ...     outcome = await pipeline.execute(document, context)

    A handle whose ``close`` raises is logged and kept in ``release_errors``;
    the remaining handles are still released.
    """

    def __init__(self, resources: Mapping[str, Any] | None = None) -> None:
        self._bindings: dict[str, Any] = {}
        self._resources: dict[str, Any] = {}
        self._exit_stack = AsyncExitStack()
        self._registered: set[int] = set()
        self._closed = False
        self._release_errors: list[Exception] = []
        for name, handle in (resources or {}).items():
            self.bind_resource(name, handle)

    def get(self, name: str) -> Any:
        try:
            return self._bindings[name]
        except KeyError:
            logger.error("Unbound reference: %s", name)
            raise UnboundReferenceError(name) from None

    def set(self, name: str, value: Any) -> None:
        self._bindings[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def bindings(self) -> dict[str, Any]:
        # shallow copy, callers cannot rebind through it
        return dict(self._bindings)

    def bind_resource(self, name: str, handle: Any) -> None:
        if self._closed:
            raise RuntimeError("ExecutionContext is closed")
        self._resources[name] = handle
        if id(handle) in self._registered:
            return
        self._registered.add(id(handle))
        self._push_release(name, handle)
        logger.debug("Bound resource: %s", name)

    def resource(self, name: str) -> Any:
        try:
            return self._resources[name]
        except KeyError:
            logger.error("Resource not found: %s", name)
            raise MissingResourceError(name) from None

    def resources(self) -> dict[str, Any]:
        return dict(self._resources)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def release_errors(self) -> tuple[Exception, ...]:
        """Exceptions raised by resource handles while closing, in release order."""
        return tuple(self._release_errors)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._resources.clear()
        await self._exit_stack.aclose()

    async def __aenter__(self) -> "ExecutionContext":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _push_release(self, name: str, handle: Any) -> None:
        close = getattr(handle, "close", None)
        if close is None:
            return

        async def _release() -> None:
            logger.debug("Releasing resource: %s", name)
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.exception("Failed to release resource: %s", name)
                self._release_errors.append(exc)

        self._exit_stack.push_async_callback(_release)
