# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Per-request context threaded through plugins into handlers.

A ``Context`` is immutable. Attaching a value returns a child context that
points at its parent, so a plugin can derive a new context without
affecting the one it received::

    async def auth(ctx: Context, request: HttpRequest) -> Context:
        return ctx.with_value("user", await load_user(request))

    def whoami(ctx: Context) -> dict:
        return {"user": ctx.value("user")}

Lookup walks from the child towards the root and returns the nearest
binding of the key.

Cancellation
============
A root context and every context derived from it share one cancel scope.
``cancel()`` marks the whole family as cancelled; nothing is interrupted,
code observes it cooperatively through ``cancelled`` or
``raise_if_cancelled()``. The request cancels its context when the client
disconnects while the body is being read.
"""

from __future__ import annotations

from typing import Any

from .exceptions import ContextCancelled

__all__ = ["Context"]

_ROOT = object()


class _CancelScope:
    __slots__ = ("cancelled", "reason")

    def __init__(self) -> None:
        self.cancelled = False
        self.reason: str | None = None


class Context:
    """Immutable chain of key/value bindings with a shared cancel scope."""

    __slots__ = ("_parent", "_key", "_value", "_scope")

    def __init__(self) -> None:
        self._parent: Context | None = None
        self._key: Any = _ROOT
        self._value: Any = None
        self._scope = _CancelScope()

    def with_value(self, key: Any, value: Any) -> Context:
        """Child context binding ``key`` to ``value``."""
        child = Context.__new__(Context)
        child._parent = self
        child._key = key
        child._value = value
        child._scope = self._scope
        return child

    def value(self, key: Any, default: Any = None) -> Any:
        """Nearest value bound to ``key``, or ``default``."""
        ctx: Context | None = self
        while ctx is not None:
            if ctx._key is not _ROOT and ctx._key == key:
                return ctx._value
            ctx = ctx._parent
        return default

    def __contains__(self, key: object) -> bool:
        ctx: Context | None = self
        while ctx is not None:
            if ctx._key is not _ROOT and ctx._key == key:
                return True
            ctx = ctx._parent
        return False

    def cancel(self, reason: str | None = None) -> None:
        """Cancel this context and every context sharing its scope."""
        if not self._scope.cancelled:
            self._scope.cancelled = True
            self._scope.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._scope.cancelled

    @property
    def cancel_reason(self) -> str | None:
        return self._scope.reason

    def raise_if_cancelled(self) -> None:
        """Raise ``ContextCancelled`` if the context has been cancelled."""
        if self._scope.cancelled:
            raise ContextCancelled(self._scope.reason or "context cancelled")

    def __repr__(self) -> str:
        depth = 0
        ctx = self._parent
        while ctx is not None:
            depth += 1
            ctx = ctx._parent
        state = "cancelled" if self._scope.cancelled else "active"
        return f"<Context depth={depth} {state}>"
