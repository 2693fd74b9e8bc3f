# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Type aliases shared across genro-fn.

ASGI
====
``Scope``, ``Message``, ``Receive``, ``Send`` and ``ASGIApp`` follow the
ASGI specification; ``MutableMapping`` is used instead of TypedDicts since
servers are free to add extension keys.

Dispatch
========
Plugin
    ``(ctx, request) -> Context`` run before the handler, sync or async.
    Raising aborts the chain; returning ``None`` keeps ``ctx`` unchanged.

ResponseEncoder
    ``(ctx, payload) -> Any`` turning a handler payload into a JSON
    serializable value.

ErrorEncoder
    ``(ctx, error) -> Any`` turning an error into a JSON serializable value.

Encoders are total: they have no error channel, a value they cannot render
is a programming error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, MutableMapping, Union

if TYPE_CHECKING:
    from .context import Context
    from .request import HttpRequest

__all__ = [
    "ASGIApp",
    "ErrorEncoder",
    "Message",
    "Plugin",
    "Receive",
    "ResponseEncoder",
    "Scope",
    "Send",
]

Scope = MutableMapping[str, Any]

Message = MutableMapping[str, Any]

Receive = Callable[[], Awaitable[Message]]

Send = Callable[[Message], Awaitable[None]]

ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

Plugin = Callable[
    ["Context", "HttpRequest"],
    Union["Context", None, Awaitable[Union["Context", None]]],
]

ResponseEncoder = Callable[["Context", Any], Any]

ErrorEncoder = Callable[["Context", BaseException], Any]
