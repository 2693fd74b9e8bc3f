# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Plugin chains run before a handler.

A plugin receives the current context and the request and returns the
context for the next step, usually derived with ``Context.with_value()``.
Returning ``None`` passes the incoming context on unchanged. A plugin
aborts the request by raising; the exception becomes the request error and
is translated like a handler error (attach a status code with
``error_with_status_code``)::

    def require_token(ctx, request):
        if "authorization" not in request.headers:
            raise error_with_status_code(PermissionError("missing token"), 401)
        return ctx.with_value("token", request.headers["authorization"])

Chains are immutable; ``extend()`` returns a new chain, so a chain captured
by a handler is never changed by later extensions of its source.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Iterator
from typing import Any

from smartasync import smartasync

from .context import Context
from .request import HttpRequest
from .types import Plugin

__all__ = ["PluginChain"]

logger = logging.getLogger("genro_fn.plugins")


class PluginChain:
    """Ordered, immutable sequence of plugins."""

    __slots__ = ("_steps", "_calls")

    def __init__(self, steps: Iterable[Plugin | None] = ()) -> None:
        self._steps: tuple[Plugin, ...] = tuple(step for step in steps if step is not None)
        self._calls = tuple(smartasync(step) for step in self._steps)

    @property
    def steps(self) -> tuple[Plugin, ...]:
        return self._steps

    def extend(self, *steps: Plugin | None) -> PluginChain:
        """New chain with ``steps`` appended; ``None`` entries are dropped."""
        return PluginChain(self._steps + tuple(step for step in steps if step is not None))

    def __add__(self, other: PluginChain) -> PluginChain:
        if not isinstance(other, PluginChain):
            return NotImplemented
        return PluginChain(self._steps + other._steps)

    async def run(
        self, ctx: Context, request: HttpRequest
    ) -> tuple[Context, BaseException | None]:
        """
        Thread ``ctx`` through every step.

        Returns:
            ``(final_ctx, None)`` on success, ``(ctx, error)`` as soon as a
            step raises; later steps do not run and the partially derived
            context is discarded.
        """
        current = ctx
        for step, call in zip(self._steps, self._calls):
            try:
                result: Any = await call(current, request)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                logger.debug(f"Plugin {_step_name(step)} aborted the chain: {exc!r}")
                return ctx, exc
            if result is None:
                continue
            if not isinstance(result, Context):
                return ctx, TypeError(
                    f"Plugin {_step_name(step)} returned {type(result).__name__}, "
                    "expected Context or None"
                )
            current = result
        return current, None

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Plugin]:
        return iter(self._steps)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PluginChain):
            return self._steps == other._steps
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._steps)

    def __repr__(self) -> str:
        names = ", ".join(_step_name(step) for step in self._steps)
        return f"PluginChain([{names}])"


def _step_name(step: Any) -> str:
    return getattr(step, "__qualname__", None) or repr(step)
