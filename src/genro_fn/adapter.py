# Copyright 2025 Softwell S.r.l.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Adapters - invoke a classified handler against one request.

An adapter is built once per handler from its ``HandlerSpec`` and is shared
by every request hitting that handler. ``invoke()`` resolves the arguments,
calls the target and folds the outcome into an ``InvocationResult``::

    adapter = make_adapter(classify(func))
    result = await adapter.invoke(ctx, request)
    if result.error is not None:
        ...

Arguments live in locals of ``invoke()``; adapters keep no per-request
state, so concurrent invocations of the same adapter never see each other's
values.

Sync targets are run through ``smartasync``, which moves them to a worker
thread when called from the event loop. Async targets, callable instances
with an ``async def __call__`` included, are awaited directly.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, NamedTuple

from smartasync import smartasync

from .classifier import HandlerSpec, Strategy
from .context import Context
from .request import HttpRequest

__all__ = [
    "BaseAdapter",
    "GenericAdapter",
    "InvocationResult",
    "PlainAdapter",
    "UnaryAdapter",
    "make_adapter",
]

logger = logging.getLogger("genro_fn.adapter")


class InvocationResult(NamedTuple):
    """Outcome of one invocation: a payload or an error, never both."""

    payload: Any
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BaseAdapter(ABC):
    """
    Common invocation shell.

    Subclasses implement ``_invoke()``; any exception it raises, whether from
    argument resolution or from the target itself, becomes the ``error`` of
    the result.
    """

    __slots__ = ("spec", "_call")

    def __init__(self, spec: HandlerSpec) -> None:
        self.spec = spec
        self._call = spec.target if spec.is_async else smartasync(spec.target)

    async def invoke(self, ctx: Context, request: HttpRequest) -> InvocationResult:
        try:
            ctx.raise_if_cancelled()
            payload = await self._invoke(ctx, request)
        except Exception as exc:
            logger.debug(f"{self.spec.name} failed: {type(exc).__name__}: {exc}")
            return InvocationResult(None, exc)
        return InvocationResult(payload, None)

    async def _run(self, *args: Any) -> Any:
        result = await self._call(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    @abstractmethod
    async def _invoke(self, ctx: Context, request: HttpRequest) -> Any:
        """Resolve arguments and call the target."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.spec.name}>"


class PlainAdapter(BaseAdapter):
    """Target without request-derived parameters."""

    __slots__ = ()

    async def _invoke(self, ctx: Context, request: HttpRequest) -> Any:
        if self.spec.wants_context:
            return await self._run(ctx)
        return await self._run()


class UnaryAdapter(BaseAdapter):
    """Target with a single ``Context`` or a single payload parameter."""

    __slots__ = ("_rule",)

    def __init__(self, spec: HandlerSpec) -> None:
        super().__init__(spec)
        self._rule = spec.rules[0]

    async def _invoke(self, ctx: Context, request: HttpRequest) -> Any:
        return await self._run(await self._rule.resolve(ctx, request))


class GenericAdapter(BaseAdapter):
    """
    Any other shape.

    Rules are resolved strictly left to right; the first failing rule stops
    resolution and the target is not called.
    """

    __slots__ = ()

    async def _invoke(self, ctx: Context, request: HttpRequest) -> Any:
        args: list[Any] = []
        for rule in self.spec.rules:
            args.append(await rule.resolve(ctx, request))
        return await self._run(*args)


ADAPTERS: dict[Strategy, type[BaseAdapter]] = {
    Strategy.PLAIN: PlainAdapter,
    Strategy.UNARY: UnaryAdapter,
    Strategy.GENERIC: GenericAdapter,
}


def make_adapter(spec: HandlerSpec) -> BaseAdapter:
    """Adapter implementing ``spec.strategy``."""
    return ADAPTERS[spec.strategy](spec)
