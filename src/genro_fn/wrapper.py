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
Handler registration and dispatch.

``wrap()`` turns a function into an ASGI application::

    class Greeting(BaseModel):
        name: str

    async def hello(ctx: Context, payload: Greeting) -> dict:
        return {"message": f"hello {payload.name}"}

    app = wrap(hello).with_plugins(require_token)

Signature problems are raised by ``wrap()`` itself, at registration. Every
request then flows through one pipeline:

1. global plugins (from the config)
2. local plugins (``with_plugins``)
3. argument resolution and invocation (adapter)
4. result translation, the only place a response is produced

Translation
===========
- payload ``None``: 204 with an empty body
- any other payload: 200, body ``response_encoder(ctx, payload)`` as JSON
- any error: status from ``unwrap_status_code()`` or 400, body
  ``error_encoder(ctx, error)`` as JSON

All responses are ``application/json; charset=utf-8``. An error raised by an
encoder is a programming error and propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .adapter import BaseAdapter, InvocationResult, make_adapter
from .classifier import HandlerSpec, classify
from .config import DispatchConfig, get_default_config
from .context import Context
from .exceptions import unwrap_status_code
from .plugins import PluginChain
from .request import HttpRequest
from .response import Response
from .types import Plugin, Receive, Scope, Send

__all__ = ["DEFAULT_ERROR_STATUS", "Handler", "translate", "wrap"]

logger = logging.getLogger("genro_fn")

DEFAULT_ERROR_STATUS = 400


def translate(config: DispatchConfig, ctx: Context, result: InvocationResult) -> Response:
    """Turn an invocation result into the single response of the request."""
    error = result.error
    if error is not None:
        status_code, found = unwrap_status_code(error)
        if not found:
            status_code = DEFAULT_ERROR_STATUS
            logger.debug(f"Request error without status code: {type(error).__name__}: {error}")
        elif status_code >= 500:
            logger.error(f"Request failed with {status_code}: {error}", exc_info=error)
        return Response.json(config.error_encoder(ctx, error), status_code=status_code)
    if result.payload is None:
        return Response.no_content()
    return Response.json(config.response_encoder(ctx, result.payload))


class Handler:
    """
    ASGI application wrapping one classified function.

    Built by ``wrap()``. Local plugins may be appended at any time with
    ``with_plugins()``; the global chain and the encoders come from the
    handler's config, or from the default config at request time.
    """

    __slots__ = ("_spec", "_adapter", "_plugins", "_config")

    def __init__(
        self,
        spec: HandlerSpec,
        adapter: BaseAdapter,
        config: DispatchConfig | None = None,
    ) -> None:
        self._spec = spec
        self._adapter = adapter
        self._plugins = PluginChain()
        self._config = config

    @property
    def spec(self) -> HandlerSpec:
        return self._spec

    @property
    def plugins(self) -> PluginChain:
        """Local plugin chain."""
        return self._plugins

    @property
    def config(self) -> DispatchConfig:
        return self._config if self._config is not None else get_default_config()

    def with_plugins(self, *steps: Plugin | None) -> Handler:
        """Append local plugins (``None`` ignored) and return the handler."""
        self._plugins = self._plugins.extend(*steps)
        return self

    async def handle(self, request: HttpRequest) -> Response:
        """Run the full pipeline for ``request``."""
        config = self.config
        ctx, error = await config.global_plugins.run(request.context, request)
        if error is None:
            ctx, error = await self._plugins.run(ctx, request)
        if error is not None:
            result = InvocationResult(None, error)
        else:
            result = await self._adapter.invoke(ctx, request)
        return translate(config, ctx, result)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = HttpRequest(
            scope, receive, multipart_max_memory=self.config.multipart_max_memory
        )
        try:
            response = await self.handle(request)
            await response(scope, receive, send)
        finally:
            request.close()

    def __repr__(self) -> str:
        return f"<Handler {self._spec.name} strategy={self._spec.strategy.value}>"


def wrap(func: Callable[..., Any], config: DispatchConfig | None = None) -> Handler:
    """
    Classify ``func`` and return its ``Handler``.

    Raises:
        SignatureError: ``func`` has a signature that cannot be dispatched.
    """
    spec = classify(func)
    handler = Handler(spec, make_adapter(spec), config)
    logger.debug(f"Registered {handler!r}")
    return handler
