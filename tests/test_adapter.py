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

"""Tests for adapters: argument resolution and invocation."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any

import pytest
from pydantic import BaseModel

from genro_fn.adapter import (
    GenericAdapter,
    InvocationResult,
    PlainAdapter,
    UnaryAdapter,
    make_adapter,
)
from genro_fn.classifier import classify
from genro_fn.context import Context
from genro_fn.datastructures import URL, Body, Form, Headers, MultipartForm, PostForm
from genro_fn.exceptions import ContextCancelled, DecodeError, FormParseError
from genro_fn.request import HttpRequest


# =============================================================================
# Helpers
# =============================================================================


class Item(BaseModel):
    name: str
    qty: int = 1


@dataclass
class Point:
    x: int
    y: int


@dataclass
class Tagged:
    foo: str
    bar: int


class AsyncEndpoint:
    """Callable instance with a coroutine ``__call__``."""

    async def __call__(self, ctx: Context) -> dict:
        await asyncio.sleep(0)
        return {"user": ctx.value("user"), "thread": threading.get_ident()}


class AsyncItemEndpoint:
    async def __call__(self, ctx: Context, item: Item) -> str:
        return f"{ctx.value('user')}:{item.name}"


def make_request(
    body: bytes = b"",
    method: str = "POST",
    headers: list[tuple[bytes, bytes]] | None = None,
    query_string: bytes = b"",
) -> HttpRequest:
    scope = {
        "type": "http",
        "method": method,
        "path": "/",
        "query_string": query_string,
        "headers": headers or [],
        "scheme": "http",
        "server": ("localhost", 8000),
    }
    messages = [{"type": "http.request", "body": body, "more_body": False}]

    async def receive() -> dict[str, Any]:
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return HttpRequest(scope, receive)


async def invoke(func: Any, request: HttpRequest | None = None, ctx: Context | None = None) -> InvocationResult:
    request = request or make_request()
    adapter = make_adapter(classify(func))
    return await adapter.invoke(ctx or request.context, request)


# =============================================================================
# Adapter selection
# =============================================================================


def plain() -> dict:
    return {"ok": True}


def with_ctx(ctx: Context) -> Any:
    return ctx.value("user")


def with_item(item: Item) -> dict:
    return {"name": item.name, "qty": item.qty}


def ctx_item(ctx: Context, item: Item) -> dict:
    return {"user": ctx.value("user"), "name": item.name}


class TestMakeAdapter:
    def test_plain(self) -> None:
        assert isinstance(make_adapter(classify(plain)), PlainAdapter)

    def test_unary(self) -> None:
        assert isinstance(make_adapter(classify(with_ctx)), UnaryAdapter)
        assert isinstance(make_adapter(classify(with_item)), UnaryAdapter)

    def test_generic(self) -> None:
        assert isinstance(make_adapter(classify(ctx_item)), GenericAdapter)

    def test_repr(self) -> None:
        assert "plain" in repr(make_adapter(classify(plain)))


# =============================================================================
# Invocation per strategy
# =============================================================================


class TestPlainAdapter:
    @pytest.mark.asyncio
    async def test_sync(self) -> None:
        result = await invoke(plain)
        assert result == InvocationResult({"ok": True}, None)
        assert result.ok

    @pytest.mark.asyncio
    async def test_async(self) -> None:
        async def handler() -> str:
            return "async"

        assert (await invoke(handler)).payload == "async"

    @pytest.mark.asyncio
    async def test_none_payload(self) -> None:
        def handler() -> None:
            return None

        result = await invoke(handler)
        assert result.payload is None
        assert result.error is None

    @pytest.mark.asyncio
    async def test_exception_becomes_error(self) -> None:
        def handler() -> None:
            raise LookupError("missing")

        result = await invoke(handler)
        assert result.payload is None
        assert isinstance(result.error, LookupError)
        assert not result.ok

    @pytest.mark.asyncio
    async def test_sync_returning_awaitable(self) -> None:
        async def compute() -> int:
            return 42

        def handler() -> Any:
            return compute()

        result = await invoke(handler)
        assert result == InvocationResult(42, None)

    @pytest.mark.asyncio
    async def test_sync_runs_off_loop_thread(self) -> None:
        """Sync targets are moved off the event loop thread."""
        loop_thread = threading.get_ident()

        def handler() -> int:
            return threading.get_ident()

        assert (await invoke(handler)).payload != loop_thread


class TestUnaryAdapter:
    @pytest.mark.asyncio
    async def test_context(self) -> None:
        request = make_request()
        ctx = request.context.with_value("user", "alice")
        assert (await invoke(with_ctx, request, ctx)).payload == "alice"

    @pytest.mark.asyncio
    async def test_payload(self) -> None:
        request = make_request(b'{"name": "pen", "qty": 2}')
        assert (await invoke(with_item, request)).payload == {"name": "pen", "qty": 2}

    @pytest.mark.asyncio
    async def test_dataclass_payload(self) -> None:
        async def handler(point: Point) -> int:
            return point.x + point.y

        request = make_request(b'{"x": 2, "y": 3}')
        assert (await invoke(handler, request)).payload == 5

    @pytest.mark.asyncio
    async def test_decode_error_skips_call(self) -> None:
        calls: list[Item] = []

        def handler(item: Item) -> None:
            calls.append(item)

        result = await invoke(handler, make_request(b"not json"))
        assert isinstance(result.error, DecodeError)
        assert calls == []

    @pytest.mark.asyncio
    async def test_empty_body(self) -> None:
        result = await invoke(with_item, make_request(b""))
        assert isinstance(result.error, DecodeError)

    @pytest.mark.asyncio
    async def test_dataclass_field_types_checked(self) -> None:
        calls: list[Tagged] = []

        def handler(payload: Tagged) -> None:
            calls.append(payload)

        request = make_request(b'{"foo": ["not", "a", "string"], "bar": "oops"}')
        result = await invoke(handler, request)
        assert isinstance(result.error, DecodeError)
        assert calls == []

    @pytest.mark.asyncio
    async def test_async_callable_instance(self) -> None:
        """The coroutine is awaited on the loop, never returned as the payload."""
        request = make_request()
        ctx = request.context.with_value("user", "alice")
        result = await invoke(AsyncEndpoint(), request, ctx)
        assert result.error is None
        assert result.payload == {"user": "alice", "thread": threading.get_ident()}


class TestGenericAdapter:
    @pytest.mark.asyncio
    async def test_context_and_payload(self) -> None:
        request = make_request(b'{"name": "pen"}')
        ctx = request.context.with_value("user", "bob")
        result = await invoke(ctx_item, request, ctx)
        assert result.payload == {"user": "bob", "name": "pen"}

    @pytest.mark.asyncio
    async def test_aspects(self) -> None:
        def handler(headers: Headers, url: URL, request: HttpRequest) -> dict:
            return {"token": headers["x-token"], "path": url.path, "method": request.method}

        request = make_request(headers=[(b"x-token", b"t1")])
        result = await invoke(handler, request)
        assert result.payload == {"token": "t1", "path": "/", "method": "POST"}

    @pytest.mark.asyncio
    async def test_forms(self) -> None:
        def handler(form: Form, post: PostForm, maybe: Form | None) -> dict:
            return {"form": form.getlist("a"), "post": post.getlist("a"), "same": maybe is form}

        request = make_request(
            b"a=body",
            headers=[(b"content-type", b"application/x-www-form-urlencoded")],
            query_string=b"a=query",
        )
        result = await invoke(handler, request)
        assert result.payload == {"form": ["body", "query"], "post": ["body"], "same": True}

    @pytest.mark.asyncio
    async def test_body_and_payload_share_body(self) -> None:
        """Body bytes are read once and reused by both parameters."""

        async def handler(body: Body, item: Item) -> dict:
            return {"raw": len(await body.read()), "name": item.name}

        raw = b'{"name": "pen"}'
        result = await invoke(handler, make_request(raw))
        assert result.payload == {"raw": len(raw), "name": "pen"}

    @pytest.mark.asyncio
    async def test_multipart(self) -> None:
        def handler(ctx: Context, multipart: MultipartForm) -> str:
            return multipart.values["title"]

        body = (
            b"--B\r\n"
            b'Content-Disposition: form-data; name="title"\r\n\r\n'
            b"report\r\n"
            b"--B--\r\n"
        )
        request = make_request(body, headers=[(b"content-type", b"multipart/form-data; boundary=B")])
        assert (await invoke(handler, request)).payload == "report"

    @pytest.mark.asyncio
    async def test_first_failure_short_circuits(self) -> None:
        """Resolution stops at the first failing rule, left to right."""
        calls: list[Any] = []

        def handler(headers: Headers, multipart: MultipartForm, item: Item) -> None:
            calls.append(item)

        request = make_request(b'{"name": "pen"}', headers=[(b"content-type", b"application/json")])
        result = await invoke(handler, request)
        assert isinstance(result.error, FormParseError)
        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_error(self) -> None:
        def handler(ctx: Context, item: Item) -> None:
            raise PermissionError(f"{item.name} is locked")

        result = await invoke(handler, make_request(b'{"name": "pen"}'))
        assert isinstance(result.error, PermissionError)
        assert str(result.error) == "pen is locked"

    @pytest.mark.asyncio
    async def test_async_callable_instance(self) -> None:
        request = make_request(b'{"name": "pen"}')
        ctx = request.context.with_value("user", "bob")
        result = await invoke(AsyncItemEndpoint(), request, ctx)
        assert result == InvocationResult("bob:pen", None)


class TestInvocationGuards:
    @pytest.mark.asyncio
    async def test_cancelled_context_skips_call(self) -> None:
        calls: list[int] = []

        def handler() -> None:
            calls.append(1)

        request = make_request()
        request.context.cancel("client gone")
        result = await invoke(handler, request)
        assert isinstance(result.error, ContextCancelled)
        assert calls == []


class TestConcurrency:
    """One adapter, many concurrent invocations."""

    @pytest.mark.asyncio
    async def test_invocations_are_isolated(self) -> None:
        async def handler(ctx: Context, item: Item) -> dict:
            await asyncio.sleep(0.001 * (item.qty % 5))
            return {"user": ctx.value("user"), "qty": item.qty}

        adapter = make_adapter(classify(handler))

        async def one(n: int) -> InvocationResult:
            request = make_request(f'{{"name": "i{n}", "qty": {n}}}'.encode())
            ctx = request.context.with_value("user", f"u{n}")
            return await adapter.invoke(ctx, request)

        results = await asyncio.gather(*(one(n) for n in range(50)))
        assert [r.payload for r in results] == [{"user": f"u{n}", "qty": n} for n in range(50)]

    @pytest.mark.asyncio
    async def test_sync_invocations_are_isolated(self) -> None:
        def handler(item: Item) -> str:
            return item.name

        adapter = make_adapter(classify(handler))

        async def one(n: int) -> InvocationResult:
            request = make_request(f'{{"name": "i{n}"}}'.encode())
            return await adapter.invoke(request.context, request)

        results = await asyncio.gather(*(one(n) for n in range(20)))
        assert [r.payload for r in results] == [f"i{n}" for n in range(20)]
