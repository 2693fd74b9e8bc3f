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
HTTP request wrapper over an ASGI scope.

``HttpRequest`` is the source every handler parameter is resolved from.
It performs no I/O on construction; the body and the forms are read and
parsed on first use and cached on the request:

- ``body()`` reads the whole body once
- ``stream()`` yields body chunks, or replays the cached body
- ``form()`` / ``post_form()`` parse urlencoded data once
- ``multipart_form()`` parses ``multipart/form-data`` once, streaming it
  straight from the receive channel when the body was not read before

The raw body stays cached for the rest of the request, except when a
multipart body is streamed into the parser: then it is not kept, and a
later ``body()`` raises ``RuntimeError``. Because parsing fills
request-held state, asking for the same aspect twice during one request
(two parameters both needing the form, for instance) is cheap and returns
the same object.

Each request owns a root ``Context``. While reading the body the request
checks the context for cancellation, and cancels it itself if the server
reports ``http.disconnect``.

Example::

    request = HttpRequest(scope, receive)
    request.headers.get("content-type")
    form = await request.form()
    form.getlist("tag")
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from email.message import Message

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, MultipartState, parse_options_header

from .context import Context
from .datastructures import (
    Form,
    Headers,
    MultiValues,
    MultipartForm,
    PostForm,
    URL,
    UploadFile,
    headers_from_scope,
    url_from_scope,
)
from .exceptions import ClientDisconnect, FormParseError
from .types import Receive, Scope

__all__ = ["DEFAULT_MULTIPART_MAX_MEMORY", "HttpRequest", "parse_content_type"]

DEFAULT_MULTIPART_MAX_MEMORY = 2 * 1024 * 1024

FORM_METHODS = frozenset({"POST", "PUT", "PATCH"})
URLENCODED = "application/x-www-form-urlencoded"
MULTIPART = "multipart/form-data"


def parse_content_type(value: str | None) -> tuple[str, dict[str, str]]:
    """Split a Content-Type header into lowercase media type and parameters."""
    if not value:
        return "", {}
    msg = Message()
    msg["content-type"] = value
    params = msg.get_params() or []
    media_type = params[0][0].lower() if params else ""
    return media_type, {key.lower(): str(val) for key, val in params[1:]}


class _MultipartCollector:
    """
    ``MultipartParser`` callbacks building a ``MultipartForm``.

    File parts are written into their ``UploadFile`` as data arrives, so
    only ``max_memory`` bytes of each file stay in memory. Plain fields
    are small by nature and are buffered whole.
    """

    def __init__(self, max_memory: int) -> None:
        self.max_memory = max_memory
        self.values: list[tuple[str, str]] = []
        self.files: dict[str, list[UploadFile]] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._headers: list[tuple[str, str]] = []
        self._name = ""
        self._charset = "utf-8"
        self._field: bytearray | None = None
        self._upload: UploadFile | None = None

    def callbacks(self) -> dict[str, Callable[..., None]]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._headers = []
        self._field = None
        self._upload = None

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers.append(
            (self._header_field.decode("latin-1"), self._header_value.decode("latin-1"))
        )
        self._header_field.clear()
        self._header_value.clear()

    def on_headers_finished(self) -> None:
        headers = Headers(self._headers)
        _, options = parse_options_header(headers.get("content-disposition"))
        if not options.get(b"name"):
            raise FormParseError("Multipart part without a field name")
        self._name = _decode_option(options[b"name"])
        filename = options.get(b"filename")
        if filename:
            upload = UploadFile(self._name, _decode_option(filename), headers, self.max_memory)
            self.files.setdefault(self._name, []).append(upload)
            self._upload = upload
            return
        _, params = parse_content_type(headers.get("content-type"))
        self._charset = params.get("charset", "utf-8")
        self._field = bytearray()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._upload is not None:
            self._upload.write(data[start:end])
        elif self._field is not None:
            self._field += data[start:end]

    def on_part_end(self) -> None:
        if self._upload is not None:
            self._upload.seek(0)
        elif self._field is not None:
            try:
                self.values.append((self._name, self._field.decode(self._charset)))
            except (LookupError, UnicodeDecodeError) as exc:
                raise FormParseError(f"Invalid multipart field {self._name!r}: {exc}") from exc

    def form(self) -> MultipartForm:
        return MultipartForm(PostForm(self.values), self.files)

    def close(self) -> None:
        for uploads in self.files.values():
            for upload in uploads:
                upload.close()


def _decode_option(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FormParseError(f"Invalid multipart header parameter: {exc}") from exc


class HttpRequest:
    """
    HTTP request adapter wrapping an ASGI scope and receive callable.

    Args:
        scope: ASGI HTTP scope.
        receive: ASGI receive callable.
        context: Root context; a fresh one is created when omitted.
        multipart_max_memory: Bytes of each uploaded file kept in memory.
    """

    __slots__ = (
        "_scope",
        "_receive",
        "_context",
        "_multipart_max_memory",
        "_headers",
        "_url",
        "_body",
        "_stream_consumed",
        "_form",
        "_post_form",
        "_multipart",
    )

    def __init__(
        self,
        scope: Scope,
        receive: Receive,
        context: Context | None = None,
        multipart_max_memory: int = DEFAULT_MULTIPART_MAX_MEMORY,
    ) -> None:
        if scope.get("type") != "http":
            raise ValueError(f"HttpRequest requires an http scope, got {scope.get('type')!r}")
        self._scope = scope
        self._receive = receive
        self._context = context if context is not None else Context()
        self._multipart_max_memory = multipart_max_memory
        self._headers: Headers | None = None
        self._url: URL | None = None
        self._body: bytes | None = None
        self._stream_consumed = False
        self._form: Form | None = None
        self._post_form: PostForm | None = None
        self._multipart: MultipartForm | None = None

    # -------------------------------------------------------------------------
    # Scope data
    # -------------------------------------------------------------------------

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def context(self) -> Context:
        """Root context of this request."""
        return self._context

    @property
    def method(self) -> str:
        return str(self._scope.get("method", "GET")).upper()

    @property
    def path(self) -> str:
        return str(self._scope.get("path", "/"))

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = headers_from_scope(self._scope)
        return self._headers

    @property
    def url(self) -> URL:
        if self._url is None:
            self._url = url_from_scope(self._scope, self.headers.get("host"))
        return self._url

    @property
    def query_params(self) -> MultiValues:
        return self.url.query_params

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def client(self) -> tuple[str, int] | None:
        client = self._scope.get("client")
        return (client[0], client[1]) if client else None

    # -------------------------------------------------------------------------
    # Body
    # -------------------------------------------------------------------------

    async def stream(self) -> AsyncIterator[bytes]:
        """
        Yield the body chunk by chunk, caching it for later reads.

        Raises:
            ClientDisconnect: The client disconnected before the body ended.
            ContextCancelled: The request context was cancelled.
            RuntimeError: The body was already consumed without being cached.
        """
        if self._body is not None:
            if self._body:
                yield self._body
            return
        chunks: list[bytes] = []
        async for chunk in self._receive_chunks():
            chunks.append(chunk)
            yield chunk
        self._body = b"".join(chunks)

    async def _receive_chunks(self) -> AsyncIterator[bytes]:
        """Read the body from the ASGI channel once, without caching it."""
        if self._stream_consumed:
            raise RuntimeError("Request body stream already consumed")
        self._stream_consumed = True
        while True:
            self._context.raise_if_cancelled()
            message = await self._receive()
            if message["type"] == "http.request":
                chunk = message.get("body", b"")
                if chunk:
                    yield chunk
                if not message.get("more_body", False):
                    break
            elif message["type"] == "http.disconnect":
                self._context.cancel("client disconnected")
                raise ClientDisconnect("client disconnected")

    async def body(self) -> bytes:
        """Whole body, read on first call and cached."""
        if self._body is None:
            async for _ in self.stream():
                pass
        return self._body or b""

    # -------------------------------------------------------------------------
    # Forms
    # -------------------------------------------------------------------------

    async def post_form(self) -> PostForm:
        """
        Form values from the body.

        Only POST, PUT and PATCH bodies are parsed. Urlencoded bodies are
        decoded with the declared charset (UTF-8 by default); multipart
        bodies contribute their plain fields.

        Raises:
            FormParseError: The body cannot be decoded.
        """
        if self._post_form is None:
            self._post_form = await self._parse_post_form()
        return self._post_form

    async def form(self) -> Form:
        """Body form values followed by query string values."""
        if self._form is None:
            post_form = await self.post_form()
            self._form = Form(post_form.multi_items() + self.query_params.multi_items())
        return self._form

    async def multipart_form(self, max_memory: int | None = None) -> MultipartForm:
        """
        Parse a ``multipart/form-data`` body.

        Args:
            max_memory: Bytes of each file kept in memory before spilling to
                disk. Defaults to the request's configured threshold.

        Raises:
            FormParseError: The body is not a well formed multipart body.
        """
        if self._multipart is None:
            limit = max_memory if max_memory is not None else self._multipart_max_memory
            self._multipart = await self._parse_multipart(limit)
        return self._multipart

    async def _parse_post_form(self) -> PostForm:
        if self.method not in FORM_METHODS:
            return PostForm()
        media_type, params = parse_content_type(self.content_type)
        if media_type == URLENCODED:
            raw = await self.body()
            try:
                text = raw.decode(params.get("charset", "utf-8"))
            except (LookupError, UnicodeDecodeError) as exc:
                raise FormParseError(f"Invalid urlencoded body: {exc}") from exc
            return PostForm(MultiValues.from_query_string(text).multi_items())
        if media_type == MULTIPART:
            multipart = await self.multipart_form()
            return multipart.values
        return PostForm()

    async def _parse_multipart(self, max_memory: int) -> MultipartForm:
        media_type, params = parse_content_type(self.content_type)
        if media_type != MULTIPART:
            raise FormParseError("Request Content-Type is not multipart/form-data")
        if not params.get("boundary"):
            raise FormParseError("No multipart boundary parameter")

        # A body already read is replayed; otherwise chunks go straight to
        # the parser and are never held on the request.
        chunks = self.stream() if self._body is not None else self._receive_chunks()
        collector = _MultipartCollector(max_memory)
        parser = MultipartParser(params["boundary"], collector.callbacks())
        try:
            try:
                async for chunk in chunks:
                    parser.write(chunk)
                parser.finalize()
            except MultipartParseError as exc:
                raise FormParseError(f"Malformed multipart body: {exc}") from exc
            if parser.state != MultipartState.END:
                raise FormParseError("Malformed multipart body: missing closing boundary")
        except BaseException:
            collector.close()
            raise
        return collector.form()

    def close(self) -> None:
        """Release resources held by parsed multipart uploads."""
        if self._multipart is not None:
            self._multipart.close()

    def __repr__(self) -> str:
        return f"<HttpRequest method={self.method} path={self.path!r}>"
