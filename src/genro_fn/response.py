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
HTTP response sent by handlers.

A ``Response`` is a plain value (status, headers, body) that knows how to
send itself through ASGI. Handlers build exactly one per request through
the two constructors used by result translation::

    Response.json({"code": 0}, status_code=200)
    Response.no_content()

JSON bodies are serialized with orjson. Pydantic models are dumped with
``model_dump(mode="json")``; dataclasses, dates and UUIDs are native orjson
types. A value orjson cannot serialize raises ``TypeError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import orjson
from pydantic import BaseModel

from .types import Receive, Scope, Send

__all__ = ["JSON_MEDIA_TYPE", "Response", "dump_json"]

JSON_MEDIA_TYPE = "application/json; charset=utf-8"

HeadersInput = Mapping[str, str] | list[tuple[str, str]] | None


def _normalize_headers(headers: HeadersInput) -> list[tuple[str, str]]:
    if headers is None:
        return []
    if isinstance(headers, list):
        return list(headers)
    return list(headers.items())


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def dump_json(value: Any) -> bytes:
    """Serialize ``value`` to JSON bytes."""
    return orjson.dumps(value, default=_json_default)


class Response:
    """
    HTTP response with a bytes body.

    Attributes:
        body: Encoded response body.
        status_code: HTTP status code.
    """

    __slots__ = ("body", "status_code", "_headers")

    def __init__(
        self,
        content: bytes | str | None = None,
        status_code: int = 200,
        headers: HeadersInput = None,
        media_type: str | None = None,
    ) -> None:
        self.status_code = status_code
        self._headers = _normalize_headers(headers)
        if content is None:
            self.body = b""
        elif isinstance(content, bytes):
            self.body = content
        else:
            self.body = content.encode("utf-8")

        names = {name.lower() for name, _ in self._headers}
        if media_type is not None and "content-type" not in names:
            self._headers.append(("content-type", media_type))
        if "content-length" not in names:
            self._headers.append(("content-length", str(len(self.body))))

    @classmethod
    def json(cls, value: Any, status_code: int = 200, headers: HeadersInput = None) -> Response:
        """JSON response with ``value`` serialized by orjson."""
        return cls(dump_json(value), status_code, headers, JSON_MEDIA_TYPE)

    @classmethod
    def no_content(cls, headers: HeadersInput = None) -> Response:
        """204 response with an empty body."""
        return cls(None, 204, headers, JSON_MEDIA_TYPE)

    @property
    def headers(self) -> list[tuple[str, str]]:
        return list(self._headers)

    @property
    def media_type(self) -> str | None:
        for name, value in self._headers:
            if name.lower() == "content-type":
                return value
        return None

    def set_header(self, name: str, value: str) -> None:
        """Add a response header."""
        self._headers.append((name, value))

    def _build_headers(self) -> list[tuple[bytes, bytes]]:
        return [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in self._headers
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Send ``http.response.start`` and ``http.response.body``."""
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self._build_headers(),
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": self.body,
            }
        )

    def __repr__(self) -> str:
        return f"<Response status={self.status_code} length={len(self.body)}>"
