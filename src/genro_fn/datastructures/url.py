# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Request URL.

``URL`` wraps ``urllib.parse.urlsplit`` and is rebuilt from the ASGI scope
by ``url_from_scope()``: scheme, ``server`` address (falling back to the
``Host`` header when the server does not report one), ``root_path`` +
``path`` and ``query_string``. Default
ports (80 for http/ws, 443 for https/wss) are left out of the netloc.

Example::

    url = URL("https://example.com:8443/items?page=2")
    url.hostname             # "example.com"
    url.port                 # 8443
    url.query_params["page"] # "2"
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import SplitResult, unquote, urlsplit

from .multivalues import MultiValues

__all__ = ["URL", "url_from_scope"]

DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}


class URL:
    """Parsed absolute URL with component access."""

    __slots__ = ("_url", "_parts", "_query_params")

    def __init__(self, url: str) -> None:
        self._url = url
        self._parts: SplitResult = urlsplit(url)
        self._query_params: MultiValues | None = None

    @property
    def scheme(self) -> str:
        return self._parts.scheme

    @property
    def netloc(self) -> str:
        return self._parts.netloc

    @property
    def path(self) -> str:
        """Unquoted path, ``"/"`` when empty."""
        return unquote(self._parts.path) or "/"

    @property
    def raw_path(self) -> str:
        return self._parts.path or "/"

    @property
    def query(self) -> str:
        return self._parts.query

    @property
    def fragment(self) -> str:
        return self._parts.fragment

    @property
    def hostname(self) -> str | None:
        return self._parts.hostname

    @property
    def port(self) -> int | None:
        return self._parts.port

    @property
    def query_params(self) -> MultiValues:
        """Parsed query string, computed on first access."""
        if self._query_params is None:
            self._query_params = MultiValues.from_query_string(self.query)
        return self._query_params

    def __str__(self) -> str:
        return self._url

    def __repr__(self) -> str:
        return f"URL({self._url!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, URL):
            return self._url == other._url
        if isinstance(other, str):
            return self._url == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._url)


def url_from_scope(scope: Mapping[str, Any], host_header: str | None = None) -> URL:
    """Rebuild the request URL from an ASGI scope."""
    scheme = str(scope.get("scheme", "http"))
    server = scope.get("server")
    path = scope.get("root_path", "") + scope.get("path", "/")
    query_string: bytes = scope.get("query_string", b"")

    if server:
        host, port = server
        if port is None or DEFAULT_PORTS.get(scheme) == port:
            netloc = host
        else:
            netloc = f"{host}:{port}"
    else:
        netloc = host_header or "localhost"

    url = f"{scheme}://{netloc}{path}"
    if query_string:
        url += f"?{query_string.decode('latin-1')}"
    return URL(url)
