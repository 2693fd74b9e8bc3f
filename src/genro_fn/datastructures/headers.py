# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Case-insensitive HTTP header multimap.

ASGI delivers headers as ``list[tuple[bytes, bytes]]`` encoded in Latin-1,
with names in whatever case the client used. ``Headers`` decodes them once
and lowercases names, so every lookup is case-insensitive (RFC 7230)::

    headers = Headers.from_raw([(b"Content-Type", b"application/json")])
    headers["content-type"]    # "application/json"
    headers.get("CONTENT-TYPE")  # "application/json"

Repeated headers (``Accept``, ``Cookie`` ...) are kept in order and read
with ``getlist()``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .multivalues import MultiValues

__all__ = ["Headers", "headers_from_scope"]


class Headers(MultiValues):
    """Read-only, case-insensitive HTTP headers."""

    __slots__ = ()

    def _normalize(self, name: str) -> str:
        return name.lower()

    @classmethod
    def from_raw(cls, raw_headers: Iterable[tuple[bytes, bytes]]) -> Headers:
        """Build from raw ASGI header pairs."""
        return cls(
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in raw_headers
        )


def headers_from_scope(scope: Mapping[str, Any]) -> Headers:
    """Headers of an ASGI scope; empty if the scope carries none."""
    return Headers.from_raw(scope.get("headers", ()))
