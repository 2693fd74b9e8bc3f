# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Raw request body stream.

A handler declaring a ``Body`` parameter receives the body uninterpreted::

    async def upload(body: Body) -> dict:
        size = 0
        async for chunk in body:
            size += len(chunk)
        return {"size": size}

Reading goes through the owning request, so the body can still be read
again (e.g. by a payload parameter) after it has been consumed once.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..request import HttpRequest

__all__ = ["Body"]


class Body:
    """Async readable view of a request body."""

    __slots__ = ("_request",)

    def __init__(self, request: HttpRequest) -> None:
        self._request = request

    async def read(self) -> bytes:
        """Whole body as bytes."""
        return await self._request.body()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._request.stream()

    def __repr__(self) -> str:
        return f"Body(request={self._request!r})"
