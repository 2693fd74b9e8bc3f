# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Read-only multi-valued mapping.

Purpose
=======
Headers, query strings and form bodies share the same shape: an ordered
list of ``(name, value)`` pairs where a name may repeat. ``MultiValues``
stores the pairs once and exposes them two ways:

- as a ``Mapping[str, str]`` returning the first value for a name
- through ``getlist()`` / ``multi_items()`` for every value

Subclasses customise name handling by overriding ``_normalize()``
(``Headers`` lowercases names, form values keep them as they are).

Definition::

    class MultiValues(Mapping[str, str]):
        def __init__(self, items: Iterable[tuple[str, str]] = ()) -> None
        def get(self, key: str, default: str | None = None) -> str | None
        def getlist(self, key: str) -> list[str]
        def multi_items(self) -> list[tuple[str, str]]
        def to_dict(self) -> dict[str, list[str]]

Example::

    values = MultiValues([("tag", "a"), ("tag", "b"), ("page", "1")])
    values["tag"]            # "a"
    values.getlist("tag")    # ["a", "b"]
    len(values)              # 2 distinct names
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from urllib.parse import parse_qsl

__all__ = ["MultiValues"]


class MultiValues(Mapping[str, str]):
    """Immutable ordered multimap with first-value mapping semantics."""

    __slots__ = ("_items", "_index")

    def __init__(self, items: Iterable[tuple[str, str]] = ()) -> None:
        self._items: list[tuple[str, str]] = [
            (self._normalize(name), value) for name, value in items
        ]
        self._index: dict[str, list[str]] = {}
        for name, value in self._items:
            self._index.setdefault(name, []).append(value)

    @classmethod
    def from_query_string(cls, query_string: bytes | str) -> MultiValues:
        """Parse an ``application/x-www-form-urlencoded`` string.

        Blank values are preserved (``"k="`` gives ``""``). Bytes are
        decoded as Latin-1, the encoding ASGI uses for query strings.
        """
        if isinstance(query_string, bytes):
            query_string = query_string.decode("latin-1")
        return cls(parse_qsl(query_string, keep_blank_values=True))

    def _normalize(self, name: str) -> str:
        return name

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        values = self._index.get(self._normalize(key))
        return values[0] if values else default

    def getlist(self, key: str) -> list[str]:
        """All values for ``key``, in arrival order."""
        return list(self._index.get(self._normalize(key), ()))

    def multi_items(self) -> list[tuple[str, str]]:
        """All ``(name, value)`` pairs including repeated names."""
        return list(self._items)

    def to_dict(self) -> dict[str, list[str]]:
        """Plain dict of name to value list."""
        return {name: list(values) for name, values in self._index.items()}

    def __getitem__(self, key: str) -> str:
        values = self._index.get(self._normalize(key))
        if not values:
            raise KeyError(key)
        return values[0]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self._normalize(key) in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MultiValues):
            return type(self) is type(other) and self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash((type(self), tuple(self._items)))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._items!r})"
