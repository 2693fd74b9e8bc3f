# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Handler groups sharing a plugin chain.

A group collects plugins for a set of related handlers; each handler wrapped
through the group starts with a copy of the group's chain as its local
plugins::

    api = new_group().with_plugins(require_token)
    list_items = api.wrap(list_items_fn)
    delete_item = api.wrap(delete_item_fn).with_plugins(require_admin)

Copying happens at wrap time: plugins added to the group afterwards do not
reach handlers already wrapped, and plugins added to a handler never reach
the group.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .config import DispatchConfig
from .plugins import PluginChain
from .types import Plugin
from .wrapper import Handler, wrap

__all__ = ["Group", "new_group"]


class Group:
    __slots__ = ("_plugins", "_config")

    def __init__(self, config: DispatchConfig | None = None) -> None:
        self._plugins = PluginChain()
        self._config = config

    @property
    def plugins(self) -> PluginChain:
        return self._plugins

    def with_plugins(self, *steps: Plugin | None) -> Group:
        """Append plugins (``None`` ignored) and return the group."""
        self._plugins = self._plugins.extend(*steps)
        return self

    def wrap(self, func: Callable[..., Any]) -> Handler:
        """Wrap ``func`` with the group's current plugins as its local chain."""
        return wrap(func, self._config).with_plugins(*self._plugins)

    def __repr__(self) -> str:
        return f"<Group plugins={len(self._plugins)}>"


def new_group(config: DispatchConfig | None = None) -> Group:
    return Group(config)
