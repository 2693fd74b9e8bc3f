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
Dispatch configuration.

``DispatchConfig`` holds the settings every handler consults when it
translates a result or builds a request:

- ``response_encoder``: ``(ctx, payload) -> value`` serialized as the body
- ``error_encoder``: ``(ctx, error) -> value`` serialized as the error body
- ``global_plugins``: chain run before every handler's own plugins
- ``multipart_max_memory``: bytes of an uploaded file kept in memory

A handler built with ``wrap(func, config=cfg)`` uses ``cfg``; otherwise it
reads the process-wide default at request time, so changes made through
the module-level setters reach handlers already registered. The setters are
meant for start-up; mutating the default while serving requests is
last-writer-wins.

TOML files
==========
The default config can be loaded from a TOML file::

    [dispatch]
    responseencoder = "myapp.encoding:envelope"
    errorencoder = "myapp.encoding:error_body"
    plugins = ["myapp.auth:require_token", "myapp.audit:trace"]
    multipartmaxmemory = 4194304

Keys cannot contain underscores. String values may reference environment
variables as ``${VAR}`` (required) or ``${VAR:-default}``. Encoders and
plugins are ``"module:attribute"`` import paths.

``configure()`` without a path looks for the file in:

1. the ``GENRO_FN_CONFIG`` environment variable
2. ``./genro-fn.toml``
3. ``./config/genro-fn.toml``
4. ``~/.config/genro-fn/config.toml``
"""

from __future__ import annotations

import importlib
import logging
import os
import re
import tomllib
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from .context import Context
from .exceptions import ConfigurationError
from .plugins import PluginChain
from .request import DEFAULT_MULTIPART_MAX_MEMORY
from .types import ErrorEncoder, Plugin, ResponseEncoder

__all__ = [
    "DispatchConfig",
    "configure",
    "default_error_encoder",
    "default_response_encoder",
    "find_config_file",
    "get_default_config",
    "load_config",
    "resolve_import_path",
    "set_error_encoder",
    "set_global_plugins",
    "set_multipart_max_memory",
    "set_response_encoder",
    "validate_keys",
]

logger = logging.getLogger("genro_fn.config")

ENV_CONFIG = "GENRO_FN_CONFIG"


def default_response_encoder(ctx: Context, payload: Any) -> Any:
    return payload


def default_error_encoder(ctx: Context, error: BaseException) -> Any:
    return str(error)


class DispatchConfig:
    """
    Settings shared by a set of handlers.

    Args:
        response_encoder: Payload encoder; defaults to identity.
        error_encoder: Error encoder; defaults to ``str(error)``.
        global_plugins: Plugins run before every handler's local plugins.
        multipart_max_memory: In-memory threshold for uploaded files.

    Raises:
        ConfigurationError: An encoder is None or the memory size is not
            positive.
    """

    __slots__ = ("_response_encoder", "_error_encoder", "_global_plugins", "_multipart_max_memory")

    def __init__(
        self,
        response_encoder: ResponseEncoder = default_response_encoder,
        error_encoder: ErrorEncoder = default_error_encoder,
        global_plugins: Iterable[Plugin | None] = (),
        multipart_max_memory: int = DEFAULT_MULTIPART_MAX_MEMORY,
    ) -> None:
        self.set_response_encoder(response_encoder)
        self.set_error_encoder(error_encoder)
        self.set_global_plugins(*global_plugins)
        self.set_multipart_max_memory(multipart_max_memory)

    @property
    def response_encoder(self) -> ResponseEncoder:
        return self._response_encoder

    @property
    def error_encoder(self) -> ErrorEncoder:
        return self._error_encoder

    @property
    def global_plugins(self) -> PluginChain:
        return self._global_plugins

    @property
    def multipart_max_memory(self) -> int:
        return self._multipart_max_memory

    def set_response_encoder(self, encoder: ResponseEncoder) -> None:
        if encoder is None:
            raise ConfigurationError("response encoder cannot be None")
        self._response_encoder = encoder

    def set_error_encoder(self, encoder: ErrorEncoder) -> None:
        if encoder is None:
            raise ConfigurationError("error encoder cannot be None")
        self._error_encoder = encoder

    def set_global_plugins(self, *plugins: Plugin | None) -> None:
        """Replace the global chain; ``None`` entries are dropped."""
        self._global_plugins = PluginChain(plugins)

    def set_multipart_max_memory(self, size: int) -> None:
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ConfigurationError(f"multipart max memory must be a positive int, got {size!r}")
        self._multipart_max_memory = size

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DispatchConfig:
        """
        Build a config from the ``[dispatch]`` table of a config file.

        Recognised keys: ``responseencoder``, ``errorencoder``, ``plugins``,
        ``multipartmaxmemory``. Unknown keys raise ``ConfigurationError``.
        """
        known = {"responseencoder", "errorencoder", "plugins", "multipartmaxmemory"}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown dispatch keys: {', '.join(sorted(unknown))}")

        config = cls()
        if "responseencoder" in data:
            config.set_response_encoder(resolve_import_path(data["responseencoder"]))
        if "errorencoder" in data:
            config.set_error_encoder(resolve_import_path(data["errorencoder"]))
        if "plugins" in data:
            plugins = data["plugins"]
            if not isinstance(plugins, list):
                raise ConfigurationError("'plugins' must be a list of import paths")
            config.set_global_plugins(*(resolve_import_path(path) for path in plugins))
        if "multipartmaxmemory" in data:
            config.set_multipart_max_memory(data["multipartmaxmemory"])
        return config

    def update(self, other: DispatchConfig) -> None:
        """Copy every setting of ``other`` into this config."""
        self._response_encoder = other._response_encoder
        self._error_encoder = other._error_encoder
        self._global_plugins = other._global_plugins
        self._multipart_max_memory = other._multipart_max_memory

    def __repr__(self) -> str:
        return (
            f"DispatchConfig(plugins={len(self._global_plugins)}, "
            f"multipart_max_memory={self._multipart_max_memory})"
        )


_default_config = DispatchConfig()


def get_default_config() -> DispatchConfig:
    """The process-wide config used by handlers without their own."""
    return _default_config


def set_response_encoder(encoder: ResponseEncoder) -> None:
    _default_config.set_response_encoder(encoder)


def set_error_encoder(encoder: ErrorEncoder) -> None:
    _default_config.set_error_encoder(encoder)


def set_global_plugins(*plugins: Plugin | None) -> None:
    """Replace the default global chain (not additive)."""
    _default_config.set_global_plugins(*plugins)


def set_multipart_max_memory(size: int) -> None:
    _default_config.set_multipart_max_memory(size)


# -----------------------------------------------------------------------------
# File loading
# -----------------------------------------------------------------------------


def resolve_import_path(path: Any) -> Any:
    """
    Import ``"package.module:attribute"``.

    Raises:
        ConfigurationError: Malformed path, missing module or attribute.
    """
    if not isinstance(path, str) or ":" not in path:
        raise ConfigurationError(f"Expected 'module:attribute' import path, got {path!r}")
    module_name, _, attr_path = path.partition(":")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import module {module_name!r}: {exc}") from exc
    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as exc:
            raise ConfigurationError(f"{module_name!r} has no attribute {attr_path!r}") from exc
    return target


def validate_keys(data: Any, path: str = "") -> None:
    """
    Reject keys containing underscores.

    Raises:
        ConfigurationError: If a key contains an underscore.
    """
    if isinstance(data, dict):
        for key, value in data.items():
            full_path = f"{path}.{key}" if path else key
            if "_" in key:
                raise ConfigurationError(
                    f"Invalid key '{full_path}': underscore (_) is not allowed in keys"
                )
            validate_keys(value, full_path)
    elif isinstance(data, list):
        for i, item in enumerate(data):
            validate_keys(item, f"{path}[{i}]")


def load_config(path: str | Path) -> dict[str, Any]:
    """
    Load a TOML configuration file.

    Raises:
        ConfigurationError: File not found, invalid TOML, underscore keys or
            unset required environment variables.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Failed to parse TOML: {e}") from e

    validate_keys(data)
    return dict(_expand_env_vars(data))


def _expand_env_vars(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    if isinstance(obj, str):
        return _expand_string(obj)
    return obj


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_string(s: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references."""

    def replace(match: re.Match[str]) -> str:
        expr = match.group(1)
        if ":-" in expr:
            var_name, default = expr.split(":-", 1)
            return os.environ.get(var_name, default)
        value = os.environ.get(expr)
        if value is None:
            raise ConfigurationError(f"Required environment variable not set: {expr}")
        return value

    return _ENV_PATTERN.sub(replace, s)


def find_config_file() -> Path | None:
    """First existing config file in the standard locations, or None."""
    env_config = os.environ.get(ENV_CONFIG)
    if env_config:
        path = Path(env_config)
        if path.exists():
            return path

    locations = [
        Path.cwd() / "genro-fn.toml",
        Path.cwd() / "config" / "genro-fn.toml",
        Path.home() / ".config" / "genro-fn" / "config.toml",
    ]
    for path in locations:
        if path.exists():
            return path
    return None


def configure(path: str | Path | None = None) -> DispatchConfig:
    """
    Apply a config file to the default config and return it.

    Without ``path`` the file is searched with ``find_config_file()``; if
    none exists the default config is returned untouched.
    """
    config_path = Path(path) if path is not None else find_config_file()
    if config_path is None:
        logger.debug("No genro-fn config file found, keeping defaults")
        return _default_config

    data = load_config(config_path)
    section = data.get("dispatch", {})
    if not isinstance(section, dict):
        raise ConfigurationError("[dispatch] must be a table")
    _default_config.update(DispatchConfig.from_mapping(section))
    logger.info(f"Loaded dispatch config from {config_path}")
    return _default_config
