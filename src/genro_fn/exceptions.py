# Copyright 2025 Softwell S.r.l.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Exception classes for genro-fn.

Three families of errors exist, and they surface at different moments:

1. Configuration errors - raised by ``wrap()`` while a function is being
   classified, or by the configuration setters. They are never produced
   while serving a request.
2. Resolution errors - raised while a parameter is being resolved from a
   request (body decoding, form parsing). They become the error half of an
   invocation result and are translated into a response.
3. Status code errors - application errors carrying an explicit HTTP status
   code, discoverable through the ``__cause__`` chain.

Hierarchy::

    SignatureError(TypeError)
        ├── ArityError
        ├── ContextPlacementError
        ├── MultipleCustomTypesError
        └── NonStructuredCustomTypeError
    ConfigurationError(ValueError)
    ResolutionError(Exception)
        ├── DecodeError
        └── FormParseError
    ContextCancelled(Exception)
        └── ClientDisconnect
    StatusCodeError(Exception)

Status codes
------------
``error_with_status_code()`` wraps any exception with a status code.
The wrapped exception is stored both as ``cause`` and as ``__cause__``, so
the status code stays visible when the error is re-raised further up with
``raise OtherError(...) from err``::

    >>> err = error_with_status_code(LookupError("not found"), 404)
    >>> try:
    ...     try:
    ...         raise err
    ...     except StatusCodeError as e:
    ...         raise RuntimeError("lookup failed") from e
    ... except RuntimeError as outer:
    ...     unwrap_status_code(outer)
    (404, True)

Only the explicit ``__cause__`` link is followed. The implicit
``__context__`` (an exception raised while handling another one) is not a
wrapping relation and is ignored.
"""

from __future__ import annotations

__all__ = [
    "ArityError",
    "ClientDisconnect",
    "ConfigurationError",
    "ContextCancelled",
    "ContextPlacementError",
    "DecodeError",
    "FormParseError",
    "MultipleCustomTypesError",
    "NonStructuredCustomTypeError",
    "ResolutionError",
    "SignatureError",
    "StatusCodeError",
    "error_with_status_code",
    "unwrap",
    "unwrap_status_code",
]


class SignatureError(TypeError):
    """A function signature cannot be adapted into a handler."""


class ArityError(SignatureError):
    """The callable does not produce exactly one result per call."""


class ContextPlacementError(SignatureError):
    """A ``Context`` parameter is not first, or is declared twice."""


class MultipleCustomTypesError(SignatureError):
    """More than one parameter would be decoded from the request body."""


class NonStructuredCustomTypeError(SignatureError):
    """A parameter type is neither a request aspect nor a structured payload."""


class ConfigurationError(ValueError):
    """Invalid process-wide configuration."""


class ResolutionError(Exception):
    """A parameter value could not be produced from the request."""


class DecodeError(ResolutionError):
    """The request body is not a valid payload for the target type."""


class FormParseError(ResolutionError):
    """The request body is not a valid urlencoded or multipart form."""


class ContextCancelled(Exception):
    """The request context has been cancelled."""


class ClientDisconnect(ContextCancelled):
    """The client went away while the request body was being read."""


class StatusCodeError(Exception):
    """
    Error carrying an explicit HTTP status code.

    The message is the message of the wrapped error, so error encoders that
    render ``str(error)`` are not affected by the wrapping.

    Attributes:
        cause: The wrapped error.
        status_code: HTTP status code to respond with.
    """

    def __init__(self, cause: BaseException, status_code: int) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.status_code = status_code
        self.__cause__ = cause

    def __str__(self) -> str:
        return str(self.cause)

    def __repr__(self) -> str:
        return f"StatusCodeError(status_code={self.status_code}, cause={self.cause!r})"


def error_with_status_code(error: BaseException, status_code: int) -> StatusCodeError:
    """Wrap ``error`` so that its response uses ``status_code``."""
    return StatusCodeError(error, status_code)


def unwrap(error: BaseException) -> BaseException | None:
    """Return the error explicitly wrapped by ``error``, if any."""
    return error.__cause__


def unwrap_status_code(error: BaseException | None) -> tuple[int, bool]:
    """
    Find the nearest status code along the ``__cause__`` chain.

    Args:
        error: Error to inspect. ``None`` is accepted and yields no code.

    Returns:
        ``(status_code, True)`` for the first ``StatusCodeError`` found,
        ``(0, False)`` otherwise.
    """
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        if isinstance(error, StatusCodeError):
            return error.status_code, True
        seen.add(id(error))
        error = error.__cause__
    return 0, False
