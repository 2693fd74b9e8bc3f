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
Signature classification.

``classify()`` inspects a function once, at registration time, and compiles
its signature into a ``HandlerSpec``: one ``ResolutionRule`` per parameter
plus the invocation strategy. Nothing here looks at a request; the request
side only walks the rules.

Parameter kinds
===============
Each parameter is bound by its type annotation::

    Annotation                     Rule
    ──────────                     ────
    Context                        CONTEXT (first parameter only)
    Body                           ASPECT  RAW_BODY
    Headers                        ASPECT  HEADER
    URL                            ASPECT  URL
    Form / Form | None             ASPECT  FORM / FORM_OPTIONAL
    PostForm / PostForm | None     ASPECT  POST_FORM / POST_FORM_OPTIONAL
    MultipartForm                  ASPECT  MULTIPART_FORM
    HttpRequest                    ASPECT  RAW_REQUEST
    pydantic model / dataclass     DECODE_BODY (at most one)

Anything else is a configuration error raised from ``classify()``.

Strategies
==========
- ``PLAIN``: no parameters
- ``UNARY``: a single ``Context`` or a single payload parameter
- ``GENERIC``: everything else

The two specialised strategies skip the per-parameter loop for the most
common handler shapes; all three produce the same result for the same
request.

Example::

    class Login(BaseModel):
        user: str
        password: str

    async def login(ctx: Context, payload: Login, headers: Headers) -> dict:
        ...

    spec = classify(login)
    spec.strategy        # Strategy.GENERIC
    [r.kind for r in spec.rules]
    # [ParamKind.CONTEXT, ParamKind.DECODE_BODY, ParamKind.ASPECT]
"""

from __future__ import annotations

import dataclasses
import functools
import inspect
import logging
import types
import typing
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, cast

from pydantic import BaseModel, TypeAdapter, ValidationError

from .context import Context
from .datastructures import URL, Body, Form, Headers, MultipartForm, PostForm
from .exceptions import (
    ArityError,
    ContextPlacementError,
    DecodeError,
    MultipleCustomTypesError,
    NonStructuredCustomTypeError,
    SignatureError,
)
from .request import HttpRequest

__all__ = [
    "ASPECT_RESOLVERS",
    "ASPECT_TYPES",
    "Aspect",
    "HandlerSpec",
    "ParamKind",
    "ResolutionRule",
    "Strategy",
    "aspect_of",
    "classify",
    "decode_payload",
    "is_async_callable",
    "is_structured",
    "payload_adapter",
]

logger = logging.getLogger("genro_fn.classifier")

POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


class ParamKind(Enum):
    CONTEXT = "context"
    ASPECT = "aspect"
    DECODE_BODY = "decode_body"


class Aspect(Enum):
    RAW_BODY = "raw_body"
    HEADER = "header"
    URL = "url"
    FORM = "form"
    POST_FORM = "post_form"
    FORM_OPTIONAL = "form_optional"
    POST_FORM_OPTIONAL = "post_form_optional"
    MULTIPART_FORM = "multipart_form"
    RAW_REQUEST = "raw_request"


class Strategy(Enum):
    PLAIN = "plain"
    UNARY = "unary"
    GENERIC = "generic"


@dataclass(frozen=True)
class ResolutionRule:
    """
    How one parameter position gets its value.

    ``aspect`` is set for ``ASPECT`` rules; ``target`` and ``decoder`` for
    ``DECODE_BODY`` rules.
    """

    name: str
    kind: ParamKind
    aspect: Aspect | None = None
    target: type | None = None
    decoder: TypeAdapter[Any] | None = field(default=None, compare=False, repr=False)

    async def resolve(self, ctx: Context, request: HttpRequest) -> Any:
        """Value of this parameter for one request."""
        if self.kind is ParamKind.CONTEXT:
            return ctx
        if self.kind is ParamKind.DECODE_BODY:
            return decode_payload(await request.body(), cast(type, self.target), self.decoder)
        return await ASPECT_RESOLVERS[cast(Aspect, self.aspect)](request)


@dataclass(frozen=True)
class HandlerSpec:
    """
    Compiled, immutable description of a handler function.

    Shared read-only by every concurrent invocation; it holds no
    per-invocation state.

    Attributes:
        target: The function to invoke.
        rules: One rule per declared parameter, in declaration order.
        wants_context: True if the first parameter is a ``Context``.
        strategy: Invocation strategy chosen for this shape.
        is_async: True if calling the target returns an awaitable.
    """

    target: Callable[..., Any]
    rules: tuple[ResolutionRule, ...]
    wants_context: bool
    strategy: Strategy
    is_async: bool = False

    @property
    def name(self) -> str:
        return _callable_name(self.target)

    @property
    def payload_rule(self) -> ResolutionRule | None:
        """The ``DECODE_BODY`` rule, if the handler takes a payload."""
        for rule in self.rules:
            if rule.kind is ParamKind.DECODE_BODY:
                return rule
        return None


# -----------------------------------------------------------------------------
# Aspect registry
# -----------------------------------------------------------------------------

ASPECT_TYPES: dict[Any, Aspect] = {
    Body: Aspect.RAW_BODY,
    Headers: Aspect.HEADER,
    URL: Aspect.URL,
    Form: Aspect.FORM,
    PostForm: Aspect.POST_FORM,
    MultipartForm: Aspect.MULTIPART_FORM,
    HttpRequest: Aspect.RAW_REQUEST,
}

# Aspects that may also be declared as ``T | None``
OPTIONAL_ASPECT_TYPES: dict[Any, Aspect] = {
    Form: Aspect.FORM_OPTIONAL,
    PostForm: Aspect.POST_FORM_OPTIONAL,
}


async def _resolve_body(request: HttpRequest) -> Body:
    return Body(request)


async def _resolve_headers(request: HttpRequest) -> Headers:
    return request.headers


async def _resolve_url(request: HttpRequest) -> URL:
    return request.url


async def _resolve_form(request: HttpRequest) -> Form:
    return await request.form()


async def _resolve_post_form(request: HttpRequest) -> PostForm:
    return await request.post_form()


async def _resolve_multipart(request: HttpRequest) -> MultipartForm:
    return await request.multipart_form()


async def _resolve_request(request: HttpRequest) -> HttpRequest:
    return request


ASPECT_RESOLVERS: dict[Aspect, Callable[[HttpRequest], Awaitable[Any]]] = {
    Aspect.RAW_BODY: _resolve_body,
    Aspect.HEADER: _resolve_headers,
    Aspect.URL: _resolve_url,
    Aspect.FORM: _resolve_form,
    Aspect.POST_FORM: _resolve_post_form,
    Aspect.FORM_OPTIONAL: _resolve_form,
    Aspect.POST_FORM_OPTIONAL: _resolve_post_form,
    Aspect.MULTIPART_FORM: _resolve_multipart,
    Aspect.RAW_REQUEST: _resolve_request,
}


def aspect_of(annotation: Any) -> Aspect | None:
    """Request aspect bound to ``annotation``, or None."""
    try:
        aspect = ASPECT_TYPES.get(annotation)
    except TypeError:
        return None
    if aspect is not None:
        return aspect
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1 and len(typing.get_args(annotation)) == 2:
            return OPTIONAL_ASPECT_TYPES.get(args[0])
    return None


def is_context(annotation: Any) -> bool:
    return inspect.isclass(annotation) and issubclass(annotation, Context)


def is_structured(annotation: Any) -> bool:
    """True for pydantic models and dataclass types."""
    if not inspect.isclass(annotation):
        return False
    return issubclass(annotation, BaseModel) or dataclasses.is_dataclass(annotation)


# -----------------------------------------------------------------------------
# Payload decoding
# -----------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def payload_adapter(target: type) -> TypeAdapter[Any]:
    """Validator for ``target``, built once per payload type."""
    return TypeAdapter(target)


def decode_payload(raw: bytes, target: type, decoder: TypeAdapter[Any] | None = None) -> Any:
    """
    Decode a JSON body into a new instance of ``target``.

    Pydantic models and dataclasses both go through a pydantic
    ``TypeAdapter``, so field types are validated the same way for either.
    Keys that are not fields of ``target`` are ignored.

    Args:
        raw: Request body.
        target: Payload type.
        decoder: Prebuilt adapter for ``target``; looked up when omitted.

    Raises:
        DecodeError: Empty body, invalid JSON or invalid field values.
    """
    if not raw.strip():
        raise DecodeError("Empty request body")
    if decoder is None:
        decoder = payload_adapter(target)
    try:
        return decoder.validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(f"Invalid {target.__name__} payload: {exc}") from exc


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------


def _callable_name(func: Any) -> str:
    return getattr(func, "__qualname__", None) or repr(func)


def _annotation_source(func: Any) -> Any:
    """The object whose annotations describe the call signature of ``func``."""
    source = func
    while isinstance(source, functools.partial):
        source = source.func
    if inspect.isfunction(source) or inspect.ismethod(source):
        return source
    call = getattr(type(source), "__call__", None)
    return call if inspect.isfunction(call) else source


def is_async_callable(func: Any) -> bool:
    """True if calling ``func`` returns a coroutine, callable instances included."""
    return inspect.iscoroutinefunction(_annotation_source(func))


def _check_single_result(func: Any) -> None:
    name = _callable_name(func)
    if inspect.isclass(func) or not callable(func):
        raise ArityError(f"Cannot wrap {name}: a function returning one payload is required")
    source = _annotation_source(func)
    if inspect.isgeneratorfunction(source) or inspect.isasyncgenfunction(source):
        raise ArityError(f"Cannot wrap {name}: generator functions yield many results")


def _type_hints(func: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(_annotation_source(func))
    except (NameError, TypeError) as exc:
        raise SignatureError(
            f"Cannot resolve annotations of {_callable_name(func)}: {exc}"
        ) from exc


def classify(func: Callable[..., Any]) -> HandlerSpec:
    """
    Compile ``func`` into a ``HandlerSpec``.

    Raises:
        ArityError: ``func`` is not a plain function producing one result,
            or declares parameters that cannot be bound by position.
        ContextPlacementError: ``Context`` declared after the first position.
        MultipleCustomTypesError: More than one payload parameter.
        NonStructuredCustomTypeError: A parameter is neither an aspect, a
            ``Context`` nor a structured payload type.
    """
    _check_single_result(func)
    name = _callable_name(func)
    signature = inspect.signature(func)
    hints = _type_hints(func)

    rules: list[ResolutionRule] = []
    wants_context = False
    has_payload = False
    for index, (param_name, param) in enumerate(signature.parameters.items()):
        if param.kind not in POSITIONAL_KINDS:
            raise ArityError(
                f"{name}: parameter {param_name!r} cannot be bound by position"
            )
        annotation = hints.get(param_name, inspect.Parameter.empty)

        if is_context(annotation):
            if index != 0:
                raise ContextPlacementError(
                    f"{name}: Context must be the first parameter, found at {param_name!r}"
                )
            wants_context = True
            rules.append(ResolutionRule(param_name, ParamKind.CONTEXT))
            continue

        aspect = aspect_of(annotation)
        if aspect is not None:
            rules.append(ResolutionRule(param_name, ParamKind.ASPECT, aspect=aspect))
            continue

        if has_payload:
            raise MultipleCustomTypesError(
                f"{name}: only one payload parameter is allowed, {param_name!r} is another"
            )
        if annotation is inspect.Parameter.empty:
            raise NonStructuredCustomTypeError(
                f"{name}: parameter {param_name!r} has no type annotation"
            )
        if not is_structured(annotation):
            raise NonStructuredCustomTypeError(
                f"{name}: parameter {param_name!r} of type {annotation!r} "
                "is not a pydantic model or a dataclass"
            )
        has_payload = True
        rules.append(
            ResolutionRule(
                param_name,
                ParamKind.DECODE_BODY,
                target=annotation,
                decoder=payload_adapter(annotation),
            )
        )

    if not rules:
        strategy = Strategy.PLAIN
    elif len(rules) == 1 and rules[0].kind is not ParamKind.ASPECT:
        strategy = Strategy.UNARY
    else:
        strategy = Strategy.GENERIC

    logger.debug(f"Classified {name}: {strategy.value} strategy, {len(rules)} parameter(s)")
    return HandlerSpec(
        target=func,
        rules=tuple(rules),
        wants_context=wants_context,
        strategy=strategy,
        is_async=is_async_callable(func),
    )
