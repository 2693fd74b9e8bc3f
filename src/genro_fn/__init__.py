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

"""genro-fn - Turn plain functions into ASGI request handlers.

Main components:
    wrap: Classify a function and return its Handler (an ASGI app)
    Handler: Plugin chain + argument resolution + JSON response
    Group: Shared plugins for a set of handlers
    Context: Immutable per-request values with cooperative cancellation
    HttpRequest: Request wrapper the parameters are resolved from

Request aspects (declare them as parameter types):
    Body, Headers, URL, Form, PostForm, MultipartForm, HttpRequest

Configuration:
    DispatchConfig, set_response_encoder, set_error_encoder,
    set_global_plugins, set_multipart_max_memory, configure

Usage:
    from pydantic import BaseModel
    from genro_fn import Context, wrap

    class Echo(BaseModel):
        text: str

    async def echo(ctx: Context, payload: Echo) -> dict:
        return {"text": payload.text}

    app = wrap(echo)  # serve with any ASGI server
"""

__version__ = "0.1.0"

from .adapter import (
    BaseAdapter,
    GenericAdapter,
    InvocationResult,
    PlainAdapter,
    UnaryAdapter,
    make_adapter,
)
from .classifier import Aspect, HandlerSpec, ParamKind, ResolutionRule, Strategy, classify
from .config import (
    DispatchConfig,
    configure,
    get_default_config,
    load_config,
    set_error_encoder,
    set_global_plugins,
    set_multipart_max_memory,
    set_response_encoder,
)
from .context import Context
from .datastructures import (
    URL,
    Body,
    Form,
    Headers,
    MultiValues,
    MultipartForm,
    PostForm,
    UploadFile,
)
from .exceptions import (
    ArityError,
    ClientDisconnect,
    ConfigurationError,
    ContextCancelled,
    ContextPlacementError,
    DecodeError,
    FormParseError,
    MultipleCustomTypesError,
    NonStructuredCustomTypeError,
    ResolutionError,
    SignatureError,
    StatusCodeError,
    error_with_status_code,
    unwrap,
    unwrap_status_code,
)
from .group import Group, new_group
from .plugins import PluginChain
from .request import HttpRequest
from .response import Response
from .types import ASGIApp, ErrorEncoder, Message, Plugin, Receive, ResponseEncoder, Scope, Send
from .wrapper import Handler, wrap

__all__ = [
    "__version__",
    # Registration
    "Group",
    "Handler",
    "new_group",
    "wrap",
    # Classification and invocation
    "Aspect",
    "BaseAdapter",
    "GenericAdapter",
    "HandlerSpec",
    "InvocationResult",
    "ParamKind",
    "PlainAdapter",
    "ResolutionRule",
    "Strategy",
    "UnaryAdapter",
    "classify",
    "make_adapter",
    # Context and plugins
    "Context",
    "PluginChain",
    # Request and response
    "Body",
    "Form",
    "Headers",
    "HttpRequest",
    "MultiValues",
    "MultipartForm",
    "PostForm",
    "Response",
    "URL",
    "UploadFile",
    # Configuration
    "DispatchConfig",
    "configure",
    "get_default_config",
    "load_config",
    "set_error_encoder",
    "set_global_plugins",
    "set_multipart_max_memory",
    "set_response_encoder",
    # Exceptions
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
    # Types
    "ASGIApp",
    "ErrorEncoder",
    "Message",
    "Plugin",
    "Receive",
    "ResponseEncoder",
    "Scope",
    "Send",
]
