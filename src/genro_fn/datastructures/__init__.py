# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Request aspects - read-only views over request data.

These are the types a handler parameter can declare to receive a piece of
the request (besides ``Context``, ``HttpRequest`` and structured payloads)::

    ASGI / HTTP data                       genro-fn class
    ─────────────────                      ──────────────
    scope["headers"]                    →  Headers (case-insensitive)
    scheme + server + path + query      →  URL
    query string + urlencoded body      →  Form
    urlencoded body                     →  PostForm
    multipart/form-data body            →  MultipartForm (+ UploadFile)
    http.request body chunks            →  Body

``MultiValues`` is the shared multimap underneath headers and forms.
"""

from .body import Body
from .form import Form, MultipartForm, PostForm, UploadFile
from .headers import Headers, headers_from_scope
from .multivalues import MultiValues
from .url import URL, url_from_scope

__all__ = [
    "Body",
    "Form",
    "Headers",
    "MultiValues",
    "MultipartForm",
    "PostForm",
    "URL",
    "UploadFile",
    "headers_from_scope",
    "url_from_scope",
]
