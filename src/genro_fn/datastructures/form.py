# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""
Form views over a request.

Handlers declare one of these types to receive parsed form data:

- ``Form``: urlencoded body values followed by query string values
- ``PostForm``: urlencoded body values only
- ``MultipartForm``: ``multipart/form-data`` fields and uploaded files

All three are read-only. They are produced on first use by the request
(see ``HttpRequest.form()``, ``post_form()`` and ``multipart_form()``) and
cached there, so several parameters asking for the same form family share
a single parse.

Uploaded files are filled chunk by chunk while the body streams in. Each
keeps up to ``max_memory`` bytes in memory and spills the rest to a
temporary file (``tempfile.SpooledTemporaryFile``).
"""

from __future__ import annotations

from tempfile import SpooledTemporaryFile
from typing import IO

from .headers import Headers
from .multivalues import MultiValues

__all__ = ["Form", "MultipartForm", "PostForm", "UploadFile"]


class Form(MultiValues):
    """Body and query string form values."""

    __slots__ = ()


class PostForm(MultiValues):
    """Urlencoded body form values."""

    __slots__ = ()


class UploadFile:
    """
    One file part of a multipart body.

    Attributes:
        field_name: Name of the form field.
        filename: Client-provided file name.
        content_type: Part content type, ``application/octet-stream`` if absent.
        headers: Part headers.
        file: Spooled file holding the content.
        size: Content length in bytes.
        max_memory: Bytes kept in memory before spilling to disk.

    The parser writes the content with ``write()`` and rewinds the file once
    the part ends, so handlers always read from the start.
    """

    __slots__ = (
        "field_name",
        "filename",
        "content_type",
        "headers",
        "file",
        "size",
        "max_memory",
    )

    def __init__(
        self,
        field_name: str,
        filename: str,
        headers: Headers,
        max_memory: int,
    ) -> None:
        self.field_name = field_name
        self.filename = filename
        self.headers = headers
        self.content_type = headers.get("content-type") or "application/octet-stream"
        self.size = 0
        self.max_memory = max_memory
        self.file: IO[bytes] = SpooledTemporaryFile(max_size=max_memory)

    @property
    def in_memory(self) -> bool:
        """True while the content fits in ``max_memory``."""
        return self.size <= self.max_memory

    def write(self, data: bytes) -> None:
        self.file.write(data)
        self.size += len(data)

    def read(self, size: int = -1) -> bytes:
        return self.file.read(size)

    def seek(self, offset: int) -> None:
        self.file.seek(offset)

    def close(self) -> None:
        self.file.close()

    def __repr__(self) -> str:
        return (
            f"UploadFile(field_name={self.field_name!r}, filename={self.filename!r}, "
            f"content_type={self.content_type!r}, size={self.size})"
        )


class MultipartForm:
    """
    Parsed ``multipart/form-data`` body.

    Attributes:
        values: Plain (non-file) fields.
        files: Field name to uploaded files, in arrival order.
    """

    __slots__ = ("values", "files")

    def __init__(
        self,
        values: PostForm | None = None,
        files: dict[str, list[UploadFile]] | None = None,
    ) -> None:
        self.values = values if values is not None else PostForm()
        self.files = files if files is not None else {}

    def get_file(self, name: str) -> UploadFile | None:
        """First file uploaded under ``name``."""
        uploads = self.files.get(name)
        return uploads[0] if uploads else None

    def close(self) -> None:
        """Release every spooled file."""
        for uploads in self.files.values():
            for upload in uploads:
                upload.close()

    def __repr__(self) -> str:
        return f"MultipartForm(values={self.values!r}, files={list(self.files)!r})"
