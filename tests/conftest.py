# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from genro_fn.config import DispatchConfig, get_default_config


@pytest.fixture(autouse=True)
def reset_default_config() -> Iterator[None]:
    """Restore the process-wide config after each test."""
    yield
    get_default_config().update(DispatchConfig())
