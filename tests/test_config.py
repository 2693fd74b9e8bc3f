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

"""Tests for dispatch configuration and TOML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from genro_fn import config as config_module
from genro_fn.config import (
    DispatchConfig,
    configure,
    default_error_encoder,
    default_response_encoder,
    find_config_file,
    get_default_config,
    load_config,
    resolve_import_path,
    set_error_encoder,
    set_global_plugins,
    set_multipart_max_memory,
    set_response_encoder,
    validate_keys,
)
from genro_fn.context import Context
from genro_fn.exceptions import ConfigurationError
from genro_fn.request import DEFAULT_MULTIPART_MAX_MEMORY


# Targets for import path resolution
def envelope(ctx: Context, payload: Any) -> Any:
    return {"code": 0, **payload}


def error_body(ctx: Context, error: BaseException) -> Any:
    return {"error": str(error)}


def audit(ctx: Context, request: Any) -> Context:
    return ctx.with_value("audited", True)


class Encoders:
    @staticmethod
    def upper(ctx: Context, payload: Any) -> Any:
        return str(payload).upper()


# =============================================================================
# DispatchConfig
# =============================================================================


class TestDispatchConfig:
    """Tests for DispatchConfig."""

    def test_defaults(self) -> None:
        cfg = DispatchConfig()
        assert cfg.response_encoder is default_response_encoder
        assert cfg.error_encoder is default_error_encoder
        assert len(cfg.global_plugins) == 0
        assert cfg.multipart_max_memory == DEFAULT_MULTIPART_MAX_MEMORY == 2 * 1024 * 1024

    def test_default_encoders(self) -> None:
        ctx = Context()
        payload = {"a": 1}
        assert default_response_encoder(ctx, payload) is payload
        assert default_error_encoder(ctx, ValueError("bad")) == "bad"

    def test_none_encoders_rejected(self) -> None:
        cfg = DispatchConfig()
        with pytest.raises(ConfigurationError):
            cfg.set_response_encoder(None)  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            cfg.set_error_encoder(None)  # type: ignore[arg-type]

    @pytest.mark.parametrize("size", [0, -1, True, "1024"])
    def test_invalid_multipart_memory(self, size: Any) -> None:
        with pytest.raises(ConfigurationError):
            DispatchConfig(multipart_max_memory=size)

    def test_global_plugins_replaced(self) -> None:
        """Setting global plugins replaces the chain."""
        cfg = DispatchConfig(global_plugins=[audit])
        cfg.set_global_plugins(None)
        assert len(cfg.global_plugins) == 0

    def test_update(self) -> None:
        target = DispatchConfig()
        target.update(DispatchConfig(response_encoder=envelope, multipart_max_memory=10))
        assert target.response_encoder is envelope
        assert target.multipart_max_memory == 10

    def test_repr(self) -> None:
        assert "multipart_max_memory" in repr(DispatchConfig())


class TestDefaultConfig:
    """Tests for the module-level setters."""

    def test_setters_change_default(self) -> None:
        set_response_encoder(envelope)
        set_error_encoder(error_body)
        set_global_plugins(audit, None)
        set_multipart_max_memory(1024)
        cfg = get_default_config()
        assert cfg.response_encoder is envelope
        assert cfg.error_encoder is error_body
        assert cfg.global_plugins.steps == (audit,)
        assert cfg.multipart_max_memory == 1024

    def test_set_global_plugins_not_additive(self) -> None:
        set_global_plugins(audit)
        set_global_plugins(audit)
        assert len(get_default_config().global_plugins) == 1

    def test_invalid_setter_keeps_previous(self) -> None:
        set_multipart_max_memory(4096)
        with pytest.raises(ConfigurationError):
            set_multipart_max_memory(0)
        assert get_default_config().multipart_max_memory == 4096


# =============================================================================
# Import paths
# =============================================================================


class TestResolveImportPath:
    def test_function(self) -> None:
        assert resolve_import_path(f"{__name__}:envelope") is envelope

    def test_dotted_attribute(self) -> None:
        assert resolve_import_path(f"{__name__}:Encoders.upper") is Encoders.upper

    @pytest.mark.parametrize("path", ["no_colon", 42, "genro_fn_missing_module:x"])
    def test_invalid(self, path: Any) -> None:
        with pytest.raises(ConfigurationError):
            resolve_import_path(path)

    def test_missing_attribute(self) -> None:
        with pytest.raises(ConfigurationError, match="no attribute"):
            resolve_import_path(f"{__name__}:missing")


# =============================================================================
# TOML loading
# =============================================================================


class TestLoadConfig:
    """Tests for load_config and validate_keys."""

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "genro-fn.toml"
        path.write_text('[dispatch]\nmultipartmaxmemory = 1024\n')
        assert load_config(path) == {"dispatch": {"multipartmaxmemory": 1024}}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "absent.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[dispatch\n")
        with pytest.raises(ConfigurationError, match="parse"):
            load_config(path)

    def test_underscore_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="dispatch.max_memory"):
            validate_keys({"dispatch": {"max_memory": 1}})

    def test_underscore_in_list(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_keys({"items": [{"bad_key": 1}]})

    def test_env_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GENRO_FN_TEST_MODULE", __name__)
        monkeypatch.delenv("GENRO_FN_TEST_UNSET", raising=False)
        path = tmp_path / "cfg.toml"
        path.write_text(
            "[dispatch]\n"
            'responseencoder = "${GENRO_FN_TEST_MODULE}:envelope"\n'
            'errorencoder = "${GENRO_FN_TEST_UNSET:-genro_fn.config}:default_error_encoder"\n'
        )
        data = load_config(path)
        assert data["dispatch"]["responseencoder"] == f"{__name__}:envelope"
        assert data["dispatch"]["errorencoder"] == "genro_fn.config:default_error_encoder"

    def test_required_env_missing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GENRO_FN_TEST_UNSET", raising=False)
        path = tmp_path / "cfg.toml"
        path.write_text('[dispatch]\nerrorencoder = "${GENRO_FN_TEST_UNSET}"\n')
        with pytest.raises(ConfigurationError, match="GENRO_FN_TEST_UNSET"):
            load_config(path)


class TestFromMapping:
    def test_all_keys(self) -> None:
        cfg = DispatchConfig.from_mapping(
            {
                "responseencoder": f"{__name__}:envelope",
                "errorencoder": f"{__name__}:error_body",
                "plugins": [f"{__name__}:audit"],
                "multipartmaxmemory": 512,
            }
        )
        assert cfg.response_encoder is envelope
        assert cfg.error_encoder is error_body
        assert cfg.global_plugins.steps == (audit,)
        assert cfg.multipart_max_memory == 512

    def test_empty(self) -> None:
        cfg = DispatchConfig.from_mapping({})
        assert cfg.response_encoder is default_response_encoder

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown"):
            DispatchConfig.from_mapping({"encoder": "x:y"})

    def test_plugins_must_be_list(self) -> None:
        with pytest.raises(ConfigurationError):
            DispatchConfig.from_mapping({"plugins": f"{__name__}:audit"})


class TestConfigure:
    """Tests for find_config_file and configure."""

    def test_find_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.toml"
        path.write_text("")
        monkeypatch.setenv("GENRO_FN_CONFIG", str(path))
        assert find_config_file() == path

    def test_find_in_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GENRO_FN_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        assert find_config_file() is None
        (tmp_path / "genro-fn.toml").write_text("")
        assert find_config_file() == tmp_path / "genro-fn.toml"

    def test_configure_applies_file(self, tmp_path: Path) -> None:
        path = tmp_path / "genro-fn.toml"
        path.write_text(
            "[dispatch]\n"
            f'responseencoder = "{__name__}:envelope"\n'
            f'plugins = ["{__name__}:audit"]\n'
            "multipartmaxmemory = 2048\n"
        )
        cfg = configure(path)
        assert cfg is get_default_config()
        assert cfg.response_encoder is envelope
        assert cfg.global_plugins.steps == (audit,)
        assert cfg.multipart_max_memory == 2048

    def test_configure_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GENRO_FN_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        assert configure() is config_module.get_default_config()
        assert get_default_config().response_encoder is default_response_encoder

    def test_dispatch_must_be_table(self, tmp_path: Path) -> None:
        path = tmp_path / "cfg.toml"
        path.write_text('dispatch = "wrong"\n')
        with pytest.raises(ConfigurationError, match="table"):
            configure(path)
