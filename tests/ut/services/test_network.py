"""网络配置与客户端引导测试"""

from __future__ import annotations

import re
from pathlib import Path

import pytest
import yaml

from cratekit.core.config import ConfigStore
from cratekit.core.exceptions import ConfigError, NetworkDisabledError, TransportError
from cratekit.core.models import SourceId
from cratekit.services import network

REGISTRY_API = "https://registry.test"


class TestRegistry:
    def test_explicit_index_and_token(self, config: ConfigStore, file_index: str) -> None:
        client, sid = network.registry(config, token="tok", index=file_index)
        assert sid == SourceId.for_registry(file_index)
        assert client.host == REGISTRY_API
        assert client.token == "tok"

    def test_values_from_config(self, tmp_path: Path, file_index: str, write_config) -> None:
        write_config(tmp_path / "home", {"registry": {"index": file_index, "token": "cfg"}})
        config = ConfigStore(cwd=tmp_path, home=tmp_path / "home")

        client, sid = network.registry(config)
        assert client.token == "cfg"
        assert sid.url == file_index

        client, _ = network.registry(config, token="explicit")
        assert client.token == "explicit"

    def test_no_token_is_allowed(self, config: ConfigStore, file_index: str) -> None:
        client, _ = network.registry(config, index=file_index)
        assert client.token is None

    def test_invalid_index_url(self, config: ConfigStore) -> None:
        with pytest.raises(ConfigError, match="invalid url `ftp://x.test/index`"):
            network.registry(config, index="ftp://x.test/index")

    def test_update_failure_keeps_type(self, tmp_path: Path, config: ConfigStore) -> None:
        missing = (tmp_path / "missing").as_uri()
        with pytest.raises(TransportError, match=re.escape(f"failed to update registry {missing}")):
            network.registry(config, index=missing)

    def test_cache_failure_gets_context(self, config: ConfigStore, file_index: str) -> None:
        config.home.mkdir(parents=True, exist_ok=True)
        (config.home / "registry").write_text("not a directory", encoding="utf-8")
        with pytest.raises(ConfigError, match=re.escape(f"failed to update registry {file_index}: failed to write registry cache")):
            network.registry(config, index=file_index)

    def test_frozen_refuses_http(self, tmp_path: Path, file_index: str) -> None:
        config = ConfigStore(cwd=tmp_path, home=tmp_path / "home", frozen=True)
        with pytest.raises(NetworkDisabledError, match="--frozen was specified"):
            network.registry(config, index=file_index)

    def test_frozen_remote_index(self, tmp_path: Path) -> None:
        config = ConfigStore(cwd=tmp_path, home=tmp_path / "home", offline=True)
        with pytest.raises(NetworkDisabledError, match="failed to update registry"):
            network.registry(config, index="https://index.test/reg")


class TestHttpHandle:
    def test_defaults(self, config: ConfigStore) -> None:
        handle = network.http_handle(config)
        assert handle.connect_timeout == 30
        assert handle.low_speed_limit == 10
        assert handle.low_speed_time == 30
        assert handle.proxy is None

    def test_timeout_from_config(self, tmp_path: Path, write_config) -> None:
        write_config(tmp_path / "home", {"http": {"timeout": 5}})
        handle = network.http_handle(ConfigStore(cwd=tmp_path, home=tmp_path / "home"))
        assert handle.connect_timeout == 5
        assert handle.low_speed_time == 5
        assert handle.low_speed_limit == 10

    def test_timeout_from_env(self, config: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_TIMEOUT", "12")
        assert network.http_timeout(config) == 12
        assert network.http_handle(config).connect_timeout == 12

    def test_config_timeout_beats_env(self, tmp_path: Path, write_config, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_TIMEOUT", "12")
        write_config(tmp_path / "home", {"http": {"timeout": 3}})
        assert network.http_timeout(ConfigStore(cwd=tmp_path, home=tmp_path / "home")) == 3

    def test_bad_env_timeout_ignored(self, config: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_TIMEOUT", "soon")
        assert network.http_timeout(config) is None

    def test_offline_config_key(self, tmp_path: Path, write_config) -> None:
        write_config(tmp_path / "home", {"net": {"offline": True}})
        with pytest.raises(NetworkDisabledError):
            network.http_handle(ConfigStore(cwd=tmp_path, home=tmp_path / "home"))


class TestProxy:
    def test_config_proxy_wins(self, tmp_path: Path, write_config, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(network, "_git_global_proxy", lambda: "http://git-proxy:1")
        write_config(tmp_path / "home", {"http": {"proxy": "http://cfg-proxy:2"}})
        config = ConfigStore(cwd=tmp_path, home=tmp_path / "home")
        assert network.http_proxy(config) == "http://cfg-proxy:2"
        assert network.http_handle(config).proxy == "http://cfg-proxy:2"

    def test_git_proxy_fallback(self, config: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(network, "_git_global_proxy", lambda: "http://git-proxy:1")
        assert network.http_proxy(config) == "http://git-proxy:1"

    def test_git_not_consulted_when_configured(self, tmp_path: Path, write_config, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom() -> str:
            raise AssertionError("git should not be consulted")

        monkeypatch.setattr(network, "_git_global_proxy", boom)
        write_config(tmp_path / "home", {"http": {"proxy": "http://cfg-proxy:2"}})
        assert network.http_proxy(ConfigStore(cwd=tmp_path, home=tmp_path / "home")) == "http://cfg-proxy:2"

    def test_proxy_exists(self, config: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
        assert network.http_proxy(config) is None
        assert not network.http_proxy_exists(config)
        monkeypatch.setenv("https_proxy", "http://env-proxy:3")
        assert network.http_proxy_exists(config)
        assert network.http_proxy(config) is None


class TestLogin:
    def test_writes_token(self, config: ConfigStore) -> None:
        network.registry_login(config, "abc")
        data = yaml.safe_load(config.global_config_path.read_text(encoding="utf-8"))
        assert data == {"registry": {"token": "abc"}}

    def test_keeps_configured_index(self, tmp_path: Path, write_config) -> None:
        home = tmp_path / "home"
        write_config(home, {"registry": {"index": "https://index.test/reg", "token": "old"}})
        config = ConfigStore(cwd=tmp_path, home=home)
        network.registry_login(config, "new")

        data = yaml.safe_load((home / "config.yml").read_text(encoding="utf-8"))
        assert data["registry"] == {"index": "https://index.test/reg", "token": "new"}
        assert network.registry_configuration(config).token == "new"
