"""测试共享 fixture：隔离的配置目录、清单生成、本地 file:// 注册表索引"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from cratekit.core.config import ConfigStore
from cratekit.services import network
from cratekit.utils.shell import Shell

REGISTRY_API = "https://registry.test"


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """屏蔽宿主机的代理/超时环境变量与 git 全局配置"""
    for var in (*network.PROXY_ENV_VARS, network.TIMEOUT_ENV_VAR):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CRATEKIT_HOME", str(tmp_path / "home"))
    monkeypatch.setattr(network, "_git_global_proxy", lambda: None)


@pytest.fixture()
def work_dir(tmp_path: Path) -> Path:
    d = tmp_path / "work"
    d.mkdir()
    return d


@pytest.fixture()
def config(tmp_path: Path, work_dir: Path) -> ConfigStore:
    return ConfigStore(cwd=work_dir, home=tmp_path / "home", shell=Shell())


def _write_manifest(root: Path, data: dict[str, Any]) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    manifest = root / "Crate.yml"
    manifest.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return manifest


def _write_config(dir_: Path, data: dict[str, Any]) -> Path:
    path = dir_ / "config.yml"
    dir_.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture()
def file_index(tmp_path: Path) -> str:
    """本地注册表索引目录，返回其 file:// URL"""
    index = tmp_path / "index"
    dl = tmp_path / "dl"
    index.mkdir()
    dl.mkdir()
    (index / "config.json").write_text(
        json.dumps({"dl": dl.as_uri(), "api": REGISTRY_API}), encoding="utf-8",
    )
    return index.as_uri()


@pytest.fixture()
def write_manifest():
    return _write_manifest


@pytest.fixture()
def write_config():
    return _write_config
