"""持久化配置存储

配置按目录分层，近者优先：

  1. <cwd>/.cratekit/config.yml
  2. <cwd 的各级父目录>/.cratekit/config.yml
  3. $CRATEKIT_HOME/config.yml（默认 ~/.cratekit/config.yml，全局作用域）

所有键用点号寻址，例如 registry.index / registry.token / http.proxy / http.timeout。
ConfigStore 每次命令调用新建一个，值不跨命令缓存。
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import yaml

from cratekit.core.exceptions import ConfigError
from cratekit.utils.shell import Shell
from cratekit.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".cratekit"
CONFIG_FILE_NAME = "config.yml"

T = TypeVar("T")


@dataclass
class ConfigValue:
    """一个配置值及其定义所在的文件"""

    val: Any
    definition: Path


def resolve_layered(*candidates: T | Callable[[], T | None] | None) -> T | None:
    """按顺序返回第一个非 None 的候选值

    候选可以是值本身，也可以是零参可调用对象（只在前面的候选都为 None 时求值），
    于是 "显式参数 > 配置值 > 环境变量 > 内置默认" 的优先级只写一处。
    """
    for candidate in candidates:
        value = candidate() if callable(candidate) else candidate
        if value is not None:
            return value
    return None


def default_home() -> Path:
    env_home = os.getenv("CRATEKIT_HOME")
    if env_home:
        return Path(env_home)
    return Path.home() / CONFIG_DIR_NAME


class ConfigStore:
    """分层 YAML 配置"""

    def __init__(
        self,
        cwd: str | Path | None = None,
        home: str | Path | None = None,
        *,
        frozen: bool = False,
        offline: bool = False,
        shell: Shell | None = None,
    ) -> None:
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.home = Path(home) if home is not None else default_home()
        self.frozen = frozen
        self.offline = offline
        self.shell = shell or Shell()
        self._entries: dict[str, ConfigValue] | None = None

    @property
    def global_config_path(self) -> Path:
        return self.home / CONFIG_FILE_NAME

    def config_files(self) -> list[Path]:
        """按优先级从低到高列出存在的配置文件"""
        files: list[Path] = []
        seen: set[Path] = set()
        candidates = [self.global_config_path]
        candidates += [
            d / CONFIG_DIR_NAME / CONFIG_FILE_NAME
            for d in reversed([self.cwd, *self.cwd.parents])
        ]
        for path in candidates:
            resolved = path.resolve()
            if resolved in seen or not path.is_file():
                continue
            seen.add(resolved)
            files.append(path)
        return files

    def _load(self) -> dict[str, ConfigValue]:
        if self._entries is not None:
            return self._entries

        entries: dict[str, ConfigValue] = {}
        for path in self.config_files():
            try:
                data = load_yaml(path)
            except (ValueError, yaml.YAMLError) as e:
                raise ConfigError(f"could not parse config file `{path}`: {e}") from e
            for key, val in _flatten(data):
                entries[key] = ConfigValue(val, path)
            logger.debug("读取配置: %s", path)
        self._entries = entries
        return entries

    def get(self, key: str) -> ConfigValue | None:
        return self._load().get(key)

    def get_string(self, key: str) -> ConfigValue | None:
        cv = self.get(key)
        if cv is None:
            return None
        if not isinstance(cv.val, str):
            raise ConfigError(
                f"expected a string for `{key}`, found {type(cv.val).__name__} "
                f"(defined in {cv.definition})"
            )
        return cv

    def get_int(self, key: str) -> ConfigValue | None:
        cv = self.get(key)
        if cv is None:
            return None
        # bool 是 int 的子类，需要单独排除
        if isinstance(cv.val, bool) or not isinstance(cv.val, int):
            raise ConfigError(
                f"expected an integer for `{key}`, found {type(cv.val).__name__} "
                f"(defined in {cv.definition})"
            )
        return cv

    def get_bool(self, key: str) -> ConfigValue | None:
        cv = self.get(key)
        if cv is None:
            return None
        if not isinstance(cv.val, bool):
            raise ConfigError(
                f"expected a boolean for `{key}`, found {type(cv.val).__name__} "
                f"(defined in {cv.definition})"
            )
        return cv

    def network_allowed(self) -> bool:
        if self.frozen or self.offline:
            return False
        offline = self.get_bool("net.offline")
        return not (offline and offline.val)

    def set_global(self, key: str, table: dict[str, Any]) -> None:
        """把一张表写入全局作用域配置的顶层键 key（整表替换）"""
        path = self.global_config_path
        try:
            data = load_yaml(path)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"could not parse config file `{path}`: {e}") from e
        data[key] = table
        save_yaml(path, data)
        self._entries = None
        logger.info("已更新全局配置 %s: [%s]", path, key)


def _flatten(data: dict[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    items: list[tuple[str, Any]] = []
    for k, v in data.items():
        key = f"{prefix}{k}"
        if isinstance(v, dict):
            items.extend(_flatten(v, f"{key}."))
        else:
            items.append((key, v))
    return items
