"""网络配置与注册表客户端引导

每个网络相关的取值都遵循同一条优先级链，由 resolve_layered 统一实现:

    字段            显式参数   配置键             环境变量 / 外部来源          内置默认
    index           --index    registry.index     -                            DEFAULT_REGISTRY_URL
    token           --token    registry.token     -                            无
    proxy           -          http.proxy         git 全局 http.proxy          交给 urllib 读环境变量
    timeout         -          http.timeout       HTTP_TIMEOUT                 无（30s 连接 + 低速检测）

这些值在每次命令调用时重新计算，不跨命令缓存。
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cratekit.core.config import resolve_layered
from cratekit.core.exceptions import CrateKitError, NetworkDisabledError
from cratekit.core.models import DEFAULT_REGISTRY_URL, SourceId
from cratekit.services.registry_client import RegistryClient
from cratekit.services.transport import HttpHandle
from cratekit.utils.net import parse_index_url

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECS = 30
LOW_SPEED_LIMIT_BYTES = 10
LOW_SPEED_TIME_SECS = 30

PROXY_ENV_VARS = ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY")
TIMEOUT_ENV_VAR = "HTTP_TIMEOUT"


@dataclass
class RegistryConfig:
    """持久化配置中的注册表设置"""

    index: str | None = None
    token: str | None = None


def registry_configuration(config: ConfigStore) -> RegistryConfig:
    index = config.get_string("registry.index")
    token = config.get_string("registry.token")
    return RegistryConfig(
        index=index.val if index else None,
        token=token.val if token else None,
    )


def registry(
    config: ConfigStore,
    token: str | None = None,
    index: str | None = None,
) -> tuple[RegistryClient, SourceId]:
    """解析配置并返回绑定到 API 主机的客户端及注册表源标识"""
    from cratekit.sources.registry import RegistrySource

    reg_cfg = registry_configuration(config)
    token = resolve_layered(token, reg_cfg.token)
    index = resolve_layered(index, reg_cfg.index, DEFAULT_REGISTRY_URL)
    index_url = parse_index_url(index, context="registry index")
    sid = SourceId.for_registry(index_url)

    src = RegistrySource(sid, config)
    try:
        src.update()
    except CrateKitError as e:
        raise e.with_context(f"failed to update registry {index_url}") from e
    api_host = src.config().api

    handle = http_handle(config)
    logger.info("注册表: %s (api=%s, token=%s)", index_url, api_host, "yes" if token else "no")
    return RegistryClient(api_host, token, handle), sid


def http_handle(config: ConfigStore) -> HttpHandle:
    """按全局配置创建 HTTP 句柄

    Raises:
        NetworkDisabledError: --frozen / --offline 模式下不发出任何请求
    """
    if not config.network_allowed():
        raise NetworkDisabledError(
            "attempting to make an HTTP request, but --frozen was specified"
        )

    handle = HttpHandle(
        connect_timeout=CONNECT_TIMEOUT_SECS,
        low_speed_limit=LOW_SPEED_LIMIT_BYTES,
        low_speed_time=LOW_SPEED_TIME_SECS,
        proxy=http_proxy(config),
    )
    timeout = http_timeout(config)
    if timeout is not None:
        handle.connect_timeout = timeout
        handle.low_speed_time = timeout
    return handle


def _git_global_proxy() -> str | None:
    try:
        r = subprocess.run(
            ["git", "config", "--global", "--get", "http.proxy"],
            capture_output=True, text=True, check=False, timeout=10,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    value = r.stdout.strip()
    return value if r.returncode == 0 and value else None


def http_proxy(config: ConfigStore) -> str | None:
    """显式代理：配置 http.proxy 优先，其次 git 全局 http.proxy

    环境变量中的代理不在此返回，由 urllib 自行读取。
    """
    def from_config() -> str | None:
        cv = config.get_string("http.proxy")
        return cv.val if cv else None

    return resolve_layered(from_config, _git_global_proxy)


def http_proxy_exists(config: ConfigStore) -> bool:
    if http_proxy(config) is not None:
        return True
    return any(v in os.environ for v in PROXY_ENV_VARS)


def http_timeout(config: ConfigStore) -> int | None:
    def from_config() -> int | None:
        cv = config.get_int("http.timeout")
        return cv.val if cv else None

    def from_env() -> int | None:
        raw = os.getenv(TIMEOUT_ENV_VAR)
        if raw is None:
            return None
        try:
            return int(raw.strip())
        except ValueError:
            logger.debug("忽略无法解析的 %s=%r", TIMEOUT_ENV_VAR, raw)
            return None

    return resolve_layered(from_config, from_env)


def registry_login(config: ConfigStore, token: str) -> None:
    """把 token（以及已配置的 index）写入全局配置的 registry 表"""
    reg_cfg = registry_configuration(config)
    table: dict[str, str] = {}
    if reg_cfg.index is not None:
        table["index"] = reg_cfg.index
    table["token"] = token
    config.set_global("registry", table)
