"""网络工具：索引 URL 解析与查询串编码"""

from __future__ import annotations

from urllib.parse import quote, urlparse

from cratekit.core.exceptions import ConfigError

# 本地 file:// 索引用于离线镜像与测试
_ALLOWED_SCHEMES = frozenset(("http", "https", "file"))


def parse_index_url(url: str, *, context: str = "") -> str:
    """校验并规范化注册表索引 URL

    仅接受 http/https/file，去掉末尾的 '/'，
    使 "https://x/index/" 与 "https://x/index" 得到同一个源标识。

    Raises:
        ConfigError: URL 无法解析或协议不受支持
    """
    parsed = urlparse(url.strip())
    label = f" ({context})" if context else ""
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ConfigError(
            f"invalid url `{url}`{label}: "
            f"unsupported scheme '{parsed.scheme}'"
        )
    if parsed.scheme != "file" and not parsed.netloc:
        raise ConfigError(f"invalid url `{url}`{label}: missing host")
    return parsed.geturl().rstrip("/")


def percent_encode_query(query: str) -> str:
    """按 URL 查询串规则编码（空格 -> %20）"""
    return quote(query, safe="")
