"""包来源实现

  - RegistrySource: 注册表索引（http/https/file）
  - PathSource:     本地目录
  - GitSource:      Git 仓库检出

三者都满足 cratekit.core.protocols.Source，按 SourceId.kind 分派。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cratekit.core.models import SourceId, SourceKind
from cratekit.sources.git import GitSource
from cratekit.sources.path import PathSource
from cratekit.sources.registry import RegistrySource

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore
    from cratekit.core.protocols import Source


def source_for(source_id: SourceId, config: ConfigStore) -> Source:
    """按来源类型构造对应的 Source"""
    if source_id.kind is SourceKind.REGISTRY:
        return RegistrySource(source_id, config)
    if source_id.kind is SourceKind.GIT:
        return GitSource(source_id, config)
    return PathSource(source_id)


__all__ = [
    "GitSource",
    "PathSource",
    "RegistrySource",
    "source_for",
]
