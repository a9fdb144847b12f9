"""领域协议定义

PackageSet、发布流水线只依赖这里的抽象，不依赖具体的源实现。
使用 typing.Protocol，测试中的计数假源无需继承即可满足协议。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cratekit.core.models import Package, PackageId, SourceId
    from cratekit.core.workspace import Workspace
    from cratekit.services.packager import PackageOpts


@dataclass(frozen=True)
class RegistrySourceConfig:
    """注册表索引根目录下 config.json 的内容"""

    dl: str
    api: str


# =========================================================================
# 包来源协议
# =========================================================================

class Source(Protocol):
    """可把 PackageId 解析为磁盘上的 Package，并能刷新自身索引的来源

    实现: RegistrySource / PathSource / GitSource
    """

    @property
    def source_id(self) -> SourceId:
        ...

    def update(self) -> None:
        """刷新索引或检出（registry 拉取 config.json，git 执行 fetch）"""
        ...

    def download(self, package_id: PackageId) -> Package:
        """获取并返回 package_id 对应的包"""
        ...

    def config(self) -> RegistrySourceConfig | None:
        """注册表源返回 {dl, api}，其余来源返回 None"""
        ...


# =========================================================================
# 打包协议
# =========================================================================

class Packager(Protocol):
    """发布流水线的打包协作方：校验元信息并产出 .crate 归档"""

    def __call__(self, ws: Workspace, opts: PackageOpts) -> Path | None:
        ...
