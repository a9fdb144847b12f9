"""工作区：当前命令所针对的根包"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from cratekit.core.manifest import find_root_manifest_for_wd, read_package
from cratekit.core.models import Package, SourceId

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore


class Workspace:
    """以一个清单文件为根的工作区，根包在首次访问时读取"""

    def __init__(self, manifest_path: str | Path, config: ConfigStore) -> None:
        self.manifest_path = Path(manifest_path)
        self.config = config
        self._current: Package | None = None

    @classmethod
    def for_cwd(cls, config: ConfigStore) -> Workspace:
        return cls(find_root_manifest_for_wd(config.cwd), config)

    @property
    def root(self) -> Path:
        return self.manifest_path.parent

    @property
    def target_dir(self) -> Path:
        return self.root / "target"

    def current(self) -> Package:
        if self._current is None:
            self._current = read_package(
                self.manifest_path, SourceId.for_path(self.root),
            )
        return self._current


def current_package_name(config: ConfigStore) -> str:
    """定位 cwd 所在工作区的清单并返回包名"""
    manifest_path = find_root_manifest_for_wd(config.cwd)
    return Package.for_path(manifest_path).name
