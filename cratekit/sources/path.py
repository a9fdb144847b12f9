"""本地目录来源"""

from __future__ import annotations

import logging

from cratekit.core.exceptions import NotFoundError
from cratekit.core.manifest import MANIFEST_NAME, read_package
from cratekit.core.models import Package, PackageId, SourceId
from cratekit.core.protocols import RegistrySourceConfig

logger = logging.getLogger(__name__)


class PathSource:
    """目录中的单个包，download 直接读取目录下的清单"""

    def __init__(self, source_id: SourceId) -> None:
        path = source_id.local_path()
        if path is None:
            raise ValueError(f"not a path source: {source_id}")
        self._source_id = source_id
        self.path = path

    @property
    def source_id(self) -> SourceId:
        return self._source_id

    def update(self) -> None:
        if not (self.path / MANIFEST_NAME).is_file():
            raise NotFoundError(f"no `{MANIFEST_NAME}` found in `{self.path}`")

    def download(self, package_id: PackageId) -> Package:
        pkg = read_package(self.path / MANIFEST_NAME, self._source_id)
        if pkg.package_id != package_id:
            raise NotFoundError(
                f"`{self.path}` provides `{pkg.package_id}`, not `{package_id}`"
            )
        logger.debug("本地包就绪: %s -> %s", package_id, self.path)
        return pkg

    def config(self) -> RegistrySourceConfig | None:
        return None
