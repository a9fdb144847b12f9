"""注册表索引来源

索引根目录下的 config.json 描述下载与 API 地址:

    {"dl": "https://crates.io/api/v1/crates", "api": "https://crates.io"}

本地缓存布局（$CRATEKIT_HOME/registry/<host>-<hash>/）:

    config.json                 update() 写入的索引配置
    cache/<name>-<ver>.crate    下载的归档
    src/<name>-<ver>/           解压后的源码
"""

from __future__ import annotations

import hashlib
import json
import logging
import tarfile
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from cratekit.core.exceptions import ConfigError, RegistryApiError, TransportError
from cratekit.core.manifest import MANIFEST_NAME, read_package
from cratekit.core.models import Package, PackageId, SourceId
from cratekit.core.protocols import RegistrySourceConfig

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore
    from cratekit.services.transport import HttpHandle

logger = logging.getLogger(__name__)


def cache_dir_name(source_id: SourceId) -> str:
    """<host>-<url 摘要前 16 位>，同一主机上的不同索引互不覆盖"""
    host = urlparse(source_id.url).hostname or "local"
    digest = hashlib.sha256(source_id.url.encode("utf-8")).hexdigest()[:16]
    return f"{host}-{digest}"


class RegistrySource:
    """注册表来源，按需建立 HTTP 句柄（受离线模式约束）"""

    def __init__(
        self,
        source_id: SourceId,
        config: ConfigStore,
        *,
        handle: HttpHandle | None = None,
    ) -> None:
        if not source_id.is_registry():
            raise ValueError(f"not a registry source: {source_id}")
        self._source_id = source_id
        self._config_store = config
        self._handle = handle
        self._index_config: RegistrySourceConfig | None = None
        self.cache_root = config.home / "registry" / cache_dir_name(source_id)

    @property
    def source_id(self) -> SourceId:
        return self._source_id

    @property
    def index_url(self) -> str:
        return self._source_id.url

    def _http(self) -> HttpHandle:
        if self._handle is None:
            from cratekit.services.network import http_handle
            self._handle = http_handle(self._config_store)
        return self._handle

    def _fetch(self, url: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme == "file":
            path = Path(unquote(parsed.path))
            try:
                return path.read_bytes()
            except OSError as e:
                raise TransportError(f"failed to read {path}: {e}") from e

        resp = self._http().get(url)
        if not 200 <= resp.status < 300:
            raise RegistryApiError(
                f"failed to get {url}: server returned status {resp.status}",
                status=resp.status,
            )
        return resp.body

    def update(self) -> None:
        """拉取索引 config.json 并写入本地缓存"""
        raw = self._fetch(f"{self.index_url}/config.json")
        try:
            data = json.loads(raw.decode("utf-8"))
            cfg = RegistrySourceConfig(dl=str(data["dl"]).rstrip("/"), api=str(data["api"]).rstrip("/"))
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError) as e:
            raise ConfigError(f"invalid registry config.json at {self.index_url}: {e}") from e

        try:
            self.cache_root.mkdir(parents=True, exist_ok=True)
            (self.cache_root / "config.json").write_text(
                json.dumps({"dl": cfg.dl, "api": cfg.api}), encoding="utf-8",
            )
        except OSError as e:
            raise ConfigError(f"failed to write registry cache `{self.cache_root}`: {e}") from e
        self._index_config = cfg
        logger.info("索引已更新: %s (api=%s)", self.index_url, cfg.api)

    def config(self) -> RegistrySourceConfig:
        if self._index_config is not None:
            return self._index_config

        cached = self.cache_root / "config.json"
        if not cached.is_file():
            raise ConfigError(
                f"registry index {self.index_url} has not been updated yet"
            )
        try:
            data = json.loads(cached.read_text(encoding="utf-8"))
            self._index_config = RegistrySourceConfig(dl=data["dl"], api=data["api"])
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError) as e:
            raise ConfigError(f"corrupt registry cache `{cached}`: {e}") from e
        return self._index_config

    def download(self, package_id: PackageId) -> Package:
        """下载并解压 .crate 归档，本地已有时直接复用"""
        name, version = package_id.name, package_id.version
        src_dir = self.cache_root / "src" / f"{name}-{version}"
        manifest = src_dir / MANIFEST_NAME

        if not manifest.is_file():
            archive = self.cache_root / "cache" / f"{name}-{version}.crate"
            if not archive.is_file():
                url = f"{self.config().dl}/{name}/{version}/download"
                logger.info("下载 %s", url)
                data = self._fetch(url)
                try:
                    archive.parent.mkdir(parents=True, exist_ok=True)
                    archive.write_bytes(data)
                except OSError as e:
                    raise ConfigError(f"failed to write `{archive}`: {e}") from e
            self._unpack(archive, src_dir.parent)

        if not manifest.is_file():
            raise ConfigError(f"archive for `{package_id}` does not contain `{MANIFEST_NAME}`")
        return read_package(manifest, self._source_id)

    @staticmethod
    def _unpack(archive: Path, dest: Path) -> None:
        try:
            dest.mkdir(parents=True, exist_ok=True)
            with tarfile.open(archive) as tf:
                tf.extractall(path=str(dest), filter="data")  # noqa: S202
        except (OSError, tarfile.TarError) as e:
            archive.unlink(missing_ok=True)
            raise ConfigError(f"failed to unpack `{archive.name}`: {e}") from e
