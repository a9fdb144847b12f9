"""Git 仓库来源

检出目录: $CRATEKIT_HOME/git/checkouts/<repo>-<hash>/
SourceId.reference 形如 "branch=main" / "tag=v1.0" / "rev=abc123"，为空时取默认分支。
"""

from __future__ import annotations

import hashlib
import logging
import re
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from cratekit.core.exceptions import NetworkDisabledError, NotFoundError, TransportError, ValidationError
from cratekit.core.manifest import MANIFEST_NAME, read_package
from cratekit.core.models import Package, PackageId, SourceId
from cratekit.core.protocols import RegistrySourceConfig

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")


def _git(args: list[str], cwd: Path | None = None) -> str:
    r = subprocess.run(
        ["git", *args],
        cwd=str(cwd) if cwd else None,
        capture_output=True, text=True, check=False,
    )
    if r.returncode != 0:
        raise TransportError(f"git {args[0]} failed (rc={r.returncode}): {r.stderr[:300]}")
    return r.stdout


class GitSource:
    """Git 仓库中的包（仓库根目录即包根目录）"""

    def __init__(self, source_id: SourceId, config: ConfigStore) -> None:
        if not source_id.is_git():
            raise ValueError(f"not a git source: {source_id}")
        self._source_id = source_id
        self._config_store = config
        _, _, ref = source_id.reference.partition("=")
        if ref and not _SAFE_REF_RE.match(ref):
            raise ValidationError(f"invalid git reference `{ref}`")
        self.ref = ref

        repo = source_id.url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git") or "repo"
        digest = hashlib.sha256(source_id.to_url().encode("utf-8")).hexdigest()[:16]
        self.checkout_dir = config.home / "git" / "checkouts" / f"{repo}-{digest}"

    @property
    def source_id(self) -> SourceId:
        return self._source_id

    def update(self) -> None:
        if not self._config_store.network_allowed():
            raise NetworkDisabledError(
                f"failed to update {self._source_id}: network access is disabled"
            )
        ws = self.checkout_dir
        if (ws / ".git").exists():
            _git(["fetch", "--depth", "1", "origin", self.ref or "HEAD"], cwd=ws)
            _git(["checkout", "FETCH_HEAD"], cwd=ws)
        else:
            ws.parent.mkdir(parents=True, exist_ok=True)
            _git(["clone", self._source_id.url, str(ws)])
            if self.ref:
                _git(["checkout", self.ref], cwd=ws)
        logger.info("Git 就绪: %s -> %s", self._source_id, ws)

    def download(self, package_id: PackageId) -> Package:
        manifest = self.checkout_dir / MANIFEST_NAME
        if not manifest.is_file():
            self.update()
        if not manifest.is_file():
            raise NotFoundError(f"no `{MANIFEST_NAME}` found in {self._source_id}")

        pkg = read_package(manifest, self._source_id)
        if pkg.package_id != package_id:
            raise NotFoundError(
                f"{self._source_id} provides `{pkg.package_id}`, not `{package_id}`"
            )
        return pkg

    def config(self) -> RegistrySourceConfig | None:
        return None
