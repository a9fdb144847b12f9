"""打包：把工作区根包归档为 target/package/<name>-<version>.crate

归档为 gzip tar，所有条目位于 "<name>-<version>/" 目录下；
跳过 target/ 与所有以 '.' 开头的文件和目录。
verify 只做归档自检（解压后能重新读出同一个 PackageId），不执行构建。
"""

from __future__ import annotations

import logging
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cratekit.core.exceptions import ValidationError
from cratekit.core.manifest import MANIFEST_NAME, read_package

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore
    from cratekit.core.models import Package
    from cratekit.core.workspace import Workspace

logger = logging.getLogger(__name__)

_EXCLUDED_DIRS = frozenset(("target",))


@dataclass
class PackageOpts:
    config: ConfigStore
    verify: bool = True
    list: bool = False
    check_metadata: bool = True
    allow_dirty: bool = False
    jobs: int | None = None


def package(ws: Workspace, opts: PackageOpts) -> Path | None:
    """打包根包，opts.list 为真时只打印文件清单并返回 None"""
    pkg = ws.current()
    shell = opts.config.shell

    if opts.check_metadata:
        check_metadata(pkg, opts.config)

    files = list_files(pkg)
    if opts.list:
        for rel in files:
            shell.say(rel.as_posix())
        return None

    if not opts.allow_dirty:
        logger.debug("未检查工作目录是否有未提交修改（VCS 集成不在本工具范围内）")

    dest = ws.target_dir / "package" / f"{pkg.name}-{pkg.version}.crate"
    shell.status("Packaging", pkg.package_id)
    _write_archive(pkg, files, dest)
    logger.info("已打包 %s -> %s (%d 个文件)", pkg.package_id, dest, len(files))

    if opts.verify:
        shell.status("Verifying", pkg.package_id)
        _verify_archive(pkg, dest, jobs=opts.jobs)
    return dest


def check_metadata(pkg: Package, config: ConfigStore) -> None:
    """元信息不完整时给出一条警告（不阻断发布）"""
    md = pkg.manifest.metadata
    missing: list[str] = []
    if not md.description:
        missing.append("description")
    if not (md.license or md.license_file):
        missing.append("license")
        missing.append("license-file")
    if not (md.documentation or md.homepage or md.repository):
        missing.extend(["documentation", "homepage", "repository"])

    if missing:
        things = ", ".join(missing[:-1])
        things = f"{things} or {missing[-1]}" if things else missing[-1]
        config.shell.warn(
            f"manifest has no {things}.\n"
            "See the package metadata section of the manifest docs for more info."
        )


def list_files(pkg: Package) -> list[Path]:
    """返回相对于包根目录、已排序的待归档文件"""
    root = pkg.root
    files: list[Path] = []
    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if rel.parts[0] in _EXCLUDED_DIRS:
            continue
        if path.is_file():
            files.append(rel)
    return sorted(files)


def _write_archive(pkg: Package, files: list[Path], dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    prefix = f"{pkg.name}-{pkg.version}"
    tmp = dest.with_suffix(".crate.tmp")
    with tarfile.open(tmp, "w:gz") as tf:
        for rel in files:
            tf.add(str(pkg.root / rel), arcname=f"{prefix}/{rel.as_posix()}", recursive=False)
    tmp.replace(dest)


def _verify_archive(pkg: Package, archive: Path, *, jobs: int | None) -> None:
    logger.debug("归档自检 %s (jobs=%s)", archive, jobs)
    with tempfile.TemporaryDirectory() as tmp:
        with tarfile.open(archive) as tf:
            tf.extractall(path=tmp, filter="data")  # noqa: S202
        manifest = Path(tmp) / f"{pkg.name}-{pkg.version}" / MANIFEST_NAME
        if not manifest.is_file():
            raise ValidationError(f"packaged archive for `{pkg.name}` is missing `{MANIFEST_NAME}`")
        unpacked = read_package(manifest, pkg.package_id.source_id)
        if unpacked.package_id != pkg.package_id:
            raise ValidationError(
                f"packaged archive describes `{unpacked.package_id}`, expected `{pkg.package_id}`"
            )
