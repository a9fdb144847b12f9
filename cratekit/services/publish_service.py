"""发布流水线

    publish(ws, opts)
      1. 根包不可发布 -> ValidationError
      2. 解析注册表客户端与注册表源标识
      3. verify_dependencies: path 依赖必须写明版本；其余依赖必须来自同一注册表
      4. 交给打包协作方生成 .crate（检查元信息完整性）
      5. 状态行 "Uploading <id>"
      6. transmit: 组装报文并上传；dry_run 时只发警告，不发任何网络请求

发布不可撤销，也没有跨步骤回滚：上传开始后失败，注册表侧状态由注册表自己负责。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cratekit.core.exceptions import CrateKitError, ValidationError
from cratekit.services import network
from cratekit.services.packager import PackageOpts, package
from cratekit.services.registry_client import NewCrate, NewCrateDependency

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore
    from cratekit.core.models import Package, SourceId
    from cratekit.core.protocols import Packager
    from cratekit.core.workspace import Workspace
    from cratekit.services.registry_client import RegistryClient

logger = logging.getLogger(__name__)


@dataclass
class PublishOpts:
    """一次 publish 调用的参数，不落盘"""

    config: ConfigStore
    token: str | None = None
    index: str | None = None
    verify: bool = True
    allow_dirty: bool = False
    jobs: int | None = None
    dry_run: bool = False


def publish(ws: Workspace, opts: PublishOpts, *, packager: Packager = package) -> None:
    pkg = ws.current()

    if not pkg.publish:
        raise ValidationError(
            "some crates cannot be published.\n"
            f"`{pkg.name}` is marked as unpublishable"
        )

    registry, reg_id = network.registry(opts.config, opts.token, opts.index)
    verify_dependencies(pkg, reg_id)
    logger.info("依赖来源校验通过: %s (%d 个依赖)", pkg.package_id, len(pkg.dependencies))

    tarball = packager(ws, PackageOpts(
        config=opts.config,
        verify=opts.verify,
        list=False,
        check_metadata=True,
        allow_dirty=opts.allow_dirty,
        jobs=opts.jobs,
    ))
    if tarball is None:
        raise CrateKitError(f"packaging `{pkg.name}` did not produce an archive")

    opts.config.shell.status("Uploading", pkg.package_id)
    transmit(opts.config, pkg, tarball, registry, opts.dry_run)


def verify_dependencies(pkg: Package, registry_src: SourceId) -> None:
    for dep in pkg.dependencies:
        if dep.source_id.is_path():
            if not dep.specified_req:
                raise ValidationError(
                    "all path dependencies must have a version specified "
                    "when publishing.\n"
                    f"dependency `{dep.name}` does not specify a version"
                )
        elif dep.source_id != registry_src:
            raise ValidationError(
                "all dependencies must come from the same source.\n"
                f"dependency `{dep.name}` comes from {dep.source_id} instead"
            )


def transmit(
    config: ConfigStore,
    pkg: Package,
    tarball: Path,
    registry: RegistryClient,
    dry_run: bool,
) -> None:
    deps = [
        NewCrateDependency(
            optional=dep.optional,
            default_features=dep.default_features,
            name=dep.name,
            features=list(dep.features),
            version_req=dep.version_req,
            target=dep.platform,
            kind=dep.kind.tag,
        )
        for dep in pkg.dependencies
    ]
    md = pkg.manifest.metadata

    readme = None
    if md.readme is not None:
        readme_path = pkg.root / md.readme
        try:
            readme = readme_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CrateKitError(f"failed to read `{readme_path}`: {e}") from e

    if md.license_file is not None and not (pkg.root / md.license_file).exists():
        raise ValidationError(f"the license file `{md.license_file}` does not exist")

    if dry_run:
        config.shell.warn("aborting upload due to dry run")
        return

    krate = NewCrate(
        name=pkg.name,
        vers=pkg.version,
        deps=deps,
        features=dict(pkg.manifest.features),
        authors=list(md.authors),
        description=md.description,
        homepage=md.homepage,
        documentation=md.documentation,
        keywords=list(md.keywords),
        readme=readme,
        repository=md.repository,
        license=md.license,
        license_file=md.license_file,
    )
    try:
        registry.publish(krate, tarball)
    except OSError as e:
        raise CrateKitError(f"failed to read `{tarball}`: {e}") from e
    except CrateKitError as e:
        raise e.with_context(f"failed to publish `{pkg.name}` v{pkg.version}") from e
