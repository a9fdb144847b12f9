"""包清单读取

清单文件为包根目录下的 Crate.yml:

    package:
      name: demo
      version: 0.1.0
      authors: ["Jane <jane@example.com>"]
      license: MIT
      readme: README.md
      build: build.py          # 自定义构建步骤 -> custom-build 目标
    dependencies:
      log: "0.3"               # 纯字符串即版本要求
      util: {path: ../util, version: "0.1"}
      net: {git: https://example.com/net.git, branch: main}
    dev-dependencies: {...}
    build-dependencies: {...}
    target:
      linux: {dependencies: {...}}
    bin: [{name: demo, path: src/main.rs}]
    features:
      default: [net]
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from cratekit.core.exceptions import NotFoundError, ValidationError
from cratekit.core.models import (
    Dependency,
    DepKind,
    Manifest,
    ManifestMetadata,
    Package,
    PackageId,
    SourceId,
    Target,
    TargetKind,
)
from cratekit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Crate.yml"

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")

_DEP_SECTIONS = (
    ("dependencies", DepKind.NORMAL),
    ("build-dependencies", DepKind.BUILD),
    ("dev-dependencies", DepKind.DEVELOPMENT),
)

_TARGET_SECTIONS = (
    ("bin", TargetKind.BIN),
    ("example", TargetKind.EXAMPLE),
    ("test", TargetKind.TEST),
    ("bench", TargetKind.BENCH),
)


def find_root_manifest_for_wd(cwd: str | Path) -> Path:
    """从 cwd 向上查找最近的 Crate.yml"""
    start = Path(cwd).resolve()
    for d in (start, *start.parents):
        candidate = d / MANIFEST_NAME
        if candidate.is_file():
            return candidate
    raise NotFoundError(
        f"could not find `{MANIFEST_NAME}` in `{start}` or any parent directory"
    )


def read_package(manifest_path: str | Path, source_id: SourceId) -> Package:
    """读取清单文件并构造 Package"""
    path = Path(manifest_path)
    if not path.is_file():
        raise NotFoundError(f"manifest path `{path}` does not exist")
    try:
        data = load_yaml(path)
    except (ValueError, yaml.YAMLError) as e:
        raise ValidationError(f"failed to parse manifest at `{path}`: {e}") from e

    try:
        manifest = parse_manifest(data, path.parent, source_id)
    except ValidationError as e:
        raise ValidationError(f"failed to parse manifest at `{path}`: {e}") from e
    logger.debug("读取清单: %s -> %s", path, manifest.package_id)
    return Package(manifest, path)


def parse_manifest(data: dict[str, Any], root: Path, source_id: SourceId) -> Manifest:
    pkg = data.get("package")
    if not isinstance(pkg, dict):
        raise ValidationError("missing `package` section")

    name = str(pkg.get("name") or "")
    if not _NAME_RE.match(name):
        raise ValidationError(f"invalid package name `{name}`")
    version = str(pkg.get("version") or "")
    if not _VERSION_RE.match(version):
        raise ValidationError(f"invalid version `{version}` for package `{name}`")

    package_id = PackageId(name, version, source_id)

    deps: list[Dependency] = []
    for section, kind in _DEP_SECTIONS:
        deps.extend(_parse_deps(data.get(section), kind, root, platform=None))
    for platform, table in (data.get("target") or {}).items():
        for section, kind in _DEP_SECTIONS:
            deps.extend(_parse_deps((table or {}).get(section), kind, root, platform=str(platform)))

    return Manifest(
        package_id=package_id,
        dependencies=tuple(deps),
        targets=tuple(_parse_targets(data, pkg, root, name)),
        metadata=ManifestMetadata(
            authors=tuple(pkg.get("authors") or ()),
            description=pkg.get("description"),
            homepage=pkg.get("homepage"),
            documentation=pkg.get("documentation"),
            keywords=tuple(pkg.get("keywords") or ()),
            readme=pkg.get("readme"),
            repository=pkg.get("repository"),
            license=pkg.get("license"),
            license_file=pkg.get("license-file"),
        ),
        features={str(k): list(v or []) for k, v in (data.get("features") or {}).items()},
        publish=bool(pkg.get("publish", True)),
    )


def _parse_deps(
    table: Any, kind: DepKind, root: Path, *, platform: str | None,
) -> list[Dependency]:
    if not table:
        return []
    if not isinstance(table, dict):
        raise ValidationError(f"dependency table for {kind.tag} must be a mapping")
    return [_parse_dep(str(name), spec, kind, root, platform) for name, spec in table.items()]


def _parse_dep(
    name: str, spec: Any, kind: DepKind, root: Path, platform: str | None,
) -> Dependency:
    if isinstance(spec, (str, int, float)):
        return Dependency(
            name=name,
            source_id=SourceId.default_registry(),
            version_req=str(spec),
            kind=kind,
            platform=platform,
            specified_req=True,
        )
    if not isinstance(spec, dict):
        raise ValidationError(f"dependency `{name}` must be a version string or a table")

    if "path" in spec:
        source_id = SourceId.for_path(root / str(spec["path"]))
    elif "git" in spec:
        reference = ""
        for ref_key in ("branch", "tag", "rev"):
            if spec.get(ref_key):
                reference = f"{ref_key}={spec[ref_key]}"
                break
        source_id = SourceId.for_git(str(spec["git"]), reference)
    elif "registry" in spec:
        source_id = SourceId.for_registry(str(spec["registry"]))
    else:
        source_id = SourceId.default_registry()

    version = spec.get("version")
    return Dependency(
        name=name,
        source_id=source_id,
        version_req=str(version) if version is not None else "*",
        kind=kind,
        optional=bool(spec.get("optional", False)),
        default_features=bool(spec.get("default-features", True)),
        features=tuple(spec.get("features") or ()),
        platform=platform,
        specified_req=version is not None,
    )


def _parse_targets(
    data: dict[str, Any], pkg: dict[str, Any], root: Path, name: str,
) -> list[Target]:
    targets: list[Target] = []

    lib = data.get("lib")
    if isinstance(lib, dict):
        targets.append(Target(str(lib.get("name", name)), TargetKind.LIB, str(lib.get("path", ""))))
    elif (root / "src" / "lib.rs").exists():
        targets.append(Target(name, TargetKind.LIB, "src/lib.rs"))

    for section, kind in _TARGET_SECTIONS:
        for entry in data.get(section) or []:
            if not isinstance(entry, dict) or "name" not in entry:
                raise ValidationError(f"every `{section}` target needs a `name`")
            targets.append(Target(str(entry["name"]), kind, str(entry.get("path", ""))))

    if "bin" not in data and (root / "src" / "main.rs").exists():
        targets.append(Target(name, TargetKind.BIN, "src/main.rs"))

    if pkg.get("build"):
        targets.append(Target("build-script-build", TargetKind.CUSTOM_BUILD, str(pkg["build"])))
    return targets
