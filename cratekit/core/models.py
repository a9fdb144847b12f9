"""包模型

  SourceId - 包的来源标识（registry / path / git）
  PackageId - (name, version, source) 身份三元组
  Dependency / Target / ManifestMetadata / Manifest - 清单内容
  Package - 清单 + 所在磁盘路径；相等性只看 PackageId

身份先于内容：两个 PackageId 相同的 Package 视为同一个包，即使清单内容不同。
这些对象在清单读入后即不可变。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from cratekit.utils.text import lev_distance

DEFAULT_REGISTRY_URL = "https://github.com/rust-lang/crates.io-index"

# 编辑距离达到该值即不再视为"相近"的目标名
_CLOSEST_TARGET_THRESHOLD = 4


# =========================================================================
# 来源标识
# =========================================================================

class SourceKind(Enum):
    REGISTRY = "registry"
    PATH = "path"
    GIT = "git"


@dataclass(frozen=True)
class SourceId:
    """包来源标识，相等性由 (kind, url, reference) 决定"""

    kind: SourceKind
    url: str
    reference: str = ""

    @classmethod
    def for_registry(cls, url: str) -> SourceId:
        return cls(SourceKind.REGISTRY, url.rstrip("/"))

    @classmethod
    def for_path(cls, path: str | Path) -> SourceId:
        return cls(SourceKind.PATH, Path(path).resolve().as_uri())

    @classmethod
    def for_git(cls, url: str, reference: str = "") -> SourceId:
        return cls(SourceKind.GIT, url, reference)

    @classmethod
    def default_registry(cls) -> SourceId:
        return cls.for_registry(DEFAULT_REGISTRY_URL)

    @classmethod
    def parse(cls, text: str) -> SourceId:
        """解析 "registry+URL" / "git+URL[?ref]" / "path+PATH" 形式"""
        kind_str, sep, rest = text.partition("+")
        if not sep or not rest:
            raise ValueError(f"invalid source `{text}`")
        try:
            kind = SourceKind(kind_str)
        except ValueError:
            raise ValueError(f"unsupported source protocol: {kind_str}") from None
        if kind is SourceKind.REGISTRY:
            return cls.for_registry(rest)
        if kind is SourceKind.GIT:
            url, _, ref = rest.partition("?")
            return cls.for_git(url, ref)
        if rest.startswith("file://"):
            return cls(SourceKind.PATH, rest)
        return cls.for_path(rest)

    def to_url(self) -> str:
        if self.kind is SourceKind.GIT and self.reference:
            return f"git+{self.url}?{self.reference}"
        return f"{self.kind.value}+{self.url}"

    def is_registry(self) -> bool:
        return self.kind is SourceKind.REGISTRY

    def is_path(self) -> bool:
        return self.kind is SourceKind.PATH

    def is_git(self) -> bool:
        return self.kind is SourceKind.GIT

    def is_default_registry(self) -> bool:
        return self == SourceId.default_registry()

    def local_path(self) -> Path | None:
        """path 来源对应的本地目录"""
        if not self.is_path():
            return None
        return Path(unquote(urlparse(self.url).path))

    def __str__(self) -> str:
        if self.kind is SourceKind.REGISTRY:
            return f"registry {self.url}"
        if self.kind is SourceKind.GIT and self.reference:
            return f"{self.url}?{self.reference}"
        return self.url


@dataclass(frozen=True)
class PackageId:
    """包身份：相等与哈希只由 (name, version, source_id) 决定"""

    name: str
    version: str
    source_id: SourceId

    def __str__(self) -> str:
        s = f"{self.name} v{self.version}"
        if not self.source_id.is_default_registry():
            s += f" ({self.source_id})"
        return s


# =========================================================================
# 依赖与构建目标
# =========================================================================

class DepKind(Enum):
    NORMAL = "normal"
    BUILD = "build"
    DEVELOPMENT = "dev"

    @property
    def tag(self) -> str:
        """发布报文中的 kind 字段"""
        return self.value


@dataclass(frozen=True)
class Dependency:
    """一条依赖声明

    specified_req 表示作者是否显式写了版本要求；
    未写时 version_req 默认为 "*"，两者不能混为一谈。
    """

    name: str
    source_id: SourceId
    version_req: str = "*"
    kind: DepKind = DepKind.NORMAL
    optional: bool = False
    default_features: bool = True
    features: tuple[str, ...] = ()
    platform: str | None = None
    specified_req: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "source": self.source_id.to_url(),
            "req": self.version_req,
            "kind": self.kind.tag,
            "optional": self.optional,
            "uses_default_features": self.default_features,
            "features": list(self.features),
            "target": self.platform,
        }


class TargetKind(Enum):
    LIB = "lib"
    BIN = "bin"
    EXAMPLE = "example"
    TEST = "test"
    BENCH = "bench"
    CUSTOM_BUILD = "custom-build"


@dataclass(frozen=True)
class Target:
    name: str
    kind: TargetKind
    src_path: str = ""

    def is_custom_build(self) -> bool:
        return self.kind is TargetKind.CUSTOM_BUILD

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "kind": self.kind.value, "src_path": self.src_path}


# =========================================================================
# 清单与包
# =========================================================================

@dataclass(frozen=True)
class ManifestMetadata:
    """发布时原样上送的元信息"""

    authors: tuple[str, ...] = ()
    description: str | None = None
    homepage: str | None = None
    documentation: str | None = None
    keywords: tuple[str, ...] = ()
    readme: str | None = None
    repository: str | None = None
    license: str | None = None
    license_file: str | None = None


@dataclass(frozen=True)
class Manifest:
    package_id: PackageId
    dependencies: tuple[Dependency, ...] = ()
    targets: tuple[Target, ...] = ()
    metadata: ManifestMetadata = field(default_factory=ManifestMetadata)
    features: dict[str, list[str]] = field(default_factory=dict)
    publish: bool = True


class Package:
    """磁盘上的一个包：清单 + 清单文件路径"""

    def __init__(self, manifest: Manifest, manifest_path: str | Path) -> None:
        self._manifest = manifest
        self._manifest_path = Path(manifest_path)

    @classmethod
    def for_path(cls, manifest_path: str | Path) -> Package:
        """读取指定清单，来源标识取清单所在目录"""
        from cratekit.core.manifest import read_package

        path = Path(manifest_path)
        return read_package(path, SourceId.for_path(path.parent))

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    @property
    def manifest_path(self) -> Path:
        return self._manifest_path

    @property
    def root(self) -> Path:
        return self._manifest_path.parent

    @property
    def package_id(self) -> PackageId:
        return self._manifest.package_id

    @property
    def name(self) -> str:
        return self.package_id.name

    @property
    def version(self) -> str:
        return self.package_id.version

    @property
    def dependencies(self) -> tuple[Dependency, ...]:
        return self._manifest.dependencies

    @property
    def targets(self) -> tuple[Target, ...]:
        return self._manifest.targets

    @property
    def authors(self) -> tuple[str, ...]:
        return self._manifest.metadata.authors

    @property
    def publish(self) -> bool:
        return self._manifest.publish

    def has_custom_build(self) -> bool:
        return any(t.is_custom_build() for t in self.targets)

    def find_closest_target(self, name: str, kind: TargetKind) -> Target | None:
        """在同类目标中找名字最接近的一个（编辑距离 < 4），用于 "did you mean" 提示

        距离相同取清单中靠前的那个。
        """
        matches = [
            (lev_distance(name, t.name), t)
            for t in self.targets if t.kind is kind
        ]
        matches = [m for m in matches if m[0] < _CLOSEST_TARGET_THRESHOLD]
        if not matches:
            return None
        return min(matches, key=lambda m: m[0])[1]

    def to_dict(self) -> dict[str, Any]:
        pid = self.package_id
        return {
            "name": pid.name,
            "version": pid.version,
            "id": str(pid),
            "source": pid.source_id.to_url(),
            "dependencies": [d.to_dict() for d in self.dependencies],
            "targets": [t.to_dict() for t in self.targets],
            "features": self._manifest.features,
            "manifest_path": str(self._manifest_path),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Package):
            return NotImplemented
        return self.package_id == other.package_id

    def __hash__(self) -> int:
        return hash(self.package_id)

    def __str__(self) -> str:
        return str(self.package_id)

    def __repr__(self) -> str:
        return f"Package({self.package_id!s}, {self._manifest_path})"
