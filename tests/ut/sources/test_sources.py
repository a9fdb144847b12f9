"""包来源测试：本地目录 / file:// 注册表索引 / Git（git 命令打桩）"""

from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path

import pytest
import yaml

from cratekit.core.exceptions import ConfigError, NetworkDisabledError, NotFoundError, TransportError, ValidationError
from cratekit.core.config import ConfigStore
from cratekit.core.models import PackageId, SourceId
from cratekit.sources import GitSource, PathSource, RegistrySource, source_for
from cratekit.sources import git as git_mod
from cratekit.sources.registry import cache_dir_name

REGISTRY_API = "https://registry.test"


def _crate_bytes(name: str, version: str) -> bytes:
    manifest = yaml.safe_dump({"package": {"name": name, "version": version}}).encode("utf-8")
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        info = tarfile.TarInfo(f"{name}-{version}/Crate.yml")
        info.size = len(manifest)
        tf.addfile(info, io.BytesIO(manifest))
    return buf.getvalue()


def _publish_to_dl(tmp_path: Path, name: str, version: str) -> Path:
    target = tmp_path / "dl" / name / version / "download"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(_crate_bytes(name, version))
    return target


class TestSourceFor:
    def test_dispatch(self, tmp_path: Path, config: ConfigStore) -> None:
        assert isinstance(source_for(SourceId.for_path(tmp_path), config), PathSource)
        assert isinstance(source_for(SourceId.for_registry("https://x.test/index"), config), RegistrySource)
        assert isinstance(source_for(SourceId.for_git("https://x.test/repo.git"), config), GitSource)


class TestPathSource:
    def test_download(self, tmp_path: Path, write_manifest) -> None:
        root = tmp_path / "util"
        write_manifest(root, {"package": {"name": "util", "version": "0.2.0"}})
        sid = SourceId.for_path(root)
        src = PathSource(sid)
        src.update()

        pkg = src.download(PackageId("util", "0.2.0", sid))
        assert pkg.name == "util"
        assert pkg.root.resolve() == root.resolve()
        assert src.config() is None

    def test_missing_manifest(self, tmp_path: Path) -> None:
        src = PathSource(SourceId.for_path(tmp_path))
        with pytest.raises(NotFoundError, match="no `Crate.yml` found"):
            src.update()

    def test_id_mismatch(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, {"package": {"name": "util", "version": "0.2.0"}})
        sid = SourceId.for_path(tmp_path)
        with pytest.raises(NotFoundError, match="not `util v0.3.0"):
            PathSource(sid).download(PackageId("util", "0.3.0", sid))

    def test_rejects_other_kinds(self) -> None:
        with pytest.raises(ValueError):
            PathSource(SourceId.for_registry("https://x.test/index"))


class TestRegistrySource:
    def test_update_caches_config(self, file_index: str, config: ConfigStore) -> None:
        src = RegistrySource(SourceId.for_registry(file_index), config)
        src.update()

        assert src.config().api == REGISTRY_API
        cached = json.loads((src.cache_root / "config.json").read_text(encoding="utf-8"))
        assert cached["api"] == REGISTRY_API

        fresh = RegistrySource(SourceId.for_registry(file_index), config)
        assert fresh.config().api == REGISTRY_API

    def test_config_before_update(self, file_index: str, config: ConfigStore) -> None:
        src = RegistrySource(SourceId.for_registry(file_index), config)
        with pytest.raises(ConfigError, match="has not been updated yet"):
            src.config()

    def test_missing_index(self, tmp_path: Path, config: ConfigStore) -> None:
        src = RegistrySource(SourceId.for_registry((tmp_path / "nowhere").as_uri()), config)
        with pytest.raises(TransportError, match="failed to read"):
            src.update()

    def test_invalid_config_json(self, tmp_path: Path, config: ConfigStore) -> None:
        index = tmp_path / "broken"
        index.mkdir()
        (index / "config.json").write_text('{"dl": "x"}', encoding="utf-8")
        src = RegistrySource(SourceId.for_registry(index.as_uri()), config)
        with pytest.raises(ConfigError, match="invalid registry config.json"):
            src.update()

    def test_unwritable_cache(self, file_index: str, config: ConfigStore) -> None:
        config.home.mkdir(parents=True, exist_ok=True)
        (config.home / "registry").write_text("not a directory", encoding="utf-8")
        src = RegistrySource(SourceId.for_registry(file_index), config)
        with pytest.raises(ConfigError, match="failed to write registry cache"):
            src.update()

    def test_corrupt_cached_config(self, file_index: str, config: ConfigStore) -> None:
        src = RegistrySource(SourceId.for_registry(file_index), config)
        src.update()
        (src.cache_root / "config.json").write_text("{not json", encoding="utf-8")

        fresh = RegistrySource(SourceId.for_registry(file_index), config)
        with pytest.raises(ConfigError, match="corrupt registry cache"):
            fresh.config()

    def test_download_and_reuse(self, tmp_path: Path, file_index: str, config: ConfigStore) -> None:
        archive = _publish_to_dl(tmp_path, "foo", "1.0.0")
        sid = SourceId.for_registry(file_index)
        src = RegistrySource(sid, config)
        src.update()

        pkg = src.download(PackageId("foo", "1.0.0", sid))
        assert pkg.package_id == PackageId("foo", "1.0.0", sid)
        assert pkg.root == src.cache_root / "src" / "foo-1.0.0"
        assert (src.cache_root / "cache" / "foo-1.0.0.crate").is_file()

        archive.unlink()
        again = src.download(PackageId("foo", "1.0.0", sid))
        assert again == pkg

    def test_download_missing_version(self, file_index: str, config: ConfigStore) -> None:
        sid = SourceId.for_registry(file_index)
        src = RegistrySource(sid, config)
        src.update()
        with pytest.raises(TransportError):
            src.download(PackageId("foo", "9.9.9", sid))

    def test_cache_dir_name(self) -> None:
        a = cache_dir_name(SourceId.for_registry("https://example.com/index-a"))
        b = cache_dir_name(SourceId.for_registry("https://example.com/index-b"))
        assert a.startswith("example.com-")
        assert a != b


class TestGitSource:
    def test_update_offline(self, tmp_path: Path) -> None:
        config = ConfigStore(cwd=tmp_path, home=tmp_path / "home", offline=True)
        src = GitSource(SourceId.for_git("https://x.test/repo.git"), config)
        with pytest.raises(NetworkDisabledError, match="network access is disabled"):
            src.update()

    def test_invalid_ref(self, config: ConfigStore) -> None:
        with pytest.raises(ValidationError, match="invalid git reference"):
            GitSource(SourceId.for_git("https://x.test/repo.git", "branch=main;rm"), config)

    def test_clone_then_checkout(self, config: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[list[str]] = []
        monkeypatch.setattr(git_mod, "_git", lambda args, cwd=None: calls.append(args) or "")
        src = GitSource(SourceId.for_git("https://x.test/repo.git", "tag=v1.0"), config)
        assert src.checkout_dir.name.startswith("repo-")

        src.update()
        assert calls[0] == ["clone", "https://x.test/repo.git", str(src.checkout_dir)]
        assert calls[1] == ["checkout", "v1.0"]

    def test_fetch_existing_checkout(self, config: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[list[str]] = []
        monkeypatch.setattr(git_mod, "_git", lambda args, cwd=None: calls.append(args) or "")
        src = GitSource(SourceId.for_git("https://x.test/repo.git"), config)
        (src.checkout_dir / ".git").mkdir(parents=True)

        src.update()
        assert calls == [
            ["fetch", "--depth", "1", "origin", "HEAD"],
            ["checkout", "FETCH_HEAD"],
        ]

    def test_download_reads_checkout(self, config: ConfigStore, write_manifest) -> None:
        sid = SourceId.for_git("https://x.test/repo.git")
        src = GitSource(sid, config)
        write_manifest(src.checkout_dir, {"package": {"name": "repo", "version": "0.1.0"}})

        pkg = src.download(PackageId("repo", "0.1.0", sid))
        assert pkg.package_id.source_id == sid
