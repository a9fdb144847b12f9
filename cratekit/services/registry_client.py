"""注册表 HTTP API 客户端

接口（均在 {host}/api/v1 之下）:

    PUT    /crates/new                       发布
    PUT    /crates/{name}/owners             添加属主   {"users": [...]}
    DELETE /crates/{name}/owners             移除属主   {"users": [...]}
    GET    /crates/{name}/owners             列出属主
    DELETE /crates/{name}/{version}/yank     撤回
    PUT    /crates/{name}/{version}/unyank   取消撤回
    GET    /crates?q=...&per_page=N          搜索

发布请求体为二进制拼接:

    u32 LE json 长度 | json 元数据 | u32 LE 归档长度 | .crate 归档
"""

from __future__ import annotations

import json
import logging
import struct
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlencode

from cratekit.core.exceptions import ConfigError, RegistryApiError
from cratekit.services.transport import HttpHandle, HttpResponse

logger = logging.getLogger(__name__)


# =========================================================================
# 报文模型
# =========================================================================

@dataclass
class NewCrateDependency:
    optional: bool
    default_features: bool
    name: str
    features: list[str]
    version_req: str
    target: str | None
    kind: str  # "normal" / "build" / "dev"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NewCrate:
    name: str
    vers: str
    deps: list[NewCrateDependency] = field(default_factory=list)
    features: dict[str, list[str]] = field(default_factory=dict)
    authors: list[str] = field(default_factory=list)
    description: str | None = None
    homepage: str | None = None
    documentation: str | None = None
    keywords: list[str] = field(default_factory=list)
    readme: str | None = None
    repository: str | None = None
    license: str | None = None
    license_file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["deps"] = [d.to_dict() for d in self.deps]
        return data


@dataclass
class User:
    login: str
    name: str | None = None
    email: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(login=data["login"], name=data.get("name"), email=data.get("email"))


@dataclass
class SearchCrate:
    name: str
    max_version: str
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchCrate:
        return cls(
            name=data["name"],
            max_version=data["max_version"],
            description=data.get("description"),
        )


# =========================================================================
# 客户端
# =========================================================================

class RegistryClient:
    """绑定到 API 主机 + token + 传输句柄的客户端"""

    def __init__(self, host: str, token: str | None, handle: HttpHandle) -> None:
        self.host = host.rstrip("/")
        self.token = token
        self.handle = handle

    def publish(self, krate: NewCrate, tarball: str | Path) -> None:
        meta = json.dumps(krate.to_dict(), ensure_ascii=False).encode("utf-8")
        archive = Path(tarball).read_bytes()
        body = (
            struct.pack("<I", len(meta)) + meta
            + struct.pack("<I", len(archive)) + archive
        )
        self._request("PUT", "/crates/new", body=body, authorized=True)
        logger.info("已发布 %s %s (%d 字节)", krate.name, krate.vers, len(archive))

    def add_owners(self, krate: str, owners: list[str]) -> None:
        self._request(
            "PUT", f"/crates/{quote(krate)}/owners",
            body=_json_body({"users": owners}), authorized=True,
        )

    def remove_owners(self, krate: str, owners: list[str]) -> None:
        self._request(
            "DELETE", f"/crates/{quote(krate)}/owners",
            body=_json_body({"users": owners}), authorized=True,
        )

    def list_owners(self, krate: str) -> list[User]:
        data = self._request("GET", f"/crates/{quote(krate)}/owners", authorized=True)
        return [User.from_dict(u) for u in data.get("users", [])]

    def yank(self, krate: str, version: str) -> None:
        self._request(
            "DELETE", f"/crates/{quote(krate)}/{quote(version)}/yank", authorized=True,
        )

    def unyank(self, krate: str, version: str) -> None:
        self._request(
            "PUT", f"/crates/{quote(krate)}/{quote(version)}/unyank", authorized=True,
        )

    def search(self, query: str, limit: int) -> tuple[list[SearchCrate], int]:
        qs = urlencode({"q": query, "per_page": limit})
        data = self._request("GET", f"/crates?{qs}")
        crates = [SearchCrate.from_dict(c) for c in data.get("crates", [])]
        total = int(data.get("meta", {}).get("total", len(crates)))
        return crates, total

    # ---- 内部 ----

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: bytes | None = None,
        authorized: bool = False,
    ) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        if authorized:
            if not self.token:
                raise ConfigError(
                    "no upload token found, please run `cratekit login` "
                    "or pass `--token`"
                )
            headers["Authorization"] = self.token

        resp = self.handle.request(
            method, f"{self.host}/api/v1{path}", body=body, headers=headers,
        )
        return _handle_response(resp)


def _json_body(data: dict[str, Any]) -> bytes:
    return json.dumps(data).encode("utf-8")


def _handle_response(resp: HttpResponse) -> dict[str, Any]:
    """2xx 且没有 errors 字段视为成功；否则汇总 detail 抛 RegistryApiError"""
    try:
        data = json.loads(resp.body.decode("utf-8")) if resp.body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        data = None

    if isinstance(data, dict) and data.get("errors"):
        details = ", ".join(
            str(e.get("detail", e)) if isinstance(e, dict) else str(e)
            for e in data["errors"]
        )
        raise RegistryApiError(f"api errors: {details}", status=resp.status)

    if resp.status == 403:
        raise RegistryApiError("received 403 unauthorized response code", status=403)
    if resp.status == 404:
        raise RegistryApiError("cannot find the requested resource (404)", status=404)
    if not 200 <= resp.status < 300:
        raise RegistryApiError(
            f"failed to get a 200 OK response, got {resp.status}", status=resp.status,
        )
    if data is None:
        raise RegistryApiError("invalid response body from the registry", status=resp.status)
    if not isinstance(data, dict):
        raise RegistryApiError("unexpected response shape from the registry", status=resp.status)
    return data
