"""注册表控制操作：属主管理 / 撤回 / 搜索

三者共享同一套客户端引导（services.network.registry），
未显式给出包名时从 cwd 所在工作区清单读取。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cratekit.core.exceptions import CrateKitError, ValidationError
from cratekit.core.workspace import current_package_name
from cratekit.services import network
from cratekit.utils.net import percent_encode_query
from cratekit.utils.text import truncate_with_ellipsis

if TYPE_CHECKING:
    from cratekit.core.config import ConfigStore
    from cratekit.services.registry_client import SearchCrate, User

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = 128
SEARCH_MAX_LIMIT = 100


@dataclass
class OwnersOptions:
    krate: str | None = None
    token: str | None = None
    index: str | None = None
    to_add: list[str] | None = None
    to_remove: list[str] | None = None
    list: bool = False


# =========================================================================
# 属主
# =========================================================================

def format_owner(owner: User) -> str:
    """login (name <email>) / login (name) / login (email) / login"""
    if owner.name is not None and owner.email is not None:
        return f"{owner.login} ({owner.name} <{owner.email}>)"
    extra = owner.name if owner.name is not None else owner.email
    if extra is not None:
        return f"{owner.login} ({extra})"
    return owner.login


def modify_owners(config: ConfigStore, opts: OwnersOptions) -> None:
    name = opts.krate or current_package_name(config)
    registry, _ = network.registry(config, opts.token, opts.index)

    if opts.to_add is not None:
        config.shell.status("Owner", f"adding {json.dumps(opts.to_add)} to crate {name}")
        try:
            registry.add_owners(name, opts.to_add)
        except CrateKitError as e:
            raise e.with_context(f"failed to add owners to crate {name}") from e

    if opts.to_remove is not None:
        config.shell.status("Owner", f"removing {json.dumps(opts.to_remove)} from crate {name}")
        try:
            registry.remove_owners(name, opts.to_remove)
        except CrateKitError as e:
            raise e.with_context(f"failed to remove owners from crate {name}") from e

    if opts.list:
        try:
            owners = registry.list_owners(name)
        except CrateKitError as e:
            raise e.with_context(f"failed to list owners of crate {name}") from e
        for owner in owners:
            config.shell.say(format_owner(owner))


# =========================================================================
# 撤回
# =========================================================================

def yank(
    config: ConfigStore,
    krate: str | None,
    version: str | None,
    token: str | None,
    index: str | None,
    undo: bool,
) -> None:
    name = krate or current_package_name(config)
    if not version:
        raise ValidationError("a version must be specified to yank")

    registry, _ = network.registry(config, token, index)

    if undo:
        config.shell.status("Unyank", f"{name}:{version}")
        try:
            registry.unyank(name, version)
        except CrateKitError as e:
            raise e.with_context("failed to undo a yank") from e
    else:
        config.shell.status("Yank", f"{name}:{version}")
        try:
            registry.yank(name, version)
        except CrateKitError as e:
            raise e.with_context("failed to yank") from e
    logger.info("%s %s:%s 完成", "取消撤回" if undo else "撤回", name, version)


# =========================================================================
# 搜索
# =========================================================================

def search_lines(
    crates: list[SearchCrate],
    total: int,
    *,
    query: str,
    limit: int,
    web_host: str,
) -> list[str]:
    """把搜索结果排版为输出行（纯函数，便于测试）"""
    items = [
        (
            f"{c.name} ({c.max_version})",
            truncate_with_ellipsis(c.description.replace("\n", " "), DESCRIPTION_MAX_LENGTH)
            if c.description is not None else None,
        )
        for c in crates
    ]
    margin = max((len(label) + 4 for label, _ in items), default=0)

    lines = [
        label.ljust(margin) + desc if desc is not None else label
        for label, desc in items
    ]

    if total > limit:
        more = total - limit
        if limit < SEARCH_MAX_LIMIT:
            lines.append(f"... and {more} crates more (use --limit N to see more)")
        else:
            lines.append(
                f"... and {more} crates more (go to {web_host}/search?q="
                f"{percent_encode_query(query)} to see more)"
            )
    return lines


def search(query: str, config: ConfigStore, index: str | None, limit: int) -> None:
    registry, _ = network.registry(config, None, index)
    try:
        crates, total = registry.search(query, limit)
    except CrateKitError as e:
        raise e.with_context("failed to retrieve search results from the registry") from e

    for line in search_lines(crates, total, query=query, limit=limit, web_host=registry.host):
        config.shell.say(line)
