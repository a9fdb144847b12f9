"""CLI：属主 / 撤回 / 搜索"""

from __future__ import annotations

import click

from cratekit.cli import _config


def register(group: click.Group) -> None:
    group.add_command(owner)
    group.add_command(yank_cmd)
    group.add_command(search_cmd)


@click.command()
@click.argument("krate", required=False)
@click.option("--add", "-a", "to_add", multiple=True, help="添加属主（可多次指定）")
@click.option("--remove", "-r", "to_remove", multiple=True, help="移除属主（可多次指定）")
@click.option("--list", "-l", "list_owners", is_flag=True, help="列出属主")
@click.option("--index", default=None, help="注册表索引 URL")
@click.option("--token", default=None, help="API token")
@click.pass_context
def owner(
    ctx: click.Context, krate: str | None, to_add: tuple[str, ...],
    to_remove: tuple[str, ...], list_owners: bool, index: str | None, token: str | None,
) -> None:
    """管理包的属主"""
    from cratekit.services.control_service import OwnersOptions, modify_owners

    modify_owners(_config(ctx), OwnersOptions(
        krate=krate,
        token=token,
        index=index,
        to_add=list(to_add) if to_add else None,
        to_remove=list(to_remove) if to_remove else None,
        list=list_owners,
    ))


@click.command(name="yank")
@click.argument("krate", required=False)
@click.option("--vers", default=None, help="要撤回的版本")
@click.option("--undo", is_flag=True, help="取消撤回")
@click.option("--index", default=None, help="注册表索引 URL")
@click.option("--token", default=None, help="API token")
@click.pass_context
def yank_cmd(
    ctx: click.Context, krate: str | None, vers: str | None, undo: bool,
    index: str | None, token: str | None,
) -> None:
    """撤回（或取消撤回）已发布的版本"""
    from cratekit.services.control_service import yank

    yank(_config(ctx), krate, vers, token, index, undo)


@click.command(name="search")
@click.argument("query", nargs=-1, required=True)
@click.option("--index", default=None, help="注册表索引 URL")
@click.option("--limit", type=click.IntRange(1, 100), default=10, show_default=True, help="最多显示条数")
@click.pass_context
def search_cmd(ctx: click.Context, query: tuple[str, ...], index: str | None, limit: int) -> None:
    """在注册表中搜索包"""
    from cratekit.services.control_service import search

    search(" ".join(query), _config(ctx), index, limit)
