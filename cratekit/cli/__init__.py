"""cratekit 命令行接口

CLI 按领域拆分为子模块，每个模块把自己的命令注册到 main group。
CrateKitError 统一转换为 click.ClickException（退出码 1，消息写 stderr）。
"""

from __future__ import annotations

import os
from typing import Any

import click

from cratekit import __version__
from cratekit.core.config import ConfigStore
from cratekit.core.exceptions import CrateKitError
from cratekit.utils.logger import setup_logging
from cratekit.utils.shell import Shell


class _CrateKitGroup(click.Group):
    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except CrateKitError as e:
            raise click.ClickException(str(e)) from e


def _config(ctx: click.Context) -> ConfigStore:
    """按全局选项为当前命令新建一个 ConfigStore"""
    opts = ctx.find_root().obj or {}
    return ConfigStore(
        frozen=opts.get("frozen", False),
        offline=opts.get("offline", False),
        shell=Shell(verbosity="quiet" if opts.get("quiet") else "normal"),
    )


@click.group(cls=_CrateKitGroup)
@click.version_option(version=__version__)
@click.option("--frozen", is_flag=True, help="禁止访问网络（并要求锁文件不变）")
@click.option("--offline", is_flag=True, help="禁止访问网络")
@click.option("--quiet", "-q", is_flag=True, help="不输出状态行")
@click.pass_context
def main(ctx: click.Context, frozen: bool, offline: bool, quiet: bool) -> None:
    """cratekit - 包发布与注册表管理"""
    setup_logging(
        level=os.getenv("CRATEKIT_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("CRATEKIT_LOG_JSON", "") == "1",
    )
    ctx.obj = {"frozen": frozen, "offline": offline, "quiet": quiet}


# 注册各领域子命令
from cratekit.cli.cmd_publish import register as _reg_publish  # noqa: E402
from cratekit.cli.cmd_registry import register as _reg_registry  # noqa: E402

_reg_publish(main)
_reg_registry(main)
