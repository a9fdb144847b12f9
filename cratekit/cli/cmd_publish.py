"""CLI：打包 / 发布 / 登录"""

from __future__ import annotations

import click

from cratekit.cli import _config


def register(group: click.Group) -> None:
    group.add_command(package_cmd)
    group.add_command(publish_cmd)
    group.add_command(login)


@click.command(name="package")
@click.option("--list", "-l", "list_files", is_flag=True, help="只列出将被打包的文件")
@click.option("--no-verify", is_flag=True, help="不校验生成的归档")
@click.option("--no-metadata", is_flag=True, help="忽略元信息缺失警告")
@click.option("--allow-dirty", is_flag=True, help="允许工作目录有未提交修改")
@click.option("--jobs", "-j", type=int, default=None, help="并行任务数")
@click.pass_context
def package_cmd(
    ctx: click.Context, list_files: bool, no_verify: bool,
    no_metadata: bool, allow_dirty: bool, jobs: int | None,
) -> None:
    """把当前包打成 .crate 归档"""
    from cratekit.core.workspace import Workspace
    from cratekit.services.packager import PackageOpts, package

    config = _config(ctx)
    ws = Workspace.for_cwd(config)
    dest = package(ws, PackageOpts(
        config=config,
        verify=not no_verify,
        list=list_files,
        check_metadata=not no_metadata,
        allow_dirty=allow_dirty,
        jobs=jobs,
    ))
    if dest is not None:
        click.echo(str(dest))


@click.command(name="publish")
@click.option("--index", default=None, help="注册表索引 URL")
@click.option("--token", default=None, help="API token")
@click.option("--no-verify", is_flag=True, help="不校验生成的归档")
@click.option("--allow-dirty", is_flag=True, help="允许工作目录有未提交修改")
@click.option("--jobs", "-j", type=int, default=None, help="并行任务数")
@click.option("--dry-run", is_flag=True, help="执行全部校验但不上传")
@click.pass_context
def publish_cmd(
    ctx: click.Context, index: str | None, token: str | None, no_verify: bool,
    allow_dirty: bool, jobs: int | None, dry_run: bool,
) -> None:
    """把当前包发布到注册表"""
    from cratekit.core.workspace import Workspace
    from cratekit.services.publish_service import PublishOpts, publish

    config = _config(ctx)
    publish(Workspace.for_cwd(config), PublishOpts(
        config=config,
        token=token,
        index=index,
        verify=not no_verify,
        allow_dirty=allow_dirty,
        jobs=jobs,
        dry_run=dry_run,
    ))


@click.command()
@click.argument("token", required=False)
@click.option("--host", default=None, help="显示获取 token 的注册表地址")
@click.pass_context
def login(ctx: click.Context, token: str | None, host: str | None) -> None:
    """保存 API token 到全局配置"""
    from cratekit.services.network import registry_login

    config = _config(ctx)
    if token is None:
        if host:
            click.echo(f"please visit {host}/me and paste the API Token below")
        token = click.prompt("token", hide_input=True).strip()
    registry_login(config, token)
