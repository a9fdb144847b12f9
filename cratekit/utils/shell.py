"""面向用户的状态输出

状态行格式与常见包管理器一致：动词右对齐到 12 列并加粗，
例如 "   Uploading foo 0.1.0 (registry https://...)"。
状态/警告写 stderr，search / owner --list 的结果写 stdout。
"""

from __future__ import annotations

import click

_STATUS_WIDTH = 12


class Shell:
    """终端输出封装，verbosity="quiet" 时只保留结果行"""

    def __init__(self, *, verbosity: str = "normal", color: bool | None = None) -> None:
        self.verbosity = verbosity
        self.color = color

    def status(self, verb: str, message: object) -> None:
        if self.verbosity == "quiet":
            return
        head = click.style(f"{verb:>{_STATUS_WIDTH}}", fg="green", bold=True)
        click.echo(f"{head} {message}", err=True, color=self.color)

    def warn(self, message: object) -> None:
        if self.verbosity == "quiet":
            return
        head = click.style("warning:", fg="yellow", bold=True)
        click.echo(f"{head} {message}", err=True, color=self.color)

    def say(self, line: str) -> None:
        click.echo(line, color=self.color)
