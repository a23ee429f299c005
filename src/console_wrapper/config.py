"""命令行选项解析。

选项:
    --subject=VALUE: 要启动的可执行文件（可附带参数）
        - 未给出时，所有位置参数以单个空格拼接成 subject
        - 与位置参数同时给出视为错误

    --width=VALUE / --height=VALUE: 控制台列数 / 行数
        - 默认 80 x 25
        - 非正数回退到默认值

    --interrupt=MODE: Ctrl+C 如何到达子进程
        - auto = 终端会直接把信号发给子进程时只吞掉，否则转发 (默认)
        - suppress = 只吞掉，不转发
        - forward = 吞掉并转发给子进程

    -v, --verbose: 调试日志输出到 stderr
    --log-file=PATH: 日志输出到文件

不读取任何环境变量。解析结果是一次性构造的不可变 WrapperOptions。
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn, Sequence

from .errors import ParseError, UnexpectedParametersError

__all__ = [
    "DEFAULT_HEIGHT",
    "DEFAULT_WIDTH",
    "InterruptMode",
    "PROG",
    "WrapperOptions",
    "build_parser",
    "format_help",
    "normalize_dimension",
    "parse_command_line",
]

PROG = "console-wrapper"

DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 25


class InterruptMode(Enum):
    """SIGINT 处理模式。

    - AUTO: 父进程不在终端前台进程组时才转发
    - SUPPRESS: 只吞掉信号，依赖终端把信号发给子进程
    - FORWARD: 吞掉信号并显式发送给子进程
    """

    AUTO = "auto"
    SUPPRESS = "suppress"
    FORWARD = "forward"

    @classmethod
    def from_string(cls, value: str) -> "InterruptMode":
        """从字符串解析模式。

        Args:
            value: 模式字符串 (auto/suppress/forward)

        Returns:
            对应的 InterruptMode 枚举值

        Raises:
            ValueError: 未知的模式字符串
        """
        value = value.lower().strip()
        for mode in cls:
            if mode.value == value:
                return mode
        raise ValueError(f"Unknown interrupt mode: {value!r}")


def normalize_dimension(value: int | None, default: int) -> int:
    """非正数或缺失的尺寸回退到默认值。"""
    if value is None or value <= 0:
        return default
    return value


@dataclass(frozen=True)
class WrapperOptions:
    """解析后的命令行选项。

    Attributes:
        subject: 可执行文件路径加可选参数，空字符串表示未给出
        width: 控制台列数
        height: 控制台行数
        interrupt_mode: SIGINT 处理模式
        verbose: 是否输出调试日志
        log_file: 日志文件路径（None = 输出到 stderr）
        show_help: 是否只打印帮助
    """

    subject: str = ""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    interrupt_mode: InterruptMode = InterruptMode.AUTO
    verbose: bool = False
    log_file: str | None = None
    show_help: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "width", normalize_dimension(self.width, DEFAULT_WIDTH))
        object.__setattr__(self, "height", normalize_dimension(self.height, DEFAULT_HEIGHT))


class _OptionParser(argparse.ArgumentParser):
    """解析失败时抛出 ParseError，而不是直接退出进程。"""

    def error(self, message: str) -> NoReturn:
        raise ParseError(message)


def build_parser() -> argparse.ArgumentParser:
    """构造命令行解析器。"""
    parser = _OptionParser(
        prog=PROG,
        usage="%(prog)s [OPTIONS] [SUBJECT...]",
        description=(
            "Launch SUBJECT in a console of the given size and relay its "
            "output until it exits."
        ),
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--subject",
        metavar="VALUE",
        help="The application that should be started by the console wrapper.",
    )
    parser.add_argument(
        "--width",
        type=int,
        metavar="VALUE",
        help=f"The desired width of the console window (default {DEFAULT_WIDTH}).",
    )
    parser.add_argument(
        "--height",
        type=int,
        metavar="VALUE",
        help=f"The desired height of the console window (default {DEFAULT_HEIGHT}).",
    )
    parser.add_argument(
        "--interrupt",
        type=str.lower,
        choices=[mode.value for mode in InterruptMode],
        default=InterruptMode.AUTO.value,
        metavar="MODE",
        help="How Ctrl+C reaches the subject: auto (default), suppress or forward.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Write debug logging to standard error.",
    )
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Write log records to PATH instead of standard error.",
    )
    parser.add_argument(
        "-h",
        "-?",
        "--help",
        dest="show_help",
        action="store_true",
        help="Shows this help message.",
    )
    parser.add_argument(
        "subject_args",
        nargs=argparse.REMAINDER,
        metavar="SUBJECT",
        help="Executable and arguments, used when --subject is not given.",
    )
    return parser


def format_help() -> str:
    """返回帮助文本。"""
    return build_parser().format_help()


def parse_command_line(argv: Sequence[str]) -> WrapperOptions:
    """解析命令行参数。

    位置参数从第一个非选项参数开始全部归入 subject，所以 subject 之后的
    ``-l`` 之类会原样传给子进程。

    Args:
        argv: 不含程序名的命令行参数

    Returns:
        解析后的选项

    Raises:
        ParseError: 语法错误
        UnexpectedParametersError: --subject 与位置参数同时给出
    """
    namespace = build_parser().parse_args(list(argv))

    extra = list(namespace.subject_args)
    if extra and extra[0] == "--":
        extra = extra[1:]

    subject = namespace.subject or ""
    if subject and extra:
        raise UnexpectedParametersError(extra)
    if not subject:
        subject = " ".join(extra)

    return WrapperOptions(
        subject=subject,
        width=namespace.width,
        height=namespace.height,
        interrupt_mode=InterruptMode.from_string(namespace.interrupt),
        verbose=namespace.verbose,
        log_file=namespace.log_file,
        show_help=namespace.show_help,
    )
