"""Console wrapper 应用入口。

包含子进程生命周期管理和主入口点。
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import BinaryIO, Sequence

from .config import PROG, WrapperOptions, format_help, parse_command_line
from .console import apply_dimensions
from .errors import MissingSubjectError, ParseError, WrapperError
from .resolver import resolve_subject
from .runtime import ProcessRunner, ProcessSpec
from .signal_manager import SignalManager

__all__ = ["configure_logging", "entrypoint", "main", "run_wrapper"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


async def run_wrapper(
    options: WrapperOptions,
    *,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
) -> int:
    """运行一次 subject。

    流程：解析 subject -> 调整控制台尺寸 -> 安装信号处理器 ->
    启动子进程并转发输出 -> 等待子进程退出。

    Args:
        options: 解析后的命令行选项
        stdout: 子进程 stdout 的转发目标（默认 sys.stdout.buffer）
        stderr: 子进程 stderr 的转发目标（默认 sys.stderr.buffer）

    Returns:
        子进程的退出码

    Raises:
        MissingSubjectError: subject 为空
        ResolutionError: subject 中没有可执行文件
        LaunchError: 子进程启动失败
    """
    if not options.subject:
        raise MissingSubjectError()

    subject = resolve_subject(options.subject)

    apply_dimensions(options.width, options.height)

    signal_manager = SignalManager(options.interrupt_mode)
    runner = ProcessRunner()
    spec = ProcessSpec(argv=subject.argv)

    await signal_manager.start()
    try:
        exit_code = await runner.run(
            spec,
            stdout=stdout if stdout is not None else sys.stdout.buffer,
            stderr=stderr if stderr is not None else sys.stderr.buffer,
            on_start=signal_manager.attach,
        )
    finally:
        await signal_manager.stop()

    logger.info(
        f"Subject exited code={exit_code} interrupts={signal_manager.interrupt_count}"
    )
    return exit_code


def configure_logging(options: WrapperOptions) -> None:
    """配置日志输出。

    默认只把 WARNING 以上写到 stderr，stderr 同时承载子进程的输出。
    """
    log_handlers: list[logging.Handler] = []

    if options.log_file:
        handler: logging.Handler = logging.FileHandler(options.log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    log_handlers.append(handler)

    if options.verbose or options.log_file:
        log_level = logging.DEBUG
    else:
        log_level = logging.WARNING

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(level=logging.WARNING, handlers=log_handlers, force=True)
    # 只对 console_wrapper 命名空间启用详细日志
    logging.getLogger("console_wrapper").setLevel(log_level)


def _report(error: WrapperError) -> None:
    print(f"{PROG}: {error}", file=sys.stderr)
    if isinstance(error, ParseError):
        print(f"Try '{PROG} --help' for more information.", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    """主入口点。

    Args:
        argv: 不含程序名的命令行参数（默认 sys.argv[1:]）

    Returns:
        进程退出码
    """
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        options = parse_command_line(args)
    except ParseError as e:
        _report(e)
        return e.exit_code

    if options.show_help:
        print(format_help(), end="")
        return 0

    try:
        configure_logging(options)
    except OSError as e:
        print(f"{PROG}: cannot open log file: {e}", file=sys.stderr)
        return 1

    logger.debug(f"Starting {PROG}: {options}")

    try:
        return asyncio.run(run_wrapper(options))
    except WrapperError as e:
        logger.debug(f"Run failed: {type(e).__name__}: {e}")
        _report(e)
        return e.exit_code


def entrypoint() -> None:
    """Console script entrypoint."""
    raise SystemExit(main())
