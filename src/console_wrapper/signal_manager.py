"""信号管理模块。

实现信号抑制策略，让 wrapper 的生命周期完全跟随子进程：
- SIGINT: 父进程吞掉信号（不退出），必要时转发给子进程
- SIGTERM: 转发给子进程，父进程继续等待子进程退出

控制台的 Ctrl+C 会发给终端前台进程组里的所有进程，父子进程都会收到。
父进程不能自己退出，这样子进程退出后才能走正常的收尾流程。
如果父进程不在终端前台进程组（或根本没有终端），终端不会把信号发给子进程，
此时 AUTO 模式会显式转发。
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from .config import InterruptMode

__all__ = ["SignalManager", "InterruptMode"]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


def owns_terminal_foreground() -> bool:
    """父进程是否属于其控制终端的前台进程组。

    Windows 控制台会把 Ctrl+C 广播给所有附着的进程，视为 True。
    没有任何标准流连着终端时返回 False。
    """
    if IS_WINDOWS:
        return True

    for fd in (0, 1, 2):
        try:
            if os.isatty(fd):
                return os.tcgetpgrp(fd) == os.getpgrp()
        except OSError:
            continue
    return False


class SignalManager:
    """信号管理器。

    Example:
        ```python
        signal_manager = SignalManager(InterruptMode.AUTO)

        async def main():
            await signal_manager.start()
            try:
                await runner.run(spec, ..., on_start=signal_manager.attach)
            finally:
                await signal_manager.stop()
        ```

    Attributes:
        interrupt_mode: SIGINT 处理模式
        forwards_sigint: start() 时确定的是否转发 SIGINT
    """

    def __init__(self, interrupt_mode: InterruptMode = InterruptMode.AUTO) -> None:
        """初始化信号管理器。

        Args:
            interrupt_mode: SIGINT 处理模式
        """
        self.interrupt_mode = interrupt_mode
        self.forwards_sigint: bool = interrupt_mode == InterruptMode.FORWARD

        # 内部状态
        self._process: Optional[asyncio.subprocess.Process] = None
        self._interrupt_count: int = 0
        self._original_sigint_handler: Optional[signal.Handlers] = None
        self._running: bool = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def interrupt_count(self) -> int:
        """已收到的 SIGINT 次数。"""
        return self._interrupt_count

    def attach(self, process: asyncio.subprocess.Process) -> None:
        """指定接收转发信号的子进程。"""
        self._process = process
        logger.debug(f"Signal target attached pid={process.pid}")

    async def start(self) -> None:
        """启动信号监听。

        必须在 asyncio 事件循环中、启动子进程之前调用。
        """
        if self._running:
            logger.warning("SignalManager already running")
            return

        self._loop = asyncio.get_running_loop()
        self._running = True

        if self.interrupt_mode == InterruptMode.AUTO:
            self.forwards_sigint = not owns_terminal_foreground()

        if not IS_WINDOWS:
            self._loop.add_signal_handler(signal.SIGINT, self._handle_sigint)
            self._loop.add_signal_handler(signal.SIGTERM, self._handle_sigterm)
        else:
            self._original_sigint_handler = signal.signal(
                signal.SIGINT,
                lambda sig, frame: self._handle_sigint(),
            )

        logger.debug(
            f"Signal handlers installed (mode={self.interrupt_mode.value}, "
            f"forward_sigint={self.forwards_sigint})"
        )

    async def stop(self) -> None:
        """停止信号监听，恢复原始处理器。"""
        if not self._running:
            return

        self._running = False

        if not IS_WINDOWS and self._loop:
            self._loop.remove_signal_handler(signal.SIGINT)
            self._loop.remove_signal_handler(signal.SIGTERM)
        elif IS_WINDOWS and self._original_sigint_handler is not None:
            signal.signal(signal.SIGINT, self._original_sigint_handler)

        logger.debug("Signal handlers removed")

    def _handle_sigint(self) -> None:
        """处理 SIGINT 信号：吞掉，按模式决定是否转发。"""
        self._interrupt_count += 1

        if self.forwards_sigint:
            logger.info("SIGINT received, forwarding to subject")
            self._forward(signal.CTRL_C_EVENT if IS_WINDOWS else signal.SIGINT)
        else:
            logger.info("SIGINT received, waiting for subject to exit")

    def _handle_sigterm(self) -> None:
        """处理 SIGTERM 信号：转发给子进程，继续等待其退出。"""
        logger.info("SIGTERM received, forwarding to subject")
        self._forward(signal.SIGTERM)

    def _forward(self, signum: int) -> None:
        """把信号发给子进程（子进程未启动或已退出时忽略）。"""
        process = self._process
        if process is None or process.returncode is not None:
            logger.debug(f"No running subject to forward signal {signum} to")
            return
        try:
            process.send_signal(signum)
            logger.debug(f"Forwarded signal {signum} to pid={process.pid}")
        except ProcessLookupError:
            logger.debug(f"Subject already exited pid={process.pid}")
