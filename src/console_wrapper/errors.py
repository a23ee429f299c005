"""Console wrapper 异常类。

每个异常类别对应一个独立的进程退出码。
"""

from __future__ import annotations

__all__ = [
    "WrapperError",
    "ParseError",
    "UnexpectedParametersError",
    "MissingSubjectError",
    "ResolutionError",
    "LaunchError",
]


class WrapperError(Exception):
    """基础异常。

    Attributes:
        exit_code: 报告错误后进程的退出码
    """

    exit_code: int = 1


class ParseError(WrapperError):
    """命令行语法错误（未知选项、非整数宽度等）。"""

    exit_code = 2


class UnexpectedParametersError(ParseError):
    """同时给出了 --subject 和位置参数。

    Attributes:
        parameters: 多余的位置参数
    """

    def __init__(self, parameters: list[str]) -> None:
        self.parameters = list(parameters)
        lines = ["Unexpected parameters on command line:"]
        lines.extend(f"- {parameter}" for parameter in self.parameters)
        super().__init__("\n".join(lines))


class MissingSubjectError(WrapperError):
    """没有给出 subject。"""

    exit_code = 3

    def __init__(self, message: str = "No subject given") -> None:
        super().__init__(message)


class ResolutionError(WrapperError):
    """subject 中没有任何前缀指向已存在的文件。

    Attributes:
        subject: 原始 subject 字符串
    """

    exit_code = 4

    def __init__(self, subject: str, message: str | None = None) -> None:
        self.subject = subject
        super().__init__(
            message
            or "No valid target executable could be extracted from the subject line."
        )


class LaunchError(WrapperError):
    """子进程启动失败。

    Attributes:
        executable: 尝试启动的可执行文件
        exit_code: 127 表示找不到文件，126 表示其他启动失败（与 shell 约定一致）
    """

    exit_code = 126

    def __init__(self, executable: str, cause: OSError) -> None:
        self.executable = executable
        self.cause = cause
        if isinstance(cause, FileNotFoundError):
            self.exit_code = 127
        reason = cause.strerror or str(cause)
        super().__init__(f"Failed to start '{executable}': {reason}")
