"""Console Wrapper - 在指定尺寸的控制台中运行子进程并转发其输出。

用法:
    console-wrapper --width=180 --height=40 --subject="/bin/echo hello world"
    console-wrapper --width=180 --height=40 /bin/echo hello
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
