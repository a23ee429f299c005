"""Console Wrapper 入口点。

支持: python -m console_wrapper
"""

from .app import entrypoint

if __name__ == "__main__":
    entrypoint()
