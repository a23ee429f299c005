"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from typing import Callable

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"

IS_WINDOWS = sys.platform == "win32"


@pytest.fixture
def project_root() -> Path:
    """项目根目录。"""
    return PROJECT_ROOT


@pytest.fixture
def fake_subject_path() -> Path:
    """模拟子进程脚本路径。"""
    return FIXTURES_DIR / "fake_subject.py"


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[[str], str]:
    """在临时目录下创建空文件，返回其路径字符串（相对路径中可含空格）。"""

    def _make(relative: str) -> str:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")
        return str(path)

    return _make


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[[str, str], str]:
    """创建可直接执行的 Python 脚本（带 shebang），返回其路径字符串。"""

    def _make(relative: str, body: str) -> str:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!{sys.executable}\n{body}")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make


@pytest.fixture
def wrapper_env() -> dict[str, str]:
    """以子进程方式运行 wrapper 时使用的环境变量。"""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        [str(SRC_DIR)] + ([env["PYTHONPATH"]] if env.get("PYTHONPATH") else [])
    )
    env["PYTHONUNBUFFERED"] = "1"
    return env
