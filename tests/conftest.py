#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
pytest 配置文件

提供测试夹具和配置
"""

import sys
from pathlib import Path
from typing import List, Tuple, Union

import pytest

# 将 src 目录添加到 Python 路径
ROOT_DIR = Path(__file__).parent.parent
SRC_DIR = ROOT_DIR / "src"
sys.path.insert(0, str(SRC_DIR))

from nrexport.metric.types import Distribution  # noqa: E402


class RecordingSink:
    """记录所有数据点的 sink"""

    def __init__(self):
        self.points: List[Tuple[str, Union[int, float]]] = []

    def __call__(self, name, value):
        self.points.append((name, value))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.points]

    def as_dict(self):
        return dict(self.points)


class FailingSink:
    """在第 fail_at 次调用时抛出异常的 sink"""

    def __init__(self, fail_at: int = 1):
        self.fail_at = fail_at
        self.calls = 0

    def __call__(self, name, value):
        self.calls += 1
        if self.calls >= self.fail_at:
            raise ConnectionError(f"sink unavailable: {name}")


@pytest.fixture(scope="function")
def sink() -> RecordingSink:
    """记录型 sink（每个测试函数独立）"""
    return RecordingSink()


@pytest.fixture(scope="session")
def distribution() -> Distribution:
    """示例分布快照"""
    return Distribution(
        min=1,
        max=250,
        mean=42.1,
        stddev=7.3,
        median=40.0,
        p75=55.5,
        p95=120.0,
        p98=180.25,
        p99=200.0,
        p999=249.9,
    )
