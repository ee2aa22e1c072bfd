# -*- coding: utf-8 -*-
"""
Stdout sink

用于调试，将数据点输出到控制台。
"""

import sys
from typing import Optional, TextIO, Union


class StdoutSink:
    """
    Stdout sink

    每个数据点输出一行：<name> <value>

    示例:
        ```python
        sink = StdoutSink()
        sink("Custom/app-metrics/q.depth", 7.0)
        # Custom/app-metrics/q.depth 7.0
        ```
    """

    def __init__(self, out: Optional[TextIO] = None):
        """
        Args:
            out: 输出流（默认 stdout）
        """
        self._out = out or sys.stdout

    def __call__(self, name: str, value: Union[int, float]) -> None:
        self._out.write(f"{name} {value!r}\n")
        self._out.flush()
