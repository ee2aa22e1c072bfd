# -*- coding: utf-8 -*-
"""
定时上报

后台线程按固定周期从 Registry 取快照并交给上报器：
- 同一时刻只有一个上报周期在执行
- 单个周期失败只记录日志，不影响后续周期
"""

import logging
import threading
import time
from typing import TYPE_CHECKING, Optional

from nrexport.metric.registry import MetricFilter, MetricRegistry

if TYPE_CHECKING:
    from nrexport.metric.reporter import NewRelicReporter

logger = logging.getLogger(__name__)

DEFAULT_REPORTER_NAME = "newrelic-reporter"


class ScheduledReporter:
    """
    定时上报器

    示例:
        ```python
        scheduled = NewRelicReporter.for_registry(registry).build()
        scheduled.start(period=60)
        ...
        scheduled.stop()

        # 或者
        with scheduled:
            scheduled.start(period=10)
            ...
        ```
    """

    def __init__(
        self,
        registry: MetricRegistry,
        reporter: "NewRelicReporter",
        metric_filter: Optional[MetricFilter] = None,
        name: str = DEFAULT_REPORTER_NAME,
        report_on_stop: bool = False,
    ):
        """
        初始化定时上报器

        Args:
            registry: 度量注册表
            reporter: 扁平化上报器
            metric_filter: 度量过滤器（在 Registry 取快照时应用）
            name: 线程名称
            report_on_stop: 停止时是否再上报一次
        """
        self._registry = registry
        self._reporter = reporter
        self._filter = metric_filter or MetricFilter.ALL
        self._name = name
        self._report_on_stop = report_on_stop

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._report_lock = threading.Lock()

    @property
    def registry(self) -> MetricRegistry:
        return self._registry

    @property
    def reporter(self) -> "NewRelicReporter":
        return self._reporter

    @property
    def is_running(self) -> bool:
        """是否正在定时上报"""
        return self._thread is not None

    def report(self) -> None:
        """
        立即上报一次

        异常原样抛出，由调用方决定如何处理。
        """
        with self._report_lock:
            snapshot = self._registry.snapshot(self._filter)
            self._reporter.report(snapshot)

    def start(self, period: float, initial_delay: Optional[float] = None) -> None:
        """
        启动后台上报线程

        Args:
            period: 上报周期（秒）
            initial_delay: 首次上报前的等待时间（秒），默认等于 period

        Raises:
            ValueError: period 不为正数
            RuntimeError: 已经启动
        """
        if period <= 0:
            raise ValueError(f"period must be positive: {period}")
        if initial_delay is None:
            initial_delay = period

        with self._state_lock:
            if self._thread is not None:
                raise RuntimeError(f"Reporter already started: name={self._name}")
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                args=(period, initial_delay),
                name=self._name,
                daemon=True,
            )
            self._thread.start()

        logger.info(
            "Reporter started: name=%s, period=%.3fs, initial_delay=%.3fs",
            self._name,
            period,
            initial_delay,
        )

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """
        停止后台上报线程

        未启动或已停止时直接返回。

        Args:
            timeout: 等待线程退出的时间（秒）
        """
        with self._state_lock:
            thread = self._thread
            self._thread = None

        if thread is None:
            return

        self._stop_event.set()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Reporter thread did not exit in %ss: name=%s", timeout, self._name)

        if self._report_on_stop:
            self._report_safely()

        logger.info("Reporter stopped: name=%s", self._name)

    def _run(self, period: float, initial_delay: float) -> None:
        """固定频率上报循环"""
        if self._stop_event.wait(initial_delay):
            return

        while True:
            started = time.monotonic()
            self._report_safely()
            elapsed = time.monotonic() - started
            if self._stop_event.wait(max(0.0, period - elapsed)):
                return

    def _report_safely(self) -> None:
        """单个周期的异常只记录日志"""
        try:
            self.report()
        except Exception:
            logger.exception("Failed to report metrics: name=%s", self._name)

    def __enter__(self) -> "ScheduledReporter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
