#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
上报器使用示例

演示：
1. 从 YAML 配置文件初始化 ReporterService
2. 使用 Builder 直接构建定时上报器
"""

import random
import time
from pathlib import Path

from nrexport.metric import (
    Distribution,
    Meter,
    MetricRegistry,
    NewRelicReporter,
    TimeUnit,
    Timer,
)
from nrexport.metric.sink import StdoutSink


def build_registry() -> MetricRegistry:
    """注册几个示例度量"""
    state = {"requests": 0}

    def handled() -> int:
        state["requests"] += random.randint(1, 10)
        return state["requests"]

    registry = MetricRegistry()
    registry.gauge("queue.depth", lambda: random.random() * 100)
    registry.counter("requests", handled)
    registry.meter("hits", lambda: Meter(count=state["requests"], mean_rate=2.5, one_minute_rate=2.0))
    registry.timer(
        "db.query",
        lambda: Timer(
            count=state["requests"],
            mean_rate=1.2,
            snapshot=Distribution(min=1200000, max=9800000, mean=3400000.0, median=3100000.0),
        ),
    )
    return registry


# ========== 1. 从 YAML 配置文件初始化 ==========


def example_from_config_file():
    """从 YAML 配置文件初始化"""
    from nrexport.service import ReporterService

    config_file = Path(__file__).parent / "config.yaml"
    service = ReporterService.from_config_file(str(config_file))
    service.install(build_registry())

    print("Reporter initialized from config file")
    return service


# ========== 2. 使用 Builder ==========


def example_with_builder():
    """使用 Builder 构建"""
    scheduled = (
        NewRelicReporter.for_registry(build_registry())
        .convert_rates_to(TimeUnit.MINUTES)
        .convert_durations_to(TimeUnit.SECONDS)
        .with_sink(StdoutSink())
        .build()
    )
    scheduled.start(period=2, initial_delay=0)

    print("Reporter initialized with Builder")
    return scheduled


if __name__ == "__main__":
    scheduled = example_with_builder()
    try:
        time.sleep(5)
    finally:
        scheduled.stop()

    service = example_from_config_file()
    service.report()
    service.shutdown()
