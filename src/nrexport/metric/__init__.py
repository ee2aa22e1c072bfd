# -*- coding: utf-8 -*-
"""
Metric 模块

提供度量快照扁平化上报功能：
- MetricSnapshot 及五种度量类型
- MetricRegistry / MetricFilter
- NewRelicReporter（扁平化）与 ScheduledReporter（定时）
- 时间单位换算
"""

from nrexport.metric.types import (
    Counter,
    Distribution,
    Gauge,
    Histogram,
    Measurement,
    Meter,
    MetricKind,
    MetricSnapshot,
    OutputPoint,
    Timer,
)
from nrexport.metric.units import TimeUnit, convert_duration, convert_rate, narrow
from nrexport.metric.registry import MetricFilter, MetricRegistry
from nrexport.metric.scheduled import ScheduledReporter
from nrexport.metric.reporter import (
    METRIC_NAME_PREFIX,
    Builder,
    NewRelicReporter,
)

__all__ = [
    # Types
    "Counter",
    "Distribution",
    "Gauge",
    "Histogram",
    "Measurement",
    "Meter",
    "MetricKind",
    "MetricSnapshot",
    "OutputPoint",
    "Timer",
    # Units
    "TimeUnit",
    "convert_duration",
    "convert_rate",
    "narrow",
    # Registry
    "MetricFilter",
    "MetricRegistry",
    # Reporter
    "METRIC_NAME_PREFIX",
    "Builder",
    "NewRelicReporter",
    "ScheduledReporter",
]
