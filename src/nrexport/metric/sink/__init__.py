# -*- coding: utf-8 -*-
"""
Sink 模块

数据点接收端，统一接口 sink(name, value)：
- NewRelicSink：New Relic Agent（默认）
- StdoutSink：控制台输出（调试用）
- OpenTelemetrySink：写入 OpenTelemetry Gauge
"""

from nrexport.metric.sink.factory import build_sink
from nrexport.metric.sink.newrelic import NewRelicSink
from nrexport.metric.sink.otel import OpenTelemetrySink
from nrexport.metric.sink.stdout import StdoutSink

__all__ = [
    "build_sink",
    "NewRelicSink",
    "OpenTelemetrySink",
    "StdoutSink",
]
