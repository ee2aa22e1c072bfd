# -*- coding: utf-8 -*-
"""
Sink 工厂

根据 SinkConfig 创建对应的 sink。
"""

import logging

from nrexport.config import SinkConfig, SinkType
from nrexport.metric.reporter import Sink

logger = logging.getLogger(__name__)


def build_sink(config: SinkConfig) -> Sink:
    """
    创建 sink

    Args:
        config: Sink 配置

    Returns:
        sink(name, value) 可调用对象

    Raises:
        ValueError: 未知的 Sink 类型
    """
    if config.type == SinkType.NEWRELIC:
        from nrexport.metric.sink.newrelic import NewRelicSink

        application = None
        if config.application:
            import newrelic.agent

            application = newrelic.agent.application(config.application)
        return NewRelicSink(application=application)

    if config.type == SinkType.STDOUT:
        from nrexport.metric.sink.stdout import StdoutSink

        return StdoutSink()

    if config.type == SinkType.OTEL:
        from nrexport.metric.sink.otel import OpenTelemetrySink

        return OpenTelemetrySink(meter_name=config.meter_name, attributes=config.attributes)

    raise ValueError(f"unknown sink type: {config.type!r}")
