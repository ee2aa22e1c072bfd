# -*- coding: utf-8 -*-
"""
OpenTelemetry sink

把扁平化后的数据点写入 OpenTelemetry 同步 Gauge，
再由已安装的 MeterProvider（OTLP/Prometheus/Stdout）导出。
"""

import logging
import threading
from typing import Any, Dict, Optional, Union

from opentelemetry import metrics

logger = logging.getLogger(__name__)

DEFAULT_METER_NAME = "nrexport"


class OpenTelemetrySink:
    """
    OpenTelemetry Gauge sink

    每个输出名称对应一个 Gauge，首次出现时创建并缓存。

    示例:
        ```python
        sink = OpenTelemetrySink(meter_name="app-metrics")
        sink("Custom/app-metrics/reqs", 42)
        ```
    """

    def __init__(
        self,
        meter: Optional[metrics.Meter] = None,
        meter_name: str = DEFAULT_METER_NAME,
        attributes: Optional[Dict[str, str]] = None,
    ):
        """
        初始化 OpenTelemetry sink

        Args:
            meter: Meter 实例，None 时从全局 MeterProvider 获取
            meter_name: 获取全局 Meter 时使用的名称
            attributes: 附加到每个数据点的属性
        """
        self._meter = meter or metrics.get_meter(meter_name)
        self._attributes = dict(attributes or {})
        self._gauges: Dict[str, Any] = {}
        self._lock = threading.Lock()

        logger.info("OpenTelemetry sink created: meter=%s", meter_name if meter is None else meter)

    def _get_gauge(self, name: str) -> Any:
        """获取或创建 Gauge"""
        gauge = self._gauges.get(name)
        if gauge is None:
            with self._lock:
                gauge = self._gauges.get(name)
                if gauge is None:
                    gauge = self._meter.create_gauge(name)
                    self._gauges[name] = gauge
        return gauge

    def __call__(self, name: str, value: Union[int, float, None]) -> None:
        # Gauge 无法表示缺失值
        if value is None:
            return
        self._get_gauge(name).set(value, attributes=self._attributes)
