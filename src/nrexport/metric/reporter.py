# -*- coding: utf-8 -*-
"""
New Relic 扁平化上报器

把一次 MetricSnapshot 中的每个度量展开为若干 (名称, 数值) 数据点，
逐个交给 sink（默认为 New Relic Agent 的 record_custom_metric）。

命名规则：Custom/app-metrics/<metric-name>[.<suffix>]

| 类型      | 数据点                                                      |
|-----------|-------------------------------------------------------------|
| Gauge     | 原值（单精度）                                              |
| Counter   | 计数（int）                                                 |
| Histogram | .count + 10 个分布值（不换算）                              |
| Meter     | .count + 4 个速率（按 rate_unit 换算）                      |
| Timer     | .count + 10 个分布值（按 duration_unit 换算）+ 4 个速率     |

计数保持 int，其余数值在双精度下计算，只在输出时收窄为单精度。
缺失的数值（None）不换算、不收窄，原样交给 sink；NaN 同样透传。
"""

import logging
from typing import Any, Callable, Dict, Iterator, Optional, Union

from nrexport.metric.registry import MetricFilter, MetricRegistry
from nrexport.metric.scheduled import ScheduledReporter
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

logger = logging.getLogger(__name__)

# ========== 常量定义 ==========
METRIC_NAME_PREFIX = "Custom/app-metrics"

# (后缀, Distribution 字段)
DISTRIBUTION_SUFFIXES = (
    ("min", "min"),
    ("max", "max"),
    ("mean", "mean"),
    ("stddev", "stddev"),
    ("median", "median"),
    ("p75", "p75"),
    ("p95", "p95"),
    ("p98", "p98"),
    ("p99", "p99"),
    ("p999", "p999"),
)

# (后缀, Meter/Timer 字段)
RATE_SUFFIXES = (
    ("mean-rate", "mean_rate"),
    ("one-minute-rate", "one_minute_rate"),
    ("five-minute-rate", "five_minute_rate"),
    ("fifteen-minute-rate", "fifteen_minute_rate"),
)

Sink = Callable[[str, Union[int, float]], Any]


def _count(value: Optional[int]) -> Optional[int]:
    # 缺失值（None）原样交给 sink
    return None if value is None else int(value)


def _unconverted(value: Optional[float]) -> Optional[float]:
    return None if value is None else float(value)


class NewRelicReporter:
    """
    扁平化上报器

    只持有两个换算单位，不保留任何周期间状态；同一快照重复上报得到相同的数据点序列。
    sink 抛出的异常原样向上抛出，本周期剩余数据点不再上报。

    示例:
        ```python
        reporter = NewRelicReporter(
            sink=NewRelicSink(),
            rate_unit=TimeUnit.MINUTES,
            duration_unit=TimeUnit.SECONDS,
        )
        reporter.report(registry.snapshot())
        ```
    """

    def __init__(
        self,
        sink: Sink,
        rate_unit: TimeUnit = TimeUnit.SECONDS,
        duration_unit: TimeUnit = TimeUnit.MILLISECONDS,
        source_duration_unit: TimeUnit = TimeUnit.NANOSECONDS,
    ):
        """
        初始化上报器

        Args:
            sink: 数据点接收函数 sink(name, value)
            rate_unit: 速率换算目标单位（事件/rate_unit）
            duration_unit: 时长换算目标单位
            source_duration_unit: Timer 分布的原始时长单位
        """
        self._sink = sink
        self._rate_unit = TimeUnit.parse(rate_unit)
        self._duration_unit = TimeUnit.parse(duration_unit)
        self._source_duration_unit = TimeUnit.parse(source_duration_unit)
        self._flatteners: Dict[MetricKind, Callable[[str, Any], Iterator[OutputPoint]]] = {
            MetricKind.GAUGE: self._flatten_gauge,
            MetricKind.COUNTER: self._flatten_counter,
            MetricKind.HISTOGRAM: self._flatten_histogram,
            MetricKind.METER: self._flatten_meter,
            MetricKind.TIMER: self._flatten_timer,
        }

    @staticmethod
    def for_registry(registry: MetricRegistry) -> "Builder":
        """返回绑定 registry 的 Builder"""
        return Builder(registry)

    @property
    def rate_unit(self) -> TimeUnit:
        return self._rate_unit

    @property
    def duration_unit(self) -> TimeUnit:
        return self._duration_unit

    @property
    def sink(self) -> Sink:
        return self._sink

    def convert_rate(self, rate: float) -> float:
        """事件/秒 → 事件/rate_unit"""
        return convert_rate(rate, self._rate_unit)

    def convert_duration(self, duration: float) -> float:
        """源时长单位 → duration_unit"""
        return convert_duration(duration, self._duration_unit, self._source_duration_unit)

    def report(self, snapshot: MetricSnapshot) -> None:
        """
        上报一次快照

        按 gauges → counters → histograms → meters → timers、同类按名称升序，
        每生成一个数据点立即调用 sink。

        Args:
            snapshot: 已过滤的度量快照
        """
        emitted = 0
        for point in self.flatten(snapshot):
            self._sink(point.name, point.value)
            emitted += 1

        logger.debug("Reported %d points for %d metrics", emitted, len(snapshot))

    def flatten(self, snapshot: MetricSnapshot) -> Iterator[OutputPoint]:
        """惰性展开快照为数据点"""
        for name, metric in snapshot.entries():
            yield from self._flatteners[metric.kind](name, metric)

    def flatten_metric(self, name: str, metric: Measurement) -> Iterator[OutputPoint]:
        """展开单个度量"""
        return self._flatteners[metric.kind](name, metric)

    @staticmethod
    def metric_name(name: str, suffix: Optional[str] = None) -> str:
        """拼接输出名称"""
        if suffix:
            return f"{METRIC_NAME_PREFIX}/{name}.{suffix}"
        return f"{METRIC_NAME_PREFIX}/{name}"

    def _flatten_gauge(self, name: str, gauge: Gauge) -> Iterator[OutputPoint]:
        yield OutputPoint(self.metric_name(name), narrow(gauge.value))

    def _flatten_counter(self, name: str, counter: Counter) -> Iterator[OutputPoint]:
        yield OutputPoint(self.metric_name(name), _count(counter.count))

    def _flatten_histogram(self, name: str, histogram: Histogram) -> Iterator[OutputPoint]:
        yield OutputPoint(self.metric_name(name, "count"), _count(histogram.count))
        # Histogram 没有单位语义，分布值不换算
        yield from self._flatten_distribution(name, histogram.snapshot, _unconverted)

    def _flatten_meter(self, name: str, meter: Meter) -> Iterator[OutputPoint]:
        yield OutputPoint(self.metric_name(name, "count"), _count(meter.count))
        yield from self._flatten_rates(name, meter)

    def _flatten_timer(self, name: str, timer: Timer) -> Iterator[OutputPoint]:
        yield OutputPoint(self.metric_name(name, "count"), _count(timer.count))
        yield from self._flatten_distribution(name, timer.snapshot, self.convert_duration)
        yield from self._flatten_rates(name, timer)

    def _flatten_distribution(
        self,
        name: str,
        snapshot: Distribution,
        convert: Callable[[float], float],
    ) -> Iterator[OutputPoint]:
        for suffix, attr in DISTRIBUTION_SUFFIXES:
            yield OutputPoint(
                self.metric_name(name, suffix),
                narrow(convert(getattr(snapshot, attr))),
            )

    def _flatten_rates(self, name: str, metered: Union[Meter, Timer]) -> Iterator[OutputPoint]:
        for suffix, attr in RATE_SUFFIXES:
            yield OutputPoint(
                self.metric_name(name, suffix),
                narrow(self.convert_rate(getattr(metered, attr))),
            )


class Builder:
    """
    NewRelicReporter 构建器

    默认：速率换算为 事件/秒，时长换算为毫秒，Timer 原始时长为纳秒，不过滤，
    sink 为 New Relic Agent。

    示例:
        ```python
        scheduled = (
            NewRelicReporter.for_registry(registry)
            .convert_rates_to(TimeUnit.MINUTES)
            .convert_durations_to(TimeUnit.SECONDS)
            .filter(MetricFilter.patterns(include=[r"^http\\."]))
            .build()
        )
        scheduled.start(period=60)
        ```
    """

    def __init__(self, registry: MetricRegistry):
        self._registry = registry
        self._rate_unit = TimeUnit.SECONDS
        self._duration_unit = TimeUnit.MILLISECONDS
        self._source_duration_unit = TimeUnit.NANOSECONDS
        self._filter = MetricFilter.ALL
        self._sink: Optional[Sink] = None
        self._report_on_stop = False

    def convert_rates_to(self, rate_unit: TimeUnit) -> "Builder":
        """速率换算为 事件/rate_unit"""
        self._rate_unit = TimeUnit.parse(rate_unit)
        return self

    def convert_durations_to(self, duration_unit: TimeUnit) -> "Builder":
        """时长换算为 duration_unit"""
        self._duration_unit = TimeUnit.parse(duration_unit)
        return self

    def durations_measured_in(self, source_unit: TimeUnit) -> "Builder":
        """Timer 分布的原始时长单位"""
        self._source_duration_unit = TimeUnit.parse(source_unit)
        return self

    def filter(self, metric_filter: MetricFilter) -> "Builder":
        """只上报匹配 metric_filter 的度量"""
        self._filter = metric_filter
        return self

    def with_sink(self, sink: Sink) -> "Builder":
        """替换默认的 New Relic sink"""
        self._sink = sink
        return self

    def report_on_stop(self, enabled: bool = True) -> "Builder":
        """停止时再上报一次"""
        self._report_on_stop = enabled
        return self

    def build_reporter(self) -> NewRelicReporter:
        """只构建扁平化上报器，不绑定调度"""
        sink = self._sink
        if sink is None:
            from nrexport.metric.sink.newrelic import NewRelicSink

            sink = NewRelicSink()

        return NewRelicReporter(
            sink=sink,
            rate_unit=self._rate_unit,
            duration_unit=self._duration_unit,
            source_duration_unit=self._source_duration_unit,
        )

    def build(self) -> ScheduledReporter:
        """构建绑定 registry 的 ScheduledReporter"""
        reporter = self.build_reporter()

        logger.info(
            "NewRelic reporter created: rate_unit=%s, duration_unit=%s, source_duration_unit=%s",
            self._rate_unit.value,
            self._duration_unit.value,
            self._source_duration_unit.value,
        )

        return ScheduledReporter(
            registry=self._registry,
            reporter=reporter,
            metric_filter=self._filter,
            report_on_stop=self._report_on_stop,
        )
