"""
New Relic 扁平化上报器测试
"""

import math
import types

import numpy as np
import pytest

from conftest import FailingSink, RecordingSink
from nrexport.metric.registry import MetricRegistry
from nrexport.metric.reporter import (
    DISTRIBUTION_SUFFIXES,
    RATE_SUFFIXES,
    NewRelicReporter,
)
from nrexport.metric.scheduled import ScheduledReporter
from nrexport.metric.types import (
    Counter,
    Distribution,
    Gauge,
    Histogram,
    Meter,
    MetricSnapshot,
    OutputPoint,
    Timer,
)
from nrexport.metric.units import TimeUnit


def f32(value):
    """单精度舍入后的期望值"""
    return float(np.float32(value))


def _name(metric, suffix=None):
    if suffix:
        return f"Custom/app-metrics/{metric}.{suffix}"
    return f"Custom/app-metrics/{metric}"


class TestScenarios:
    """典型场景"""

    def test_single_gauge(self, sink):
        """测试单个 Gauge"""
        reporter = NewRelicReporter(sink)
        reporter.report(MetricSnapshot(gauges={"q.depth": Gauge(7.0)}))

        assert sink.points == [("Custom/app-metrics/q.depth", 7.0)]
        assert type(sink.points[0][1]) is float

    def test_integer_gauge_normalized_to_float(self, sink):
        """测试整数 Gauge 输出为 float"""
        NewRelicReporter(sink).report(MetricSnapshot(gauges={"workers": Gauge(3)}))

        assert sink.points == [(_name("workers"), 3.0)]
        assert type(sink.points[0][1]) is float

    def test_single_counter(self, sink):
        """测试单个 Counter 输出为 int"""
        NewRelicReporter(sink).report(MetricSnapshot(counters={"reqs": Counter(42)}))

        assert sink.points == [("Custom/app-metrics/reqs", 42)]
        assert type(sink.points[0][1]) is int

    def test_single_meter(self, sink):
        """测试单个 Meter（事件/秒，不换算）"""
        meter = Meter(
            count=100,
            mean_rate=2.5,
            one_minute_rate=2.0,
            five_minute_rate=1.8,
            fifteen_minute_rate=1.5,
        )
        reporter = NewRelicReporter(sink, rate_unit=TimeUnit.SECONDS)
        reporter.report(MetricSnapshot(meters={"hits": meter}))

        assert sink.points == [
            (_name("hits", "count"), 100),
            (_name("hits", "mean-rate"), 2.5),
            (_name("hits", "one-minute-rate"), 2.0),
            (_name("hits", "five-minute-rate"), f32(1.8)),
            (_name("hits", "fifteen-minute-rate"), 1.5),
        ]
        assert type(sink.points[0][1]) is int

    def test_empty_snapshot(self, sink):
        """测试空快照不调用 sink"""
        NewRelicReporter(sink).report(MetricSnapshot())
        assert sink.points == []


class TestEmissionRules:
    """各类型的输出规则"""

    def test_histogram_points(self, sink, distribution):
        """测试 Histogram：count + 10 个分布值，不换算"""
        reporter = NewRelicReporter(sink, duration_unit=TimeUnit.SECONDS)
        reporter.report(MetricSnapshot(histograms={"sizes": Histogram(count=9, snapshot=distribution)}))

        expected = [(_name("sizes", "count"), 9)]
        expected += [
            (_name("sizes", suffix), f32(getattr(distribution, attr)))
            for suffix, attr in DISTRIBUTION_SUFFIXES
        ]
        assert sink.points == expected

    def test_histogram_suffixes(self, sink):
        """测试 Histogram 后缀"""
        NewRelicReporter(sink).report(MetricSnapshot(histograms={"h": Histogram()}))

        suffixes = [name.split("Custom/app-metrics/h.")[1] for name in sink.names]
        assert suffixes == [
            "count", "min", "max", "mean", "stddev", "median",
            "p75", "p95", "p98", "p99", "p999",
        ]

    def test_timer_points(self, sink, distribution):
        """测试 Timer：毫秒 → 秒，事件/秒 → 事件/分钟"""
        timer = Timer(
            count=7,
            mean_rate=0.5,
            one_minute_rate=0.1,
            five_minute_rate=0.2,
            fifteen_minute_rate=0.3,
            snapshot=distribution,
        )
        reporter = NewRelicReporter(
            sink,
            rate_unit=TimeUnit.MINUTES,
            duration_unit=TimeUnit.SECONDS,
            source_duration_unit=TimeUnit.MILLISECONDS,
        )
        reporter.report(MetricSnapshot(timers={"db.query": timer}))

        expected = [(_name("db.query", "count"), 7)]
        expected += [
            (_name("db.query", suffix), f32(getattr(distribution, attr) / 1000))
            for suffix, attr in DISTRIBUTION_SUFFIXES
        ]
        expected += [
            (_name("db.query", suffix), f32(getattr(timer, attr) * 60))
            for suffix, attr in RATE_SUFFIXES
        ]
        assert sink.points == expected
        assert len(sink.points) == 15

    def test_timer_default_units(self, sink):
        """测试默认单位：纳秒 → 毫秒"""
        timer = Timer(count=1, snapshot=Distribution(min=1500000, max=3000000, mean=2250000.0))
        NewRelicReporter(sink).report(MetricSnapshot(timers={"t": timer}))

        points = sink.as_dict()
        assert points[_name("t", "min")] == 1.5
        assert points[_name("t", "max")] == 3.0
        assert points[_name("t", "mean")] == 2.25

    def test_meter_rate_per_minute(self, sink):
        """测试 Meter 速率换算为 事件/分钟"""
        meter = Meter(count=3, mean_rate=0.123, one_minute_rate=1.7, five_minute_rate=0.0)
        NewRelicReporter(sink, rate_unit=TimeUnit.MINUTES).report(MetricSnapshot(meters={"m": meter}))

        points = sink.as_dict()
        assert points[_name("m", "mean-rate")] == f32(0.123 * 60)
        assert points[_name("m", "one-minute-rate")] == f32(1.7 * 60)
        assert points[_name("m", "five-minute-rate")] == 0.0

    def test_narrowing_is_applied(self, sink):
        """测试输出值为单精度舍入而非双精度原值"""
        NewRelicReporter(sink).report(MetricSnapshot(gauges={"g": Gauge(0.1)}))

        value = sink.points[0][1]
        assert value == f32(0.1)
        assert value != 0.1

    def test_counts_stay_integral(self, sink):
        """测试所有计数保持 int"""
        big = 2 ** 40 + 1
        snapshot = MetricSnapshot(
            counters={"c": Counter(big)},
            histograms={"h": Histogram(count=big)},
            meters={"m": Meter(count=big)},
            timers={"t": Timer(count=big)},
        )
        NewRelicReporter(sink).report(snapshot)

        points = sink.as_dict()
        for name in (_name("c"), _name("h", "count"), _name("m", "count"), _name("t", "count")):
            assert points[name] == big
            assert type(points[name]) is int

    def test_nan_passes_through(self, sink):
        """测试 NaN 原样透传"""
        snapshot = MetricSnapshot(
            gauges={"g": Gauge(float("nan"))},
            meters={"m": Meter(count=0, mean_rate=float("nan"))},
        )
        NewRelicReporter(sink).report(snapshot)

        points = sink.as_dict()
        assert math.isnan(points[_name("g")])
        assert math.isnan(points[_name("m", "mean-rate")])

    def test_missing_figure_passes_through(self, sink):
        """测试缺失值（None）不报错，原样交给 sink，数据点数量不变"""
        snapshot = MetricSnapshot(
            gauges={"g": Gauge(None)},
            histograms={"h": Histogram(count=3, snapshot=Distribution(min=None, max=9))},
            meters={"m": Meter(count=1, mean_rate=None, one_minute_rate=0.5)},
            timers={"t": Timer(count=None, five_minute_rate=None, snapshot=Distribution(p99=None, max=2_000_000))},
        )
        reporter = NewRelicReporter(sink, rate_unit=TimeUnit.MINUTES)
        reporter.report(snapshot)

        points = sink.as_dict()
        assert len(sink.points) == 1 + 11 + 5 + 15
        assert len([n for n in sink.names if n.startswith(_name("h"))]) == 11
        assert len([n for n in sink.names if n.startswith(_name("m"))]) == 5
        assert len([n for n in sink.names if n.startswith(_name("t"))]) == 15

        assert points[_name("g")] is None
        assert points[_name("h", "min")] is None
        assert points[_name("h", "max")] == 9.0
        assert points[_name("m", "mean-rate")] is None
        assert points[_name("m", "one-minute-rate")] == 30.0
        assert points[_name("t", "count")] is None
        assert points[_name("t", "p99")] is None
        assert points[_name("t", "max")] == 2.0
        assert points[_name("t", "five-minute-rate")] is None

    def test_missing_count_passes_through(self, sink):
        """测试缺失计数原样透传"""
        NewRelicReporter(sink).report(
            MetricSnapshot(counters={"c": Counter(None)}, histograms={"h": Histogram(count=None)})
        )

        points = sink.as_dict()
        assert points[_name("c")] is None
        assert points[_name("h", "count")] is None


class TestReportProperties:
    """上报不变量"""

    @staticmethod
    def _snapshot(distribution):
        return MetricSnapshot(
            gauges={"g2": Gauge(2.0), "g1": Gauge(1.0)},
            counters={"c": Counter(5)},
            histograms={"h2": Histogram(count=1, snapshot=distribution), "h1": Histogram()},
            meters={"m": Meter(count=4, mean_rate=0.7)},
            timers={
                "t3": Timer(count=1, snapshot=distribution),
                "t1": Timer(),
                "t2": Timer(count=2, mean_rate=1.1),
            },
        )

    def test_point_count(self, sink, distribution):
        """测试数据点数量 = g + c + 11h + 5m + 15t"""
        NewRelicReporter(sink).report(self._snapshot(distribution))
        assert len(sink.points) == 2 + 1 + 11 * 2 + 5 * 1 + 15 * 3

    def test_order(self, sink, distribution):
        """测试输出顺序：类型顺序 + 名称升序"""
        NewRelicReporter(sink).report(self._snapshot(distribution))

        metrics = []
        for name in sink.names:
            metric = name[len("Custom/app-metrics/"):].split(".")[0]
            if not metrics or metrics[-1] != metric:
                metrics.append(metric)
        assert metrics == ["g1", "g2", "c", "h1", "h2", "m", "t1", "t2", "t3"]

    def test_idempotent(self, distribution):
        """测试相同快照重复上报结果一致"""
        first, second = RecordingSink(), RecordingSink()
        NewRelicReporter(first, rate_unit=TimeUnit.MINUTES).report(self._snapshot(distribution))

        reporter = NewRelicReporter(second, rate_unit=TimeUnit.MINUTES)
        reporter.report(self._snapshot(distribution))
        second_run = list(second.points)
        second.points.clear()
        reporter.report(self._snapshot(distribution))

        assert first.points == second_run == second.points

    def test_sink_failure_propagates(self, distribution):
        """测试 sink 异常原样抛出并中止本周期"""
        failing = FailingSink(fail_at=3)
        reporter = NewRelicReporter(failing)

        with pytest.raises(ConnectionError):
            reporter.report(self._snapshot(distribution))
        assert failing.calls == 3

    def test_flatten_is_lazy(self, distribution):
        """测试 flatten 为惰性生成器"""
        reporter = NewRelicReporter(RecordingSink())
        points = reporter.flatten(self._snapshot(distribution))

        assert isinstance(points, types.GeneratorType)
        assert next(points) == OutputPoint(_name("g1"), 1.0)

    def test_flatten_metric(self):
        """测试单个度量展开"""
        reporter = NewRelicReporter(RecordingSink())
        points = list(reporter.flatten_metric("reqs", Counter(1)))
        assert points == [OutputPoint(_name("reqs"), 1)]


class TestBuilder:
    """Builder 测试"""

    def test_defaults(self, sink):
        """测试默认单位"""
        scheduled = NewRelicReporter.for_registry(MetricRegistry()).with_sink(sink).build()

        assert isinstance(scheduled, ScheduledReporter)
        assert scheduled.reporter.rate_unit is TimeUnit.SECONDS
        assert scheduled.reporter.duration_unit is TimeUnit.MILLISECONDS
        assert scheduled.reporter.sink is sink

    def test_custom_units(self, sink):
        """测试自定义单位"""
        reporter = (
            NewRelicReporter.for_registry(MetricRegistry())
            .convert_rates_to(TimeUnit.MINUTES)
            .convert_durations_to("seconds")
            .durations_measured_in(TimeUnit.MILLISECONDS)
            .with_sink(sink)
            .build_reporter()
        )

        assert reporter.rate_unit is TimeUnit.MINUTES
        assert reporter.duration_unit is TimeUnit.SECONDS
        assert reporter.convert_rate(2.0) == 120.0
        assert reporter.convert_duration(1500) == 1.5

    def test_build_reports_registry(self, sink):
        """测试构建的定时上报器读取 registry"""
        registry = MetricRegistry()
        registry.counter("reqs", lambda: 42)
        scheduled = NewRelicReporter.for_registry(registry).with_sink(sink).build()

        scheduled.report()
        assert sink.points == [(_name("reqs"), 42)]
