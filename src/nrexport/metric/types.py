# -*- coding: utf-8 -*-
"""
Metric 快照数据模型

五种度量类型（Gauge/Counter/Histogram/Meter/Timer）的冻结值，
以及一次上报周期使用的 MetricSnapshot。

每种度量都带有 kind 标签，上报时按标签分派，不做运行时类型推断。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Mapping, NamedTuple, Tuple, Union

Number = Union[int, float]


class MetricKind(str, Enum):
    """度量类型（按上报顺序排列）"""
    GAUGE = "gauge"
    COUNTER = "counter"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"


@dataclass(frozen=True)
class Distribution:
    """
    分布快照

    Histogram/Timer 在某一时刻的统计摘要，取值为度量自身单位的原始值。
    """
    min: Number = 0.0
    max: Number = 0.0
    mean: float = 0.0
    stddev: float = 0.0
    median: float = 0.0
    p75: float = 0.0
    p95: float = 0.0
    p98: float = 0.0
    p99: float = 0.0
    p999: float = 0.0


@dataclass(frozen=True)
class Gauge:
    """瞬时值"""
    value: Number
    kind = MetricKind.GAUGE


@dataclass(frozen=True)
class Counter:
    """计数"""
    count: int = 0
    kind = MetricKind.COUNTER


@dataclass(frozen=True)
class Histogram:
    """计数 + 分布快照（无单位）"""
    count: int = 0
    snapshot: Distribution = field(default_factory=Distribution)
    kind = MetricKind.HISTOGRAM


@dataclass(frozen=True)
class Meter:
    """
    计数 + 速率

    速率单位为 事件/秒，上报时再按 rate_unit 换算。
    """
    count: int = 0
    mean_rate: float = 0.0
    one_minute_rate: float = 0.0
    five_minute_rate: float = 0.0
    fifteen_minute_rate: float = 0.0
    kind = MetricKind.METER


@dataclass(frozen=True)
class Timer:
    """
    调用次数 + 速率 + 时长分布

    分布取值为源时长单位（默认纳秒），上报时再按 duration_unit 换算。
    """
    count: int = 0
    mean_rate: float = 0.0
    one_minute_rate: float = 0.0
    five_minute_rate: float = 0.0
    fifteen_minute_rate: float = 0.0
    snapshot: Distribution = field(default_factory=Distribution)
    kind = MetricKind.TIMER


Measurement = Union[Gauge, Counter, Histogram, Meter, Timer]


class OutputPoint(NamedTuple):
    """输出数据点：计数为 int，其余为收窄后的 float"""
    name: str
    value: Number


def _sorted(entries: Mapping[str, Measurement]) -> Dict[str, Measurement]:
    return {name: entries[name] for name in sorted(entries)}


@dataclass(frozen=True)
class MetricSnapshot:
    """
    一次上报周期的度量快照

    五个按名称升序排列的映射，由调用方持有，上报器只在一次 report 调用内借用。

    示例:
        ```python
        snapshot = MetricSnapshot(
            gauges={"q.depth": Gauge(7.0)},
            counters={"reqs": Counter(42)},
        )
        ```
    """
    gauges: Mapping[str, Gauge] = field(default_factory=dict)
    counters: Mapping[str, Counter] = field(default_factory=dict)
    histograms: Mapping[str, Histogram] = field(default_factory=dict)
    meters: Mapping[str, Meter] = field(default_factory=dict)
    timers: Mapping[str, Timer] = field(default_factory=dict)

    def __post_init__(self):
        for attr in ("gauges", "counters", "histograms", "meters", "timers"):
            object.__setattr__(self, attr, _sorted(getattr(self, attr)))

    def by_kind(self, kind: MetricKind) -> Mapping[str, Measurement]:
        """获取某一类型的映射"""
        return {
            MetricKind.GAUGE: self.gauges,
            MetricKind.COUNTER: self.counters,
            MetricKind.HISTOGRAM: self.histograms,
            MetricKind.METER: self.meters,
            MetricKind.TIMER: self.timers,
        }[kind]

    def entries(self) -> Iterator[Tuple[str, Measurement]]:
        """按 类型顺序 → 名称升序 遍历所有条目"""
        for kind in MetricKind:
            yield from self.by_kind(kind).items()

    def __len__(self) -> int:
        return sum(len(self.by_kind(kind)) for kind in MetricKind)

    @classmethod
    def from_entries(cls, entries: Mapping[str, Measurement]) -> "MetricSnapshot":
        """按 kind 标签把混合映射拆分为五类"""
        grouped: Dict[MetricKind, Dict[str, Measurement]] = {kind: {} for kind in MetricKind}
        for name, metric in entries.items():
            grouped[metric.kind][name] = metric
        return cls(
            gauges=grouped[MetricKind.GAUGE],
            counters=grouped[MetricKind.COUNTER],
            histograms=grouped[MetricKind.HISTOGRAM],
            meters=grouped[MetricKind.METER],
            timers=grouped[MetricKind.TIMER],
        )
