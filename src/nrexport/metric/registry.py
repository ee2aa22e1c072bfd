# -*- coding: utf-8 -*-
"""
Metric Registry

按名称保存度量读取函数，并在每个上报周期生成一次过滤后的 MetricSnapshot。

Registry 不负责采集（计数累加、耗时记录），只负责读取：
每个读取函数返回对应类型的冻结值（Gauge/Counter/Histogram/Meter/Timer）。
"""

import logging
import re
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from nrexport.metric.types import (
    Counter,
    Gauge,
    Histogram,
    Measurement,
    Meter,
    MetricKind,
    MetricSnapshot,
    Number,
    Timer,
)

logger = logging.getLogger(__name__)

Reader = Callable[[], Measurement]


class MetricFilter:
    """
    度量过滤器

    对 (name, metric) 判断是否上报。只看名称的过滤器（name_only）
    不需要度量值，MetricRegistry.remove_matching 据此跳过读取函数。

    示例:
        ```python
        f = MetricFilter.patterns(include=[r"^http\\."], exclude=[r"\\.debug$"])
        f.matches("http.requests", Counter(1))  # True
        ```
    """

    ALL: "MetricFilter"

    def __init__(self, predicate: Callable[[str, Measurement], bool], name_only: bool = False):
        self._predicate = predicate
        self._name_only = name_only

    @property
    def name_only(self) -> bool:
        """是否只依赖名称"""
        return self._name_only

    def matches(self, name: str, metric: Measurement) -> bool:
        return bool(self._predicate(name, metric))

    __call__ = matches

    @classmethod
    def patterns(
        cls,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> "MetricFilter":
        """
        按正则表达式过滤名称

        include 为空时接受所有名称；命中任一 exclude 的名称被排除。
        """
        includes = [re.compile(p) for p in include or ()]
        excludes = [re.compile(p) for p in exclude or ()]

        def predicate(name: str, metric: Measurement) -> bool:
            if includes and not any(p.search(name) for p in includes):
                return False
            return not any(p.search(name) for p in excludes)

        return cls(predicate, name_only=True)

    @classmethod
    def kinds(cls, *kinds: Union[MetricKind, str]) -> "MetricFilter":
        """只接受指定类型"""
        accepted = {MetricKind(k) for k in kinds}
        return cls(lambda name, metric: metric.kind in accepted)


MetricFilter.ALL = MetricFilter(lambda name, metric: True, name_only=True)


class MetricRegistry:
    """
    度量注册表

    名称在所有类型间唯一。snapshot() 对每个读取函数调用一次，
    单个度量的读取是原子的，跨度量不保证一致。

    示例:
        ```python
        registry = MetricRegistry()
        registry.gauge("q.depth", lambda: len(queue))
        registry.counter("reqs", lambda: handled)
        registry.timer("db.query", lambda: Timer(count=..., snapshot=...))

        snapshot = registry.snapshot()
        ```
    """

    def __init__(self):
        self._readers: Dict[str, Tuple[MetricKind, Reader]] = {}
        self._lock = threading.Lock()

    def register(self, name: str, kind: Union[MetricKind, str], reader: Reader) -> Reader:
        """
        注册读取函数

        Args:
            name: 度量名称
            kind: 度量类型
            reader: 无参函数，返回该类型的冻结值（不应有副作用，每次快照都会调用）

        Returns:
            reader

        Raises:
            ValueError: 名称已存在
        """
        kind = MetricKind(kind)
        with self._lock:
            if name in self._readers:
                raise ValueError(f"A metric named {name} already exists")
            self._readers[name] = (kind, reader)

        logger.debug("Metric registered: name=%s, kind=%s", name, kind.value)
        return reader

    def gauge(self, name: str, fn: Callable[[], Number]) -> Reader:
        """注册 Gauge，fn 返回数值"""
        return self.register(name, MetricKind.GAUGE, lambda: Gauge(fn()))

    def counter(self, name: str, fn: Callable[[], int]) -> Reader:
        """注册 Counter，fn 返回计数"""
        return self.register(name, MetricKind.COUNTER, lambda: Counter(int(fn())))

    def histogram(self, name: str, fn: Callable[[], Histogram]) -> Reader:
        return self.register(name, MetricKind.HISTOGRAM, fn)

    def meter(self, name: str, fn: Callable[[], Meter]) -> Reader:
        return self.register(name, MetricKind.METER, fn)

    def timer(self, name: str, fn: Callable[[], Timer]) -> Reader:
        return self.register(name, MetricKind.TIMER, fn)

    def remove(self, name: str) -> bool:
        """删除度量，返回是否存在"""
        with self._lock:
            removed = self._readers.pop(name, None) is not None
        if removed:
            logger.debug("Metric removed: name=%s", name)
        return removed

    def remove_matching(self, metric_filter: MetricFilter) -> List[str]:
        """
        删除所有匹配的度量，返回被删除的名称

        name_only 过滤器不调用读取函数；其余过滤器对每个度量读取一次，
        因此读取函数应当没有副作用。
        """
        with self._lock:
            items = list(self._readers.items())

        removed = []
        for name, (_, reader) in items:
            metric = None if metric_filter.name_only else reader()
            if metric_filter.matches(name, metric) and self.remove(name):
                removed.append(name)
        return removed

    def names(self) -> List[str]:
        """已注册名称（升序）"""
        with self._lock:
            return sorted(self._readers)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._readers

    def __len__(self) -> int:
        with self._lock:
            return len(self._readers)

    def snapshot(self, metric_filter: Optional[MetricFilter] = None) -> MetricSnapshot:
        """
        生成过滤后的快照

        读取函数抛出的异常原样抛出。

        Raises:
            TypeError: 读取函数返回的类型与注册类型不一致
        """
        metric_filter = metric_filter or MetricFilter.ALL
        with self._lock:
            items = list(self._readers.items())

        entries: Dict[str, Measurement] = {}
        for name, (kind, reader) in items:
            metric = reader()
            if getattr(metric, "kind", None) is not kind:
                raise TypeError(
                    f"metric {name} registered as {kind.value} but read {type(metric).__name__}"
                )
            if metric_filter.matches(name, metric):
                entries[name] = metric

        return MetricSnapshot.from_entries(entries)
