# -*- coding: utf-8 -*-
"""
时间单位与数值换算

提供：
- TimeUnit：时间单位枚举（纳秒 ~ 天）
- convert_rate：速率换算（事件/秒 → 事件/目标单位）
- convert_duration：时长换算（源单位 → 目标单位）
- narrow：双精度 → 单精度收窄

所有单位之间都是整数倍关系，换算时放大用整数相乘、缩小用整数相除，
保证 ms → s 恰好等于 raw / 1000。
"""

from enum import Enum
from typing import Union

import numpy as np

Number = Union[int, float]


class TimeUnit(str, Enum):
    """时间单位"""
    NANOSECONDS = "nanoseconds"
    MICROSECONDS = "microseconds"
    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    @property
    def nanos(self) -> int:
        """单位长度（纳秒）"""
        return _NANOS[self]

    @classmethod
    def parse(cls, value: Union[str, "TimeUnit"]) -> "TimeUnit":
        """
        解析时间单位

        支持枚举值（"seconds"）、枚举名（"SECONDS"）和常用缩写（"s"、"ms"）。

        Raises:
            ValueError: 无法识别的单位
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in _ALIASES:
            return _ALIASES[text]
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"unknown time unit: {value!r}")


_NANOS = {
    TimeUnit.NANOSECONDS: 1,
    TimeUnit.MICROSECONDS: 1000,
    TimeUnit.MILLISECONDS: 1000 * 1000,
    TimeUnit.SECONDS: 1000 * 1000 * 1000,
    TimeUnit.MINUTES: 60 * 1000 * 1000 * 1000,
    TimeUnit.HOURS: 60 * 60 * 1000 * 1000 * 1000,
    TimeUnit.DAYS: 24 * 60 * 60 * 1000 * 1000 * 1000,
}

_ALIASES = {
    "ns": TimeUnit.NANOSECONDS,
    "us": TimeUnit.MICROSECONDS,
    "ms": TimeUnit.MILLISECONDS,
    "s": TimeUnit.SECONDS,
    "m": TimeUnit.MINUTES,
    "min": TimeUnit.MINUTES,
    "h": TimeUnit.HOURS,
    "d": TimeUnit.DAYS,
}


def scale(value: Number, from_unit: TimeUnit, to_unit: TimeUnit) -> float:
    """
    按 from_unit / to_unit 的比例缩放数值

    Args:
        value: 原始数值
        from_unit: 分子单位
        to_unit: 分母单位

    Returns:
        value * from_unit / to_unit（双精度），缺失值（None）原样返回
    """
    if value is None:
        return None
    value = float(value)
    if from_unit.nanos >= to_unit.nanos:
        return value * (from_unit.nanos // to_unit.nanos)
    return value / (to_unit.nanos // from_unit.nanos)


def convert_rate(rate: Number, rate_unit: TimeUnit = TimeUnit.SECONDS) -> float:
    """
    速率换算：事件/秒 → 事件/rate_unit

    示例:
        convert_rate(2.5, TimeUnit.MINUTES) == 150.0
    """
    return scale(rate, rate_unit, TimeUnit.SECONDS)


def convert_duration(
    duration: Number,
    duration_unit: TimeUnit = TimeUnit.MILLISECONDS,
    source_unit: TimeUnit = TimeUnit.NANOSECONDS,
) -> float:
    """
    时长换算：source_unit → duration_unit

    示例:
        convert_duration(1500, TimeUnit.SECONDS, TimeUnit.MILLISECONDS) == 1.5
    """
    return scale(duration, source_unit, duration_unit)


def narrow(value: Number) -> float:
    """
    收窄到单精度

    返回 Python float，但其取值是最接近的 float32。
    NaN/Inf 原样透传，超出范围饱和为 ±inf，缺失值（None）原样返回。
    """
    if value is None:
        return None
    with np.errstate(over="ignore"):
        return float(np.float32(value))
