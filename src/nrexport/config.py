# -*- coding: utf-8 -*-
"""
上报器配置模块

提供配置定义，支持 YAML 文件加载与环境变量覆盖。
"""

import os
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from nrexport.metric.units import TimeUnit

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(ms|us|h|m|s)", re.IGNORECASE)
_DURATION_RE = re.compile(r"(?:\d+(?:\.\d+)?\s*(?:ms|us|h|m|s)\s*)+", re.IGNORECASE)


def parse_duration(value: Union[str, int, float]) -> float:
    """
    解析时间字符串为秒数

    支持格式：
    - 纯数字：直接作为秒数
    - "30s"：30 秒
    - "5m"：5 分钟
    - "1h"：1 小时
    - "1h30m"：1 小时 30 分钟
    - "100ms"：100 毫秒

    整个字符串必须由上述片段组成，带符号或无法识别的字符串返回 0.0。

    Args:
        value: 时间值

    Returns:
        秒数（float）
    """
    if isinstance(value, (int, float)):
        return float(value)

    if not isinstance(value, str):
        return 0.0

    value = value.strip()
    if not value:
        return 0.0

    # 纯数字
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if not _DURATION_RE.fullmatch(value):
        return 0.0

    units = {"h": 3600, "m": 60, "s": 1, "ms": 0.001, "us": 0.000001}
    matches = _DURATION_PART_RE.findall(value)
    return sum(float(number) * units[unit.lower()] for number, unit in matches)


class SinkType(str, Enum):
    """Sink 类型"""
    NEWRELIC = "newrelic"
    STDOUT = "stdout"
    OTEL = "otel"


class SinkConfig(BaseModel):
    """Sink 配置"""
    type: SinkType = Field(default=SinkType.NEWRELIC, description="Sink 类型")
    application: Optional[str] = Field(
        default=None,
        description="New Relic 应用名称（为空时使用 Agent 当前应用）"
    )
    meter_name: str = Field(default="nrexport", description="OpenTelemetry Meter 名称")
    attributes: Dict[str, str] = Field(default_factory=dict, description="OpenTelemetry 数据点属性")


class ReporterConfig(BaseModel):
    """上报器配置"""
    enabled: bool = Field(default=False, description="是否启用定时上报")
    period: str = Field(default="60s", description="上报周期")
    initial_delay: Optional[str] = Field(default=None, description="首次上报延迟（默认等于周期）")
    rate_unit: TimeUnit = Field(default=TimeUnit.SECONDS, description="速率换算单位")
    duration_unit: TimeUnit = Field(default=TimeUnit.MILLISECONDS, description="时长换算单位")
    source_duration_unit: TimeUnit = Field(
        default=TimeUnit.NANOSECONDS,
        description="Timer 分布的原始时长单位"
    )
    include: List[str] = Field(default_factory=list, description="上报名称正则（为空表示全部）")
    exclude: List[str] = Field(default_factory=list, description="排除名称正则")
    report_on_stop: bool = Field(default=False, description="停止时是否再上报一次")
    sink: SinkConfig = Field(default_factory=SinkConfig, description="Sink 配置")

    @field_validator("rate_unit", "duration_unit", "source_duration_unit", mode="before")
    @classmethod
    def _parse_unit(cls, value: Any) -> TimeUnit:
        return TimeUnit.parse(value)

    @field_validator("period")
    @classmethod
    def _check_period(cls, value: str) -> str:
        if parse_duration(value) <= 0:
            raise ValueError(f"period must be positive: {value!r}")
        return value

    @field_validator("include", "exclude")
    @classmethod
    def _check_patterns(cls, value: List[str]) -> List[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid pattern {pattern!r}: {e}")
        return value

    @property
    def period_seconds(self) -> float:
        """获取上报周期秒数"""
        return parse_duration(self.period)

    @property
    def initial_delay_seconds(self) -> Optional[float]:
        """获取首次上报延迟秒数"""
        if self.initial_delay is None:
            return None
        return parse_duration(self.initial_delay)


def load_config(
    config_file: Optional[str] = None,
    config_dict: Optional[Dict[str, Any]] = None,
    env_prefix: str = "",
) -> ReporterConfig:
    """
    加载上报器配置

    优先级：环境变量 > config_dict > config_file > 默认值

    Args:
        config_file: YAML 配置文件路径
        config_dict: 配置字典
        env_prefix: 环境变量前缀

    Returns:
        ReporterConfig 实例
    """
    data: Dict[str, Any] = {}

    # 1. 从文件加载
    if config_file and os.path.exists(config_file):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML is required for loading config files. Install with: pip install pyyaml")
        with open(config_file, "r", encoding="utf-8") as f:
            file_data = yaml.safe_load(f) or {}
        # 支持 newrelic_reporter 或 reporter 作为根键
        data = _unwrap(file_data)

    # 2. 合并字典配置
    if config_dict:
        _deep_merge(data, _unwrap(config_dict))

    # 3. 从环境变量覆盖（如果指定了前缀）
    if env_prefix:
        _override_from_env(data, env_prefix)

    return ReporterConfig(**data)


def load_config_from_file(config_file: str) -> ReporterConfig:
    """从 YAML 文件加载配置"""
    return load_config(config_file=config_file)


def _unwrap(data: Dict[str, Any]) -> Dict[str, Any]:
    """去掉可选的根键"""
    return dict(data.get("newrelic_reporter") or data.get("reporter") or data)


def _deep_merge(base: Dict, override: Dict) -> None:
    """深度合并字典"""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _override_from_env(data: Dict, prefix: str) -> None:
    """从环境变量覆盖配置"""
    prefix = prefix.upper()

    # 定义环境变量到配置路径的映射
    env_mappings = {
        f"{prefix}_ENABLED": ("enabled",),
        f"{prefix}_PERIOD": ("period",),
        f"{prefix}_RATE_UNIT": ("rate_unit",),
        f"{prefix}_DURATION_UNIT": ("duration_unit",),
        f"{prefix}_SINK_TYPE": ("sink", "type"),
        f"{prefix}_SINK_APPLICATION": ("sink", "application"),
    }

    for env_var, path in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested(data, path, _parse_env_value(value))


def _set_nested(data: Dict, path: tuple, value: Any) -> None:
    """设置嵌套字典的值"""
    for key in path[:-1]:
        data = data.setdefault(key, {})
    data[path[-1]] = value


def _parse_env_value(value: str) -> Any:
    """解析环境变量值"""
    lower = value.lower()
    if lower in ("true", "yes"):
        return True
    if lower in ("false", "no"):
        return False
    return value


class ReporterConfigBuilder:
    """上报器配置构建器"""

    def __init__(self):
        self._config: Dict[str, Any] = {
            "enabled": True,
            "sink": {},
        }

    def with_enabled(self, enabled: bool = True) -> "ReporterConfigBuilder":
        """设置是否启用"""
        self._config["enabled"] = enabled
        return self

    def with_period(self, period: str, initial_delay: Optional[str] = None) -> "ReporterConfigBuilder":
        """设置上报周期"""
        self._config["period"] = period
        if initial_delay is not None:
            self._config["initial_delay"] = initial_delay
        return self

    def with_units(
        self,
        rate_unit: Union[str, TimeUnit] = TimeUnit.SECONDS,
        duration_unit: Union[str, TimeUnit] = TimeUnit.MILLISECONDS,
        source_duration_unit: Union[str, TimeUnit] = TimeUnit.NANOSECONDS,
    ) -> "ReporterConfigBuilder":
        """设置换算单位"""
        self._config["rate_unit"] = rate_unit
        self._config["duration_unit"] = duration_unit
        self._config["source_duration_unit"] = source_duration_unit
        return self

    def with_filter(
        self,
        include: Optional[List[str]] = None,
        exclude: Optional[List[str]] = None,
    ) -> "ReporterConfigBuilder":
        """设置名称过滤"""
        self._config["include"] = list(include or [])
        self._config["exclude"] = list(exclude or [])
        return self

    def with_newrelic(self, application: Optional[str] = None) -> "ReporterConfigBuilder":
        """配置 New Relic sink"""
        self._config["sink"] = {"type": "newrelic", "application": application}
        return self

    def with_stdout(self) -> "ReporterConfigBuilder":
        """配置 Stdout sink"""
        self._config["sink"] = {"type": "stdout"}
        return self

    def with_otel(
        self,
        meter_name: str = "nrexport",
        **attributes: str,
    ) -> "ReporterConfigBuilder":
        """配置 OpenTelemetry sink"""
        self._config["sink"] = {
            "type": "otel",
            "meter_name": meter_name,
            "attributes": attributes,
        }
        return self

    def with_report_on_stop(self, enabled: bool = True) -> "ReporterConfigBuilder":
        """停止时再上报一次"""
        self._config["report_on_stop"] = enabled
        return self

    def build(self) -> ReporterConfig:
        """构建配置对象"""
        return ReporterConfig(**self._config)
