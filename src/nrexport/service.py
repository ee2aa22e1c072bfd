# -*- coding: utf-8 -*-
"""
上报服务

提供：
- 统一的初始化入口
- 配置驱动的 sink / 上报器 / 定时线程装配
- 支持 YAML 配置文件
"""

import logging
from typing import Any, Dict, Optional

from nrexport.config import ReporterConfig, load_config, load_config_from_file
from nrexport.metric.registry import MetricFilter, MetricRegistry
from nrexport.metric.reporter import NewRelicReporter
from nrexport.metric.scheduled import ScheduledReporter
from nrexport.metric.sink.factory import build_sink

logger = logging.getLogger(__name__)


class ReporterService:
    """
    上报服务

    示例:
        ```python
        # 从 YAML 配置文件创建
        service = ReporterService.from_config_file("config.yaml")
        service.install(registry)

        # 使用 Builder
        config = (
            ReporterConfigBuilder()
            .with_period("30s")
            .with_units(rate_unit="minutes", duration_unit="seconds")
            .with_stdout()
            .build()
        )
        service = ReporterService(config)
        service.install()
        service.registry.gauge("q.depth", lambda: len(queue))
        ...
        service.shutdown()
        ```
    """

    def __init__(self, config: ReporterConfig):
        """
        初始化上报服务

        Args:
            config: ReporterConfig 配置对象
        """
        self._config = config
        self._registry: Optional[MetricRegistry] = None
        self._scheduled: Optional[ScheduledReporter] = None

    @classmethod
    def from_config_file(cls, config_file: str) -> "ReporterService":
        """从 YAML 配置文件创建"""
        return cls(load_config_from_file(config_file))

    @classmethod
    def from_config_dict(cls, config_dict: Dict[str, Any]) -> "ReporterService":
        """从配置字典创建"""
        return cls(load_config(config_dict=config_dict))

    @property
    def config(self) -> ReporterConfig:
        return self._config

    @property
    def registry(self) -> Optional[MetricRegistry]:
        return self._registry

    @property
    def reporter(self) -> Optional[ScheduledReporter]:
        return self._scheduled

    def install(
        self,
        registry: Optional[MetricRegistry] = None,
        sink: Optional[Any] = None,
    ) -> ScheduledReporter:
        """
        装配并（在 enabled 时）启动定时上报

        Args:
            registry: 度量注册表，None 时新建
            sink: 覆盖配置中的 sink

        Returns:
            ScheduledReporter 实例

        Raises:
            RuntimeError: 已经安装
        """
        if self._scheduled is not None:
            raise RuntimeError("ReporterService already installed")

        config = self._config
        self._registry = registry if registry is not None else MetricRegistry()

        builder = (
            NewRelicReporter.for_registry(self._registry)
            .convert_rates_to(config.rate_unit)
            .convert_durations_to(config.duration_unit)
            .durations_measured_in(config.source_duration_unit)
            .report_on_stop(config.report_on_stop)
            .with_sink(sink if sink is not None else build_sink(config.sink))
        )
        if config.include or config.exclude:
            builder.filter(MetricFilter.patterns(include=config.include, exclude=config.exclude))

        self._scheduled = builder.build()

        if config.enabled:
            self._scheduled.start(
                period=config.period_seconds,
                initial_delay=config.initial_delay_seconds,
            )
        else:
            logger.info("Scheduled reporting disabled, call report() manually")

        logger.info(
            "ReporterService installed: enabled=%s, sink=%s, period=%s",
            config.enabled,
            config.sink.type.value,
            config.period,
        )
        return self._scheduled

    def report(self) -> None:
        """立即上报一次"""
        if self._scheduled is None:
            raise RuntimeError("ReporterService not installed")
        self._scheduled.report()

    def shutdown(self) -> None:
        """停止定时上报"""
        if self._scheduled is not None:
            self._scheduled.stop()
            logger.info("ReporterService shutdown completed")
