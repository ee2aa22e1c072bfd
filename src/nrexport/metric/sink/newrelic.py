# -*- coding: utf-8 -*-
"""
New Relic sink

通过 New Relic Python Agent 上报自定义指标。
"""

import logging
from typing import Any, Callable, Optional, Union

logger = logging.getLogger(__name__)


class NewRelicSink:
    """
    New Relic Agent sink

    每个数据点调用一次 newrelic.agent.record_custom_metric(name, value, application)。
    失败不重试，异常原样抛出。

    示例:
        ```python
        import newrelic.agent

        newrelic.agent.initialize("newrelic.ini")
        sink = NewRelicSink(application=newrelic.agent.application())
        sink("Custom/app-metrics/reqs", 42)
        ```
    """

    def __init__(
        self,
        application: Optional[Any] = None,
        record: Optional[Callable[..., Any]] = None,
    ):
        """
        初始化 New Relic sink

        Args:
            application: New Relic Application 对象，None 表示使用当前应用
            record: 替代 record_custom_metric 的上报函数
        """
        if record is None:
            try:
                import newrelic.agent
            except ImportError:
                raise ImportError(
                    "newrelic is required for NewRelicSink. Install with: pip install newrelic"
                )
            record = newrelic.agent.record_custom_metric
            logger.info("NewRelic sink created: application=%s", application)

        self._record = record
        self._application = application

    def __call__(self, name: str, value: Union[int, float]) -> None:
        self._record(name, value, application=self._application)
