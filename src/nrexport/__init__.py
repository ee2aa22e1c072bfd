"""
nrexport flattens in-process metric snapshots into New Relic custom metrics.

Modules:
- nrexport.metric: snapshot types, registry, flattening and scheduled reporters
- nrexport.metric.sink: New Relic / Stdout / OpenTelemetry sinks
- nrexport.config: pydantic configuration with YAML loading
- nrexport.service: config-driven reporter service
"""

from nrexport.__version__ import __version__

__all__ = ["__version__"]
