"""Core layer: infrastructure shared by every nostrcord service.

Depends only on ``nostrcord.models`` and is depended upon by
``nostrcord.services``.

Attributes:
    SubscriberRegistry: Persisted set of subscribed identities.
        See [SubscriberRegistry][nostrcord.core.registry.SubscriberRegistry].
    MetadataCache: Persisted identity -> profile cache with lazy refresh.
        See [MetadataCache][nostrcord.core.metadata_cache.MetadataCache].
    BaseService: Abstract generic base class with lifecycle management
        ([run()][nostrcord.core.base_service.BaseService.run] /
        [run_forever()][nostrcord.core.base_service.BaseService.run_forever] /
        shutdown), factory methods and Prometheus metrics integration.
    Logger: Structured logger supporting key=value and JSON output modes.
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.

Examples:
    ```python
    from nostrcord.core import MetadataCache, SubscriberRegistry

    registry = SubscriberRegistry(Path("subscribers.txt"))
    registry.load()
    cache = MetadataCache(Path("metadata_cache.json"))
    cache.load()
    ```
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .exceptions import (
    ConfigurationError,
    NostrcordError,
    PersistenceError,
    ProtocolError,
    TransportError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metadata_cache import MetadataCache, ProfileFetcher
from .metrics import (
    RELAY_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .persistence import read_snapshot, write_snapshot
from .registry import SubscriberRegistry
from .yaml import load_yaml


__all__ = [
    "RELAY_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "Logger",
    "MetadataCache",
    "MetricsConfig",
    "MetricsServer",
    "NostrcordError",
    "PersistenceError",
    "ProfileFetcher",
    "ProtocolError",
    "StructuredFormatter",
    "SubscriberRegistry",
    "TransportError",
    "format_kv_pairs",
    "load_yaml",
    "read_snapshot",
    "start_metrics_server",
    "write_snapshot",
]
