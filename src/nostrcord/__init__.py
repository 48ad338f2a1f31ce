r"""nostrcord -- bridge a Discord channel to Nostr private messages.

Messages posted in one Discord channel are fanned out as NIP-17 private
messages to every Nostr user who subscribed with ``!subscribe``; their
replies are posted back into the channel under their Nostr display name.

Imports flow strictly downward:

```text
        services        Bridge service, pipeline, network adapters
        /      \
     core     utils     Registry, cache, logging, metrics / keys, client
        \      /
        models          Pure frozen dataclasses (zero I/O)
```

Note:
    Top-level imports (``from nostrcord import Bridge``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrcord")

__all__ = [
    "BaseService",
    "Bridge",
    "BridgeConfig",
    "ChatMessage",
    "Identity",
    "Logger",
    "MetadataCache",
    "NetworkMessage",
    "Profile",
    "RelayPipeline",
    "SubscriberRegistry",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("nostrcord.core", "BaseService"),
    "Logger": ("nostrcord.core", "Logger"),
    "MetadataCache": ("nostrcord.core", "MetadataCache"),
    "SubscriberRegistry": ("nostrcord.core", "SubscriberRegistry"),
    "ChatMessage": ("nostrcord.models", "ChatMessage"),
    "Identity": ("nostrcord.models", "Identity"),
    "NetworkMessage": ("nostrcord.models", "NetworkMessage"),
    "Profile": ("nostrcord.models", "Profile"),
    "Bridge": ("nostrcord.services", "Bridge"),
    "BridgeConfig": ("nostrcord.services", "BridgeConfig"),
    "RelayPipeline": ("nostrcord.services.bridge", "RelayPipeline"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrcord' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
