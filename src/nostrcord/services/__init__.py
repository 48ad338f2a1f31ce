"""Long-running services built on [BaseService][nostrcord.core.base_service.BaseService].

Attributes:
    Bridge: Relays one Discord channel to Nostr NIP-17 subscribers and back.

See Also:
    [nostrcord.services.bridge][]: The bridge package (configs, commands,
        pipeline and network adapters).
"""

from .bridge import Bridge, BridgeConfig


__all__ = ["Bridge", "BridgeConfig"]
