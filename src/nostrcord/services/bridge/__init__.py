"""Discord <-> Nostr NIP-17 bridge service.

See Also:
    [Bridge][nostrcord.services.bridge.service.Bridge]: The service class.
    [BridgeConfig][nostrcord.services.bridge.configs.BridgeConfig]: Service configuration.
    [RelayPipeline][nostrcord.services.bridge.pipeline.RelayPipeline]: The
        two forwarding loops.
"""

from .commands import CommandInterpreter, CommandResult
from .configs import (
    BlossomConfig,
    BridgeConfig,
    DiscordConfig,
    MetadataConfig,
    StorageConfig,
)
from .pipeline import FanoutResult, InboundOutcome, RelayPipeline
from .service import Bridge
from .transports import ChatGateway, EncryptedTransport


__all__ = [
    "BlossomConfig",
    "Bridge",
    "BridgeConfig",
    "ChatGateway",
    "CommandInterpreter",
    "CommandResult",
    "DiscordConfig",
    "EncryptedTransport",
    "FanoutResult",
    "InboundOutcome",
    "MetadataConfig",
    "RelayPipeline",
    "StorageConfig",
]
