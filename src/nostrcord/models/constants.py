"""Shared constants for the models layer.

Defines enumerations and limits that are used across multiple model and
service modules. Placing them here avoids circular dependencies between
the models, core and services layers.

See Also:
    [nostrcord.models.message][]: Uses [ChatMessageKind][nostrcord.models.constants.ChatMessageKind]
        to classify gateway events.
    [nostrcord.services.bridge.pipeline][]: Filters direct messages by
        [EventKind][nostrcord.models.constants.EventKind].
"""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Final


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics.

    The string values are used as the ``service`` label in Prometheus
    metrics and as the logger name of each service.

    Attributes:
        BRIDGE: The Discord <-> Nostr relay service
            ([Bridge][nostrcord.services.bridge.Bridge]).
    """

    BRIDGE = "bridge"


class EventKind(IntEnum):
    """Nostr event kinds handled by the bridge.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata (NIP-01).
        PRIVATE_DIRECT_MESSAGE: Kind 14 -- chat message rumor carried inside
            a NIP-17 gift wrap.
        SEAL: Kind 13 -- NIP-59 seal wrapping the rumor.
        GIFT_WRAP: Kind 1059 -- NIP-59 gift wrap envelope.
        BLOSSOM_AUTH: Kind 24242 -- Blossom authorization event (BUD-01).
    """

    SET_METADATA = 0
    SEAL = 13
    PRIVATE_DIRECT_MESSAGE = 14
    GIFT_WRAP = 1059
    BLOSSOM_AUTH = 24_242


class ChatMessageKind(StrEnum):
    """Chat gateway message kinds, normalized from the platform's own types.

    Only [REGULAR][nostrcord.models.constants.ChatMessageKind.REGULAR] and
    [REPLY][nostrcord.models.constants.ChatMessageKind.REPLY] messages are
    relayed; everything else (joins, pins, thread notices, ...) is a system
    message and is dropped.
    """

    REGULAR = "regular"
    REPLY = "reply"
    SYSTEM = "system"


class Command(StrEnum):
    """Bot commands accepted over private messages.

    Matched exactly and case-sensitively against the trimmed message text.
    """

    SUBSCRIBE = "!subscribe"
    UNSUBSCRIBE = "!unsubscribe"
    HELP = "!help"


RELAYABLE_CHAT_KINDS: Final[frozenset[ChatMessageKind]] = frozenset(
    {ChatMessageKind.REGULAR, ChatMessageKind.REPLY}
)

# A cached profile is fresh for one day after it was last fetched
PROFILE_LIFETIME: Final[int] = 60 * 60 * 24

PROFILE_FETCH_TIMEOUT: Final[float] = 15.0

DEFAULT_QUEUE_SIZE: Final[int] = 100

# Length of the bech32 prefix kept when rendering an Identity as a fallback name
SHORT_IDENTITY_LENGTH: Final[int] = 12
