"""Pure frozen dataclasses for identities, profiles, and relayed messages.

The models layer is the foundation of the package. It performs no I/O and
depends only on the standard library, ``nostr_sdk`` (key encoding) and
``rfc3986`` (URL validation). Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__``
so invalid instances never escape the constructor.

Attributes:
    Identity: Nostr public key with hex and ``npub`` encodings.
    Profile: Cached display attributes of an identity, with ``best_name``
        and staleness checks.
    ProfileAttributes: Raw profile fields returned by a fetcher.
    ChatMessage: Chat-origin content bound for Nostr subscribers.
    NetworkMessage: Nostr-origin content bound for the chat channel.
    ChatEvent: Unfiltered event from the chat gateway.
    DirectMessage: Decrypted private message from the Nostr transport.
    Attachment: Image bytes with an extension hint.

See Also:
    [nostrcord.models.constants][]: Shared enumerations and limits.
"""

from .constants import (
    DEFAULT_QUEUE_SIZE,
    PROFILE_FETCH_TIMEOUT,
    PROFILE_LIFETIME,
    RELAYABLE_CHAT_KINDS,
    ChatMessageKind,
    Command,
    EventKind,
    ServiceName,
)
from .identity import Identity
from .message import (
    Attachment,
    ChatEvent,
    ChatMessage,
    DirectMessage,
    NetworkMessage,
    RelayMessage,
)
from .profile import Profile, ProfileAttributes


__all__ = [
    "DEFAULT_QUEUE_SIZE",
    "PROFILE_FETCH_TIMEOUT",
    "PROFILE_LIFETIME",
    "RELAYABLE_CHAT_KINDS",
    "Attachment",
    "ChatEvent",
    "ChatMessage",
    "ChatMessageKind",
    "Command",
    "DirectMessage",
    "EventKind",
    "Identity",
    "NetworkMessage",
    "Profile",
    "ProfileAttributes",
    "RelayMessage",
    "ServiceName",
]
