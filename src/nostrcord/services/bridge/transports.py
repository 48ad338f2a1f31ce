"""Network adapter interfaces used by the relay pipeline.

The pipeline only ever talks to the two networks through these protocols,
so tests can drive it with in-memory fakes and the real adapters
([DiscordGateway][nostrcord.services.bridge.discord_gateway.DiscordGateway],
[NostrTransport][nostrcord.services.bridge.nostr_transport.NostrTransport])
stay thin.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, TypeAlias, runtime_checkable


if TYPE_CHECKING:
    from nostrcord.models.identity import Identity
    from nostrcord.models.message import Attachment, ChatEvent, DirectMessage, NetworkMessage
    from nostrcord.models.profile import ProfileAttributes


ChatEventSink: TypeAlias = Callable[["ChatEvent"], Awaitable[object]]
DirectMessageSink: TypeAlias = Callable[["DirectMessage"], Awaitable[object]]


@runtime_checkable
class ChatGateway(Protocol):
    """Posting side of the chat network."""

    async def post(self, message: NetworkMessage) -> None:
        """Post ``message`` into the bridged channel.

        Raises:
            TransportError: If the message could not be posted.
        """
        ...


@runtime_checkable
class EncryptedTransport(Protocol):
    """Sending and lookup side of the encrypted network."""

    async def send_private(
        self,
        identity: Identity,
        text: str,
        attachment: Attachment | None = None,
    ) -> bool:
        """Send ``text`` as a private message to ``identity``.

        Returns:
            ``True`` if at least one relay accepted the message.
        """
        ...

    async def fetch_profile(
        self,
        identity: Identity,
        timeout: float,  # noqa: ASYNC109
    ) -> ProfileAttributes | None:
        """Look up the published profile of ``identity``.

        Returns:
            The profile attributes, or ``None`` if none is published.

        Raises:
            TransportError: If the lookup failed.
        """
        ...


class MetricsSink(Protocol):
    """Counter/gauge/histogram hooks, satisfied by ``BaseService``."""

    def inc_counter(self, name: str, value: float = 1) -> None: ...

    def set_gauge(self, name: str, value: float) -> None: ...

    def observe_relay(self, direction: str, seconds: float) -> None: ...
