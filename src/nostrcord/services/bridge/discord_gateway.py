"""Discord side of the bridge, built on discord.py.

[DiscordGateway][nostrcord.services.bridge.discord_gateway.DiscordGateway]
is a ``discord.Client`` that turns every message it sees into a
[ChatEvent][nostrcord.models.message.ChatEvent] for the pipeline, and
implements [ChatGateway][nostrcord.services.bridge.transports.ChatGateway]
by posting relayed Nostr messages into the bridged channel as embeds.

Channel, bot and message-kind filtering is left to the pipeline so that the
policy lives in one place.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import TYPE_CHECKING, Final

import discord

from nostrcord.core.exceptions import TransportError
from nostrcord.core.logger import Logger
from nostrcord.models.constants import ChatMessageKind
from nostrcord.models.message import Attachment, ChatEvent


if TYPE_CHECKING:
    from nostrcord.models.message import NetworkMessage

    from .transports import ChatEventSink


_MESSAGE_KINDS: Final[dict[discord.MessageType, ChatMessageKind]] = {
    discord.MessageType.default: ChatMessageKind.REGULAR,
    discord.MessageType.reply: ChatMessageKind.REPLY,
}

# Discord embed description limit
_MAX_EMBED_DESCRIPTION: Final[int] = 4096

_EMBED_COLOR: Final[int] = 0x8E30EB


def message_kind(message_type: discord.MessageType) -> ChatMessageKind:
    """Normalize a Discord message type; anything but default/reply is SYSTEM."""
    return _MESSAGE_KINDS.get(message_type, ChatMessageKind.SYSTEM)


def build_embed(message: NetworkMessage) -> discord.Embed:
    """Render a relayed Nostr message as a Discord embed."""
    content = message.content
    if len(content) > _MAX_EMBED_DESCRIPTION:
        content = content[: _MAX_EMBED_DESCRIPTION - 3] + "..."
    embed = discord.Embed(description=content, color=_EMBED_COLOR)
    embed.set_author(name=message.username, icon_url=message.avatar_url)
    embed.set_footer(text=message.pubkey)
    return embed


class DiscordGateway(discord.Client):
    """discord.py client bound to one bridged channel.

    Args:
        channel_id: The bridged text channel.
        sink: Coroutine receiving every observed message as a ``ChatEvent``.
            May be bound after construction; messages are ignored until then.
    """

    def __init__(self, channel_id: int, sink: ChatEventSink | None = None) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents)
        self._channel_id = channel_id
        self.sink = sink
        self._logger = Logger("bridge.discord")

    async def on_ready(self) -> None:
        self._logger.info("discord_connected", user=str(self.user), channel_id=self._channel_id)

    async def on_message(self, message: discord.Message) -> None:
        if self.sink is None or message.author == self.user:
            return
        event = await self.to_chat_event(message)
        await self.sink(event)

    async def to_chat_event(self, message: discord.Message) -> ChatEvent:
        """Map a ``discord.Message`` onto a [ChatEvent][nostrcord.models.message.ChatEvent].

        Image bytes are only downloaded for messages in the bridged channel.
        """
        bridged = message.channel.id == self._channel_id
        return ChatEvent(
            author=message.author.name,
            content=message.content,
            channel_id=message.channel.id,
            is_bot=message.author.bot,
            kind=message_kind(message.type),
            attachment=await self._read_image(message) if bridged else None,
        )

    async def _read_image(self, message: discord.Message) -> Attachment | None:
        for item in message.attachments:
            if not (item.content_type or "").startswith("image/"):
                continue
            try:
                data = await item.read()
            except discord.HTTPException as e:
                self._logger.warning("attachment_read_failed", filename=item.filename, error=str(e))
                return None
            extension = PurePath(item.filename).suffix or (item.content_type or "").split("/")[-1]
            return Attachment(data=data, extension=extension, filename=item.filename)
        return None

    async def post(self, message: NetworkMessage) -> None:
        """Post ``message`` into the bridged channel.

        Raises:
            TransportError: If the channel is unknown or Discord rejects the post.
        """
        channel = self.get_channel(self._channel_id)
        if channel is None:
            try:
                channel = await self.fetch_channel(self._channel_id)
            except discord.DiscordException as e:
                raise TransportError(f"Channel {self._channel_id} unavailable: {e}") from e
        if not isinstance(channel, discord.abc.Messageable):
            raise TransportError(f"Channel {self._channel_id} is not a text channel")

        try:
            await channel.send(embed=build_embed(message))
        except discord.DiscordException as e:
            raise TransportError(f"Discord post failed: {e}") from e
