"""
Units of content moved between the chat channel and Nostr.

Two directions, two message types:

* [ChatMessage][nostrcord.models.message.ChatMessage] -- chat-origin content
  headed for every subscriber as a private message.
* [NetworkMessage][nostrcord.models.message.NetworkMessage] -- a subscriber's
  private message headed for the chat channel, carrying the resolved display
  identity of its sender.

[RelayMessage][nostrcord.models.message.RelayMessage] is the union of both.
Each variant is immutable and self-describing: rendering it never requires a
lookup elsewhere. Formatting is the only place the pipeline treats the two
differently, through their ``format()`` methods.

The raw inputs from the two networks, before any policy is applied, are
[ChatEvent][nostrcord.models.message.ChatEvent] and
[DirectMessage][nostrcord.models.message.DirectMessage].
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from typing import TypeAlias

from ._validation import (
    validate_instance,
    validate_optional_str,
    validate_str_no_null,
    validate_str_not_empty,
)
from .constants import ChatMessageKind
from .identity import Identity


@dataclass(frozen=True, slots=True)
class Attachment:
    """A single image attached to a chat message.

    Attributes:
        data: Raw file bytes, passed through to the transport unmodified.
        extension: File extension hint without the leading dot (``png``).
        filename: Original file name, if the gateway reported one.
    """

    data: bytes = field(repr=False)
    extension: str
    filename: str | None = None

    def __post_init__(self) -> None:
        validate_instance(self.data, bytes, "data")
        validate_str_no_null(self.extension, "extension")
        object.__setattr__(self, "extension", self.extension.lstrip(".").lower())
        validate_optional_str(self.filename, "filename")

    @property
    def mime_type(self) -> str:
        guessed, _ = mimetypes.guess_type(f"file.{self.extension}")
        return guessed or "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """Chat-origin message, fanned out to subscribers as a private message.

    Attributes:
        author: Display label of the chat author.
        content: Message text.
        attachment: Optional image attachment.
    """

    author: str
    content: str
    attachment: Attachment | None = None

    def __post_init__(self) -> None:
        validate_str_not_empty(self.author, "author")
        validate_str_no_null(self.content, "content")
        if self.attachment is not None:
            validate_instance(self.attachment, Attachment, "attachment")

    def format(self) -> str:
        """Render as ``[<author>]: <content>``."""
        return f"[{self.author}]: {self.content}"


@dataclass(frozen=True, slots=True)
class NetworkMessage:
    """Network-origin message, posted into the chat channel.

    Attributes:
        content: Message text.
        username: Resolved display name of the sender (``Profile.best_name``).
        pubkey: Sender's canonical ``npub``.
        avatar_url: Optional avatar picture URL.
    """

    content: str
    username: str
    pubkey: str
    avatar_url: str | None = None

    def __post_init__(self) -> None:
        validate_str_no_null(self.content, "content")
        validate_str_not_empty(self.username, "username")
        validate_str_not_empty(self.pubkey, "pubkey")
        validate_optional_str(self.avatar_url, "avatar_url")

    def format(self) -> str:
        """Render as ``**<username>**: <content>`` (chat markdown)."""
        return f"**{self.username}**: {self.content}"


RelayMessage: TypeAlias = ChatMessage | NetworkMessage


@dataclass(frozen=True, slots=True)
class ChatEvent:
    """A message observed on the chat gateway, before filtering.

    Attributes:
        author: Author display label.
        content: Message text.
        channel_id: Identifier of the channel the message was posted in.
        is_bot: Whether the author is an automated account.
        kind: Normalized message kind.
        attachment: First image attachment, if any.
    """

    author: str
    content: str
    channel_id: int
    is_bot: bool = False
    kind: ChatMessageKind = ChatMessageKind.REGULAR
    attachment: Attachment | None = None

    def to_chat_message(self) -> ChatMessage:
        return ChatMessage(author=self.author, content=self.content, attachment=self.attachment)


@dataclass(frozen=True, slots=True)
class DirectMessage:
    """A decrypted private message delivered by the encrypted transport.

    Attributes:
        sender: Identity of the rumor's author (the seal signer).
        kind: Event kind of the unwrapped rumor.
        content: Message text, untrimmed.
    """

    sender: Identity
    kind: int
    content: str

    def __post_init__(self) -> None:
        validate_instance(self.sender, Identity, "sender")
        validate_str_no_null(self.content, "content")
