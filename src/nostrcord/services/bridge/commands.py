"""Subscription commands sent to the bridge over private messages.

A subscriber controls their membership by DMing the bridge one of the
[Command][nostrcord.models.constants.Command] strings. Anything else falls
through to the relay pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from nostrcord.core.logger import Logger
from nostrcord.models.constants import Command


if TYPE_CHECKING:
    from nostrcord.core.registry import SubscriberRegistry
    from nostrcord.models.identity import Identity


SUBSCRIBED: Final[str] = (
    "You are now subscribed. Messages from the channel will be forwarded to you. "
    "Send !unsubscribe to stop."
)
ALREADY_SUBSCRIBED: Final[str] = "You are already subscribed."
UNSUBSCRIBED: Final[str] = (
    "You have been unsubscribed and will no longer receive channel messages. "
    "Send !subscribe to join again."
)
NOT_SUBSCRIBED: Final[str] = "You are not subscribed."
HELP: Final[str] = (
    "This bot bridges a Discord channel with Nostr direct messages.\n"
    "!subscribe - receive channel messages and post to the channel\n"
    "!unsubscribe - stop receiving channel messages\n"
    "!help - show this message"
)
NOT_SUBSCRIBED_NOTICE: Final[str] = (
    "Your message was not forwarded because you are not subscribed. "
    "Send !subscribe to join, or !help for more information."
)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a recognized command.

    Attributes:
        command: The command that was matched.
        reply: Text to send back to the sender.
        changed: Whether the registry was modified.
    """

    command: Command
    reply: str
    changed: bool = False


class CommandInterpreter:
    """Recognizes subscription commands and applies them to the registry."""

    def __init__(self, registry: SubscriberRegistry) -> None:
        self._registry = registry
        self._logger = Logger("bridge.commands")

    @staticmethod
    def parse(text: str) -> Command | None:
        """Return the command ``text`` spells, if any (exact, case-sensitive)."""
        try:
            return Command(text.strip())
        except ValueError:
            return None

    async def handle(self, sender: Identity, text: str) -> CommandResult | None:
        """Apply the command in ``text`` on behalf of ``sender``.

        Returns:
            The reply to send, or ``None`` when ``text`` is not a command.
        """
        command = self.parse(text)
        if command is None:
            return None

        if command is Command.SUBSCRIBE:
            added = await self._registry.add(sender)
            result = CommandResult(command, SUBSCRIBED if added else ALREADY_SUBSCRIBED, added)
        elif command is Command.UNSUBSCRIBE:
            removed = await self._registry.remove(sender)
            result = CommandResult(command, UNSUBSCRIBED if removed else NOT_SUBSCRIBED, removed)
        else:
            result = CommandResult(command, HELP)

        self._logger.info(
            "command_handled",
            command=command.value,
            pubkey=sender.to_bech32(),
            changed=result.changed,
        )
        return result
