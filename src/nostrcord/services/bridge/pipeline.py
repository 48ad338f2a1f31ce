"""Bidirectional relay between the chat channel and Nostr private messages.

[RelayPipeline][nostrcord.services.bridge.pipeline.RelayPipeline] owns two
bounded queues, one per direction:

* **outbound** (chat -> Nostr): gateway events are filtered
  ([submit_chat_event()][nostrcord.services.bridge.pipeline.RelayPipeline.submit_chat_event])
  and queued as [ChatMessage][nostrcord.models.message.ChatMessage];
  [run_outbound()][nostrcord.services.bridge.pipeline.RelayPipeline.run_outbound]
  fans each one out to every subscriber.
* **inbound** (Nostr -> chat): each decrypted DM is evaluated by
  [submit_direct_message()][nostrcord.services.bridge.pipeline.RelayPipeline.submit_direct_message],
  which ends in exactly one [InboundOutcome][nostrcord.services.bridge.pipeline.InboundOutcome];
  relayed messages are queued as [NetworkMessage][nostrcord.models.message.NetworkMessage]
  and posted by [run_inbound()][nostrcord.services.bridge.pipeline.RelayPipeline.run_inbound].

Producers ``await`` on full queues instead of dropping. Each direction is
FIFO; nothing is ordered across directions. Delivery is at-most-once per
attempt: failed sends and posts are logged and counted, never retried.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from nostrcord.core.exceptions import TransportError
from nostrcord.core.logger import Logger
from nostrcord.models.constants import RELAYABLE_CHAT_KINDS, EventKind
from nostrcord.models.message import ChatMessage, NetworkMessage

from .commands import NOT_SUBSCRIBED_NOTICE, CommandInterpreter


if TYPE_CHECKING:
    from nostrcord.core.metadata_cache import MetadataCache
    from nostrcord.core.registry import SubscriberRegistry
    from nostrcord.models.identity import Identity
    from nostrcord.models.message import ChatEvent, DirectMessage

    from .configs import BridgeConfig
    from .transports import ChatGateway, EncryptedTransport, MetricsSink


DIRECT_MESSAGE_KINDS: Final[frozenset[int]] = frozenset({EventKind.PRIVATE_DIRECT_MESSAGE})


class InboundOutcome(StrEnum):
    """Terminal state of one inbound private message."""

    SELF_FILTERED = "self_filtered"
    KIND_FILTERED = "kind_filtered"
    COMMAND_HANDLED = "command_handled"
    NOT_SUBSCRIBED = "not_subscribed"
    RELAYED = "relayed"
    DROPPED = "dropped"


@dataclass(slots=True)
class FanoutResult:
    """Per-recipient results of relaying one chat message."""

    delivered: list[Identity] = field(default_factory=list)
    failed: list[Identity] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


class RelayPipeline:
    """Moves messages between the chat gateway and the encrypted transport.

    Args:
        registry: Subscribers that receive chat traffic and may post to it.
        cache: Profile cache used to label inbound messages.
        gateway: Chat network adapter.
        transport: Encrypted network adapter.
        own_identity: The bridge's own public identity (self-loop filter).
        config: Bridge configuration (channel id and queue capacity).
        metrics: Optional counter/gauge sink, normally the owning service.
    """

    def __init__(  # noqa: PLR0913
        self,
        registry: SubscriberRegistry,
        cache: MetadataCache,
        gateway: ChatGateway,
        transport: EncryptedTransport,
        own_identity: Identity,
        config: BridgeConfig,
        metrics: MetricsSink | None = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._gateway = gateway
        self._transport = transport
        self._own_identity = own_identity
        self._channel_id = config.discord.channel_id
        self._metrics = metrics
        self._commands = CommandInterpreter(registry)
        self.outbound: asyncio.Queue[ChatMessage] = asyncio.Queue(maxsize=config.queue_size)
        self.inbound: asyncio.Queue[NetworkMessage] = asyncio.Queue(maxsize=config.queue_size)
        self._logger = Logger("bridge.pipeline")

    # -------------------------------------------------------------------------
    # Outbound: chat -> private messages
    # -------------------------------------------------------------------------

    async def submit_chat_event(self, event: ChatEvent) -> bool:
        """Queue a gateway event for fan-out if it passes the channel filters.

        Suspends while the outbound queue is full.

        Returns:
            ``True`` if the event was queued.
        """
        if event.channel_id != self._channel_id:
            return False
        if event.is_bot:
            return False
        if event.kind not in RELAYABLE_CHAT_KINDS:
            return False
        if not event.content.strip() and event.attachment is None:
            return False

        await self.outbound.put(event.to_chat_message())
        self._set_gauge("outbound_queue_size", self.outbound.qsize())
        return True

    async def relay_outbound(self, message: ChatMessage) -> FanoutResult:
        """Send ``message`` privately to every current subscriber.

        Each recipient is independent: a failed send is logged and the
        fan-out continues with the next one.
        """
        text = message.format()
        result = FanoutResult()
        started = time.monotonic()

        for identity in sorted(self._registry.snapshot(), key=lambda i: i.hex):
            try:
                ok = await self._transport.send_private(identity, text, message.attachment)
            except TransportError as e:
                self._logger.warning(
                    "private_send_failed", pubkey=identity.to_bech32(), error=str(e)
                )
                ok = False
            except Exception as e:  # Intentionally broad: one recipient never aborts the fan-out
                self._logger.error(
                    "private_send_failed",
                    pubkey=identity.to_bech32(),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                ok = False
            else:
                if not ok:
                    self._logger.warning("private_send_failed", pubkey=identity.to_bech32())

            if ok:
                result.delivered.append(identity)
            else:
                result.failed.append(identity)

        self._inc_counter("messages_relayed_outbound")
        if result.failed:
            self._inc_counter("private_sends_failed", len(result.failed))
        self._observe("outbound", time.monotonic() - started)
        self._logger.info(
            "message_relayed_outbound",
            author=message.author,
            delivered=len(result.delivered),
            failed=len(result.failed),
            attachment=message.attachment is not None,
        )
        return result

    async def run_outbound(self) -> None:
        """Drain the outbound queue in FIFO order until cancelled."""
        self._logger.info("outbound_loop_started")
        while True:
            message = await self.outbound.get()
            try:
                await self.relay_outbound(message)
            finally:
                self.outbound.task_done()
                self._set_gauge("outbound_queue_size", self.outbound.qsize())

    # -------------------------------------------------------------------------
    # Inbound: private messages -> chat
    # -------------------------------------------------------------------------

    async def submit_direct_message(self, dm: DirectMessage) -> InboundOutcome:
        """Evaluate one decrypted private message.

        Steps, each terminal when it applies: drop messages from the
        bridge itself, drop non-DM kinds, apply commands, reject
        non-subscribers with a notice, otherwise resolve the sender's
        profile and queue the message for the channel. An unexpected error
        drops the message instead of escaping to the transport's listener.
        """
        try:
            outcome = await self._evaluate(dm)
        except Exception as e:  # Intentionally broad: per-message error boundary
            self._logger.error(
                "direct_message_dropped",
                pubkey=dm.sender.to_bech32(),
                error=str(e),
                error_type=type(e).__name__,
            )
            outcome = InboundOutcome.DROPPED
        self._inc_counter(f"inbound_{outcome.value}")
        self._logger.debug(
            "direct_message_evaluated", pubkey=dm.sender.to_bech32(), outcome=outcome.value
        )
        return outcome

    async def _evaluate(self, dm: DirectMessage) -> InboundOutcome:
        sender = dm.sender
        if sender == self._own_identity:
            return InboundOutcome.SELF_FILTERED
        if dm.kind not in DIRECT_MESSAGE_KINDS:
            return InboundOutcome.KIND_FILTERED

        result = await self._commands.handle(sender, dm.content)
        if result is not None:
            await self._reply(sender, result.reply)
            if result.changed:
                self._set_gauge("subscribers", len(self._registry))
            return InboundOutcome.COMMAND_HANDLED

        if not self._registry.contains(sender):
            self._logger.info("message_rejected_not_subscribed", pubkey=sender.to_bech32())
            await self._reply(sender, NOT_SUBSCRIBED_NOTICE)
            return InboundOutcome.NOT_SUBSCRIBED

        profile = await self._cache.fetch(sender, self._transport.fetch_profile)
        self._set_gauge("cached_profiles", len(self._cache))
        message = NetworkMessage(
            content=dm.content.strip(),
            username=profile.best_name,
            pubkey=sender.to_bech32(),
            avatar_url=profile.picture,
        )
        await self.inbound.put(message)
        self._set_gauge("inbound_queue_size", self.inbound.qsize())
        return InboundOutcome.RELAYED

    async def _reply(self, identity: Identity, text: str) -> None:
        try:
            ok = await self._transport.send_private(identity, text)
        except TransportError as e:
            self._logger.warning("reply_send_failed", pubkey=identity.to_bech32(), error=str(e))
            return
        if not ok:
            self._logger.warning("reply_send_failed", pubkey=identity.to_bech32())

    async def run_inbound(self) -> None:
        """Post queued network messages to the channel in FIFO order until cancelled."""
        self._logger.info("inbound_loop_started")
        while True:
            message = await self.inbound.get()
            started = time.monotonic()
            try:
                await self._gateway.post(message)
            except TransportError as e:
                self._inc_counter("chat_posts_failed")
                self._logger.error("chat_post_failed", pubkey=message.pubkey, error=str(e))
            else:
                self._inc_counter("messages_relayed_inbound")
                self._observe("inbound", time.monotonic() - started)
                self._logger.info(
                    "message_relayed_inbound", pubkey=message.pubkey, username=message.username
                )
            finally:
                self.inbound.task_done()
                self._set_gauge("inbound_queue_size", self.inbound.qsize())

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _inc_counter(self, name: str, value: float = 1) -> None:
        if self._metrics is not None:
            self._metrics.inc_counter(name, value)

    def _set_gauge(self, name: str, value: float) -> None:
        if self._metrics is not None:
            self._metrics.set_gauge(name, value)

    def _observe(self, direction: str, seconds: float) -> None:
        if self._metrics is not None:
            self._metrics.observe_relay(direction, seconds)
