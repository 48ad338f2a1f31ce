"""Bridge service: one Discord channel <-> Nostr NIP-17 private messages.

Wires the persisted state
([SubscriberRegistry][nostrcord.core.registry.SubscriberRegistry],
[MetadataCache][nostrcord.core.metadata_cache.MetadataCache]), the two
network adapters and the
[RelayPipeline][nostrcord.services.bridge.pipeline.RelayPipeline], and owns
the four long-lived tasks:

1. Nostr listener (gift wraps -> ``submit_direct_message``).
2. Discord client (channel messages -> ``submit_chat_event``).
3. Outbound loop (chat -> subscribers).
4. Inbound loop (subscribers -> chat).

[run()][nostrcord.services.bridge.service.Bridge.run] returns as soon as
any task ends or shutdown is requested; the other tasks are cancelled and
both clients closed. [run_forever()][nostrcord.core.base_service.BaseService.run_forever]
then restarts the whole set after ``restart_delay``.

See Also:
    [BridgeConfig][nostrcord.services.bridge.configs.BridgeConfig]:
        Configuration model for this service.
"""

from __future__ import annotations

import asyncio
from typing import ClassVar

from nostrcord.core.base_service import BaseService
from nostrcord.core.metadata_cache import MetadataCache
from nostrcord.core.registry import SubscriberRegistry
from nostrcord.models.constants import ServiceName
from nostrcord.models.identity import Identity

from .configs import BridgeConfig
from .discord_gateway import DiscordGateway
from .nostr_transport import NostrTransport
from .pipeline import RelayPipeline


class Bridge(BaseService[BridgeConfig]):
    """Relays a Discord channel to Nostr subscribers and back.

    Lifecycle:
        1. ``__init__``: build registry and cache, load both from disk.
        2. ``run()``: connect to relays, start the Discord client and both
           pipeline loops, wait for the first task to end or for shutdown.
        3. Teardown inside ``run()``: cancel remaining tasks, close both
           clients.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.BRIDGE
    CONFIG_CLASS: ClassVar[type[BridgeConfig]] = BridgeConfig

    def __init__(self, config: BridgeConfig | None = None) -> None:
        super().__init__(config)
        storage = self._config.storage
        self._registry = SubscriberRegistry(storage.subscribers_file)
        self._cache = MetadataCache(
            storage.metadata_cache_file,
            lifetime=self._config.metadata.lifetime,
            fetch_timeout=self._config.metadata.fetch_timeout,
        )
        self._registry.load()
        self._cache.load()

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    @property
    def identity(self) -> Identity:
        """The bridge's own Nostr identity."""
        return Identity.from_public_key(self._config.keys.public_key())

    def _create_transport(self) -> NostrTransport:
        return NostrTransport(
            self._config.keys,
            self._config.relays,
            self._config.blossom,
            connect_timeout=self._config.connect_timeout,
        )

    def build_pipeline(
        self, gateway: DiscordGateway, transport: NostrTransport
    ) -> RelayPipeline:
        """Assemble the pipeline around freshly created adapters."""
        return RelayPipeline(
            self._registry,
            self._cache,
            gateway,
            transport,
            transport.identity,
            self._config,
            metrics=self,
        )

    async def run(self) -> None:
        """Run all bridge tasks until one of them ends or shutdown is requested."""
        transport = self._create_transport()
        gateway = DiscordGateway(self._config.discord.channel_id)
        pipeline = self.build_pipeline(gateway, transport)
        gateway.sink = pipeline.submit_chat_event

        self.set_gauge("subscribers", len(self._registry))
        self.set_gauge("cached_profiles", len(self._cache))
        self._logger.info(
            "bridge_starting",
            pubkey=transport.identity.to_bech32(),
            channel_id=self._config.discord.channel_id,
            subscribers=len(self._registry),
            cached_profiles=len(self._cache),
        )

        tasks: dict[asyncio.Task[None], str] = {}
        shutdown = asyncio.create_task(self._shutdown_event.wait())
        try:
            await transport.connect()
            tasks = {
                asyncio.create_task(transport.listen(pipeline.submit_direct_message)): "nostr",
                asyncio.create_task(
                    gateway.start(self._config.discord.token.get_secret_value())
                ): "discord",
                asyncio.create_task(pipeline.run_outbound()): "outbound",
                asyncio.create_task(pipeline.run_inbound()): "inbound",
            }

            done, _ = await asyncio.wait(
                [*tasks, shutdown], return_when=asyncio.FIRST_COMPLETED
            )

            for task in done:
                if task is shutdown:
                    continue
                name = tasks[task]
                exc = task.exception()
                if exc is not None:
                    self._logger.error(
                        "task_failed", task=name, error=str(exc), error_type=type(exc).__name__
                    )
                    raise exc
                self._logger.warning("task_stopped", task=name)
        finally:
            shutdown.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(shutdown, *tasks, return_exceptions=True)
            if not gateway.is_closed():
                await gateway.close()
            await transport.close()
            self._logger.info("bridge_stopped")
