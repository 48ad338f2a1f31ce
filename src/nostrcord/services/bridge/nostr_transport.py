"""NIP-17 private messaging over nostr-sdk.

[NostrTransport][nostrcord.services.bridge.nostr_transport.NostrTransport]
implements the
[EncryptedTransport][nostrcord.services.bridge.transports.EncryptedTransport]
protocol and runs the listener that feeds decrypted DMs to the pipeline.

Inbound flow: one subscription for gift wraps (kind 1059) tagged with the
bridge's pubkey, ``limit(0)`` so only new events arrive. Each wrap not
authored by the bridge is unwrapped with the client's signer; the rumor's
sender, kind and content become a
[DirectMessage][nostrcord.models.message.DirectMessage]. Wraps that cannot
be decrypted are logged and dropped.

Outbound flow: ``send_private_msg`` gift-wraps the text for the recipient.
Chat attachments are uploaded to Blossom once per message and shared by
every recipient through the URL and a NIP-92 ``imeta`` tag.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from nostr_sdk import Filter, HandleNotification, Kind, NostrSigner, UnwrappedGift

from nostrcord.core.exceptions import ProtocolError, TransportError
from nostrcord.core.logger import Logger
from nostrcord.models.constants import EventKind
from nostrcord.models.identity import Identity
from nostrcord.models.message import DirectMessage
from nostrcord.models.profile import ProfileAttributes
from nostrcord.utils.blossom import BlobDescriptor, upload_blob
from nostrcord.utils.protocol import connect_relays, create_client


if TYPE_CHECKING:
    from nostr_sdk import Client, Event, Keys, RelayMessage, RelayUrl

    from nostrcord.models.message import Attachment

    from .configs import BlossomConfig
    from .transports import DirectMessageSink


class _GiftWrapHandler(HandleNotification):
    """Routes relay notifications for the gift wrap subscription."""

    def __init__(self, transport: NostrTransport) -> None:
        super().__init__()
        self._transport = transport

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: Event) -> None:
        await self._transport.handle_event(event)

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage) -> None:
        pass


class NostrTransport:
    """Encrypted transport backed by a nostr-sdk ``Client``.

    Args:
        keys: The bridge's key pair.
        relays: Relay URLs to publish to and listen on.
        blossom: Attachment upload settings.
        connect_timeout: Seconds to wait for the initial relay connections.
    """

    def __init__(
        self,
        keys: Keys,
        relays: list[str],
        blossom: BlossomConfig,
        connect_timeout: float = 10.0,
    ) -> None:
        self._keys = keys
        self._relays = relays
        self._blossom = blossom
        self._connect_timeout = connect_timeout
        self._identity = Identity.from_public_key(keys.public_key())
        self._signer = NostrSigner.keys(keys)
        self._client: Client | None = None
        self._sink: DirectMessageSink | None = None
        self._uploads: dict[Attachment, BlobDescriptor | None] = {}
        self._logger = Logger("bridge.nostr")

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def client(self) -> Client:
        if self._client is None:
            raise TransportError("Nostr client is not connected")
        return self._client

    async def connect(self) -> list[str]:
        """Create the client and connect to the configured relays.

        Raises:
            TransportError: If no relay could be reached.
        """
        client = create_client(self._keys)
        self._client = client
        connected = await connect_relays(client, self._relays, timeout=self._connect_timeout)
        self._logger.info(
            "nostr_connected",
            pubkey=self._identity.to_bech32(),
            relays=len(connected),
            configured=len(self._relays),
        )
        return connected

    async def close(self) -> None:
        if self._client is None:
            return
        # nostr-sdk shutdown() can raise arbitrary FFI errors on a half-closed pool
        with contextlib.suppress(Exception):
            await self._client.shutdown()
        self._client = None
        self._logger.info("nostr_disconnected")

    async def listen(self, sink: DirectMessageSink) -> None:
        """Subscribe to incoming gift wraps and feed them to ``sink`` until cancelled."""
        client = self.client
        self._sink = sink
        gift_wraps = (
            Filter()
            .pubkey(self._identity.to_public_key())
            .kind(Kind(EventKind.GIFT_WRAP))
            .limit(0)
        )
        await client.subscribe(gift_wraps)
        self._logger.info("gift_wrap_subscription_started", pubkey=self._identity.to_bech32())
        await client.handle_notifications(_GiftWrapHandler(self))

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def handle_event(self, event: Event) -> None:
        """Unwrap one relay event and pass the resulting DM to the sink."""
        if event.kind().as_u16() != EventKind.GIFT_WRAP:
            return
        if event.author().to_hex() == self._identity.hex:
            return

        try:
            dm = await self.unwrap(event)
        except ProtocolError as e:
            self._logger.warning("gift_wrap_dropped", event_id=event.id().to_hex(), error=str(e))
            return

        if self._sink is not None:
            await self._sink(dm)

    async def unwrap(self, event: Event) -> DirectMessage:
        """Decrypt a gift wrap into a [DirectMessage][nostrcord.models.message.DirectMessage].

        Raises:
            ProtocolError: If the wrap cannot be decrypted or its rumor is malformed.
        """
        try:
            unwrapped = await UnwrappedGift.from_gift_wrap(self._signer, event)
            rumor = unwrapped.rumor()
            return DirectMessage(
                sender=Identity.from_public_key(unwrapped.sender()),
                kind=rumor.kind().as_u16(),
                content=rumor.content(),
            )
        except Exception as e:  # Intentionally broad: nostr-sdk raises FFI error types
            raise ProtocolError(f"Cannot unwrap gift wrap: {e}") from e

    # -------------------------------------------------------------------------
    # EncryptedTransport
    # -------------------------------------------------------------------------

    async def send_private(
        self,
        identity: Identity,
        text: str,
        attachment: Attachment | None = None,
    ) -> bool:
        """Gift-wrap ``text`` to ``identity``; ``False`` on any transport error."""
        extra_tags: list[Any] = []
        if attachment is not None:
            blob = await self._upload(attachment)
            if blob is not None:
                text = f"{text}\n{blob.url}" if text else blob.url
                extra_tags.append(blob.imeta_tag())

        try:
            output = await self.client.send_private_msg(
                identity.to_public_key(), text, extra_tags or None
            )
        except Exception as e:  # Intentionally broad: nostr-sdk raises FFI error types
            self._logger.warning("private_send_error", pubkey=identity.to_bech32(), error=str(e))
            return False

        if not output.success:
            self._logger.warning(
                "private_send_rejected",
                pubkey=identity.to_bech32(),
                failed=len(output.failed),
            )
            return False
        return True

    async def fetch_profile(
        self,
        identity: Identity,
        timeout: float,  # noqa: ASYNC109
    ) -> ProfileAttributes | None:
        """Fetch the latest kind 0 metadata for ``identity``.

        Raises:
            TransportError: If the relays could not be queried.
        """
        try:
            metadata = await self.client.fetch_metadata(
                identity.to_public_key(), timedelta(seconds=timeout)
            )
        except (asyncio.CancelledError, TransportError):
            raise
        except Exception as e:  # Intentionally broad: nostr-sdk raises FFI error types
            raise TransportError(f"Metadata lookup failed: {e}") from e

        if metadata is None:
            return None
        return ProfileAttributes(
            name=metadata.get_name(),
            display_name=metadata.get_display_name(),
            nip05=metadata.get_nip05(),
            picture=metadata.get_picture(),
            about=metadata.get_about(),
        )

    async def _upload(self, attachment: Attachment) -> BlobDescriptor | None:
        # Every subscriber of one chat message receives the same Attachment
        if attachment in self._uploads:
            return self._uploads[attachment]

        if self._blossom.server is None:
            self._logger.warning(
                "attachment_skipped", reason="no blossom server", extension=attachment.extension
            )
            blob = None
        else:
            try:
                blob = await upload_blob(
                    self._blossom.server,
                    attachment,
                    self._keys,
                    timeout=self._blossom.timeout,
                    max_size=self._blossom.max_size,
                )
            except TransportError as e:
                self._logger.warning("attachment_upload_failed", error=str(e))
                blob = None
            else:
                self._logger.info("attachment_uploaded", url=blob.url, size=blob.size)

        self._uploads = {attachment: blob}
        return blob
