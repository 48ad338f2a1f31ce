"""Nostr client construction and relay connection.

Thin helpers over ``nostr_sdk`` used by the
[NostrTransport][nostrcord.services.bridge.nostr_transport.NostrTransport]:
a client factory bound to the bridge's signer, and a connect helper that
adds every configured relay and reports which ones came up.

Examples:
    ```python
    client = create_client(keys)
    connected = await connect_relays(client, ["wss://relay.damus.io"], timeout=10.0)
    ```
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Final

from nostr_sdk import Client, ClientBuilder, NostrSigner, RelayUrl

from nostrcord.core.exceptions import TransportError


if TYPE_CHECKING:
    from collections.abc import Sequence

    from nostr_sdk import Keys


DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0

logger = logging.getLogger(__name__)

# nostr-sdk logs every relay reconnect attempt; keep only real problems
logging.getLogger("nostr_sdk").setLevel(logging.WARNING)


def create_client(keys: Keys) -> Client:
    """Create a Nostr client that signs, wraps and unwraps with ``keys``."""
    signer = NostrSigner.keys(keys)
    return ClientBuilder().signer(signer).build()


async def connect_relays(
    client: Client,
    relay_urls: Sequence[str],
    timeout: float = DEFAULT_CONNECT_TIMEOUT,  # noqa: ASYNC109
) -> list[str]:
    """Add ``relay_urls`` to ``client`` and connect to them.

    Relays that fail to connect are logged and left in the pool; nostr-sdk
    keeps retrying them in the background.

    Returns:
        URLs of the relays that connected within ``timeout``.

    Raises:
        TransportError: If a URL is rejected by the SDK, or if no relay
            connected at all.
    """
    parsed: list[tuple[str, RelayUrl]] = []
    for url in relay_urls:
        try:
            relay_url = RelayUrl.parse(url)
        except Exception as e:  # Intentionally broad: nostr-sdk raises FFI error types
            raise TransportError(f"Invalid relay URL {url}: {e}") from e
        await client.add_relay(relay_url)
        parsed.append((url, relay_url))

    output = await client.try_connect(timedelta(seconds=timeout))

    connected: list[str] = []
    for url, relay_url in parsed:
        if relay_url in output.success:
            connected.append(url)
            logger.info("relay_connected url=%s", url)
        else:
            logger.warning(
                "relay_connect_failed url=%s error=%s",
                url,
                output.failed.get(relay_url, "Unknown error"),
            )

    if not connected:
        raise TransportError(f"Could not connect to any relay ({len(parsed)} configured)")
    return connected
