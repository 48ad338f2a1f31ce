"""Blossom blob upload for chat attachments.

Nostr DMs carry text only, so an image posted in the chat channel is
uploaded to a Blossom server (BUD-02 ``PUT /upload``) and the resulting URL
is sent to subscribers instead. Uploads are authorized with a signed kind
24242 event (BUD-01) passed base64-encoded in the ``Authorization`` header.

See Also:
    [NostrTransport.send_private()][nostrcord.services.bridge.nostr_transport.NostrTransport.send_private]:
        Uploads once per attachment and reuses the descriptor for every
        subscriber.
"""

from __future__ import annotations

import base64
import hashlib
import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import aiohttp
from nostr_sdk import EventBuilder, Kind, Tag

from nostrcord.core.exceptions import TransportError
from nostrcord.models.constants import EventKind


if TYPE_CHECKING:
    from nostr_sdk import Keys

    from nostrcord.models.message import Attachment


_AUTH_EXPIRATION_S: Final[int] = 300
_MAX_RESPONSE_SIZE: Final[int] = 64 * 1024


@dataclass(frozen=True, slots=True)
class BlobDescriptor:
    """Server response describing an uploaded blob (BUD-02)."""

    url: str
    sha256: str
    size: int
    mime_type: str

    def imeta_tag(self) -> Tag:
        """NIP-92 ``imeta`` tag advertising the blob to clients."""
        return Tag.parse(
            [
                "imeta",
                f"url {self.url}",
                f"m {self.mime_type}",
                f"x {self.sha256}",
                f"size {self.size}",
            ]
        )


def build_upload_authorization(keys: Keys, sha256: str, description: str) -> str:
    """Return the ``Authorization`` header value for uploading blob ``sha256``."""
    expiration = int(time.time()) + _AUTH_EXPIRATION_S
    event = (
        EventBuilder(Kind(EventKind.BLOSSOM_AUTH), description)
        .tags(
            [
                Tag.parse(["t", "upload"]),
                Tag.parse(["x", sha256]),
                Tag.parse(["expiration", str(expiration)]),
            ]
        )
        .sign_with_keys(keys)
    )
    encoded = base64.b64encode(event.as_json().encode("utf-8")).decode("ascii")
    return f"Nostr {encoded}"


async def _read_bounded_json(response: aiohttp.ClientResponse, max_size: int) -> Any:
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return json.loads(b"".join(chunks))


async def upload_blob(
    server: str,
    attachment: Attachment,
    keys: Keys,
    *,
    timeout: float = 30.0,  # noqa: ASYNC109
    max_size: int = 10 * 1024 * 1024,
) -> BlobDescriptor:
    """Upload ``attachment`` to the Blossom ``server``.

    Args:
        server: Base URL of the Blossom server (``https://blossom.example``).
        attachment: Image bytes and extension hint.
        keys: Keys used to sign the upload authorization.
        timeout: Total request timeout in seconds.
        max_size: Largest attachment accepted, in bytes.

    Returns:
        The server's [BlobDescriptor][nostrcord.utils.blossom.BlobDescriptor].

    Raises:
        TransportError: If the attachment is too large, the request fails,
            or the server returns an unusable descriptor.
    """
    if attachment.size > max_size:
        raise TransportError(f"Attachment too large: {attachment.size} > {max_size} bytes")

    sha256 = hashlib.sha256(attachment.data).hexdigest()
    headers = {
        "Authorization": build_upload_authorization(
            keys, sha256, f"Upload {attachment.filename or f'{sha256}.{attachment.extension}'}"
        ),
        "Content-Type": attachment.mime_type,
    }
    url = f"{server.rstrip('/')}/upload"
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    try:
        async with (
            aiohttp.ClientSession(timeout=client_timeout) as session,
            session.put(url, data=attachment.data, headers=headers) as response,
        ):
            if response.status >= 400:
                reason = response.headers.get("X-Reason", response.reason or "")
                raise TransportError(f"Blossom upload rejected ({response.status}): {reason}")
            body = await _read_bounded_json(response, _MAX_RESPONSE_SIZE)
    except (aiohttp.ClientError, TimeoutError, ValueError) as e:
        raise TransportError(f"Blossom upload to {server} failed: {e}") from e

    if not isinstance(body, dict) or not isinstance(body.get("url"), str):
        raise TransportError(f"Blossom server {server} returned no blob URL")

    try:
        return BlobDescriptor(
            url=body["url"],
            sha256=str(body.get("sha256", sha256)),
            size=int(body.get("size", attachment.size)),
            mime_type=str(body.get("type") or attachment.mime_type),
        )
    except (TypeError, ValueError) as e:
        raise TransportError(
            f"Blossom server {server} returned a malformed descriptor: {e}"
        ) from e
