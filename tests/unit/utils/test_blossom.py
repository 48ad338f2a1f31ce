"""
Unit tests for utils.blossom module.

Tests:
- Upload authorization event contents
- BlobDescriptor.imeta_tag()
- upload_blob(): success, size limit, rejection, malformed and oversized
  responses, network errors
"""

import base64
import hashlib
import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from nostr_sdk import Keys

from nostrcord.core.exceptions import TransportError
from nostrcord.models import Attachment
from nostrcord.utils.blossom import (
    BlobDescriptor,
    build_upload_authorization,
    upload_blob,
)


SERVER = "https://blossom.example.com"


def decode_authorization(header: str) -> dict:
    scheme, _, encoded = header.partition(" ")
    assert scheme == "Nostr"
    return json.loads(base64.b64decode(encoded))


def fake_session(status=200, body=b"{}", headers=None, reason="OK"):
    """Patchable ClientSession factory returning a canned PUT response."""
    response = MagicMock()
    response.status = status
    response.reason = reason
    response.headers = headers or {}
    response.content.read = AsyncMock(side_effect=[body, b""])

    put_ctx = MagicMock()
    put_ctx.__aenter__.return_value = response
    put_ctx.__aexit__.return_value = False

    session = MagicMock()
    session.put.return_value = put_ctx

    session_ctx = MagicMock()
    session_ctx.__aenter__.return_value = session
    session_ctx.__aexit__.return_value = False
    return MagicMock(return_value=session_ctx), session


@pytest.fixture
def keys() -> Keys:
    return Keys.generate()


class TestAuthorization:
    def test_event_contents(self, keys):
        sha = "ab" * 32
        event = decode_authorization(build_upload_authorization(keys, sha, "Upload cat.png"))
        assert event["kind"] == 24242
        assert event["pubkey"] == keys.public_key().to_hex()
        assert event["content"] == "Upload cat.png"
        tags = {tag[0]: tag[1] for tag in event["tags"]}
        assert tags["t"] == "upload"
        assert tags["x"] == sha
        assert int(tags["expiration"]) > event["created_at"]


class TestBlobDescriptor:
    def test_imeta_tag(self):
        blob = BlobDescriptor(url="https://b/x.png", sha256="ff", size=3, mime_type="image/png")
        assert blob.imeta_tag().as_vec() == [
            "imeta",
            "url https://b/x.png",
            "m image/png",
            "x ff",
            "size 3",
        ]


class TestUploadBlob:
    async def test_success(self, keys, png_attachment):
        sha = hashlib.sha256(png_attachment.data).hexdigest()
        body = json.dumps({"url": f"{SERVER}/{sha}.png", "sha256": sha, "size": 12}).encode()
        factory, session = fake_session(body=body)
        with patch("nostrcord.utils.blossom.aiohttp.ClientSession", factory):
            blob = await upload_blob(SERVER + "/", png_attachment, keys)

        assert blob == BlobDescriptor(
            url=f"{SERVER}/{sha}.png", sha256=sha, size=12, mime_type="image/png"
        )
        args, kwargs = session.put.call_args
        assert args == (f"{SERVER}/upload",)
        assert kwargs["data"] == png_attachment.data
        assert kwargs["headers"]["Content-Type"] == "image/png"
        auth = decode_authorization(kwargs["headers"]["Authorization"])
        assert ["x", sha] in auth["tags"]

    async def test_descriptor_defaults_from_attachment(self, keys, png_attachment):
        factory, _ = fake_session(body=b'{"url": "https://b/blob"}')
        with patch("nostrcord.utils.blossom.aiohttp.ClientSession", factory):
            blob = await upload_blob(SERVER, png_attachment, keys)
        assert blob.sha256 == hashlib.sha256(png_attachment.data).hexdigest()
        assert blob.size == png_attachment.size
        assert blob.mime_type == "image/png"

    async def test_too_large(self, keys):
        attachment = Attachment(data=b"x" * 2048, extension="png")
        factory, session = fake_session()
        with (
            patch("nostrcord.utils.blossom.aiohttp.ClientSession", factory),
            pytest.raises(TransportError, match="too large"),
        ):
            await upload_blob(SERVER, attachment, keys, max_size=1024)
        session.put.assert_not_called()

    async def test_rejected_with_reason(self, keys, png_attachment):
        factory, _ = fake_session(status=413, headers={"X-Reason": "quota exceeded"})
        with (
            patch("nostrcord.utils.blossom.aiohttp.ClientSession", factory),
            pytest.raises(TransportError, match="413.*quota exceeded"),
        ):
            await upload_blob(SERVER, png_attachment, keys)

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[]",
            b'{"sha256": "ff"}',
            b'{"url": 5}',
            b'{"url": "https://x/y", "size": "big"}',
            b'{"url": "https://x/y", "size": null}',
        ],
    )
    async def test_unusable_response(self, keys, png_attachment, body):
        factory, _ = fake_session(body=body)
        with (
            patch("nostrcord.utils.blossom.aiohttp.ClientSession", factory),
            pytest.raises(TransportError),
        ):
            await upload_blob(SERVER, png_attachment, keys)

    async def test_oversized_response(self, keys, png_attachment):
        factory, _ = fake_session(body=b"{" + b" " * (64 * 1024 + 10))
        with (
            patch("nostrcord.utils.blossom.aiohttp.ClientSession", factory),
            pytest.raises(TransportError, match="too large"),
        ):
            await upload_blob(SERVER, png_attachment, keys)

    async def test_network_error(self, keys, png_attachment):
        factory, session = fake_session()
        session.put.side_effect = aiohttp.ClientConnectionError("refused")
        with (
            patch("nostrcord.utils.blossom.aiohttp.ClientSession", factory),
            pytest.raises(TransportError, match="refused"),
        ):
            await upload_blob(SERVER, png_attachment, keys)
