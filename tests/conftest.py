"""
Pytest configuration and shared fixtures for nostrcord tests.

Provides:
- Environment isolation for the bridge's env-driven settings
- Identity and profile fixtures
- In-memory fakes for the chat gateway and the encrypted transport
- A ready BridgeConfig that needs no environment
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pytest
from nostr_sdk import Keys

from nostrcord.core.exceptions import TransportError
from nostrcord.core.metadata_cache import MetadataCache
from nostrcord.core.registry import SubscriberRegistry
from nostrcord.models import Attachment, Identity, NetworkMessage, Profile, ProfileAttributes
from nostrcord.services.bridge.configs import BridgeConfig


# Well-known NIP-19 test vector (DO NOT USE IN PRODUCTION)
KNOWN_HEX = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
KNOWN_NPUB = "npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6"

BRIDGE_ENV_VARS = (
    "NOSTR_PRIVATE_KEY",
    "NOSTR_RELAYS",
    "DISCORD_TOKEN",
    "DISCORD_CHANNEL_ID",
    "SUBSCRIBERS_FILE",
    "METADATA_CACHE_FILE",
)

CHANNEL_ID = 4242


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove bridge settings inherited from the developer's shell."""
    for name in BRIDGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Identities and profiles
# ============================================================================


def make_identity() -> Identity:
    return Identity.from_public_key(Keys.generate().public_key())


@pytest.fixture
def identity_factory():
    return make_identity


@pytest.fixture
def known_identity() -> Identity:
    return Identity(KNOWN_HEX)


@pytest.fixture
def alice() -> Identity:
    return make_identity()


@pytest.fixture
def bob() -> Identity:
    return make_identity()


@pytest.fixture
def bridge_keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def bridge_identity(bridge_keys: Keys) -> Identity:
    return Identity.from_public_key(bridge_keys.public_key())


@pytest.fixture
def named_profile(alice: Identity) -> Profile:
    return Profile(
        identity=alice,
        name="alice",
        display_name="Alice",
        picture="https://example.com/alice.png",
        last_updated=1_700_000_000,
    )


@pytest.fixture
def png_attachment() -> Attachment:
    return Attachment(data=b"\x89PNG\r\n\x1a\nfake", extension="png", filename="cat.png")


# ============================================================================
# Fakes
# ============================================================================


@dataclass
class FakeTransport:
    """In-memory EncryptedTransport recording every call."""

    profiles: dict[Identity, ProfileAttributes] = field(default_factory=dict)
    failing: set[Identity] = field(default_factory=set)
    raising: set[Identity] = field(default_factory=set)
    fetch_error: Exception | None = None
    sent: list[tuple[Identity, str, Attachment | None]] = field(default_factory=list)
    fetches: list[Identity] = field(default_factory=list)

    async def send_private(
        self, identity: Identity, text: str, attachment: Attachment | None = None
    ) -> bool:
        self.sent.append((identity, text, attachment))
        if identity in self.raising:
            raise TransportError("relay unreachable")
        return identity not in self.failing

    async def fetch_profile(self, identity: Identity, timeout: float) -> ProfileAttributes | None:
        self.fetches.append(identity)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.profiles.get(identity)

    def texts_to(self, identity: Identity) -> list[str]:
        return [text for to, text, _ in self.sent if to == identity]


@dataclass
class FakeGateway:
    """In-memory ChatGateway recording posted messages."""

    posted: list[NetworkMessage] = field(default_factory=list)
    fail: bool = False

    async def post(self, message: NetworkMessage) -> None:
        if self.fail:
            raise TransportError("discord unavailable")
        self.posted.append(message)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


# ============================================================================
# Components
# ============================================================================


@pytest.fixture
def bridge_config(bridge_keys: Keys) -> BridgeConfig:
    return BridgeConfig(
        keys=bridge_keys,
        relays=["wss://relay.example.com"],
        discord={"token": "discord-test-token", "channel_id": CHANNEL_ID},
        queue_size=10,
    )


@pytest.fixture
def registry() -> SubscriberRegistry:
    return SubscriberRegistry()


@pytest.fixture
def cache() -> MetadataCache:
    return MetadataCache(fetch_timeout=1.0)
