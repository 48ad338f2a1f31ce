"""
Participant identity on the Nostr network.

An [Identity][nostrcord.models.identity.Identity] is the x-only secp256k1
public key of a Nostr user. It is the key of both the
[SubscriberRegistry][nostrcord.core.registry.SubscriberRegistry] and the
[MetadataCache][nostrcord.core.metadata_cache.MetadataCache], so it must be
hashable, compare exactly, and serialize stably to both a canonical text form
(NIP-19 ``npub`` bech32) and a compact hex form.

Identities are plain values: they never hold a reference to a live
``nostr_sdk.PublicKey``. Conversion to and from the SDK type happens at the
transport boundary via
[from_public_key()][nostrcord.models.identity.Identity.from_public_key] and
[to_public_key()][nostrcord.models.identity.Identity.to_public_key].
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final

from nostr_sdk import PublicKey

from ._validation import validate_str_not_empty
from .constants import SHORT_IDENTITY_LENGTH


_HEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9a-f]{64}$")
_URI_PREFIX: Final[str] = "nostr:"


@dataclass(frozen=True, slots=True)
class Identity:
    """Immutable, hashable Nostr public key.

    The bech32 form is computed once in ``__post_init__``, which also
    validates that the hex value is a real curve point (fail-fast: an
    invalid Identity never escapes the constructor).

    Attributes:
        hex: Lowercase 64-character hex encoding of the public key.

    Raises:
        ValueError: If ``hex`` is not 64 lowercase hex characters or is not
            a valid secp256k1 x-only public key.

    Examples:
        ```python
        alice = Identity.parse("npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6")
        alice.to_hex()     # '3bf0c63f...'
        alice.to_bech32()  # 'npub180cvv07...'
        alice.short()      # 'npub180cvv07...'
        ```
    """

    hex: str
    _bech32: str = field(default="", init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        validate_str_not_empty(self.hex, "hex")
        if not _HEX_PATTERN.match(self.hex):
            raise ValueError(f"hex must be 64 lowercase hex characters, got {self.hex!r}")
        try:
            bech32 = PublicKey.parse(self.hex).to_bech32()
        except Exception as e:  # Intentionally broad: nostr-sdk raises FFI error types
            raise ValueError(f"Invalid public key {self.hex}: {e}") from e
        object.__setattr__(self, "_bech32", bech32)

    @classmethod
    def parse(cls, text: str) -> Identity:
        """Parse an identity from ``npub1...``, hex, or a ``nostr:`` URI.

        Surrounding whitespace is ignored.

        Raises:
            ValueError: If the text is not a valid public key in any
                supported encoding.
        """
        value = text.strip()
        if value.startswith(_URI_PREFIX):
            value = value[len(_URI_PREFIX) :]
        if not value:
            raise ValueError("Empty public key")
        if _HEX_PATTERN.match(value.lower()):
            return cls(value.lower())
        if not value.startswith("npub1"):
            raise ValueError(f"Unsupported public key encoding: {value!r}")
        try:
            public_key = PublicKey.parse(value)
        except Exception as e:  # Intentionally broad: nostr-sdk raises FFI error types
            raise ValueError(f"Invalid bech32 public key {value!r}: {e}") from e
        return cls(public_key.to_hex())

    @classmethod
    def from_public_key(cls, public_key: PublicKey) -> Identity:
        """Build an identity from a ``nostr_sdk.PublicKey``."""
        return cls(public_key.to_hex())

    def to_public_key(self) -> PublicKey:
        """Return the equivalent ``nostr_sdk.PublicKey``."""
        return PublicKey.parse(self.hex)

    def to_hex(self) -> str:
        return self.hex

    def to_bech32(self) -> str:
        """Canonical text form (NIP-19 ``npub``)."""
        return self._bech32

    def short(self) -> str:
        """Truncated bech32 rendering used as a last-resort display name."""
        if len(self._bech32) > SHORT_IDENTITY_LENGTH:
            return f"{self._bech32[:SHORT_IDENTITY_LENGTH]}..."
        return self._bech32

    def __str__(self) -> str:
        return self._bech32
