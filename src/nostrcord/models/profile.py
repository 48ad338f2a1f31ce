"""
Cached display profile of a Nostr identity.

A [Profile][nostrcord.models.profile.Profile] is the subset of a NIP-01
kind 0 metadata event that the bridge needs to render a sender in the chat
channel, plus the time it was last refreshed. Profiles are the values of the
[MetadataCache][nostrcord.core.metadata_cache.MetadataCache] and round-trip
through its JSON snapshot via
[to_dict()][nostrcord.models.profile.Profile.to_dict] and
[from_dict()][nostrcord.models.profile.Profile.from_dict].

See Also:
    [ProfileAttributes][nostrcord.models.profile.ProfileAttributes]: Raw
        attributes returned by the transport's profile fetcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import time
from typing import Any

from ._validation import validate_instance, validate_optional_str, validate_timestamp
from .constants import PROFILE_LIFETIME
from .identity import Identity


def _non_blank(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


@dataclass(frozen=True, slots=True)
class ProfileAttributes:
    """Profile fields as published by the identity's owner.

    All fields are optional; relays may return a metadata event with any
    subset of them, or none at all.
    """

    name: str | None = None
    display_name: str | None = None
    nip05: str | None = None
    picture: str | None = None
    about: str | None = None


@dataclass(frozen=True, slots=True)
class Profile:
    """Immutable display profile for one [Identity][nostrcord.models.identity.Identity].

    Attributes:
        identity: The profile owner.
        name: Primary (``name``) field.
        display_name: Optional ``display_name`` field.
        nip05: Optional NIP-05 internet identifier (external directory handle).
        picture: Optional avatar URL.
        about: Optional free-text bio (kept for completeness, never rendered).
        last_updated: Unix timestamp of the last refresh. ``0`` means never.

    Raises:
        TypeError: If any field has the wrong type.
        ValueError: If a string contains null bytes or ``last_updated`` is
            negative.

    Examples:
        ```python
        profile = Profile(identity, name="alice", display_name="Alice")
        profile.best_name          # 'Alice'
        Profile(identity).best_name  # 'npub1abcdefg...'
        ```
    """

    identity: Identity
    name: str | None = None
    display_name: str | None = None
    nip05: str | None = None
    picture: str | None = None
    about: str | None = None
    last_updated: int = 0

    def __post_init__(self) -> None:
        validate_instance(self.identity, Identity, "identity")
        for field_name in ("name", "display_name", "nip05", "picture", "about"):
            validate_optional_str(getattr(self, field_name), field_name)
        validate_timestamp(self.last_updated, "last_updated")

    @classmethod
    def empty(cls, identity: Identity, now: int | None = None) -> Profile:
        """Default profile cached when no metadata could be fetched.

        Stamped with ``now`` so the miss is remembered for a full
        lifetime window.
        """
        return cls(identity=identity, last_updated=int(time()) if now is None else now)

    @classmethod
    def from_attributes(
        cls, identity: Identity, attributes: ProfileAttributes, now: int | None = None
    ) -> Profile:
        """Build a freshly refreshed profile from fetched attributes."""
        return cls(
            identity=identity,
            name=attributes.name,
            display_name=attributes.display_name,
            nip05=attributes.nip05,
            picture=attributes.picture,
            about=attributes.about,
            last_updated=int(time()) if now is None else now,
        )

    @property
    def best_name(self) -> str:
        """Most human-friendly non-empty name for this identity.

        Preference order: display name, name, NIP-05 handle, then the
        truncated ``npub``. Never empty.
        """
        for candidate in (self.display_name, self.name, self.nip05):
            value = _non_blank(candidate)
            if value is not None:
                return value
        return self.identity.short()

    @property
    def is_nameless(self) -> bool:
        """Whether neither name field carries a usable value."""
        return _non_blank(self.name) is None and _non_blank(self.display_name) is None

    def is_stale(self, lifetime: int = PROFILE_LIFETIME, now: int | None = None) -> bool:
        """Whether the profile is older than ``lifetime`` seconds."""
        current = int(time()) if now is None else now
        return current > self.last_updated + lifetime

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible record stored in the metadata cache file."""
        return {
            "pubkey": self.identity.to_bech32(),
            "name": self.name,
            "display_name": self.display_name,
            "picture": self.picture,
            "nip05": self.nip05,
            "about": self.about,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        """Rebuild a profile from a cache file record.

        Raises:
            ValueError: If the ``pubkey`` is missing or unparsable.
            TypeError: If a field has the wrong type.
        """
        pubkey = data.get("pubkey")
        if not isinstance(pubkey, str):
            raise ValueError("profile record has no pubkey")
        return cls(
            identity=Identity.parse(pubkey),
            name=data.get("name"),
            display_name=data.get("display_name"),
            nip05=data.get("nip05"),
            picture=data.get("picture"),
            about=data.get("about"),
            last_updated=data.get("last_updated", 0),
        )
