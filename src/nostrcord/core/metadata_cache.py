"""
Persisted cache of Nostr display profiles.

The [MetadataCache][nostrcord.core.metadata_cache.MetadataCache] maps an
[Identity][nostrcord.models.identity.Identity] to its
[Profile][nostrcord.models.profile.Profile] and mirrors the whole mapping to
a single JSON file, keyed by ``npub``, overwritten on every update.

[fetch()][nostrcord.core.metadata_cache.MetadataCache.fetch] is the
cache-aside path used by the relay pipeline: a fresh entry is returned
without touching the network; otherwise the external fetcher is called with
a bounded timeout. Misses (no profile published, timeout, fetch error,
malformed profile) are cached as an empty profile, which bounds network lookups to one per
identity per lifetime window no matter how chatty the sender is.

Concurrency follows the same rules as
[SubscriberRegistry][nostrcord.core.registry.SubscriberRegistry]: a
``threading.Lock`` around the dict, never held across an ``await``; the
JSON snapshot is serialized under the lock and written in a worker thread,
with writes serialized by an ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeAlias

from nostrcord.models.constants import PROFILE_FETCH_TIMEOUT, PROFILE_LIFETIME
from nostrcord.models.profile import Profile, ProfileAttributes

from .exceptions import PersistenceError, TransportError
from .logger import Logger
from .persistence import read_snapshot, write_snapshot


if TYPE_CHECKING:
    from pathlib import Path

    from nostrcord.models.identity import Identity


ProfileFetcher: TypeAlias = Callable[["Identity", float], Awaitable[ProfileAttributes | None]]
"""``async (identity, timeout) -> attributes | None``; ``None`` means no profile published."""


class MetadataCache:
    """Identity -> Profile mapping with lazy, time-based refresh.

    Args:
        path: Backing JSON file. ``None`` keeps the cache in memory only.
        lifetime: Seconds a profile stays fresh after ``last_updated``.
        fetch_timeout: Upper bound in seconds for one fetcher call.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        lifetime: int = PROFILE_LIFETIME,
        fetch_timeout: float = PROFILE_FETCH_TIMEOUT,
    ) -> None:
        self._path = path
        self._lifetime = lifetime
        self._fetch_timeout = fetch_timeout
        self._profiles: dict[Identity, Profile] = {}
        self._lock = threading.Lock()
        self._write_lock = asyncio.Lock()
        self._logger = Logger("bridge.metadata")

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def lifetime(self) -> int:
        return self._lifetime

    def load(self) -> int:
        """Replace the in-memory cache with the contents of the backing file.

        A missing, unreadable or malformed file yields an empty cache.
        Individual malformed records are skipped.

        Returns:
            Number of profiles loaded.
        """
        if self._path is None:
            return 0

        try:
            text = read_snapshot(self._path)
        except PersistenceError as e:
            self._logger.error("metadata_read_failed", path=str(self._path), error=str(e))
            return 0
        if text is None:
            return 0

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            self._logger.warning("metadata_file_malformed", path=str(self._path), error=str(e))
            return 0
        if not isinstance(raw, dict):
            self._logger.warning(
                "metadata_file_malformed",
                path=str(self._path),
                error=f"expected an object, got {type(raw).__name__}",
            )
            return 0

        loaded: dict[Identity, Profile] = {}
        skipped = 0
        for key, record in raw.items():
            if not isinstance(record, dict):
                skipped += 1
                continue
            try:
                profile = Profile.from_dict({"pubkey": key, **record})
            except (TypeError, ValueError) as e:
                skipped += 1
                self._logger.warning("metadata_record_invalid", key=key, error=str(e))
                continue
            loaded[profile.identity] = profile

        with self._lock:
            self._profiles = loaded

        self._logger.info(
            "metadata_loaded", path=str(self._path), count=len(loaded), skipped=skipped
        )
        return len(loaded)

    def get(self, identity: Identity) -> Profile | None:
        with self._lock:
            return self._profiles.get(identity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)

    async def put(self, profile: Profile) -> None:
        """Upsert ``profile`` and rewrite the backing file.

        The snapshot is taken under the lock; the write happens after the
        lock is released.
        """
        with self._lock:
            self._profiles[profile.identity] = profile
        await self._persist()

    async def fetch(self, identity: Identity, fetcher: ProfileFetcher) -> Profile:
        """Return a fresh profile for ``identity``, fetching it if needed.

        Never raises for fetch failures: misses, errors and malformed
        profiles produce a cached empty profile whose ``best_name`` falls
        back to the truncated ``npub``.
        """
        cached = self.get(identity)
        if cached is not None and not cached.is_stale(self._lifetime):
            return cached

        pubkey = identity.to_bech32()
        self._logger.debug("metadata_fetch_started", pubkey=pubkey, cached=cached is not None)

        attributes: ProfileAttributes | None = None
        try:
            attributes = await asyncio.wait_for(
                fetcher(identity, self._fetch_timeout), timeout=self._fetch_timeout
            )
        except TimeoutError:
            self._logger.warning(
                "metadata_fetch_timeout", pubkey=pubkey, timeout_s=self._fetch_timeout
            )
        except TransportError as e:
            self._logger.warning("metadata_fetch_failed", pubkey=pubkey, error=str(e))
        except Exception as e:  # Intentionally broad: a failed lookup falls back to npub
            self._logger.error(
                "metadata_fetch_failed", pubkey=pubkey, error=str(e), error_type=type(e).__name__
            )

        profile = Profile.empty(identity)
        if attributes is not None:
            try:
                profile = Profile.from_attributes(identity, attributes)
            except (TypeError, ValueError) as e:
                self._logger.warning("metadata_invalid", pubkey=pubkey, error=str(e))
                attributes = None

        self._logger.info(
            "metadata_cached",
            pubkey=pubkey,
            name=profile.best_name,
            found=attributes is not None,
            nameless=profile.is_nameless,
        )
        await self.put(profile)
        return profile

    def _serialize(self) -> str:
        with self._lock:
            snapshot = {
                identity.to_bech32(): profile.to_dict()
                for identity, profile in self._profiles.items()
            }
        return json.dumps(snapshot, indent=2, sort_keys=True)

    async def _persist(self) -> None:
        if self._path is None:
            return
        async with self._write_lock:
            content = self._serialize()
            try:
                await asyncio.to_thread(write_snapshot, self._path, content)
            except PersistenceError as e:
                self._logger.error("metadata_write_failed", path=str(self._path), error=str(e))
