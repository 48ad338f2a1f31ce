"""
Persisted set of Nostr identities subscribed to the chat channel.

The [SubscriberRegistry][nostrcord.core.registry.SubscriberRegistry] is a
write-through cache: every successful ``add``/``remove`` rewrites the backing
file from a snapshot of the in-memory set. The in-memory set is authoritative
for the running process; a failed write is logged and never rolls back the
mutation.

File format: one ``npub`` per line, sorted, human-editable. Loading also
accepts hex keys and ``nostr:`` URIs, skips blank lines, and logs and skips
lines that cannot be parsed.

Concurrency:
    The set is guarded by a ``threading.Lock`` that is never held across an
    ``await``. Writes run in a worker thread through ``asyncio.to_thread``
    and are serialized by an ``asyncio.Lock``; each write takes its snapshot
    only once it owns that lock, so the last write to finish always reflects
    the latest in-memory state.
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING

from nostrcord.models.identity import Identity

from .exceptions import PersistenceError
from .logger import Logger
from .persistence import read_snapshot, write_snapshot


if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class SubscriberRegistry:
    """Identities that receive relayed chat traffic.

    Args:
        path: Backing file. ``None`` keeps the registry in memory only.

    Examples:
        ```python
        registry = SubscriberRegistry(Path("data/subscribers.txt"))
        registry.load()
        await registry.add(identity)   # True
        await registry.add(identity)   # False
        registry.contains(identity)    # True
        ```
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._subscribers: set[Identity] = set()
        self._lock = threading.Lock()
        self._write_lock = asyncio.Lock()
        self._logger = Logger("bridge.registry")

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> int:
        """Replace the in-memory set with the contents of the backing file.

        A missing file yields an empty registry. An unreadable file is
        logged and also yields an empty registry (memory-only operation).

        Returns:
            Number of subscribers loaded.
        """
        if self._path is None:
            return 0

        try:
            text = read_snapshot(self._path)
        except PersistenceError as e:
            self._logger.error("subscribers_read_failed", path=str(self._path), error=str(e))
            return 0

        loaded: set[Identity] = set()
        skipped = 0
        for lineno, raw_line in enumerate((text or "").splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            try:
                loaded.add(Identity.parse(line))
            except ValueError as e:
                skipped += 1
                self._logger.warning(
                    "subscriber_line_invalid", path=str(self._path), line=lineno, error=str(e)
                )

        with self._lock:
            self._subscribers = loaded

        self._logger.info(
            "subscribers_loaded", path=str(self._path), count=len(loaded), skipped=skipped
        )
        return len(loaded)

    async def add(self, identity: Identity) -> bool:
        """Insert ``identity``; return whether it was newly added.

        A new insertion triggers a full file write. Write failures are
        logged and do not affect the return value.
        """
        with self._lock:
            added = identity not in self._subscribers
            self._subscribers.add(identity)
        if added:
            self._logger.info("subscriber_added", pubkey=identity.to_bech32())
            await self._persist()
        return added

    async def remove(self, identity: Identity) -> bool:
        """Remove ``identity``; return whether it was present."""
        with self._lock:
            removed = identity in self._subscribers
            self._subscribers.discard(identity)
        if removed:
            self._logger.info("subscriber_removed", pubkey=identity.to_bech32())
            await self._persist()
        return removed

    def contains(self, identity: Identity) -> bool:
        with self._lock:
            return identity in self._subscribers

    def snapshot(self) -> frozenset[Identity]:
        """Point-in-time copy, safe to iterate while sends are in flight."""
        with self._lock:
            return frozenset(self._subscribers)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, Identity) and self.contains(identity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def __iter__(self) -> Iterator[Identity]:
        return iter(self.snapshot())

    def _serialize(self) -> str:
        with self._lock:
            lines = sorted(identity.to_bech32() for identity in self._subscribers)
        return "".join(f"{line}\n" for line in lines)

    async def _persist(self) -> None:
        if self._path is None:
            return
        async with self._write_lock:
            content = self._serialize()
            try:
                await asyncio.to_thread(write_snapshot, self._path, content)
            except PersistenceError as e:
                self._logger.error("subscribers_write_failed", path=str(self._path), error=str(e))
