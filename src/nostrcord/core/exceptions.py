"""nostrcord exception hierarchy.

Provides typed exceptions for every error category of the bridge, so that
per-message and per-recipient error boundaries can catch exactly what they
expect and let ``CancelledError`` propagate untouched.

Exception hierarchy:

```text
NostrcordError (base -- never raised directly)
├── ConfigurationError       -- missing/invalid settings; fatal at startup
├── PersistenceError         -- subscriber/metadata file unreadable or unwritable
├── TransportError           -- send, fetch or post failed on either network
└── ProtocolError            -- inbound event could not be decrypted or parsed
```

Only [ConfigurationError][nostrcord.core.exceptions.ConfigurationError] is
fatal. The other categories are logged at the point of failure and the
affected message, recipient or file write is skipped.

See Also:
    [SubscriberRegistry][nostrcord.core.registry.SubscriberRegistry] and
        [MetadataCache][nostrcord.core.metadata_cache.MetadataCache]: Log and
        swallow [PersistenceError][nostrcord.core.exceptions.PersistenceError].
    [RelayPipeline][nostrcord.services.bridge.pipeline.RelayPipeline]: Catches
        [TransportError][nostrcord.core.exceptions.TransportError] per
        recipient and per post.
    [NostrTransport][nostrcord.services.bridge.nostr_transport.NostrTransport]:
        Raises [ProtocolError][nostrcord.core.exceptions.ProtocolError] for
        events that cannot be unwrapped.
"""

from __future__ import annotations


class NostrcordError(Exception):
    """Base exception for all nostrcord errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrcordError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class PersistenceError(NostrcordError):
    """A backing file could not be read or written.

    The in-memory state stays authoritative; callers log and continue.
    """


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(NostrcordError):
    """A send, fetch or post against one of the networks failed."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NostrcordError):
    """An inbound event could not be decrypted or its content parsed."""
